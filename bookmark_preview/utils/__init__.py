"""Shared helpers: logging, retries and image processing."""
