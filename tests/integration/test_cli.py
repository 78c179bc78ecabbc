"""Integration tests for the bookmark-preview CLI."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest
import structlog
from click.testing import CliRunner

from bookmark_preview.cli import cli, commands
from bookmark_preview.models.config import Settings
from bookmark_preview.services.resolver import PreviewResolver, build_resolver

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from tests.conftest import FakeWeb

pytestmark = pytest.mark.integration


@pytest.fixture
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, fake_web: FakeWeb) -> Iterator[Path]:
    """Isolated config: temp cache dir, no screenshots, simulated network, silent logs.

    Log output would otherwise land in the captured stdout next to the JSON.
    """
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PREVIEW_DEPLOYMENT_MODE", "persistent")
    monkeypatch.setenv("PREVIEW_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("PREVIEW_SCREENSHOT_BACKEND", "none")
    monkeypatch.setenv("PREVIEW_FETCH_RETRY_ATTEMPTS", "1")
    monkeypatch.delenv("PREVIEW_OBJECT_STORE_BUCKET", raising=False)
    monkeypatch.setattr(commands, "configure_logging", lambda *args, **kwargs: None)

    def fake_build(settings: Settings, **kwargs: Any) -> PreviewResolver:
        return build_resolver(settings, transport=fake_web.transport(), environ={})

    monkeypatch.setattr(commands, "build_resolver", fake_build)
    structlog.configure(logger_factory=structlog.ReturnLoggerFactory(), cache_logger_on_first_use=False)
    yield tmp_path
    structlog.reset_defaults()


class TestOfflineCommands:
    """Commands that never touch the network."""

    def test_color_json(self) -> None:
        result = CliRunner().invoke(cli, ["color", "https://example.com"])
        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload == {
            "backgroundColor": "#182cce",
            "textColor": "#ffffff",
            "accentColor": "#2cce18",
            "domain": "example.com",
        }

    def test_color_ignores_query(self) -> None:
        runner = CliRunner()
        plain = runner.invoke(cli, ["color", "example.com"])
        tracked = runner.invoke(cli, ["color", "https://EXAMPLE.com/?utm_source=x"])
        assert plain.output == tracked.output

    def test_color_title_and_html(self) -> None:
        result = CliRunner().invoke(cli, ["color", "https://example.com", "--title", "My <Site>", "--html"])
        assert result.exit_code == 0
        assert "#182cce" in result.output
        assert "My &lt;Site&gt;" in result.output
        assert "<Site>" not in result.output

    def test_cache_key(self) -> None:
        result = CliRunner().invoke(cli, ["cache-key", "example.com"])
        assert result.exit_code == 0
        digest = "182ccedb33a9e03fbf1079b209da1a31"
        assert result.output.strip() == f"{digest}  previews/{digest}.jpg"

    def test_cache_key_namespace(self) -> None:
        result = CliRunner().invoke(cli, ["cache-key", "example.com", "--namespace", "thumbs"])
        assert "thumbs/" in result.output


class TestNetworkCommands:
    """resolve and upload against a simulated network."""

    def test_resolve_prints_payload(
        self, cli_env: Path, fake_web: FakeWeb, sample_og_html: str, jpeg_bytes: bytes
    ) -> None:
        fake_web.html("https://example.com/article", sample_og_html)
        fake_web.image("https://example.com/images/og-cover.jpg", jpeg_bytes)

        result = CliRunner().invoke(cli, ["resolve", "https://example.com/article"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["pageTitle"] == "Open Graph Title"
        assert payload["previewImage"].startswith("/previews/")
        assert "colorPreview" not in payload

    def test_resolve_unreachable_prints_swatch(self, cli_env: Path) -> None:
        result = CliRunner().invoke(cli, ["resolve", "https://down.example/", "--title", "Saved"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["previewImage"] == ""
        assert payload["pageTitle"] == "Saved"
        assert payload["colorPreview"]["domain"] == "Saved"

    def test_upload_success(self, cli_env: Path, jpeg_bytes: bytes) -> None:
        image = cli_env / "cover.jpg"
        image.write_bytes(jpeg_bytes)
        result = CliRunner().invoke(cli, ["upload", str(image)])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["success"] is True
        assert payload["url"].startswith("/uploads/")

    def test_upload_rejects_non_image(self, cli_env: Path) -> None:
        bogus = cli_env / "notes.txt"
        bogus.write_text("plain text, not pixels")
        result = CliRunner().invoke(cli, ["upload", str(bogus)])
        assert result.exit_code == 1
        assert json.loads(result.output)["success"] is False

    def test_invalid_config_is_reported(self, cli_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PREVIEW_FETCH_RETRY_ATTEMPTS", "99")
        result = CliRunner().invoke(cli, ["resolve", "https://example.com/"])
        assert result.exit_code == 1
        assert "invalid configuration" in result.output
