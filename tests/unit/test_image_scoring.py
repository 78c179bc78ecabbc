"""Unit tests for candidate image scoring and selection.

Pure functions -- no I/O, no mocking required.
"""

from __future__ import annotations

import pytest

from bookmark_preview.core.image_scoring import (
    is_likely_logo,
    parse_dimension,
    parse_style_dimensions,
    pick_srcset_url,
    score_candidate,
    select_best_candidate,
)
from bookmark_preview.models.preview import CandidateImage


def _candidate(
    name: str,
    score: float,
    width: int = 0,
    height: int = 0,
    is_logo: bool = False,
    index: int = 0,
) -> CandidateImage:
    return CandidateImage(
        absolute_url=f"https://example.com/{name}.jpg",
        width=width,
        height=height,
        score=score,
        is_logo=is_logo,
        dom_position_index=index,
    )


class TestIsLikelyLogo:
    """Tests for is_likely_logo."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/assets/logo.png",
            "https://example.com/static/Company-Logo.svg",
            "https://example.com/img/favicon.ico",
            "https://example.com/img/header_120x120.png",
            "https://example.com/img/wordmark_280x60.png",
            "https://example.com/img/strip_120x0.png",
            "https://cdn.example.com/a.jpg?w=64&h=64",
            "https://cdn.example.com/a.jpg?width=90&height=80",
        ],
    )
    def test_logo_urls(self, url: str) -> None:
        assert is_likely_logo(url) is True

    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/photos/sunset.jpg",
            "https://example.com/img/photo_1200x630.jpg",
            "https://cdn.example.com/a.jpg?w=1200&h=630",
            "https://example.com/img/tall_100x250.jpg",
            "https://example.com/img/spacer_0x0.jpg",
            "https://example.com/img/column_0x120.jpg",
        ],
    )
    def test_content_urls(self, url: str) -> None:
        assert is_likely_logo(url) is False

    def test_text_signal(self) -> None:
        assert is_likely_logo("https://example.com/a.png", "Acme Brand") is True

    def test_empty_url(self) -> None:
        assert is_likely_logo("") is False


class TestScoreCandidate:
    """Tests for score_candidate."""

    def test_large_content_image(self) -> None:
        score, is_logo = score_candidate(
            "https://example.com/sunset.jpg", 800, 600, "Sunset photo", "", "", 5
        )
        # size +20, position +5, alt +5, "photo" +8
        assert score == 38
        assert is_logo is False

    def test_medium_image(self) -> None:
        score, _ = score_candidate("https://example.com/a.gif", 250, 180, "", "", "", 0)
        assert score == 15

    def test_raster_extension_bonus_without_size(self) -> None:
        score, _ = score_candidate("https://example.com/a.png", 0, 0, "", "", "", 0)
        assert score == 5

    def test_logo_penalty(self) -> None:
        score, is_logo = score_candidate("https://example.com/logo.png", 400, 300, "", "", "", 0)
        assert is_logo is True
        assert score == -5

    def test_logo_detected_from_class(self) -> None:
        _, is_logo = score_candidate(
            "https://example.com/a.png", 400, 300, "", "site-logo", "", 0
        )
        assert is_logo is True

    def test_late_position_penalty(self) -> None:
        score, _ = score_candidate("https://example.com/a.gif", 0, 0, "", "", "", 30)
        assert score == pytest.approx(-3.0)

    def test_negative_keyword(self) -> None:
        score, _ = score_candidate("https://example.com/a.gif", 0, 0, "", "avatar", "", 0)
        assert score == -15


class TestSelectBestCandidate:
    """Tests for select_best_candidate."""

    def test_empty(self) -> None:
        assert select_best_candidate([]) is None

    def test_highest_score_wins(self) -> None:
        low = _candidate("low", 10, 400, 300)
        high = _candidate("high", 30, 400, 300)
        assert select_best_candidate([low, high]) is high

    def test_tie_keeps_earliest(self) -> None:
        first = _candidate("first", 20)
        second = _candidate("second", 20)
        assert select_best_candidate([first, second]) is first

    def test_logo_winner_replaced_by_large_non_logo(self) -> None:
        logo = _candidate("brand", 30, 400, 300, is_logo=True)
        photo = _candidate("photo", 10, 640, 480)
        assert select_best_candidate([logo, photo]) is photo

    def test_text_only_logo_winner_is_not_reranked(self) -> None:
        """The re-rank looks at URLs; alt/class text already lowered the score."""
        winner = _candidate("hero", 30, 400, 300, is_logo=True)
        photo = _candidate("photo", 10, 640, 480)
        assert select_best_candidate([winner, photo]) is winner

    def test_text_only_logo_eligible_as_largest(self) -> None:
        captioned = _candidate("banner", -5, 800, 600, is_logo=True)
        small = _candidate("small", -1, 200, 160)
        assert select_best_candidate([small, captioned]) is captioned

    def test_logo_winner_kept_without_alternative(self) -> None:
        logo = _candidate("brand", 30, 400, 300, is_logo=True)
        small = _candidate("small", 10, 100, 100)
        assert select_best_candidate([logo, small]) is logo

    def test_no_positive_score_takes_largest_non_logo(self) -> None:
        tiny = _candidate("tiny", -3, 100, 100)
        wide = _candidate("wide", -1, 400, 200)
        logo = _candidate("brand", -5, 800, 800, is_logo=True)
        assert select_best_candidate([tiny, logo, wide]) is wide

    def test_last_resort_is_first_on_page(self) -> None:
        first = _candidate("first", -1, 50, 50)
        second = _candidate("second", -1, 100, 100)
        assert select_best_candidate([first, second]) is first


class TestAttributeParsing:
    """Tests for parse_dimension, parse_style_dimensions and pick_srcset_url."""

    def test_parse_dimension(self) -> None:
        assert parse_dimension("640") == 640
        assert parse_dimension("640px") == 640
        assert parse_dimension(" 12 ") == 12
        assert parse_dimension("auto") == 0
        assert parse_dimension(None) == 0
        assert parse_dimension(300) == 300

    def test_style_dimensions_ignore_max_width(self) -> None:
        assert parse_style_dimensions("max-width: 100px; width: 640px; height:480px") == (640, 480)

    def test_style_dimensions_empty(self) -> None:
        assert parse_style_dimensions(None) == (0, 0)
        assert parse_style_dimensions("width: 50%") == (0, 0)

    def test_srcset_widest_wins(self) -> None:
        srcset = "small.jpg 320w, large.jpg 1024w, medium.jpg 640w"
        assert pick_srcset_url(srcset) == "large.jpg"

    def test_srcset_density_descriptors_ignored(self) -> None:
        assert pick_srcset_url("a.jpg 1x, b.jpg 2x") is None

    def test_srcset_empty(self) -> None:
        assert pick_srcset_url("") is None
