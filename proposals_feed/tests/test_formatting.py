"""Unit tests for event prose helpers and choice colors."""
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from ..data_models.schemas import DEFAULT_CHOICE_COLOR
from ..services.choice_colors import (
    ABSTAIN_COLOR,
    AGAINST_COLOR,
    CHOICE_PALETTE,
    FOR_COLOR,
    colors_for_choices,
    get_color_for_choice,
    label_hash,
)
from ..utils.time_format import format_distance, format_relative, format_short_date

NOW = datetime(2024, 10, 10, 12, 0, tzinfo=timezone.utc)


class TestShortDate:
    """Test month-day rendering."""

    def test_no_zero_padding(self):
        """Test that single-digit days are not padded."""
        assert format_short_date(datetime(2024, 10, 3, 9, 0, tzinfo=timezone.utc), timezone.utc) == "Oct 3"

    def test_zone_conversion(self):
        """Test that the date is read in the requested zone."""
        value = datetime(2024, 10, 1, 2, 0, tzinfo=timezone.utc)

        assert format_short_date(value, ZoneInfo("America/New_York")) == "Sep 30"

    def test_naive_is_utc(self):
        """Test that naive timestamps are taken as UTC."""
        assert format_short_date(datetime(2024, 1, 15, 23, 0), timezone.utc) == "Jan 15"


class TestDistance:
    """Test approximate distances."""

    @pytest.mark.parametrize(
        "delta, expected",
        [
            (timedelta(seconds=20), "less than a minute"),
            (timedelta(minutes=1), "1 minute"),
            (timedelta(minutes=10), "10 minutes"),
            (timedelta(minutes=60), "about 1 hour"),
            (timedelta(hours=5), "about 5 hours"),
            (timedelta(hours=30), "1 day"),
            (timedelta(days=5), "5 days"),
            (timedelta(days=35), "about 1 month"),
            (timedelta(days=50), "about 2 months"),
            (timedelta(days=100), "3 months"),
            (timedelta(days=400), "about 1 year"),
            (timedelta(days=850), "over 2 years"),
            (timedelta(days=700), "almost 2 years"),
        ],
    )
    def test_buckets(self, delta, expected):
        """Test each distance bucket."""
        assert format_distance(NOW - delta, NOW) == expected

    def test_direction(self):
        """Test past and future phrasing."""
        assert format_relative(NOW - timedelta(days=3), NOW) == "3 days ago"
        assert format_relative(NOW + timedelta(hours=2), NOW) == "in about 2 hours"


class TestChoiceColors:
    """Test deterministic choice colors."""

    @pytest.mark.parametrize(
        "choice, color",
        [
            ("For", FOR_COLOR),
            ("Yes, ship it", FOR_COLOR),
            ("Against", AGAINST_COLOR),
            ("Nay", AGAINST_COLOR),
            ("Abstain", ABSTAIN_COLOR),
            ("", DEFAULT_CHOICE_COLOR),
            (None, DEFAULT_CHOICE_COLOR),
        ],
    )
    def test_well_known_labels(self, choice, color):
        """Test fixed colors for common labels."""
        assert get_color_for_choice(choice) == color

    def test_other_labels_use_palette(self):
        """Test that other labels map into the palette, case-insensitively."""
        color = get_color_for_choice("Option A")

        assert color in CHOICE_PALETTE
        assert get_color_for_choice("option a") == color

    def test_hash_matches_rolling_formula(self):
        """Test the 31-based rolling hash on short labels."""
        assert label_hash("a") == 97
        assert label_hash("ab") == 97 * 31 + 98

    def test_hash_wraps_to_32_bits(self):
        """Test that long labels stay within signed 32-bit range."""
        value = label_hash("a much longer label that overflows" * 4)

        assert -(2 ** 31) <= value < 2 ** 31

    def test_colors_for_choices(self):
        """Test one color per choice, in order."""
        assert colors_for_choices(["For", "Against"]) == [FOR_COLOR, AGAINST_COLOR]
