"""Tests for the fixed-width YYYYMMDDHHMMSS timestamp codec."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from core.domain.timestamps import format_timestamp, parse_timestamp


class TestFormat:
    def test_formats_utc(self) -> None:
        assert format_timestamp(datetime(2026, 1, 23, 14, 30, 22, tzinfo=timezone.utc)) == "20260123143022"

    def test_zero_pads_single_digit_components(self) -> None:
        assert format_timestamp(datetime(2026, 1, 5, 8, 4, 3, tzinfo=timezone.utc)) == "20260105080403"

    def test_midnight(self) -> None:
        assert format_timestamp(datetime(2026, 1, 23, tzinfo=timezone.utc)) == "20260123000000"

    def test_converts_other_offsets_to_utc(self) -> None:
        cet = timezone(timedelta(hours=1))
        assert format_timestamp(datetime(2026, 1, 1, 0, 30, 0, tzinfo=cet)) == "20251231233000"

    def test_naive_is_treated_as_utc(self) -> None:
        assert format_timestamp(datetime(2026, 3, 9, 7, 6, 5)) == "20260309070605"


class TestParse:
    def test_parses_positionally(self) -> None:
        assert parse_timestamp("20260105080403") == datetime(2026, 1, 5, 8, 4, 3, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "value",
        ["", "2026012314302", "202601231430221", "2026-01-23T14", "2026012314302a"],
    )
    def test_rejects_malformed(self, value: str) -> None:
        with pytest.raises(ValueError):
            parse_timestamp(value)

    def test_rejects_impossible_date(self) -> None:
        with pytest.raises(ValueError):
            parse_timestamp("20260231000000")


class TestInverse:
    @pytest.mark.parametrize(
        "instant",
        [
            datetime(2026, 1, 23, 14, 30, 22, tzinfo=timezone.utc),
            datetime(2026, 1, 23, 0, 0, 0, tzinfo=timezone.utc),
            datetime(1999, 12, 31, 23, 59, 59, tzinfo=timezone.utc),
            datetime(2024, 2, 29, 1, 2, 3, tzinfo=timezone.utc),
        ],
    )
    def test_parse_of_format_is_identity(self, instant: datetime) -> None:
        assert parse_timestamp(format_timestamp(instant)) == instant

    @pytest.mark.parametrize("text", ["20260123143022", "20260101000000", "00010101000000"])
    def test_format_of_parse_is_identity(self, text: str) -> None:
        assert format_timestamp(parse_timestamp(text)) == text
