from __future__ import annotations

from datetime import datetime, timezone

from cert_dashboard.preprocess.time import correct_ampm, parse_timestamp

UTC = timezone.utc


def test_parse_timestamp_localizes_naive_iso_values() -> None:
    parsed = parse_timestamp("2024-01-05T12:13:00")

    assert parsed == datetime(2024, 1, 5, 12, 13, tzinfo=UTC)
    assert parsed.tzinfo is not None


def test_parse_timestamp_accepts_export_clock_format() -> None:
    assert parse_timestamp("1/5/2024 6:55 PM") == datetime(2024, 1, 5, 18, 55, tzinfo=UTC)
    assert parse_timestamp("01/05/2024 06:55:10") == datetime(2024, 1, 5, 6, 55, 10, tzinfo=UTC)


def test_parse_timestamp_converts_offsets_to_configured_timezone() -> None:
    parsed = parse_timestamp("2024-01-05T12:00:00+02:00")

    assert parsed == datetime(2024, 1, 5, 10, 0, tzinfo=UTC)


def test_parse_timestamp_returns_none_for_blank_or_garbage() -> None:
    assert parse_timestamp("") is None
    assert parse_timestamp("   ") is None
    assert parse_timestamp("??") is None


def test_correct_ampm_adopts_shift_when_it_resolves_inversion() -> None:
    enrollment = datetime(2024, 1, 5, 12, 13, tzinfo=UTC)
    completed = datetime(2024, 1, 5, 6, 55, tzinfo=UTC)

    assert correct_ampm(enrollment, completed) == datetime(2024, 1, 5, 18, 55, tzinfo=UTC)


def test_correct_ampm_keeps_original_when_shift_does_not_help() -> None:
    enrollment = datetime(2024, 1, 5, 12, 13, tzinfo=UTC)
    completed = datetime(2024, 1, 4, 6, 55, tzinfo=UTC)

    assert correct_ampm(enrollment, completed) == completed


def test_correct_ampm_leaves_ordered_values_alone() -> None:
    enrollment = datetime(2024, 1, 5, 12, 13, tzinfo=UTC)
    completed = datetime(2024, 1, 5, 12, 13, tzinfo=UTC)

    assert correct_ampm(enrollment, completed) is completed


def test_parse_timestamp_rejects_relative_keywords() -> None:
    for text in ("now", "today", "Now", " TODAY ", "tomorrow", "yesterday"):
        assert parse_timestamp(text) is None
