"""Tests for local-day helpers."""

import os
from datetime import date, datetime, timezone
from unittest.mock import patch

from tally_api.utils.timeutil import as_utc, local_day_end, local_day_start, local_today


def test_as_utc_attaches_utc_to_naive():
    naive = datetime(2026, 3, 2, 9, 0)
    assert as_utc(naive) == datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
    assert as_utc(None) is None


def test_day_start_defaults_to_nine_local():
    with patch.dict(os.environ, {"TALLY_TIMEZONE": "UTC"}):
        assert local_day_start(date(2026, 3, 2)) == datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def test_day_start_in_configured_zone():
    with patch.dict(os.environ, {"TALLY_TIMEZONE": "Europe/Berlin"}):
        # CET is UTC+1 in March before DST
        assert local_day_start(date(2026, 3, 2)) == datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


def test_day_end_is_last_instant():
    with patch.dict(os.environ, {"TALLY_TIMEZONE": "UTC"}):
        end = local_day_end(date(2026, 3, 2))
    assert end == datetime(2026, 3, 2, 23, 59, 59, 999999, tzinfo=timezone.utc)


def test_local_today_uses_zone():
    late_utc = datetime(2026, 3, 2, 23, 30, tzinfo=timezone.utc)
    with patch.dict(os.environ, {"TALLY_TIMEZONE": "Asia/Tokyo"}):
        assert local_today(late_utc) == date(2026, 3, 3)
