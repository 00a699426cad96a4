"""Tests for schedule draft normalization."""

from __future__ import annotations

from datetime import date, time, timedelta
from uuid import uuid4

import pytest

from src.tracking.base import Frequency, ScheduleDraft
from src.tracking.config_loader import NormalizationConfig, TrackingConfig
from src.tracking.tests.conftest import METFORMIN, TEST_DATE
from src.tracking.validation import normalize_schedule


@pytest.fixture
def config(tracking_config: TrackingConfig) -> NormalizationConfig:
    return tracking_config.normalization


def _draft(**kwargs) -> ScheduleDraft:
    kwargs.setdefault("subject_name", METFORMIN.name)
    kwargs.setdefault("start_date", TEST_DATE)
    return ScheduleDraft(subject_id=METFORMIN.id, **kwargs)


class TestTimesOfDay:
    def test_valid_draft_needs_no_corrections(self, config: NormalizationConfig) -> None:
        result = normalize_schedule(_draft(times_of_day=[time(8, 0)]), config, TEST_DATE)
        assert result.corrections == []
        assert not result.was_normalized
        assert result.schedule.times_of_day == (time(8, 0),)

    def test_missing_times_get_default(self, config: NormalizationConfig) -> None:
        result = normalize_schedule(_draft(), config, TEST_DATE)
        assert result.schedule.times_of_day == (time(9, 0),)
        assert result.was_normalized
        assert any("09:00" in c for c in result.corrections)

    def test_duplicates_removed(self, config: NormalizationConfig) -> None:
        draft = _draft(times_of_day=[time(20, 0), time(8, 0), time(8, 0)])
        result = normalize_schedule(draft, config, TEST_DATE)
        assert result.schedule.times_of_day == (time(8, 0), time(20, 0))
        assert "removed duplicate times of day" in result.corrections

    def test_too_many_times_truncated(self, config: NormalizationConfig) -> None:
        draft = _draft(times_of_day=[time(h, 0) for h in (6, 9, 12, 15, 18)])
        result = normalize_schedule(draft, config, TEST_DATE)
        assert result.schedule.times_of_day == (time(6, 0), time(9, 0), time(12, 0), time(15, 0))

    def test_twice_daily_padded_from_defaults(self, config: NormalizationConfig) -> None:
        draft = _draft(frequency=Frequency.twice_daily, times_of_day=[time(7, 0)])
        result = normalize_schedule(draft, config, TEST_DATE)
        assert result.schedule.times_of_day == (time(7, 0), time(9, 0))

    def test_twice_daily_without_times(self, config: NormalizationConfig) -> None:
        draft = _draft(frequency=Frequency.twice_daily)
        result = normalize_schedule(draft, config, TEST_DATE)
        assert result.schedule.times_of_day == (time(9, 0), time(21, 0))

    def test_three_times_daily_truncated(self, config: NormalizationConfig) -> None:
        draft = _draft(
            frequency=Frequency.three_times_daily,
            times_of_day=[time(6, 0), time(10, 0), time(14, 0), time(18, 0)],
        )
        result = normalize_schedule(draft, config, TEST_DATE)
        assert result.schedule.times_of_day == (time(6, 0), time(10, 0), time(14, 0))

    def test_hourly_padding_when_no_defaults(self) -> None:
        bare = NormalizationConfig()
        draft = _draft(frequency=Frequency.twice_daily, times_of_day=[time(23, 30)])
        result = normalize_schedule(draft, bare, TEST_DATE)
        assert result.schedule.times_of_day == (time(0, 30), time(23, 30))

    def test_as_needed_times_cleared(self, config: NormalizationConfig) -> None:
        draft = _draft(frequency=Frequency.as_needed, times_of_day=[time(9, 0)])
        result = normalize_schedule(draft, config, TEST_DATE)
        assert result.schedule.times_of_day == ()
        assert result.was_normalized


class TestRecurrence:
    def test_weekly_without_days_defaults_to_monday(self, config: NormalizationConfig) -> None:
        draft = _draft(frequency=Frequency.weekly, times_of_day=[time(8, 0)])
        result = normalize_schedule(draft, config, TEST_DATE)
        assert result.schedule.days_of_week == frozenset({1})

    def test_weekly_invalid_days_dropped(self, config: NormalizationConfig) -> None:
        draft = _draft(frequency=Frequency.weekly, times_of_day=[time(8, 0)], days_of_week=[0, 3, 9])
        result = normalize_schedule(draft, config, TEST_DATE)
        assert result.schedule.days_of_week == frozenset({3})
        assert any("dropped invalid weekdays" in c for c in result.corrections)

    def test_days_ignored_for_non_weekly(self, config: NormalizationConfig) -> None:
        draft = _draft(times_of_day=[time(8, 0)], days_of_week=[2])
        assert normalize_schedule(draft, config, TEST_DATE).schedule.days_of_week == frozenset()

    @pytest.mark.parametrize("interval", [None, 0, -4])
    def test_custom_interval_defaults_to_one(
        self, config: NormalizationConfig, interval: int | None
    ) -> None:
        draft = _draft(frequency=Frequency.custom, times_of_day=[time(8, 0)], interval_days=interval)
        result = normalize_schedule(draft, config, TEST_DATE)
        assert result.schedule.interval_days == 1

    def test_custom_interval_kept(self, config: NormalizationConfig) -> None:
        draft = _draft(frequency=Frequency.custom, times_of_day=[time(8, 0)], interval_days=3)
        result = normalize_schedule(draft, config, TEST_DATE)
        assert result.schedule.interval_days == 3
        assert not result.was_normalized


class TestDates:
    def test_missing_start_is_today(self, config: NormalizationConfig) -> None:
        draft = _draft(times_of_day=[time(8, 0)], start_date=None)
        assert normalize_schedule(draft, config, TEST_DATE).schedule.start_date == TEST_DATE

    def test_far_future_start_reset(self, config: NormalizationConfig) -> None:
        draft = _draft(times_of_day=[time(8, 0)], start_date=TEST_DATE + timedelta(days=3651))
        assert normalize_schedule(draft, config, TEST_DATE).schedule.start_date == TEST_DATE

    def test_near_future_start_kept(self, config: NormalizationConfig) -> None:
        start = TEST_DATE + timedelta(days=3650)
        draft = _draft(times_of_day=[time(8, 0)], start_date=start)
        assert normalize_schedule(draft, config, TEST_DATE).schedule.start_date == start

    def test_past_start_kept(self, config: NormalizationConfig) -> None:
        draft = _draft(times_of_day=[time(8, 0)], start_date=date(2020, 1, 1))
        assert normalize_schedule(draft, config, TEST_DATE).schedule.start_date == date(2020, 1, 1)

    def test_end_before_start_removed(self, config: NormalizationConfig) -> None:
        draft = _draft(times_of_day=[time(8, 0)], end_date=TEST_DATE - timedelta(days=1))
        result = normalize_schedule(draft, config, TEST_DATE)
        assert result.schedule.end_date is None
        assert result.was_normalized


class TestIdentity:
    def test_subject_name_from_lookup(self, config: NormalizationConfig) -> None:
        draft = _draft(times_of_day=[time(8, 0)], subject_name=None)
        result = normalize_schedule(draft, config, TEST_DATE, subject_name="Metformin XR")
        assert result.schedule.subject_name == "Metformin XR"
        assert not result.was_normalized

    def test_subject_name_falls_back_to_id(self, config: NormalizationConfig) -> None:
        draft = _draft(times_of_day=[time(8, 0)], subject_name="  ")
        result = normalize_schedule(draft, config, TEST_DATE)
        assert result.schedule.subject_name == str(METFORMIN.id)
        assert result.was_normalized

    def test_schedule_id_preserved(self, config: NormalizationConfig) -> None:
        schedule_id = uuid4()
        draft = _draft(times_of_day=[time(8, 0)])
        result = normalize_schedule(draft, config, TEST_DATE, schedule_id=schedule_id)
        assert result.schedule.id == schedule_id
