"""
Tests for Goal derived metrics (progress, days, on-track, monthly savings)
"""
from datetime import datetime, timedelta, timezone

import pytest


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestProgress:
    def test_progress_percentage_basic(self, make_goal):
        """30000 из 120000 = 25%"""
        goal = make_goal()
        assert goal.progress_percentage == 25.0
        assert goal.remaining_amount == 90000.0

    @pytest.mark.parametrize("current", [-500.0, -1e9, 0.0, 60000.0, 120000.0, 500000.0, 1e12])
    def test_progress_and_remaining_are_clamped(self, make_goal, current):
        """Прогресс всегда в [0, 100], остаток в [0, target]"""
        goal = make_goal(current_amount=current)
        assert 0.0 <= goal.progress_percentage <= 100.0
        assert 0.0 <= goal.remaining_amount <= goal.target_amount
        assert 0.0 <= goal.clamped_current_amount <= goal.target_amount

    def test_overflow_is_stored_raw(self, make_goal):
        """Хранимая сумма не обрезается, обрезается только представление"""
        goal = make_goal(current_amount=150000.0)
        assert goal.current_amount == 150000.0
        assert goal.progress_percentage == 100.0
        assert goal.remaining_amount == 0.0
        assert goal.clamped_current_amount == 120000.0

    def test_negative_current_amount(self, make_goal):
        goal = make_goal(current_amount=-500.0)
        assert goal.progress_percentage == 0.0
        assert goal.remaining_amount == 120000.0
        assert goal.clamped_current_amount == 0.0

    def test_zero_target_has_zero_progress(self, make_goal):
        """targetAmount == 0 не приводит к делению на ноль"""
        goal = make_goal(target_amount=0.0, current_amount=100.0)
        assert goal.progress_percentage == 0.0
        assert goal.remaining_amount == 0.0

    def test_negative_target_has_zero_progress(self, make_goal):
        goal = make_goal(target_amount=-10.0)
        assert goal.progress_percentage == 0.0
        assert goal.remaining_amount == 0.0


class TestDays:
    def test_total_days(self, make_goal):
        """2024-01-01 -> 2024-07-01 (високосный год)"""
        assert make_goal().total_days == 182

    def test_days_remaining(self, make_goal, fixed_now):
        assert make_goal().days_remaining(fixed_now) == 91

    def test_days_remaining_truncates_partial_day(self, make_goal):
        goal = make_goal()
        assert goal.days_remaining(utc(2024, 6, 30, 12)) == 0
        assert goal.days_remaining(utc(2024, 6, 29, 1)) == 1

    def test_days_remaining_after_target_is_zero(self, make_goal):
        assert make_goal().days_remaining(utc(2024, 8, 1)) == 0

    def test_elapsed_days(self, make_goal, fixed_now):
        assert make_goal().elapsed_days(fixed_now) == 91

    def test_naive_now_is_utc(self, make_goal):
        assert make_goal().days_remaining(datetime(2024, 4, 1)) == 91

    def test_inconsistent_dates_give_non_positive_total(self, make_goal):
        goal = make_goal(start_date=utc(2024, 7, 1), target_date=utc(2024, 1, 1))
        assert goal.total_days == -182
        assert make_goal(start_date=utc(2024, 7, 1)).total_days == 0

    def test_default_now_uses_real_clock(self, make_goal):
        """Без now используется текущее время"""
        goal = make_goal(target_date=utc(2999, 1, 1))
        assert goal.days_remaining() > 0
        assert goal.is_overdue() is False


class TestOverdue:
    def test_overdue_after_target(self, make_goal):
        assert make_goal().is_overdue(utc(2024, 7, 2)) is True

    def test_not_overdue_at_exact_target(self, make_goal):
        assert make_goal().is_overdue(utc(2024, 7, 1)) is False

    def test_completed_goal_is_never_overdue(self, make_goal):
        goal = make_goal(is_completed=True)
        assert goal.is_overdue(utc(2025, 1, 1)) is False


class TestOnTrack:
    def test_behind_schedule_scenario(self, make_goal, fixed_now):
        """25% при ожидаемых ~50% -> не в графике"""
        goal = make_goal()
        assert goal.progress_percentage == 25.0
        assert goal.expected_progress(fixed_now) == pytest.approx(91 / 182 * 100)
        assert goal.is_on_track(fixed_now) is False

    def test_on_schedule(self, make_goal, fixed_now):
        goal = make_goal(current_amount=60000.0)
        assert goal.is_on_track(fixed_now) is True

    def test_within_ninety_percent_tolerance(self, make_goal, fixed_now):
        """~46% при ожидаемых 50% -> в графике (порог 90%)"""
        goal = make_goal(current_amount=55000.0)
        assert goal.is_on_track(fixed_now) is True

    def test_before_start_is_on_track(self, make_goal):
        assert make_goal(current_amount=0.0).is_on_track(utc(2023, 12, 1)) is True

    def test_zero_length_period_counts_as_fully_elapsed(self, make_goal, fixed_now):
        """total_days == 0 -> ожидаемый прогресс 100%"""
        goal = make_goal(start_date=utc(2024, 7, 1))
        assert goal.expected_progress(fixed_now) == 100.0
        assert goal.is_on_track(fixed_now) is False
        assert goal.copy_with(current_amount=110000.0).is_on_track(fixed_now) is True

    def test_reversed_dates_count_as_fully_elapsed(self, make_goal, fixed_now):
        goal = make_goal(start_date=utc(2024, 7, 1), target_date=utc(2024, 1, 1))
        assert goal.expected_progress(fixed_now) == 100.0


class TestRequiredMonthlySavings:
    def test_spread_over_remaining_months(self, make_goal, fixed_now):
        """91 день -> ceil(91 / 30.44) = 3 месяца, 90000 / 3"""
        assert make_goal().required_monthly_savings(fixed_now) == pytest.approx(30000.0)

    def test_due_now_returns_lump_sum(self, make_goal, fixed_now):
        """Срок прошёл -> вся оставшаяся сумма сразу"""
        goal = make_goal(
            target_amount=10000.0,
            current_amount=5000.0,
            target_date=utc(2024, 3, 1),
        )
        assert goal.remaining_amount == 5000.0
        assert goal.required_monthly_savings(fixed_now) == 5000.0

    def test_same_day_returns_lump_sum(self, make_goal, fixed_now):
        goal = make_goal(target_date=fixed_now + timedelta(hours=12))
        assert goal.required_monthly_savings(fixed_now) == 90000.0

    def test_completed_amount_needs_nothing(self, make_goal, fixed_now):
        goal = make_goal(current_amount=130000.0)
        assert goal.required_monthly_savings(fixed_now) == 0.0
