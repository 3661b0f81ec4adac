from datetime import datetime, timedelta, timezone

import pytest

from wishlist_tracker.cron import CronError, CronSchedule

UTC = timezone.utc


def test_default_schedule_matches_three_am():
    schedule = CronSchedule.parse("0 3 * * *")
    assert schedule.matches(datetime(2024, 5, 6, 3, 0, 30, tzinfo=UTC))
    assert not schedule.matches(datetime(2024, 5, 6, 3, 1, tzinfo=UTC))
    assert not schedule.matches(datetime(2024, 5, 6, 4, 0, tzinfo=UTC))


def test_next_after_is_next_day_when_slot_passed():
    schedule = CronSchedule.parse("0 3 * * *")
    moment = datetime(2024, 1, 1, 3, 0, tzinfo=UTC)
    due = schedule.next_after(moment)
    assert due > moment
    assert due - moment == timedelta(days=1)
    assert (due.hour, due.minute) == (3, 0)


def test_next_after_later_same_day():
    schedule = CronSchedule.parse("0 3 * * *")
    moment = datetime(2024, 1, 1, 1, 15, 42, tzinfo=UTC)
    due = schedule.next_after(moment)
    assert due.date() == moment.date()
    assert schedule.matches(due)
    assert due.second == 0


@pytest.mark.parametrize("expr", ["*/7 * * * *", "30 12 1 * *", "0 0 * * 5", "15 6 * FEB sun"])
def test_next_after_invariants(expr):
    schedule = CronSchedule.parse(expr)
    moment = datetime(2023, 11, 17, 9, 44, 10, tzinfo=UTC)
    due = schedule.next_after(moment)
    assert due > moment
    assert schedule.matches(due)
    probe = moment.replace(second=0) + timedelta(minutes=1)
    while probe < due:
        assert not schedule.matches(probe)
        probe += timedelta(minutes=1) if due - probe < timedelta(days=2) else timedelta(hours=1)


def test_naive_moment_is_utc():
    schedule = CronSchedule.parse("0 3 * * *")
    naive = datetime(2024, 1, 1, 2, 0)
    assert schedule.next_after(naive) == schedule.next_after(naive.replace(tzinfo=UTC))


def test_descriptors_expand():
    assert CronSchedule.parse("@daily") == CronSchedule.parse("0 0 * * *")
    assert CronSchedule.parse("@weekly") == CronSchedule.parse("0 0 * * 0")
    assert CronSchedule.parse("@hourly") == CronSchedule.parse("0 * * * *")


def test_names_match_numbers():
    assert CronSchedule.parse("0 0 * JAN mon") == CronSchedule.parse("0 0 * 1 1")


def test_range_with_step():
    schedule = CronSchedule.parse("1-5/2 * * * *")
    assert schedule.minutes == frozenset({1, 3, 5})


def test_single_value_with_step_runs_to_maximum():
    schedule = CronSchedule.parse("50/5 * * * *")
    assert schedule.minutes == frozenset({50, 55})


def test_day_fields_use_or_when_both_restricted():
    schedule = CronSchedule.parse("0 0 1 * 1")
    assert schedule.matches(datetime(2024, 1, 15, tzinfo=UTC))
    assert schedule.matches(datetime(2024, 2, 1, tzinfo=UTC))
    assert not schedule.matches(datetime(2024, 1, 16, tzinfo=UTC))


def test_day_fields_use_and_when_one_is_star():
    schedule = CronSchedule.parse("0 0 * * 1")
    assert schedule.matches(datetime(2024, 1, 15, tzinfo=UTC))
    assert not schedule.matches(datetime(2024, 1, 16, tzinfo=UTC))


@pytest.mark.parametrize(
    "expr",
    ["", "0 3 * *", "0 3 * * * *", "60 * * * *", "* 24 * * *", "* * 0 * *",
     "* * * 13 *", "* * * * 7", "*/0 * * * *", "5-1 * * * *", "x * * * *", "@sometimes", "1,,2 * * * *"],
)
def test_invalid_expressions(expr):
    with pytest.raises(CronError):
        CronSchedule.parse(expr)


def test_impossible_schedule_has_no_next():
    schedule = CronSchedule.parse("0 0 30 2 *")
    with pytest.raises(CronError):
        schedule.next_after(datetime(2024, 1, 1, tzinfo=UTC))