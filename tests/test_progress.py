from datetime import datetime, timezone

import pytest

import storage
from errors import ValidationError, NotFoundError, PermissionDeniedError
from progress import log_progress, hours_to_minutes, minutes_to_hours

START = datetime(2024, 1, 1)


def test_hours_are_stored_as_minutes(db, user, make_challenge):
    challenge = make_challenge(duration=30, start=START)
    task = challenge.tasks[0]

    entry = log_progress(
        db, user.id, task.id, datetime(2024, 1, 2), "completed",
        hours_spent=2.5, notes="Felt great", now=datetime(2024, 1, 2),
    )

    assert entry.hours_spent == 150
    assert entry.status == "completed"
    assert entry.notes == "Felt great"
    assert storage.get_task_progress(db, entry.id).hours_spent == 150


def test_unit_helpers():
    assert hours_to_minutes(None) is None
    assert hours_to_minutes(0.25) == 15
    assert minutes_to_hours(90) == 1.5
    assert minutes_to_hours(None) is None


def test_aware_dates_are_stored_as_naive_utc(db, user, make_challenge):
    task = make_challenge(duration=30, start=START).tasks[0]
    entry = log_progress(
        db, user.id, task.id, datetime(2024, 1, 2, 10, tzinfo=timezone.utc), "partial",
        now=datetime(2024, 1, 2),
    )
    assert entry.date == datetime(2024, 1, 2, 10)


def test_negative_hours_are_rejected(db, user, make_challenge):
    task = make_challenge().tasks[0]
    with pytest.raises(ValidationError):
        log_progress(db, user.id, task.id, datetime(2024, 1, 2), "completed", hours_spent=-1)
    assert storage.get_task_progress_by_task(db, task.id) == []


def test_unknown_status_is_rejected(db, user, make_challenge):
    task = make_challenge().tasks[0]
    with pytest.raises(ValidationError):
        log_progress(db, user.id, task.id, datetime(2024, 1, 2), "done")


def test_unknown_task(db, user):
    with pytest.raises(NotFoundError):
        log_progress(db, user.id, 404, datetime(2024, 1, 2), "completed")


def test_someone_elses_task(db, user, other_user, make_challenge):
    task = make_challenge(owner=other_user).tasks[0]
    with pytest.raises(PermissionDeniedError):
        log_progress(db, user.id, task.id, datetime(2024, 1, 2), "completed")


def test_same_day_entries_are_kept(db, user, make_challenge):
    task = make_challenge(duration=30, start=START).tasks[0]
    log_progress(db, user.id, task.id, datetime(2024, 1, 2, 8), "partial", now=START, hooks=[])
    log_progress(db, user.id, task.id, datetime(2024, 1, 2, 20), "completed", now=START, hooks=[])
    assert [p.status for p in storage.get_task_progress_by_task(db, task.id)] == ["partial", "completed"]


def test_hooks_run_in_order_after_the_write(db, user, make_challenge):
    challenge = make_challenge(duration=30, start=START)
    calls = []

    def first(session, user_id, challenge_id, now):
        calls.append(("first", user_id, challenge_id, len(storage.get_task_progress_by_task(session, challenge.tasks[0].id))))

    def second(session, user_id, challenge_id, now):
        calls.append(("second", user_id, challenge_id, now))

    now = datetime(2024, 1, 3)
    log_progress(db, user.id, challenge.tasks[0].id, now, "completed", now=now, hooks=[first, second])

    assert calls == [
        ("first", user.id, challenge.id, 1),
        ("second", user.id, challenge.id, now),
    ]


def test_failing_hook_does_not_fail_the_log(db, user, make_challenge):
    task = make_challenge(duration=30, start=START).tasks[0]
    after = []

    def boom(session, user_id, challenge_id, now):
        raise RuntimeError("badge service down")

    def still_runs(session, user_id, challenge_id, now):
        after.append(challenge_id)

    entry = log_progress(
        db, user.id, task.id, datetime(2024, 1, 2), "completed",
        now=datetime(2024, 1, 2), hooks=[boom, still_runs],
    )

    assert entry.id is not None
    assert storage.get_task_progress(db, entry.id) is not None
    assert after == [task.challenge_id]


def test_default_hook_awards_badges(db, user, make_challenge):
    challenge = make_challenge(duration=7, start=START)
    log_progress(
        db, user.id, challenge.tasks[0].id, datetime(2024, 1, 8), "completed",
        now=datetime(2024, 1, 8),
    )

    names = sorted(b.name for b in storage.get_user_badges(db, user.id))
    assert names == ["7-Day Streak", "Challenge Completed"]
    assert storage.get_challenge(db, challenge.id).is_completed is True


@pytest.mark.parametrize("hours", [float("nan"), float("inf"), 1e20, 24.5])
def test_out_of_range_hours_are_rejected(db, user, make_challenge, hours):
    task = make_challenge().tasks[0]
    with pytest.raises(ValidationError):
        log_progress(db, user.id, task.id, datetime(2024, 1, 2), "completed", hours_spent=hours)
    assert storage.get_task_progress_by_task(db, task.id) == []


def test_a_full_day_is_accepted(db, user, make_challenge):
    task = make_challenge(duration=30, start=START).tasks[0]
    entry = log_progress(
        db, user.id, task.id, datetime(2024, 1, 2), "completed",
        hours_spent=24, now=datetime(2024, 1, 2), hooks=[],
    )
    assert entry.hours_spent == 24 * 60
