# tests/test_reconciliation_sweep.py

from datetime import date, datetime

import pytest

from recurring_tasks.services.reconciliation_sweep import ReconciliationSweep, SweepLease

from .fakes import due_days, make_task

SWEEP_TIME = datetime(2025, 1, 25, 2, 0)


def build_sweep(repository, materializer, metrics, lease, **kwargs) -> ReconciliationSweep:
    return ReconciliationSweep(repository, materializer, lease=lease, metrics=metrics, **kwargs)


def seed_rule_with_occurrences(repository, anchor: datetime, kind: str, days):
    rule = repository.seed(make_task(due_date=anchor, repeat_type=kind))
    for day in days:
        repository.seed(
            make_task(
                due_date=datetime.combine(day, anchor.time()),
                parent_recurring_id=rule.id,
            )
        )
    return rule


@pytest.mark.asyncio
async def test_window_end_is_compared_by_calendar_day(repository, materializer, metrics, lease) -> None:
    rule = seed_rule_with_occurrences(
        repository,
        datetime(2025, 1, 22, 6, 30),
        "daily",
        [date(2025, 1, 23), date(2025, 1, 24), date(2025, 1, 25)],
    )
    sweep = build_sweep(repository, materializer, metrics, lease)

    result = await sweep.run(SWEEP_TIME)

    # 2025-01-28T06:30 is later in the day than the window end (02:00) but on the same day
    new_dates = [o.due_date for o in repository.occurrences_of(rule.id)][3:]
    assert new_dates == [
        datetime(2025, 1, 26, 6, 30),
        datetime(2025, 1, 27, 6, 30),
        datetime(2025, 1, 28, 6, 30),
    ]
    assert result["success"] is True
    assert result["summary"] == {
        "rules_found": 1,
        "rules_processed": 1,
        "occurrences_generated": 3,
        "errors": 0,
    }
    assert result["results"][0]["generated_occurrences"] == 3


@pytest.mark.asyncio
async def test_rule_without_occurrences_starts_from_its_anchor(repository, materializer, metrics, lease) -> None:
    rule = repository.seed(make_task(due_date=datetime(2025, 1, 10, 9, 0), repeat_type="weekly"))
    sweep = build_sweep(repository, materializer, metrics, lease)

    await sweep.run(SWEEP_TIME)

    assert due_days(repository.occurrences_of(rule.id)) == [
        date(2025, 1, 17),
        date(2025, 1, 24),
    ]


@pytest.mark.asyncio
async def test_second_sweep_generates_nothing(repository, materializer, metrics, lease) -> None:
    rule = repository.seed(make_task(due_date=datetime(2025, 1, 24, 6, 30), repeat_type="daily"))
    sweep = build_sweep(repository, materializer, metrics, lease)

    first = await sweep.run(SWEEP_TIME)
    second = await sweep.run(SWEEP_TIME)

    assert first["summary"]["occurrences_generated"] == 4
    assert second["summary"]["occurrences_generated"] == 0
    assert len(repository.occurrences_of(rule.id)) == 4


@pytest.mark.asyncio
async def test_missing_days_before_latest_occurrence_are_not_backfilled(
    repository, materializer, metrics, lease
) -> None:
    rule = seed_rule_with_occurrences(
        repository,
        datetime(2025, 1, 22, 6, 30),
        "daily",
        [date(2025, 1, 23), date(2025, 1, 26)],
    )
    sweep = build_sweep(repository, materializer, metrics, lease)

    await sweep.run(SWEEP_TIME)

    assert due_days(repository.occurrences_of(rule.id)) == [
        date(2025, 1, 23),
        date(2025, 1, 26),
        date(2025, 1, 27),
        date(2025, 1, 28),
    ]


@pytest.mark.asyncio
async def test_one_failing_rule_does_not_stop_the_others(repository, materializer, metrics, lease) -> None:
    broken = repository.seed(make_task(due_date=datetime(2025, 1, 24, 8, 0), repeat_type="daily"))
    healthy = repository.seed(make_task(due_date=datetime(2025, 1, 24, 8, 0), repeat_type="daily"))
    repository.failing_rule_ids.add(broken.id)
    sweep = build_sweep(repository, materializer, metrics, lease)

    result = await sweep.run(SWEEP_TIME)

    assert result["success"] is True
    assert result["summary"]["rules_found"] == 2
    assert result["summary"]["rules_processed"] == 1
    assert result["summary"]["errors"] == 1
    assert result["errors"][0]["task_id"] == broken.id
    assert result["errors"][0]["error"] == "PersistenceFailure"
    assert len(repository.occurrences_of(healthy.id)) == 4
    counters = metrics.get_metrics()["counters"]
    assert counters["rule_errors_total"] == 1
    assert counters["rules_processed_total"] == 1


@pytest.mark.asyncio
async def test_rule_without_due_date_is_a_rule_error(repository, materializer, metrics, lease) -> None:
    repository.seed(make_task(due_date=None, repeat_type="monthly"))
    sweep = build_sweep(repository, materializer, metrics, lease)

    result = await sweep.run(SWEEP_TIME)

    assert result["success"] is True
    assert result["summary"]["errors"] == 1
    assert result["errors"][0]["error"] == "InvalidArgument"


@pytest.mark.asyncio
async def test_non_advancing_date_computation_is_a_rule_error(repository, materializer, metrics, lease) -> None:
    repository.seed(make_task(due_date=datetime(2025, 1, 24, 8, 0), repeat_type="daily"))
    sweep = build_sweep(repository, materializer, metrics, lease, next_date=lambda current, kind: current)

    result = await sweep.run(SWEEP_TIME)

    assert result["success"] is True
    assert result["summary"]["errors"] == 1
    assert result["errors"][0]["error"] == "InvalidState"
    assert "did not advance" in result["errors"][0]["message"]


@pytest.mark.asyncio
async def test_iteration_cap_is_a_rule_error(repository, materializer, metrics, lease) -> None:
    rule = repository.seed(make_task(due_date=datetime(2024, 12, 1, 8, 0), repeat_type="daily"))
    sweep = build_sweep(repository, materializer, metrics, lease, max_iterations=5)

    result = await sweep.run(SWEEP_TIME)

    assert result["summary"]["errors"] == 1
    assert "exceeded" in result["errors"][0]["message"]
    assert repository.occurrences_of(rule.id) == []


@pytest.mark.asyncio
async def test_overlapping_sweep_is_skipped(repository, materializer, metrics) -> None:
    lease = SweepLease()
    assert lease.try_acquire()
    repository.seed(make_task(due_date=datetime(2025, 1, 24, 8, 0), repeat_type="daily"))
    sweep = build_sweep(repository, materializer, metrics, lease)

    result = await sweep.run(SWEEP_TIME)

    assert result["success"] is False
    assert result["skipped"] is True
    assert lease.held
    assert len(repository.tasks) == 1
    assert metrics.get_metrics()["counters"]["sweeps_skipped_total"] == 1


@pytest.mark.asyncio
async def test_lease_is_released_after_a_run(repository, materializer, metrics, lease) -> None:
    sweep = build_sweep(repository, materializer, metrics, lease)

    await sweep.run(SWEEP_TIME)

    assert not lease.held
    assert metrics.get_metrics()["counters"]["sweeps_completed_total"] == 1


@pytest.mark.asyncio
async def test_bad_sweep_time_fails_the_whole_run(repository, materializer, metrics, lease) -> None:
    sweep = build_sweep(repository, materializer, metrics, lease)

    result = await sweep.run("yesterday")

    assert result["success"] is False
    assert "skipped" not in result
    assert not lease.held
    assert metrics.get_metrics()["counters"]["sweeps_failed_total"] == 1


@pytest.mark.asyncio
async def test_listing_failure_fails_the_whole_run(repository, materializer, metrics, lease) -> None:
    repository.fail_find_definitions = True
    sweep = build_sweep(repository, materializer, metrics, lease)

    result = await sweep.run(SWEEP_TIME)

    assert result["success"] is False
    assert "recurring definitions" in result["error"]


@pytest.mark.asyncio
async def test_sweep_time_defaults_to_clock(repository, materializer, metrics, lease) -> None:
    rule = repository.seed(make_task(due_date=datetime(2025, 1, 24, 8, 0), repeat_type="daily"))
    sweep = build_sweep(repository, materializer, metrics, lease, clock=lambda: SWEEP_TIME)

    result = await sweep.run()

    assert result["timestamp"] == SWEEP_TIME.isoformat()
    assert due_days(repository.occurrences_of(rule.id))[-1] == date(2025, 1, 28)
