# tests/test_occurrence_materializer.py

from datetime import date, datetime

import pytest

from recurring_tasks.exceptions import InvalidState, PersistenceFailure

from .fakes import due_days, make_task


@pytest.mark.asyncio
async def test_materialize_copies_definition_at_rule_time_of_day(repository, materializer, metrics) -> None:
    rule = repository.seed(make_task(repeat_type="daily"))

    created = await materializer.materialize(rule, [datetime(2024, 1, 16, 8, 0), date(2024, 1, 17)])

    assert [o.due_date for o in created] == [datetime(2024, 1, 16, 10, 0), datetime(2024, 1, 17, 10, 0)]
    for occurrence in created:
        assert occurrence.id is not None
        assert occurrence.parent_recurring_id == rule.id
        assert occurrence.repeat_type == "none"
        assert occurrence.is_completed is False
        assert occurrence.user_id == rule.user_id
        assert occurrence.title == rule.title
        assert occurrence.description == rule.description
        assert occurrence.priority == rule.priority
        assert occurrence.category == rule.category
        assert occurrence.links == rule.links
        assert occurrence.additional_details == rule.additional_details
    assert metrics.get_metrics()["counters"]["occurrences_created_total"] == 2


@pytest.mark.asyncio
async def test_materialize_is_idempotent(repository, materializer) -> None:
    rule = repository.seed(make_task(repeat_type="daily"))

    first = await materializer.materialize(rule, [date(2024, 1, 16), date(2024, 1, 17)])
    second = await materializer.materialize(rule, [datetime(2024, 1, 17, 23, 0), date(2024, 1, 18)])

    assert len(first) == 2
    assert due_days(second) == [date(2024, 1, 18)]
    assert due_days(repository.occurrences_of(rule.id)) == [
        date(2024, 1, 16),
        date(2024, 1, 17),
        date(2024, 1, 18),
    ]


@pytest.mark.asyncio
async def test_repeated_target_days_are_created_once(repository, materializer) -> None:
    rule = repository.seed(make_task(repeat_type="weekly"))

    created = await materializer.materialize(
        rule,
        [datetime(2024, 1, 22, 1, 0), datetime(2024, 1, 22, 18, 0), date(2024, 1, 22)],
    )

    assert len(created) == 1
    assert len(repository.occurrences_of(rule.id)) == 1


@pytest.mark.asyncio
async def test_duplicate_from_concurrent_writer_is_a_no_op(repository, materializer, metrics) -> None:
    rule = repository.seed(make_task(repeat_type="daily"))
    repository.conflicts.add((rule.id, date(2024, 1, 17)))

    created = await materializer.materialize(rule, [date(2024, 1, 16), date(2024, 1, 17), date(2024, 1, 18)])

    assert due_days(created) == [date(2024, 1, 16), date(2024, 1, 18)]
    assert due_days(repository.occurrences_of(rule.id)) == [
        date(2024, 1, 16),
        date(2024, 1, 17),
        date(2024, 1, 18),
    ]
    counters = metrics.get_metrics()["counters"]
    assert counters["duplicate_occurrences_total"] == 1
    assert counters["occurrences_created_total"] == 2


@pytest.mark.asyncio
async def test_empty_targets_create_nothing(repository, materializer) -> None:
    rule = repository.seed(make_task(repeat_type="daily"))

    assert await materializer.materialize(rule, []) == []


@pytest.mark.asyncio
async def test_non_recurring_task_is_rejected(repository, materializer) -> None:
    task = repository.seed(make_task(repeat_type="none"))

    with pytest.raises(InvalidState):
        await materializer.materialize(task, [date(2024, 1, 16)])


@pytest.mark.asyncio
async def test_occurrence_cannot_be_a_rule(repository, materializer) -> None:
    rule = repository.seed(make_task(repeat_type="daily"))
    occurrence = repository.seed(make_task(parent_recurring_id=rule.id))

    with pytest.raises(InvalidState):
        await materializer.materialize(occurrence, [date(2024, 1, 16)])


@pytest.mark.asyncio
async def test_failure_removes_the_partial_batch(repository, materializer) -> None:
    rule = repository.seed(make_task(repeat_type="daily"))
    repository.creates_before_failure = 2

    with pytest.raises(PersistenceFailure):
        await materializer.materialize(rule, [date(2024, 1, 16), date(2024, 1, 17), date(2024, 1, 18)])

    assert repository.occurrences_of(rule.id) == []


@pytest.mark.asyncio
async def test_failure_keeps_occurrences_from_earlier_batches(repository, materializer) -> None:
    rule = repository.seed(make_task(repeat_type="daily"))
    await materializer.materialize(rule, [date(2024, 1, 16)])
    repository.creates_before_failure = 1

    with pytest.raises(PersistenceFailure):
        await materializer.materialize(rule, [date(2024, 1, 17), date(2024, 1, 18)])

    assert due_days(repository.occurrences_of(rule.id)) == [date(2024, 1, 16)]


@pytest.mark.asyncio
async def test_cleanup_failure_does_not_mask_original_error(repository, materializer) -> None:
    rule = repository.seed(make_task(repeat_type="daily"))
    repository.creates_before_failure = 1
    repository.fail_delete_tasks = True

    with pytest.raises(PersistenceFailure, match="create occurrence"):
        await materializer.materialize(rule, [date(2024, 1, 16), date(2024, 1, 17)])
