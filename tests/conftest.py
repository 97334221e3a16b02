# tests/conftest.py

from datetime import datetime

import pytest

from recurring_tasks.services.occurrence_materializer import OccurrenceMaterializer
from recurring_tasks.services.reconciliation_sweep import SweepLease
from recurring_tasks.services.rule_mutation_handler import RuleMutationHandler
from recurring_tasks.utils.metrics import MetricsCollector

from .fakes import InMemoryTaskRepository

FIXED_NOW = datetime(2024, 1, 17, 0, 0)


@pytest.fixture()
def repository() -> InMemoryTaskRepository:
    return InMemoryTaskRepository()


@pytest.fixture()
def metrics() -> MetricsCollector:
    """A private collector so counters start at zero in every test."""
    return MetricsCollector()


@pytest.fixture()
def materializer(repository, metrics) -> OccurrenceMaterializer:
    return OccurrenceMaterializer(repository, metrics=metrics)


@pytest.fixture()
def handler(repository, materializer) -> RuleMutationHandler:
    """Mutation handler whose notion of "now" is FIXED_NOW."""
    return RuleMutationHandler(repository, materializer, clock=lambda: FIXED_NOW)


@pytest.fixture()
def lease() -> SweepLease:
    return SweepLease()
