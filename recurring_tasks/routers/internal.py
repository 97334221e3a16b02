"""Internal maintenance endpoints (sweep trigger and engine metrics)."""
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from recurring_tasks.middleware.internal_auth import verify_internal_token
from recurring_tasks.repositories.task_repository import TaskRepository
from recurring_tasks.routers.tasks import get_task_repository
from recurring_tasks.services.occurrence_materializer import OccurrenceMaterializer
from recurring_tasks.services.reconciliation_sweep import ReconciliationSweep
from recurring_tasks.utils.metrics import metrics_collector

router = APIRouter(tags=["Internal"], dependencies=[Depends(verify_internal_token)])


@router.post("/maintenance/recurring-sweep", response_model=Dict[str, Any])
async def trigger_recurring_sweep(
    sweep_time: Optional[datetime] = Query(None, description="Reference time for the window (ISO format)"),
    repository: TaskRepository = Depends(get_task_repository),
):
    """Run the recurring task reconciliation sweep now."""
    sweep = ReconciliationSweep(repository, OccurrenceMaterializer(repository))
    return await sweep.run(sweep_time)


@router.get("/metrics", response_model=Dict[str, Any])
async def get_engine_metrics():
    """Current recurrence engine counters and timers."""
    return metrics_collector.get_metrics()
