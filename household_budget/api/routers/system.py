"""Health and scheduler status routes."""

from fastapi import APIRouter

from household_budget import __version__
from household_budget.api.dependencies import ComponentsDep

router = APIRouter(tags=["system"])


@router.get("/health")
async def health(components: ComponentsDep) -> dict:
    scheduler = components.scheduler
    next_run = scheduler.next_run_time() if scheduler else None
    return {
        "status": "ok",
        "version": __version__,
        "scheduler_running": bool(scheduler and scheduler.running),
        "next_billing_run": next_run.isoformat() if next_run else None,
    }
