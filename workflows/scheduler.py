import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional
import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.cache import CacheInvalidator, create_redis_client
from core.config import settings
from core.database import async_session_maker
from core.exceptions import ETLException
from schemas.results import WorkflowResult
from workflows.car_costs import run_car_costs_workflow
from workflows.cars import run_cars_workflow
from workflows.coe import run_coe_workflow
from workflows.deregistrations import run_deregistrations_workflow
from workflows.population import run_car_population_workflow, run_vehicle_population_workflow
from workflows.regenerate_post import run_regenerate_post_workflow
from workflows.shared import WorkflowDependencies

logger = logging.getLogger(__name__)

WorkflowEntryPoint = Callable[..., Awaitable[WorkflowResult]]

WORKFLOWS: Dict[str, WorkflowEntryPoint] = {
    "cars": run_cars_workflow,
    "coe": run_coe_workflow,
    "deregistrations": run_deregistrations_workflow,
    "car-costs": run_car_costs_workflow,
    "car-population": run_car_population_workflow,
    "vehicle-population": run_vehicle_population_workflow,
}


@asynccontextmanager
async def workflow_dependencies(**overrides) -> AsyncIterator[WorkflowDependencies]:
    """Open the HTTP client and Redis client for one run"""
    cache = create_redis_client()

    try:
        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT) as client:
            yield WorkflowDependencies(
                http_client=client,
                session_factory=async_session_maker,
                cache=cache,
                invalidator=CacheInvalidator(cache),
                **overrides
            )
    finally:
        await cache.aclose()


async def run_workflow(name: str, month: Optional[str] = None, **overrides) -> WorkflowResult:
    entry_point = WORKFLOWS[name]
    async with workflow_dependencies(**overrides) as deps:
        result = await entry_point(deps, month)
    logger.info(f"Workflow {name}: {result.message}")
    return result


async def run_regenerate_post(month: str, data_type: str, **overrides) -> WorkflowResult:
    """Overwrite one month's post; ``overrides`` must supply a ``generator``"""
    async with workflow_dependencies(**overrides) as deps:
        result = await run_regenerate_post_workflow(deps, month, data_type)
    logger.info(result.message)
    return result


class WorkflowScheduler:
    """Trigger every dataset workflow on a fixed interval, one job each"""

    def __init__(self, interval_minutes: Optional[int] = None):
        self.scheduler = AsyncIOScheduler()
        self.interval_minutes = interval_minutes or settings.SCHEDULE_INTERVAL_MINUTES

    async def run_workflow_job(self, name: str):
        """Job to run one workflow"""
        logger.info(f"Scheduler: Starting {name} workflow")
        try:
            await run_workflow(name)
        except ETLException as e:
            logger.error(
                f"Scheduler: {name} workflow failed - {e.describe()}",
                extra={"error_context": e.to_dict()}
            )
        except Exception as e:
            logger.exception(f"Scheduler: {name} workflow failed - {e}")

    def start(self):
        """Start the scheduler"""
        for name in WORKFLOWS:
            self.scheduler.add_job(
                self.run_workflow_job,
                trigger=IntervalTrigger(minutes=self.interval_minutes),
                args=[name],
                id=f"{name}_workflow",
                replace_existing=True,
                max_instances=1
            )
        self.scheduler.start()
        logger.info(f"Workflow scheduler started ({len(WORKFLOWS)} jobs every {self.interval_minutes} min)")

    def stop(self):
        self.scheduler.shutdown()
        logger.info("Workflow scheduler stopped")
