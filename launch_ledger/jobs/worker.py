"""
Generic background worker runner.

Reads the desired job name from CLI args or the WORKER_JOB environment
variable, builds the service container, runs the job once, and exits
non-zero when the job reports failure. Meant to be invoked by an external
scheduler (cron, Kubernetes CronJob) as an alternative to GET /cron/daily-cycle.

    python -m launch_ledger.jobs.worker daily_cycle
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from launch_ledger.config import settings
from launch_ledger.infrastructure.observability.logging import get_logger, setup_logging
from launch_ledger.services.container import ServiceContainer, build_services

logger = get_logger(__name__)

JobCoroutine = Callable[[ServiceContainer], Awaitable[bool]]


async def run_daily_cycle_job(services: ServiceContainer) -> bool:
    result = await services.daily_cycle_service.run_daily_cycle(route="worker:daily_cycle")
    logger.info(
        "Daily cycle job finished",
        cycle_complete=result.cycle_complete,
        next_cycle=result.next_cycle,
    )
    return result.cycle_complete


async def run_repair_job(services: ServiceContainer) -> bool:
    result = await services.repair_service.repair_active_launch()
    await services.audit_logger.log(
        "maintenance",
        "success" if result.success else "error",
        name="repair-eligibility",
        route="worker:repair",
        message=result.message,
        payload=result.details,
    )
    return result.success


JOB_REGISTRY: dict[str, JobCoroutine] = {
    "daily_cycle": run_daily_cycle_job,
    "repair": run_repair_job,
}


def _resolve_job_name() -> str:
    """Pick the target job from CLI args or WORKER_JOB env variable."""
    if len(sys.argv) > 1:
        return sys.argv[1].strip().lower()
    return os.getenv("WORKER_JOB", "daily_cycle").strip().lower()


async def run_worker(job_name: str | None = None, services: ServiceContainer | None = None) -> bool:
    """
    Run the requested job once.

    When services is given the caller owns its lifecycle; otherwise a
    container is built, started and shut down around the job.
    """
    name = (job_name or _resolve_job_name()).strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    logger.info("Starting background worker", job=name)

    if services is not None:
        return await JOB_REGISTRY[name](services)

    container = build_services(settings)
    await container.startup()
    try:
        return await JOB_REGISTRY[name](container)
    finally:
        await container.shutdown()


def main() -> None:
    """CLI entrypoint."""
    setup_logging(log_level=settings.LOG_LEVEL)
    job_name = _resolve_job_name()
    ok = asyncio.run(run_worker(job_name))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
