"""
Service container: one place that constructs the store clients and wires
them into the services.

Built once per process (FastAPI lifespan or the worker entry point) and
passed around explicitly; there are no module-level store clients.
"""

from dataclasses import dataclass

from fastapi import Request

from launch_ledger.config import Settings
from launch_ledger.db.pool import DatabasePoolManager
from launch_ledger.infrastructure.audit import AuditLogger
from launch_ledger.infrastructure.observability.logging import get_logger
from launch_ledger.repositories.app_catalog_repository import AppCatalogRepository
from launch_ledger.repositories.launch_repository import LaunchRepository
from launch_ledger.services.daily_cycle_service import DailyCycleService
from launch_ledger.services.flush_service import FlushService
from launch_ledger.services.infrastructure.redis_client import RedisCounterStore
from launch_ledger.services.launch_service import LaunchService
from launch_ledger.services.repair_service import RepairService
from launch_ledger.services.revalidation_service import RevalidationService
from launch_ledger.services.vote_ledger import VoteLedger

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    db_pool: DatabasePoolManager
    counter_store: RedisCounterStore
    audit_logger: AuditLogger
    app_catalog: AppCatalogRepository
    launch_service: LaunchService
    vote_ledger: VoteLedger
    flush_service: FlushService
    repair_service: RepairService
    revalidation_service: RevalidationService
    daily_cycle_service: DailyCycleService

    async def startup(self) -> None:
        """Open the store clients: database pool first, then Redis."""
        startup_tasks = []

        try:
            logger.info("Initializing database pool")
            await self.db_pool.initialize()
            startup_tasks.append("database_pool")

            logger.info("Initializing Redis connection")
            await self.counter_store.initialize()
            startup_tasks.append("redis")

            logger.info("All services initialized successfully", services=startup_tasks)

        except Exception as e:
            logger.error("Failed to initialize services", error=str(e), completed_tasks=startup_tasks)

            # Clean up any successfully initialized services in reverse order
            if "redis" in startup_tasks:
                await self.counter_store.close()
            if "database_pool" in startup_tasks:
                await self.db_pool.close()

            raise

    async def shutdown(self) -> None:
        """Close the store clients in reverse order."""
        logger.info("Closing Redis connection")
        await self.counter_store.close()

        logger.info("Closing database pool")
        await self.db_pool.close()

        logger.info("All services closed")


def build_services(settings: Settings) -> ServiceContainer:
    """Construct every client and service for one process. Nothing is connected yet."""
    db_pool = DatabasePoolManager(settings)
    counter_store = RedisCounterStore(settings)
    audit_logger = AuditLogger(db_pool)

    launch_repository = LaunchRepository(db_pool)
    app_catalog = AppCatalogRepository(db_pool)

    launch_service = LaunchService(launch_repository, counter_store, settings)
    repair_service = RepairService(launch_repository, counter_store, settings)
    vote_ledger = VoteLedger(launch_service, repair_service, counter_store, settings)
    flush_service = FlushService(launch_repository, app_catalog, counter_store, settings)
    revalidation_service = RevalidationService(settings, audit_logger)
    daily_cycle_service = DailyCycleService(
        launch_service,
        flush_service,
        app_catalog,
        revalidation_service,
        audit_logger,
    )

    return ServiceContainer(
        settings=settings,
        db_pool=db_pool,
        counter_store=counter_store,
        audit_logger=audit_logger,
        app_catalog=app_catalog,
        launch_service=launch_service,
        vote_ledger=vote_ledger,
        flush_service=flush_service,
        repair_service=repair_service,
        revalidation_service=revalidation_service,
        daily_cycle_service=daily_cycle_service,
    )


def get_services(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the container built at startup."""
    return request.app.state.services
