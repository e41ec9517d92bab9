import base64
import hashlib
import json
import os
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import jwt
import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from fastapi.testclient import TestClient

from launch_ledger.config import Settings
from launch_ledger.db.helpers import DatabaseError
from launch_ledger.main import create_app
from launch_ledger.models.domain.catalog_domain import CatalogApp
from launch_ledger.models.domain.launch_domain import Launch, LaunchStatus
from launch_ledger.services.container import ServiceContainer
from launch_ledger.services.daily_cycle_service import DailyCycleService
from launch_ledger.services.errors import ConflictingActiveLaunch, LaunchAlreadyExists
from launch_ledger.services.flush_service import FlushService
from launch_ledger.services.infrastructure.redis_client import CounterStoreError
from launch_ledger.services.launch_service import LaunchService
from launch_ledger.services.repair_service import RepairService
from launch_ledger.services.vote_ledger import VoteLedger

VOTING_SECRET = "test-voting-secret"
ADMIN_SECRET = "test-admin-secret"
CRON_SECRET = "test-cron-secret"


class FakeCounterStore:
    """In-memory stand-in for RedisCounterStore with the same method surface."""

    def __init__(self):
        self.eligible: set[str] = set()
        self.counters: dict[str, int] = {}
        self.markers: set[tuple[str, str]] = set()
        self.locks: dict[str, str] = {}
        self.fail_on: set[str] = set()
        self.replace_calls: list[dict] = []

    def _maybe_fail(self, operation: str):
        if operation in self.fail_on:
            raise CounterStoreError(f"Redis {operation} failed: simulated", operation=operation)

    async def ping(self) -> bool:
        return "ping" not in self.fail_on

    async def replace_eligibility(self, app_ids, ttl_s, *, preserve_counters):
        self._maybe_fail("replace_eligibility")
        self.replace_calls.append(
            {"app_ids": list(app_ids), "ttl_s": ttl_s, "preserve_counters": preserve_counters}
        )
        self.eligible = set(app_ids)
        for app_id in app_ids:
            if preserve_counters:
                self.counters.setdefault(app_id, 0)
            else:
                self.counters[app_id] = 0

    async def eligible_app_ids(self) -> set[str]:
        self._maybe_fail("smembers")
        return set(self.eligible)

    async def is_eligible(self, app_id: str) -> bool:
        self._maybe_fail("sismember")
        return app_id in self.eligible

    async def cast_vote(self, voter_id, app_id, ttl_s):
        self._maybe_fail("cast_vote")
        if (voter_id, app_id) in self.markers:
            return False, self.counters.get(app_id, 0)
        self.counters[app_id] = self.counters.get(app_id, 0) + 1
        self.markers.add((voter_id, app_id))
        return True, self.counters[app_id]

    async def retract_vote(self, voter_id, app_id, ttl_s):
        self._maybe_fail("retract_vote")
        if (voter_id, app_id) not in self.markers:
            return False, self.counters.get(app_id, 0)
        self.counters[app_id] = max(0, self.counters.get(app_id, 0) - 1)
        self.markers.discard((voter_id, app_id))
        return True, self.counters[app_id]

    async def get_count(self, app_id):
        return self.counters.get(app_id, 0)

    async def get_counts(self, app_ids):
        self._maybe_fail("mget")
        return {app_id: self.counters.get(app_id, 0) for app_id in app_ids}

    async def voted_app_ids(self, voter_id, app_ids):
        return [app_id for app_id in app_ids if (voter_id, app_id) in self.markers]

    async def acquire_lock(self, name, ttl_s):
        self._maybe_fail("acquire_lock")
        if name in self.locks:
            return None
        token = f"token-{name}"
        self.locks[name] = token
        return token

    async def release_lock(self, name, token):
        if self.locks.get(name) == token:
            del self.locks[name]
            return True
        return False

    async def purge_launch(self, app_ids, scan_batch):
        self._maybe_fail("purge_launch")
        doomed = {marker for marker in self.markers if marker[1] in app_ids}
        self.markers -= doomed
        self.eligible = set()
        for app_id in app_ids:
            self.counters.pop(app_id, None)
        return {"counters_deleted": len(app_ids), "voter_markers_deleted": len(doomed)}


class FakeLaunchRepository:
    """In-memory launches table enforcing the same unique constraints."""

    def __init__(self):
        self.rows: dict[str, Launch] = {}
        self.fail_transition_to: set[LaunchStatus] = set()

    async def get_by_date(self, launch_date):
        return self.rows.get(launch_date)

    async def get_active(self):
        return next((row for row in self.rows.values() if row.status == LaunchStatus.ACTIVE), None)

    async def get_current(self):
        current = [
            row
            for row in self.rows.values()
            if row.status in (LaunchStatus.ACTIVE, LaunchStatus.FLUSHING)
        ]
        return max(current, key=lambda row: row.created_at) if current else None

    async def list_by_status(self, status, limit):
        rows = [row for row in self.rows.values() if row.status == status]
        return sorted(rows, key=lambda row: row.date, reverse=True)[:limit]

    async def insert_active(self, launch_date, app_ids, metadata):
        if launch_date in self.rows:
            raise LaunchAlreadyExists("exists", launch_date=launch_date)
        if await self.get_active():
            raise ConflictingActiveLaunch("active", launch_date=launch_date)
        launch = Launch(
            id=f"launch-{launch_date}",
            date=launch_date,
            status=LaunchStatus.ACTIVE,
            apps=app_ids,
            created_at=datetime.now(UTC),
            name=metadata.name,
            created_by=metadata.created_by,
            manual=metadata.manual,
            options=metadata.options,
        )
        self.rows[launch_date] = launch
        return launch

    async def transition_status(self, launch_date, from_statuses, to_status):
        if to_status in self.fail_transition_to:
            raise DatabaseError("simulated", operation="fetch_one")
        row = self.rows.get(launch_date)
        if row is None or row.status not in from_statuses:
            return None
        updates = {"status": to_status}
        if to_status == LaunchStatus.FLUSHED:
            updates["flushed_at"] = datetime.now(UTC)
        self.rows[launch_date] = row.model_copy(update=updates)
        return self.rows[launch_date]

    def add(self, launch_date, apps, status=LaunchStatus.ACTIVE):
        launch = Launch(
            id=f"launch-{launch_date}",
            date=launch_date,
            status=status,
            apps=apps,
            created_at=datetime.now(UTC),
        )
        self.rows[launch_date] = launch
        return launch


class FakeAppCatalog:
    def __init__(self):
        self.apps: dict[str, dict] = {}
        self.fail_add_votes = False

    def add(self, app_id, launch_date=None, is_premium=False, status="approved", total_votes=0):
        self.apps[app_id] = {
            "id": app_id,
            "name": app_id.title(),
            "launch_date": launch_date,
            "is_premium": is_premium,
            "status": status,
            "total_votes": total_votes,
            "last_launched_date": None,
            "created_at": datetime.now(UTC),
        }

    def total_votes(self, app_id):
        return self.apps[app_id]["total_votes"]

    async def app_ids_for_date(self, launch_date):
        return [app_id for app_id, app in self.apps.items() if app["launch_date"] == launch_date]

    async def existing_ids(self, app_ids):
        return {app_id for app_id in app_ids if app_id in self.apps}

    async def get_approved_apps(self, app_ids):
        return [
            CatalogApp(
                id=app["id"],
                name=app["name"],
                tagline=None,
                website_url=None,
                logo_url=None,
                is_premium=app["is_premium"],
                total_votes=app["total_votes"],
                created_at=app["created_at"],
            )
            for app_id in app_ids
            if (app := self.apps.get(app_id)) and app["status"] == "approved"
        ]

    async def add_launch_votes(self, launch_date, vote_counts):
        if self.fail_add_votes:
            raise DatabaseError("simulated", operation="execute_many")
        updated = 0
        for app_id, count in vote_counts.items():
            app = self.apps.get(app_id)
            if count > 0 and app and app["last_launched_date"] != launch_date:
                self.apps[app_id]["total_votes"] += count
                self.apps[app_id]["last_launched_date"] = launch_date
                updated += 1
        return updated


class FakeAuditLogger:
    def __init__(self):
        self.events: list[dict] = []

    async def log(self, event_type, status, **fields):
        self.events.append({"type": event_type, "status": status, **fields})
        return True

    async def list_recent(self, event_type=None, limit=50):
        events = [e for e in self.events if event_type is None or e["type"] == event_type]
        return list(reversed(events))[:limit]


class FakeRevalidation:
    def __init__(self):
        self.calls: list[str | None] = []

    async def revalidate(self, path=None, *, route=None):
        self.calls.append(path)
        return True


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        environment="test",
        VOTING_TOKEN_SECRET=VOTING_SECRET,
        ADMIN_JWT_SECRET=ADMIN_SECRET,
        CRON_SECRET=CRON_SECRET,
    )


@pytest.fixture
def counter_store():
    return FakeCounterStore()


@pytest.fixture
def launch_repo():
    return FakeLaunchRepository()


@pytest.fixture
def app_catalog():
    return FakeAppCatalog()


@pytest.fixture
def audit_logger():
    return FakeAuditLogger()


@pytest.fixture
def revalidation():
    return FakeRevalidation()


@pytest.fixture
def services(test_settings, counter_store, launch_repo, app_catalog, audit_logger, revalidation):
    launch_service = LaunchService(launch_repo, counter_store, test_settings)
    repair_service = RepairService(launch_repo, counter_store, test_settings)
    vote_ledger = VoteLedger(launch_service, repair_service, counter_store, test_settings)
    flush_service = FlushService(launch_repo, app_catalog, counter_store, test_settings)
    daily_cycle_service = DailyCycleService(
        launch_service, flush_service, app_catalog, revalidation, audit_logger
    )

    db_pool = MagicMock()
    db_pool.health_check = AsyncMock(return_value={"healthy": True, "pool_stats": {}})

    return ServiceContainer(
        settings=test_settings,
        db_pool=db_pool,
        counter_store=counter_store,
        audit_logger=audit_logger,
        app_catalog=app_catalog,
        launch_service=launch_service,
        vote_ledger=vote_ledger,
        flush_service=flush_service,
        repair_service=repair_service,
        revalidation_service=revalidation,
        daily_cycle_service=daily_cycle_service,
    )


def make_voting_token(subject: str, secret: str = VOTING_SECRET) -> str:
    """Seal a token the way the public site does: nonce || tag || ciphertext."""
    key = hashlib.sha256(secret.encode()).digest()
    nonce = os.urandom(12)
    sealed = AESGCM(key).encrypt(nonce, json.dumps({"sub": subject}).encode(), None)
    return base64.b64encode(nonce + sealed[-16:] + sealed[:-16]).decode()


def make_admin_jwt(role: str = "admin", secret: str = ADMIN_SECRET) -> str:
    return jwt.encode({"sub": "admin-1", "role": role}, secret, algorithm="HS256")


@pytest.fixture
def voting_token():
    return make_voting_token


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_admin_jwt()}"}


@pytest.fixture
def cron_headers():
    return {"Authorization": f"Bearer {CRON_SECRET}"}


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as test_client:
        yield test_client
