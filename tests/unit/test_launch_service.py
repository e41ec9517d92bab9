import pytest

from launch_ledger.models.domain.launch_domain import LaunchMetadata, LaunchStatus
from launch_ledger.services.errors import (
    ConflictingActiveLaunch,
    InvalidLaunchInput,
    LaunchAlreadyExists,
)
from launch_ledger.services.infrastructure.redis_client import CounterStoreError


@pytest.mark.asyncio
async def test_create_launch_opens_eligibility(services, counter_store, test_settings):
    launch = await services.launch_service.create_launch(
        "2024-05-01", ["appA", "appB"], LaunchMetadata(name="May Day")
    )

    assert launch.status == LaunchStatus.ACTIVE
    assert launch.name == "May Day"
    assert counter_store.eligible == {"appA", "appB"}
    assert counter_store.counters == {"appA": 0, "appB": 0}
    assert counter_store.replace_calls[-1] == {
        "app_ids": ["appA", "appB"],
        "ttl_s": test_settings.LAUNCH_KEY_TTL_SECONDS,
        "preserve_counters": False,
    }


@pytest.mark.asyncio
async def test_create_launch_rejects_existing_date(services, launch_repo):
    launch_repo.add("2024-05-01", ["appA"], status=LaunchStatus.FLUSHED)

    with pytest.raises(LaunchAlreadyExists):
        await services.launch_service.create_launch("2024-05-01", ["appA"])


@pytest.mark.asyncio
async def test_create_launch_rejects_second_active(services, launch_repo):
    launch_repo.add("2024-04-30", ["appA"])

    with pytest.raises(ConflictingActiveLaunch):
        await services.launch_service.create_launch("2024-05-01", ["appB"])

    active = [row for row in launch_repo.rows.values() if row.status == LaunchStatus.ACTIVE]
    assert len(active) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("date, apps", [("05/01/2024", ["appA"]), ("2024-05-01", ["bad id"])])
async def test_create_launch_validates_input(services, date, apps):
    with pytest.raises(InvalidLaunchInput):
        await services.launch_service.create_launch(date, apps)


@pytest.mark.asyncio
async def test_eligibility_failure_keeps_committed_launch(services, counter_store, launch_repo):
    counter_store.fail_on.add("replace_eligibility")

    with pytest.raises(CounterStoreError):
        await services.launch_service.create_launch("2024-05-01", ["appA"])

    assert launch_repo.rows["2024-05-01"].status == LaunchStatus.ACTIVE
    assert counter_store.eligible == set()

    # Repair is the recovery path
    counter_store.fail_on.clear()
    result = await services.repair_service.repair_active_launch()
    assert result.success
    assert counter_store.eligible == {"appA"}


@pytest.mark.asyncio
async def test_launch_status_view(services, launch_repo):
    view = await services.launch_service.get_launch_status()
    assert view.has_active_launch is False
    assert view.is_flushing_in_progress is False

    launch_repo.add("2024-05-01", ["appA"], status=LaunchStatus.FLUSHING)
    view = await services.launch_service.get_launch_status()
    assert view.has_active_launch is True
    assert view.is_flushing_in_progress is True
    assert view.active_launch_date == "2024-05-01"


@pytest.mark.asyncio
async def test_list_flushed_launches_newest_first(services, launch_repo):
    launch_repo.add("2024-04-29", ["appA"], status=LaunchStatus.FLUSHED)
    launch_repo.add("2024-04-30", ["appA"], status=LaunchStatus.FLUSHED)
    launch_repo.add("2024-05-01", ["appA"])

    launches = await services.launch_service.list_flushed_launches(limit=5)

    assert [launch.date for launch in launches] == ["2024-04-30", "2024-04-29"]


@pytest.mark.asyncio
async def test_launch_to_flush_prefers_one_left_flushing(services, launch_repo):
    assert await services.launch_service.get_launch_to_flush() is None

    launch_repo.add("2024-05-01", ["appA"])
    assert (await services.launch_service.get_launch_to_flush()).date == "2024-05-01"

    launch_repo.add("2024-04-30", ["appA"], status=LaunchStatus.FLUSHING)
    assert (await services.launch_service.get_launch_to_flush()).date == "2024-04-30"
