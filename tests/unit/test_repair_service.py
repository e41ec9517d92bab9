import pytest

from launch_ledger.models.domain.launch_domain import LaunchStatus


@pytest.mark.asyncio
async def test_repair_without_active_launch_is_trivial(services, counter_store):
    result = await services.repair_service.repair_active_launch()

    assert result.success
    assert "nothing to repair" in result.message
    assert counter_store.replace_calls == []


@pytest.mark.asyncio
async def test_repair_restores_set_and_keeps_live_counts(services, launch_repo, counter_store):
    launch_repo.add("2024-05-01", ["appA", "appB", "appC"])
    counter_store.eligible = {"appA"}
    counter_store.counters = {"appA": 7}

    result = await services.repair_service.repair_active_launch()

    assert result.success
    assert counter_store.eligible == {"appA", "appB", "appC"}
    assert counter_store.counters == {"appA": 7, "appB": 0, "appC": 0}
    assert result.details["before_count"] == 1
    assert result.details["after_count"] == 3


@pytest.mark.asyncio
async def test_repair_twice_is_noop_second_time(services, launch_repo, counter_store):
    launch_repo.add("2024-05-01", ["appA", "appB"])

    first = await services.repair_service.repair_active_launch()
    calls = len(counter_store.replace_calls)
    second = await services.repair_service.repair_active_launch()

    assert first.success and second.success
    assert len(counter_store.replace_calls) == calls
    assert "already matches" in second.message


@pytest.mark.asyncio
async def test_repair_ignores_flushing_launch(services, launch_repo, counter_store):
    launch_repo.add("2024-05-01", ["appA"], status=LaunchStatus.FLUSHING)

    result = await services.repair_service.repair_active_launch()

    assert result.success
    assert counter_store.eligible == set()


@pytest.mark.asyncio
async def test_repair_reports_store_failure(services, launch_repo, counter_store):
    launch_repo.add("2024-05-01", ["appA"])
    counter_store.fail_on.add("replace_eligibility")

    result = await services.repair_service.repair_active_launch()

    assert result.success is False
    assert "Repair failed" in result.message
