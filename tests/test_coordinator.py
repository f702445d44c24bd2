"""Tests for DashboardCoordinator."""

import asyncio
import math
from dataclasses import FrozenInstanceError
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from promboard.config.settings import Settings
from promboard.core.errors import QueryError
from promboard.prometheus.client import PrometheusClient
from promboard.prometheus.models import QueryResult, Sample, TimeSeries
from promboard.store.coordinator import (
    CoordinatorStatus,
    DashboardCoordinator,
    DashboardState,
)

NOW = 1_700_000_000.0


def result_for(query, value, timestamp=NOW):
    series = TimeSeries(labels={"instance": "a"}, samples=(Sample(timestamp, value),))
    return QueryResult(ref_id=query.ref_id, series=(series,))


def constant_results(value):
    def _execute(queries, duration):
        return [result_for(q, value) for q in queries]

    return _execute


@pytest.fixture
def client():
    client = MagicMock(spec=PrometheusClient)
    client.execute_queries = AsyncMock(side_effect=constant_results(1.0))
    client.get_label_values = AsyncMock(return_value=["fake-server", "other"])
    return client


@pytest.fixture
def dashboard_file(write_dashboard, dashboard_document):
    return write_dashboard(dashboard_document)


@pytest.fixture
def coordinator(client, dashboard_file):
    return DashboardCoordinator(
        client,
        dashboard_path=dashboard_file,
        time_range="1h",
        refresh_interval=0.01,
        history_capacity=10,
        clock=lambda: NOW,
    )


def variable_dashboard(*variables):
    return {
        "title": "Vars",
        "panels": [
            {
                "id": 1,
                "title": "Up",
                "type": "stat",
                "targets": [{"expr": 'up{instance="$instance"}', "refId": "A"}],
            }
        ],
        "templating": {"list": list(variables)},
    }


class TestLoad:

    def test_initial_state(self, client):
        coordinator = DashboardCoordinator(client)

        assert coordinator.state.status is CoordinatorStatus.IDLE
        assert coordinator.state.title == "Loading..."
        assert coordinator.state.panels == ()

    @pytest.mark.asyncio
    async def test_load_success(self, coordinator, client, dashboard_file):
        assert await coordinator.load_dashboard() is True

        state = coordinator.state
        assert state.status is CoordinatorStatus.READY
        assert state.title == "Node Overview"
        assert state.dashboard_path == dashboard_file
        assert [p.panel.id for p in state.panels] == [1, 3]
        assert any('type "logs" not supported' in w for w in state.warnings)
        assert state.variable_values["instance"] == "fake-server"
        assert state.last_refresh == NOW
        assert all(p.last_updated == NOW and p.error is None for p in state.panels)

    @pytest.mark.asyncio
    async def test_load_substitutes_variables_and_uses_time_range(self, coordinator, client):
        await coordinator.load_dashboard()

        exprs = []
        for call in client.execute_queries.call_args_list:
            queries, duration = call.args
            assert duration == "1h"
            exprs.extend(q.expr for q in queries)
        assert sorted(exprs) == [
            'node_cpu_usage_percent{instance="fake-server"}',
            'node_memory_usage_percent{instance="fake-server"}',
        ]

    @pytest.mark.asyncio
    async def test_load_records_history(self, coordinator):
        await coordinator.load_dashboard()

        assert coordinator.history_keys() == {(1, "A"), (3, "A")}
        assert coordinator.has_history(3, "A")
        assert not coordinator.has_history(7, "A")
        assert coordinator.history(1, "A") == [Sample(NOW, 1.0)]

    @pytest.mark.asyncio
    async def test_load_missing_file_fails(self, client, tmp_path):
        coordinator = DashboardCoordinator(client, dashboard_path=tmp_path / "nope.json")

        assert await coordinator.load_dashboard() is False

        state = coordinator.state
        assert state.status is CoordinatorStatus.FAILED
        assert "Dashboard file not found" in state.error
        client.execute_queries.assert_not_called()

    @pytest.mark.asyncio
    async def test_load_undecodable_file_fails(self, client, tmp_path):
        path = tmp_path / "latin1.json"
        path.write_bytes(b'{"title": "\xff\xfe", "panels": []}')
        coordinator = DashboardCoordinator(client, dashboard_path=path)

        assert await coordinator.load_dashboard() is False

        assert coordinator.state.status is CoordinatorStatus.FAILED
        assert "Cannot decode dashboard file" in coordinator.state.error

    @pytest.mark.asyncio
    async def test_undecodable_reload_keeps_refreshing(self, coordinator, dashboard_file):
        await coordinator.load_dashboard()
        Path(dashboard_file).write_bytes(b"\xff\xfe")

        assert await coordinator.load_dashboard() is False

        assert coordinator.state.status is CoordinatorStatus.FAILED
        assert await coordinator.refresh() is True

    @pytest.mark.asyncio
    async def test_load_structural_error(self, client, write_dashboard):
        coordinator = DashboardCoordinator(client, dashboard_path=write_dashboard({"title": "x"}))

        assert await coordinator.load_dashboard() is False
        assert coordinator.state.error == "Invalid dashboard JSON: missing panels array"

    @pytest.mark.asyncio
    async def test_failed_reload_keeps_panels(self, coordinator, tmp_path):
        await coordinator.load_dashboard()
        panels = coordinator.state.panels

        assert await coordinator.load_dashboard(tmp_path / "missing.json") is False

        assert coordinator.state.status is CoordinatorStatus.FAILED
        assert coordinator.state.panels == panels
        # retained panels keep refreshing
        assert await coordinator.refresh() is True

    @pytest.mark.asyncio
    async def test_loading_is_published(self, coordinator):
        statuses = []
        coordinator.subscribe(lambda state: statuses.append(state.status))

        await coordinator.load_dashboard()

        assert statuses[0] is CoordinatorStatus.LOADING
        assert statuses[-1] is CoordinatorStatus.READY

    @pytest.mark.asyncio
    async def test_switch_clears_history(self, coordinator, write_dashboard, dashboard_document):
        await coordinator.load_dashboard()
        await coordinator.refresh()
        assert len(coordinator.history(1, "A")) == 2

        dashboard_document["title"] = "Other"
        other = write_dashboard(dashboard_document, name="other.json")
        assert await coordinator.switch_dashboard(other) is True

        assert coordinator.state.title == "Other"
        assert coordinator.state.dashboard_path == other
        assert len(coordinator.history(1, "A")) == 1


class TestVariables:

    @pytest.mark.asyncio
    async def test_options_loaded(self, coordinator, client):
        await coordinator.load_dashboard()

        client.get_label_values.assert_awaited_once_with("instance", "up")
        assert coordinator.state.variable_options["instance"] == ("fake-server", "other")

    @pytest.mark.asyncio
    async def test_empty_value_adopts_first_option(self, client, write_dashboard):
        path = write_dashboard(
            variable_dashboard(
                {"name": "instance", "type": "query", "query": "label_values(up, instance)"}
            )
        )
        client.get_label_values.return_value = ["a:9100", "b:9100"]
        coordinator = DashboardCoordinator(client, dashboard_path=path)

        await coordinator.load_dashboard()

        assert coordinator.state.variable_values["instance"] == "a:9100"
        (queries, _), _ = client.execute_queries.call_args
        assert queries[0].expr == 'up{instance="a:9100"}'

    @pytest.mark.asyncio
    async def test_chained_variable_selector(self, client, write_dashboard):
        path = write_dashboard(
            variable_dashboard(
                {"name": "job", "type": "custom", "query": "node,api", "current": {"value": "api"}},
                {"name": "instance", "type": "query", "query": 'label_values(up{job="$job"}, instance)'},
            )
        )
        coordinator = DashboardCoordinator(client, dashboard_path=path)

        await coordinator.load_dashboard()

        client.get_label_values.assert_awaited_once_with("instance", 'up{job="api"}')
        assert coordinator.state.variable_options["job"] == ("node", "api")

    @pytest.mark.asyncio
    async def test_option_failure_is_isolated(self, coordinator, client):
        client.get_label_values.side_effect = QueryError("backend down")

        assert await coordinator.load_dashboard() is True

        assert coordinator.state.status is CoordinatorStatus.READY
        assert "instance" not in coordinator.state.variable_options
        assert coordinator.state.variable_values["instance"] == "fake-server"

    @pytest.mark.asyncio
    async def test_set_value_refreshes(self, coordinator, client):
        await coordinator.load_dashboard()
        client.execute_queries.reset_mock()

        await coordinator.set_variable_value("instance", "other")

        assert coordinator.state.variable_values["instance"] == "other"
        exprs = [q.expr for call in client.execute_queries.call_args_list for q in call.args[0]]
        assert len(exprs) == 2
        assert all('instance="other"' in expr for expr in exprs)

    @pytest.mark.asyncio
    async def test_unknown_variable_ignored(self, coordinator, client):
        await coordinator.load_dashboard()
        client.execute_queries.reset_mock()

        await coordinator.set_variable_value("nope", "x")

        assert "nope" not in coordinator.state.variable_values
        client.execute_queries.assert_not_called()


class TestRefresh:

    @pytest.mark.asyncio
    async def test_skipped_without_dashboard(self, coordinator, client):
        assert await coordinator.refresh() is False

        client.execute_queries.assert_not_called()

    @pytest.mark.asyncio
    async def test_one_notification_per_cycle(self, coordinator):
        await coordinator.load_dashboard()
        states = []
        coordinator.subscribe(states.append)

        assert await coordinator.refresh() is True

        assert len(states) == 1
        assert isinstance(states[0], DashboardState)
        assert len(states[0].panels) == 2

    @pytest.mark.asyncio
    async def test_query_errors_stay_in_results(self, coordinator, client):
        def _execute(queries, duration):
            return [QueryResult(ref_id=q.ref_id, error="parse error") for q in queries]

        await coordinator.load_dashboard()
        client.execute_queries.side_effect = _execute

        await coordinator.refresh()

        panel = coordinator.state.panels[0]
        assert panel.error is None
        assert panel.results[0].error == "parse error"
        assert len(coordinator.history(1, "A")) == 1

    @pytest.mark.asyncio
    async def test_nan_not_recorded(self, coordinator, client):
        await coordinator.load_dashboard()
        client.execute_queries.side_effect = constant_results(math.nan)

        await coordinator.refresh()

        assert coordinator.history(1, "A") == [Sample(NOW, 1.0)]
        assert math.isnan(coordinator.state.panels[0].results[0].series[0].samples[0].value)

    @pytest.mark.asyncio
    async def test_published_results_are_read_only(self, coordinator):
        await coordinator.load_dashboard()
        result = coordinator.state.panels[0].results[0]

        assert isinstance(result.series, tuple)
        assert isinstance(result.series[0].samples, tuple)
        with pytest.raises(FrozenInstanceError):
            result.series[0].samples = ()
        with pytest.raises(FrozenInstanceError):
            result.error = "boom"

    @pytest.mark.asyncio
    async def test_panel_failure_keeps_last_results(self, coordinator, client):
        await coordinator.load_dashboard()
        previous = coordinator.state.panels[1]

        def _execute(queries, duration):
            if "memory" in queries[0].expr:
                raise RuntimeError("connection reset")
            return [result_for(q, 5.0) for q in queries]

        client.execute_queries.side_effect = _execute
        await coordinator.refresh()

        cpu, memory = coordinator.state.panels
        assert cpu.error is None
        assert cpu.results[0].series[0].samples[0].value == 5.0
        assert memory.error == "connection reset"
        assert memory.results == previous.results
        assert memory.last_updated == previous.last_updated
        assert len(coordinator.history(3, "A")) == 1

    @pytest.mark.asyncio
    async def test_in_flight_refresh_is_skipped(self, coordinator, client):
        await coordinator.load_dashboard()
        gate = asyncio.Event()

        async def _execute(queries, duration):
            await gate.wait()
            return [result_for(q, 2.0) for q in queries]

        client.execute_queries.side_effect = _execute
        first = asyncio.create_task(coordinator.refresh())
        await asyncio.sleep(0)

        assert await coordinator.refresh() is False

        gate.set()
        assert await first is True
        assert coordinator.history(1, "A")[-1].value == 2.0

    @pytest.mark.asyncio
    async def test_stale_cycle_discarded(self, coordinator, client):
        await coordinator.load_dashboard()
        gate = asyncio.Event()

        async def _execute(queries, duration):
            if "fake-server" in queries[0].expr:
                await gate.wait()
                return [result_for(q, 1.0) for q in queries]
            return [result_for(q, 9.0) for q in queries]

        client.execute_queries.side_effect = _execute
        stale = asyncio.create_task(coordinator.refresh())
        await asyncio.sleep(0)

        await coordinator.set_variable_value("instance", "other")
        gate.set()

        assert await stale is False
        assert [p.results[0].series[0].samples[0].value for p in coordinator.state.panels] == [9.0, 9.0]
        assert [s.value for s in coordinator.history(1, "A")] == [1.0, 9.0]

    @pytest.mark.asyncio
    async def test_switch_discards_in_flight_cycle(self, coordinator, client, write_dashboard, dashboard_document):
        await coordinator.load_dashboard()
        started = asyncio.Event()
        gate = asyncio.Event()
        held = {"active": True}

        async def _execute(queries, duration):
            if held["active"]:
                started.set()
                await gate.wait()
                return [result_for(q, 7.0) for q in queries]
            return [result_for(q, 1.0) for q in queries]

        client.execute_queries.side_effect = _execute
        stale = asyncio.create_task(coordinator.refresh())
        await started.wait()

        held["active"] = False
        dashboard_document["title"] = "Other"
        other = write_dashboard(dashboard_document, name="other.json")
        assert await coordinator.switch_dashboard(other) is True
        gate.set()

        assert await stale is False
        assert coordinator.state.title == "Other"
        assert [s.value for s in coordinator.history(1, "A")] == [1.0]
        assert [p.results[0].series[0].samples[0].value for p in coordinator.state.panels] == [1.0, 1.0]


class TestListeners:

    @pytest.mark.asyncio
    async def test_unsubscribe(self, coordinator):
        calls = []
        unsubscribe = coordinator.subscribe(calls.append)
        await coordinator.load_dashboard()
        count = len(calls)

        unsubscribe()
        await coordinator.refresh()

        assert count > 0
        assert len(calls) == count

    def test_unsubscribe_unknown_listener(self, coordinator):
        coordinator.unsubscribe(lambda state: None)

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self, coordinator):
        order = []

        def broken(state):
            order.append("broken")
            raise RuntimeError("boom")

        coordinator.subscribe(broken)
        coordinator.subscribe(lambda state: order.append("ok"))
        await coordinator.load_dashboard()
        order.clear()

        await coordinator.refresh()

        assert order == ["broken", "ok"]


class TestTimer:

    @pytest.mark.asyncio
    async def test_start_stop_idempotent(self, coordinator):
        coordinator.stop()
        coordinator.start()
        timer = coordinator._timer
        coordinator.start()

        assert coordinator._timer is timer
        assert coordinator.is_running

        coordinator.stop()
        coordinator.stop()
        assert not coordinator.is_running

    def test_start_requires_running_loop(self, coordinator):
        with pytest.raises(RuntimeError):
            coordinator.start()

    @pytest.mark.asyncio
    async def test_timer_refreshes(self, coordinator, client):
        await coordinator.load_dashboard()
        calls = client.execute_queries.await_count

        coordinator.start()
        await asyncio.sleep(0.1)
        await coordinator.aclose()

        assert client.execute_queries.await_count > calls
        assert not coordinator.is_running


def test_from_settings(dashboard_file):
    settings = Settings(
        prometheus_url="http://prom:9090",
        dashboard_path=dashboard_file,
        time_range="15m",
        refresh_interval=2.5,
        history_capacity=5,
    )

    coordinator = DashboardCoordinator.from_settings(settings)

    assert coordinator.state.dashboard_path == dashboard_file
    assert coordinator._client.base_url == "http://prom:9090"
    assert coordinator._time_range == "15m"
    assert coordinator._refresh_interval == 2.5
    assert coordinator._history_capacity == 5
