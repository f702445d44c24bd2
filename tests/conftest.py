"""Root test configuration."""

import json
import logging
import os
from typing import Any, Callable

import pytest
import structlog


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def dashboard_document() -> dict[str, Any]:
    """A Grafana dashboard mixing supported and unsupported content."""
    return {
        "title": "Node Overview",
        "panels": [
            {
                "id": 3,
                "title": "Memory",
                "type": "timeseries",
                "gridPos": {"x": 12, "y": 0, "w": 12, "h": 8},
                "targets": [
                    {"expr": "node_memory_usage_percent{instance=\"$instance\"}", "refId": "A"},
                ],
            },
            {
                "id": 1,
                "title": "CPU",
                "type": "stat",
                "gridPos": {"x": 0, "y": 0, "w": 12, "h": 8},
                "targets": [
                    {
                        "expr": "node_cpu_usage_percent{instance=\"${instance}\"}",
                        "refId": "A",
                        "legendFormat": "{{instance}}",
                        "datasource": {"type": "prometheus", "uid": "prom"},
                    },
                ],
                "fieldConfig": {
                    "defaults": {
                        "thresholds": {
                            "mode": "absolute",
                            "steps": [
                                {"color": "green", "value": None},
                                {"color": "red", "value": 80},
                            ],
                        }
                    }
                },
            },
            {
                "id": 7,
                "title": "Logs",
                "type": "logs",
                "gridPos": {"x": 0, "y": 8, "w": 24, "h": 8},
                "targets": [{"expr": "{job=\"app\"}", "refId": "A"}],
            },
        ],
        "templating": {
            "list": [
                {
                    "name": "instance",
                    "type": "query",
                    "query": {"query": "label_values(up, instance)", "refId": "Prom"},
                    "current": {"value": ["fake-server", "other"], "text": "fake-server"},
                    "multi": True,
                },
                {"name": "ds", "type": "datasource", "query": "prometheus"},
            ]
        },
    }


@pytest.fixture
def write_dashboard(tmp_path) -> Callable[..., str]:
    """Write a dashboard document to a JSON file and return its path."""

    def _write(document: Any, name: str = "dashboard.json") -> str:
        path = tmp_path / name
        path.write_text(json.dumps(document))
        return str(path)

    return _write


@pytest.fixture
def matrix_response() -> Callable[..., dict[str, Any]]:
    """Build a successful query_range envelope from (labels, values) pairs."""

    def _build(*series: tuple[dict[str, str], list[list[Any]]]) -> dict[str, Any]:
        return {
            "status": "success",
            "data": {
                "resultType": "matrix",
                "result": [{"metric": labels, "values": values} for labels, values in series],
            },
        }

    return _build


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Run from an empty directory with no PROMBOARD_ variables set."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for name in [n for n in os.environ if n.startswith("PROMBOARD_")]:
        monkeypatch.delenv(name)
