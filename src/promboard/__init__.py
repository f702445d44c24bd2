"""promboard: Grafana dashboards rendered against a Prometheus backend."""

__version__ = "0.1.0"
