from ndconv.monitoring.logging import configure_logging
from ndconv.monitoring.metrics import DownloadMetrics, MetricsSnapshot

__all__ = [
    "configure_logging",
    "DownloadMetrics",
    "MetricsSnapshot",
]
