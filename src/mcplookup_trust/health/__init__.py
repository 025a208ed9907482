"""Server health probing and trust scoring."""

from .models import HealthMetrics, HealthReport, HealthStatus
from .probes import HealthProbe
from .report import build_health_report
from .scoring import calculate_trust_score

__all__ = [
    "HealthMetrics",
    "HealthReport",
    "HealthStatus",
    "HealthProbe",
    "build_health_report",
    "calculate_trust_score",
]
