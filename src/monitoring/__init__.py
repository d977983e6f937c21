"""CloudWatch metrics for parity runs."""

from src.monitoring.parity_metrics import ParityMetricsPublisher

__all__ = ["ParityMetricsPublisher"]
