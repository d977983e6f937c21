"""
Parity Metrics Module

Publishes parity run and spot-test results as CloudWatch custom metrics
under the zork-parity/validation namespace so parity trends can be
tracked across CI runs.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from src.spot_testing.models import SpotTestResult
from src.validation.models import ParityRunResult

# CloudWatch limit per put_metric_data request
MAX_METRICS_PER_REQUEST = 20


def _metric(
    name: str, value: float, unit: str, timestamp: datetime, dimensions: List[Dict[str, str]]
) -> Dict[str, Any]:
    return {
        "MetricName": name,
        "Value": value,
        "Unit": unit,
        "Timestamp": timestamp,
        "Dimensions": dimensions,
    }


class ParityMetricsPublisher:
    """
    Publishes parity metrics to CloudWatch.

    Metrics:
    - parity_percentage
    - total_differences, rng_differences, state_divergences, logic_differences
    - regression_detected (1 when the regression gate failed)

    Publish failures are logged and never raised; metrics must not change
    the outcome of a parity run.
    """

    NAMESPACE = "zork-parity/validation"

    def __init__(self, region_name: str = "us-east-1", cloudwatch_client=None):
        self.region_name = region_name
        self.cloudwatch_client = cloudwatch_client or boto3.client(
            "cloudwatch", region_name=region_name
        )
        self.logger = logging.getLogger(__name__)

    def publish_run(
        self,
        result: ParityRunResult,
        regression_detected: Optional[bool] = None,
        run_id: Optional[str] = None,
    ) -> bool:
        """
        Publish the aggregate counts of a multi-seed parity run.

        Returns:
            True if every batch was accepted
        """
        timestamp = datetime.now(timezone.utc)
        dimensions = [{"Name": "RunType", "Value": "parity"}]
        if run_id:
            dimensions.append({"Name": "ParityRun", "Value": run_id})

        metric_data = [
            _metric("parity_percentage", result.overall_parity_percentage, "Percent", timestamp, dimensions),
            _metric("total_differences", result.total_differences, "Count", timestamp, dimensions),
            _metric("rng_differences", result.rng_differences, "Count", timestamp, dimensions),
            _metric("state_divergences", result.state_divergences, "Count", timestamp, dimensions),
            _metric("logic_differences", result.logic_differences, "Count", timestamp, dimensions),
            _metric("execution_time_ms", result.execution_time_ms, "Milliseconds", timestamp, dimensions),
        ]
        if regression_detected is not None:
            metric_data.append(
                _metric("regression_detected", 1 if regression_detected else 0, "Count", timestamp, dimensions)
            )

        published = self._put(metric_data)
        if published:
            self.logger.info(
                f"Parity metrics published: parity={result.overall_parity_percentage:.2f}%, "
                f"logic_differences={result.logic_differences}"
            )
        return published

    def publish_spot_test(self, result: SpotTestResult) -> bool:
        timestamp = datetime.now(timezone.utc)
        dimensions = [{"Name": "RunType", "Value": "spot-test"}]
        metric_data = [
            _metric("parity_percentage", result.parity_score, "Percent", timestamp, dimensions),
            _metric("total_differences", len(result.differences), "Count", timestamp, dimensions),
            _metric("execution_time_ms", result.execution_time_ms, "Milliseconds", timestamp, dimensions),
        ]
        return self._put(metric_data)

    def _put(self, metric_data: List[Dict[str, Any]]) -> bool:
        try:
            for i in range(0, len(metric_data), MAX_METRICS_PER_REQUEST):
                batch = metric_data[i : i + MAX_METRICS_PER_REQUEST]
                self.cloudwatch_client.put_metric_data(Namespace=self.NAMESPACE, MetricData=batch)
                self.logger.debug(f"Published {len(batch)} metrics to CloudWatch")
        except (BotoCoreError, ClientError) as e:
            self.logger.error(f"Failed to publish parity metrics: {e}")
            return False
        return True
