"""
Slack webhook notifications client.

Posts parity run progress and regression alerts to an incoming webhook.
Delivery failures are logged and never raised.
"""

from __future__ import annotations

import json
import os
import time
from typing import Any, Dict, List, Optional, Sequence

import jinja2
import requests
import yaml

from src.analysis.difference_classifier import ClassifiedDifference
from src.notifications.templates import SlackTemplateLoader
from src.utils.logger import get_logger, StructuredLogger
from src.validation.models import ParityRunResult

MAX_ALERT_SAMPLES = 5


class SlackServiceError(Exception):
    """Raised when the Slack service fails to deliver a message."""


class SlackWebhookClient:
    """
    Client for sending notifications through Slack webhooks.

    Attributes:
        webhook_url: Slack incoming webhook URL
        logger: Structured logger instance
        max_retries: Number of retry attempts
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        http_client: Optional[requests.Session] = None,
        logger: Optional[StructuredLogger] = None,
        max_retries: int = 3,
        retry_delay_seconds: float = 0.5,
        template_loader: Optional[SlackTemplateLoader] = None,
    ) -> None:
        """
        Initialize the Slack webhook client.

        Args:
            webhook_url: Slack incoming webhook URL (from environment if None)
            http_client: Optional requests-like session (useful for testing)
            logger: Optional structured logger instance
            max_retries: Number of attempts when sending messages
            retry_delay_seconds: Base delay between retries (linear backoff)
            template_loader: Message templates (bundled parity templates if None)
        """
        self.logger = logger or get_logger(__name__)
        self.http_client = http_client or requests.Session()
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds
        self.template_loader = template_loader or SlackTemplateLoader(logger=self.logger)

        self.webhook_url = webhook_url or os.getenv("SLACK_WEBHOOK_URL")
        if not self.webhook_url:
            self.logger.warning("Slack webhook URL not configured; Slack notifications disabled")
            self.webhook_url = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def send_parity_run_started(self, seeds: Sequence[int], commands_per_seed: int) -> None:
        if not self.webhook_url:
            return
        text = self._render(
            "parity_run_started",
            action="send_parity_run_started",
            seeds=list(seeds),
            commands_per_seed=commands_per_seed,
        )
        if text is not None:
            self._dispatch(self._section(text), action="send_parity_run_started")

    def send_parity_run_completed(self, result: ParityRunResult) -> None:
        """Send the aggregate outcome of a parity run."""
        if not self.webhook_url:
            return
        text = self._render(
            "parity_run_completed",
            action="send_parity_run_completed",
            passed=result.passed,
            parity=result.overall_parity_percentage,
            total_differences=result.total_differences,
            rng_differences=result.rng_differences,
            state_divergences=result.state_divergences,
            logic_differences=result.logic_differences,
            duration_seconds=result.execution_time_ms / 1000,
        )
        if text is not None:
            self._dispatch(self._section(text), action="send_parity_run_completed")

    def send_regression_alert(
        self,
        new_differences: List[ClassifiedDifference],
        resolved_count: int = 0,
        commit_hash: Optional[str] = None,
    ) -> None:
        """Send alert listing new logic differences (first few only)."""
        if not self.webhook_url:
            return
        text = self._render(
            "regression_alert",
            action="send_regression_alert",
            new_count=len(new_differences),
            resolved_count=resolved_count,
            commit_hash=commit_hash,
            samples=new_differences[:MAX_ALERT_SAMPLES],
            more=max(len(new_differences) - MAX_ALERT_SAMPLES, 0),
        )
        if text is not None:
            self._dispatch(self._section(text), action="send_regression_alert")

    def send_text(self, text: str, channel: Optional[str] = None) -> None:
        """Send a simple plaintext message via Slack webhook."""
        if not self.webhook_url:
            return

        payload: Dict[str, Any] = {"text": text}
        if channel:
            payload["channel"] = channel

        self._dispatch(payload, action="send_text")

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _section(text: str) -> Dict[str, Any]:
        return {"blocks": [{"type": "section", "text": {"type": "mrkdwn", "text": text}}]}

    def _render(self, template_name: str, action: str, **context: Any) -> Optional[str]:
        try:
            return self.template_loader.render(template_name, **context)
        except (OSError, ValueError, yaml.YAMLError, jinja2.TemplateError) as exc:
            self.logger.error(
                "Slack message could not be rendered",
                operation=action,
                context={"template": template_name},
                error=str(exc),
            )
            return None

    def _dispatch(
        self,
        payload: Dict[str, Any],
        action: str,
        max_retries: Optional[int] = None,
    ) -> bool:
        """Send payload to Slack webhook with retry handling."""
        if not self.webhook_url:
            self.logger.debug(
                "Slack webhook not configured; skipping notification",
                operation=action,
            )
            return False

        max_retries = max_retries or self.max_retries
        body = json.dumps(payload)

        for attempt in range(1, max_retries + 1):
            try:
                self.logger.debug(
                    "Sending Slack notification",
                    operation=action,
                    context={"status": "attempt", "attempt": attempt},
                )

                response = self.http_client.post(
                    self.webhook_url,
                    headers={"Content-Type": "application/json"},
                    data=body,
                    timeout=10,
                )

                if response.status_code == 429:
                    retry_after = int(response.headers.get("Retry-After", 60))
                    self.logger.warning(
                        "Slack rate limited",
                        operation=action,
                        context={
                            "status": "rate_limited",
                            "attempt": attempt,
                            "retry_after": retry_after,
                        },
                    )
                    if attempt < max_retries:
                        time.sleep(min(retry_after, self.retry_delay_seconds * attempt))
                        continue
                    raise SlackServiceError(f"Rate limited; retry after {retry_after}s")

                if response.status_code >= 400:
                    raise SlackServiceError(
                        f"Slack responded with {response.status_code}: {response.text}"
                    )

                self.logger.debug(
                    "Slack notification delivered",
                    operation=action,
                    context={"status": "success", "attempt": attempt},
                )
                return True

            except (requests.RequestException, SlackServiceError) as exc:
                if attempt >= max_retries:
                    # Slack is never on the critical path of a parity run
                    self.logger.error(
                        "Slack delivery failed",
                        operation=action,
                        context={"status": "failed", "attempt": attempt},
                        error=str(exc),
                    )
                    return False

                self.logger.warning(
                    "Retrying Slack delivery",
                    operation=action,
                    context={"status": "retry", "attempt": attempt},
                    error=str(exc),
                )
                time.sleep(self.retry_delay_seconds * attempt)

        return False

    def get_webhook_status(self) -> Dict[str, Any]:
        """Return webhook configuration status."""
        return {
            "webhook_configured": self.webhook_url is not None,
            "webhook_url_masked": (self._mask_url(self.webhook_url) if self.webhook_url else None),
            "max_retries": self.max_retries,
            "retry_delay_seconds": self.retry_delay_seconds,
        }

    @staticmethod
    def _mask_url(url: str) -> str:
        """Mask webhook URL for logging."""
        if not url or len(url) < 20:
            return url
        return f"{url[:30]}...{url[-10:]}"
