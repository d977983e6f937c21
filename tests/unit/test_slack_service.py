"""
Unit tests for Slack notifications (src/notifications/)

Tests covering:
- Webhook delivery, retries and rate limiting
- Failures never propagating to the caller
- Jinja2 template rendering from YAML
"""

import json
from unittest.mock import Mock, patch

import pytest
import requests

from src.analysis.difference_classifier import ClassifiedDifference, DifferenceClassification
from src.notifications.slack_service import SlackWebhookClient
from src.notifications.templates import SlackTemplateLoader
from src.validation.models import ParityRunResult, SeedResult

WEBHOOK_URL = "https://hooks.slack.com/services/T000/B000/XXXXXXXXXXXXXXXX"


def make_response(status_code=200, text="ok", headers=None):
    response = Mock()
    response.status_code = status_code
    response.text = text
    response.headers = headers or {}
    return response


def make_logic_difference(index):
    return ClassifiedDifference(
        command_index=index,
        command=f"open door {index}",
        model_output="The door is locked.",
        reference_output="The door opens.",
        classification=DifferenceClassification.LOGIC_DIFFERENCE,
        reason="Difference cannot be attributed to RNG or state divergence",
        confidence=0.8,
    )


@pytest.fixture
def session():
    session = Mock()
    session.post.return_value = make_response()
    return session


@pytest.fixture
def client(session):
    return SlackWebhookClient(webhook_url=WEBHOOK_URL, http_client=session, retry_delay_seconds=0)


@pytest.fixture
def no_sleep():
    with patch("src.notifications.slack_service.time.sleep") as sleep:
        yield sleep


class TestSlackDelivery:
    """Test webhook delivery behavior."""

    def test_send_text(self, client, session):
        """Test plain text is posted as JSON to the webhook."""
        client.send_text("Nightly parity finished", channel="#parity")

        session.post.assert_called_once()
        args, kwargs = session.post.call_args
        assert args[0] == WEBHOOK_URL
        assert json.loads(kwargs["data"]) == {"text": "Nightly parity finished", "channel": "#parity"}
        assert kwargs["headers"]["Content-Type"] == "application/json"

    def test_rate_limit_then_success(self, client, session, no_sleep):
        """Test a 429 response is retried."""
        session.post.side_effect = [make_response(429, headers={"Retry-After": "1"}), make_response()]

        assert client._dispatch({"text": "hi"}, action="test") is True
        assert session.post.call_count == 2
        no_sleep.assert_called_once()

    def test_server_error_exhausts_retries(self, client, session, no_sleep):
        """Test persistent 5xx responses return False after all attempts."""
        session.post.return_value = make_response(500, text="internal error")

        assert client._dispatch({"text": "hi"}, action="test") is False
        assert session.post.call_count == 3
        assert no_sleep.call_count == 2

    def test_connection_error_never_raises(self, client, session, no_sleep):
        """Test network failures are swallowed by the public senders."""
        session.post.side_effect = requests.ConnectionError("connection refused")
        client.send_text("hello")
        assert session.post.call_count == 3

    def test_without_webhook_is_noop(self, session, monkeypatch):
        """Test nothing is posted when no webhook is configured."""
        monkeypatch.delenv("SLACK_WEBHOOK_URL", raising=False)
        client = SlackWebhookClient(http_client=session)

        client.send_text("hello")
        client.send_parity_run_started([1, 2], 100)

        session.post.assert_not_called()
        assert client.get_webhook_status()["webhook_configured"] is False

    def test_webhook_from_environment(self, session, monkeypatch):
        """Test the webhook URL falls back to the environment."""
        monkeypatch.setenv("SLACK_WEBHOOK_URL", WEBHOOK_URL)
        assert SlackWebhookClient(http_client=session).webhook_url == WEBHOOK_URL

    def test_webhook_status_masks_url(self, client):
        """Test the status report never exposes the full webhook URL."""
        status = client.get_webhook_status()
        assert status["webhook_configured"] is True
        assert status["webhook_url_masked"] != WEBHOOK_URL
        assert status["webhook_url_masked"].startswith(WEBHOOK_URL[:30])
        assert status["webhook_url_masked"].endswith(WEBHOOK_URL[-10:])


class TestParityMessages:
    """Test the parity-specific messages."""

    def _posted_text(self, session):
        payload = json.loads(session.post.call_args[1]["data"])
        return payload["blocks"][0]["text"]["text"]

    def test_run_started(self, client, session):
        """Test the start message lists seeds and command count."""
        client.send_parity_run_started([12345, 67890], 250)
        text = self._posted_text(session)
        assert "Parity Run Started" in text
        assert "12345, 67890" in text
        assert "250" in text

    def test_run_completed(self, client, session):
        """Test the completion message summarizes the run."""
        result = ParityRunResult(seeds=[1], commands_per_seed=10, execution_time_ms=1500)
        result.seed_results[1] = SeedResult(
            seed=1, total_commands=10, matching_responses=9, differences=[make_logic_difference(3)]
        )
        client.send_parity_run_completed(result)
        text = self._posted_text(session)
        assert "Overall parity: `90.00%`" in text
        assert "Logic: `1`" in text
        assert "Status: `FAILED`" in text
        assert "Duration: `1.5s`" in text

    def test_regression_alert_caps_samples(self, client, session):
        """Test the alert lists five differences and counts the rest."""
        differences = [make_logic_difference(i) for i in range(1, 8)]
        client.send_regression_alert(differences, resolved_count=1, commit_hash="abc123")
        text = self._posted_text(session)
        assert "New logic differences: `7`" in text
        assert "Commit: `abc123`" in text
        assert "`open door 5`" in text
        assert "`open door 6`" not in text
        assert "... and 2 more" in text

    def test_render_failure_is_logged_not_raised(self, session, tmp_path):
        """Test a broken template file does not raise from the sender."""
        template_file = tmp_path / "templates.yaml"
        template_file.write_text("other_template: hi\n", encoding="utf-8")
        client = SlackWebhookClient(
            webhook_url=WEBHOOK_URL,
            http_client=session,
            template_loader=SlackTemplateLoader(template_file),
        )

        client.send_parity_run_started([1], 10)
        session.post.assert_not_called()


class TestSlackTemplateLoader:
    """Test YAML/Jinja2 template loading."""

    def test_bundled_templates(self):
        """Test the bundled file provides every parity template."""
        names = SlackTemplateLoader().get_template_names()
        assert {"parity_run_started", "parity_run_completed", "regression_alert"} <= set(names)

    def test_render_custom_template(self, tmp_path):
        """Test templates render with context variables."""
        template_file = tmp_path / "templates.yaml"
        template_file.write_text('greeting: "Seed {{ seed }} done"\n', encoding="utf-8")
        assert SlackTemplateLoader(template_file).render("greeting", seed=42) == "Seed 42 done"

    def test_unknown_template(self):
        """Test unknown template names raise ValueError."""
        with pytest.raises(ValueError, match="not found"):
            SlackTemplateLoader().render("does_not_exist")

    def test_non_mapping_file(self, tmp_path):
        """Test a YAML list is rejected."""
        template_file = tmp_path / "templates.yaml"
        template_file.write_text("- one\n- two\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            SlackTemplateLoader(template_file).load_templates()

    def test_missing_file(self, tmp_path):
        """Test a missing template file raises OSError."""
        with pytest.raises(OSError):
            SlackTemplateLoader(tmp_path / "absent.yaml").load_templates()
