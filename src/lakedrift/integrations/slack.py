"""Post drift reports to Slack via incoming webhook."""

from urllib.parse import urlparse

import requests

from lakedrift.formatter import format_markdown
from lakedrift.models import DriftAnalysis, DriftStatus

ALLOWED_SLACK_HOSTS = {"hooks.slack.com", "hooks.slack-gov.com"}


def _validate_webhook(webhook_url: str) -> None:
    parsed = urlparse(webhook_url)
    if parsed.scheme != "https":
        raise ValueError("Slack webhook URL must use HTTPS")
    if parsed.hostname not in ALLOWED_SLACK_HOSTS:
        raise ValueError(
            f"Invalid Slack webhook host {parsed.hostname!r}: "
            f"must be one of {sorted(ALLOWED_SLACK_HOSTS)}"
        )


def post_report_to_slack(
    status: DriftStatus,
    analysis: DriftAnalysis,
    webhook_url: str,
    *,
    redact: bool = True,
    timeout: int = 30,
) -> None:
    """Post a stack drift report to a Slack incoming webhook.

    Property values are redacted unless ``redact`` is False.
    """
    _validate_webhook(webhook_url)
    headline = (
        f"Stack {status.stack_name}: {analysis.drifted} drifted resource(s)"
        if analysis.has_drift
        else f"Stack {status.stack_name} is in sync"
    )
    report = format_markdown(status, analysis, redact=redact)
    response = requests.post(
        webhook_url,
        json={"text": f"{headline}\n\n{report}"},
        timeout=timeout,
    )
    response.raise_for_status()
