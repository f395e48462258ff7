"""Tests for the CLI entrypoint."""

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest
import requests
from click.testing import CliRunner

from lakedrift.analyzer import analyze_drifts
from lakedrift.cli import main
from lakedrift.confirm import AutoConfirmation, ConsoleConfirmation
from lakedrift.errors import DetectionTimeoutError, InfrastructureQueryError
from lakedrift.formatter import format_json
from lakedrift.models import (
    DiffType,
    DriftStatus,
    PropertyDiff,
    ReconciliationResult,
    ResourceDrift,
    ResourceStatus,
    StackStatus,
)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def mock_reconciler():
    with (
        patch("lakedrift.cli.CloudFormationClient"),
        patch("lakedrift.cli.CdkDeployer") as mock_deployer_cls,
        patch("lakedrift.cli.DriftReconciler") as mock_reconciler_cls,
    ):
        reconciler = MagicMock()
        reconciler.check_stack_exists.return_value = True
        mock_reconciler_cls.return_value = reconciler
        reconciler.cls = mock_reconciler_cls
        reconciler.deployer_cls = mock_deployer_cls
        yield reconciler


def _status(stack_status=StackStatus.DRIFTED):
    return DriftStatus(
        stack_name="IcebergCdkStack",
        detection_id="det-1",
        stack_status=stack_status,
        drifted_resource_count=0 if stack_status == StackStatus.IN_SYNC else 1,
        timestamp=datetime(2026, 2, 25, 13, 30, 0, tzinfo=UTC),
    )


def _analysis(*statuses):
    return analyze_drifts(
        ResourceDrift(
            logical_id=f"Res{i}",
            physical_id=f"phys-{i}",
            resource_type="AWS::S3::Bucket",
            status=status,
            property_diffs=[PropertyDiff("/Properties/Foo", DiffType.NOT_EQUAL, "a", "b")]
            if status == ResourceStatus.MODIFIED
            else [],
            timestamp=datetime(2026, 2, 25, 13, 30, 0),
        )
        for i, status in enumerate(statuses)
    )


def _result(drifted=False, **kwargs):
    if drifted:
        return ReconciliationResult(
            stack_exists=True,
            drift_status=_status(),
            analysis=_analysis(ResourceStatus.MODIFIED, ResourceStatus.IN_SYNC),
            **kwargs,
        )
    return ReconciliationResult(
        stack_exists=True,
        drift_status=_status(StackStatus.IN_SYNC),
        analysis=_analysis(ResourceStatus.IN_SYNC),
        **kwargs,
    )


def test_detect_no_drift_exit_0(runner, mock_reconciler):
    mock_reconciler.detect_and_repair.return_value = _result()

    result = runner.invoke(main, ["detect"])

    assert result.exit_code == 0
    assert "Stack exists: yes" in result.output


def test_detect_missing_stack_exit_1(runner, mock_reconciler):
    mock_reconciler.detect_and_repair.return_value = ReconciliationResult(stack_exists=False)

    result = runner.invoke(main, ["detect"])

    assert result.exit_code == 1


def test_detect_repair_succeeded_exit_0(runner, mock_reconciler):
    mock_reconciler.detect_and_repair.return_value = _result(
        drifted=True, needs_repair=True, repair_attempted=True, repair_succeeded=True
    )

    result = runner.invoke(main, ["detect"])

    assert result.exit_code == 0
    assert "Repair succeeded: yes" in result.output


def test_detect_repair_failed_exit_1(runner, mock_reconciler):
    mock_reconciler.detect_and_repair.return_value = _result(
        drifted=True, needs_repair=True, repair_attempted=True
    )

    result = runner.invoke(main, ["detect"])

    assert result.exit_code == 1


def test_detect_declined_repair_exit_0(runner, mock_reconciler):
    mock_reconciler.detect_and_repair.return_value = _result(drifted=True)

    result = runner.invoke(main, ["detect"])

    assert result.exit_code == 0
    assert "Repair attempted: no" in result.output


def test_detect_error_prints_summary(runner, mock_reconciler):
    mock_reconciler.detect_and_repair.side_effect = DetectionTimeoutError(30, 10.0)

    result = runner.invoke(main, ["detect"])

    assert result.exit_code == 1
    assert "Drift detection for stack IcebergCdkStack failed" in result.output
    assert "Suggested action:" in result.output


def test_detect_prompts_by_default(runner, mock_reconciler):
    mock_reconciler.detect_and_repair.return_value = _result()

    runner.invoke(main, ["detect"])

    confirmation = mock_reconciler.cls.call_args[0][2]
    assert isinstance(confirmation, ConsoleConfirmation)


def test_detect_auto_deny(runner, mock_reconciler):
    mock_reconciler.detect_and_repair.return_value = _result()

    runner.invoke(main, ["detect", "--auto-deny"])

    confirmation = mock_reconciler.cls.call_args[0][2]
    assert isinstance(confirmation, AutoConfirmation)
    assert confirmation.answer is False


def test_detect_auto_approve_from_env(runner, mock_reconciler, monkeypatch):
    monkeypatch.setenv("LAKEDRIFT_AUTO_APPROVE", "yes")
    mock_reconciler.detect_and_repair.return_value = _result()

    runner.invoke(main, ["detect"])

    confirmation = mock_reconciler.cls.call_args[0][2]
    assert isinstance(confirmation, AutoConfirmation)
    assert confirmation.answer is True


def test_detect_passes_group_options(runner, mock_reconciler):
    mock_reconciler.detect_and_repair.return_value = _result()

    runner.invoke(
        main,
        ["--stack", "OtherStack", "--poll-interval", "1", "--max-poll-attempts", "3", "detect"],
    )

    call_kwargs = mock_reconciler.cls.call_args[1]
    assert call_kwargs["stack_name"] == "OtherStack"
    assert call_kwargs["poll_interval"] == 1.0
    assert call_kwargs["max_poll_attempts"] == 3


def test_detect_deploy_command(runner, mock_reconciler):
    mock_reconciler.detect_and_repair.return_value = _result()

    runner.invoke(main, ["detect", "--deploy-command", "cdk deploy --force"])

    mock_reconciler.deployer_cls.assert_called_once_with(("cdk", "deploy", "--force"))


def test_detect_json_format(runner, mock_reconciler):
    mock_reconciler.detect_and_repair.return_value = _result()

    runner.invoke(main, ["detect", "--format", "json", "--redact-values"])

    renderer = mock_reconciler.cls.call_args[1]["renderer"]
    assert renderer.func is format_json
    assert renderer.keywords == {"redact": True}


def test_detect_post_slack_requires_webhook(runner, mock_reconciler):
    result = runner.invoke(main, ["detect", "--post-slack"])

    assert result.exit_code == 2
    assert "LAKEDRIFT_SLACK_WEBHOOK" in result.output
    mock_reconciler.detect_and_repair.assert_not_called()


@patch("lakedrift.cli.post_report_to_slack")
def test_detect_post_slack(mock_slack, runner, mock_reconciler, monkeypatch):
    monkeypatch.setenv("LAKEDRIFT_SLACK_WEBHOOK", "https://hooks.slack.com/services/T00/B00/xxx")
    mock_reconciler.detect_and_repair.return_value = _result(drifted=True)

    runner.invoke(main, ["detect", "--post-slack"])

    mock_slack.assert_called_once()


def test_invalid_env_is_usage_error(runner, mock_reconciler, monkeypatch):
    monkeypatch.setenv("LAKEDRIFT_MAX_POLL_ATTEMPTS", "many")

    result = runner.invoke(main, ["detect"])

    assert result.exit_code == 2
    assert "LAKEDRIFT_MAX_POLL_ATTEMPTS" in result.output


def test_verify_in_sync_exit_0(runner, mock_reconciler):
    mock_reconciler.detect.return_value = (
        _status(StackStatus.IN_SYNC),
        _analysis(ResourceStatus.IN_SYNC),
    )

    result = runner.invoke(main, ["verify"])

    assert result.exit_code == 0
    assert "verification passed" in result.output
    mock_reconciler.display_drift_report.assert_called_once()
    mock_reconciler.repair_drift.assert_not_called()


def test_verify_deleted_resources_exit_1(runner, mock_reconciler):
    mock_reconciler.detect.return_value = (_status(), _analysis(ResourceStatus.DELETED))

    result = runner.invoke(main, ["verify"])

    assert result.exit_code == 1
    assert "missing" in result.output


def test_verify_modified_resources_exit_0(runner, mock_reconciler):
    mock_reconciler.detect.return_value = (_status(), _analysis(ResourceStatus.MODIFIED))

    result = runner.invoke(main, ["verify"])

    assert result.exit_code == 0
    assert "lakedrift detect" in result.output


def test_verify_missing_stack_exit_1(runner, mock_reconciler):
    mock_reconciler.check_stack_exists.return_value = False

    result = runner.invoke(main, ["verify"])

    assert result.exit_code == 1
    mock_reconciler.detect.assert_not_called()


def test_verify_error_exit_1(runner, mock_reconciler):
    mock_reconciler.detect.side_effect = InfrastructureQueryError("denied")

    result = runner.invoke(main, ["verify"])

    assert result.exit_code == 1
    assert "Post-deploy verification" in result.output


def test_preflight_clean_exit_0(runner, mock_reconciler):
    mock_reconciler.detect_and_repair.return_value = _result()

    result = runner.invoke(main, ["preflight"])

    assert result.exit_code == 0
    assert "Pre-test check passed" in result.output


def test_preflight_missing_stack_exit_1(runner, mock_reconciler):
    mock_reconciler.detect_and_repair.return_value = ReconciliationResult(stack_exists=False)

    result = runner.invoke(main, ["preflight"])

    assert result.exit_code == 1
    assert "Deploy it first" in result.output


def test_preflight_repair_failed_exit_1(runner, mock_reconciler):
    mock_reconciler.detect_and_repair.return_value = _result(
        drifted=True, needs_repair=True, repair_attempted=True
    )

    result = runner.invoke(main, ["preflight"])

    assert result.exit_code == 1


def test_preflight_unrepaired_drift_denied_exit_1(runner, mock_reconciler):
    mock_reconciler.detect_and_repair.return_value = _result(drifted=True)

    result = runner.invoke(main, ["preflight", "--auto-deny"])

    assert result.exit_code == 1
    assert "Tests cancelled" in result.output


def test_preflight_unrepaired_drift_continue(runner, mock_reconciler, tmp_path):
    answers = tmp_path / "tty"
    answers.write_text("y\n", encoding="utf-8")
    mock_reconciler.detect_and_repair.return_value = _result(drifted=True)

    result = runner.invoke(main, ["preflight", "--input-tty", str(answers)])

    assert result.exit_code == 0


def test_exists_found(runner, mock_reconciler):
    result = runner.invoke(main, ["exists"])

    assert result.exit_code == 0
    assert "IcebergCdkStack exists" in result.output


def test_exists_missing(runner, mock_reconciler):
    mock_reconciler.check_stack_exists.return_value = False

    result = runner.invoke(main, ["exists"])

    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_exists_query_error(runner, mock_reconciler):
    mock_reconciler.check_stack_exists.side_effect = InfrastructureQueryError("denied")

    result = runner.invoke(main, ["exists"])

    assert result.exit_code == 1
    assert "Suggested action" in result.output


def test_auto_flags_are_exclusive(runner, mock_reconciler):
    result = runner.invoke(main, ["detect", "--auto-approve", "--auto-deny"])

    assert result.exit_code == 2
    mock_reconciler.detect_and_repair.assert_not_called()


@patch("lakedrift.cli.post_report_to_slack")
def test_detect_slack_failure_keeps_exit_code(
    mock_slack, runner, mock_reconciler, monkeypatch
):
    monkeypatch.setenv("LAKEDRIFT_SLACK_WEBHOOK", "https://hooks.slack.com/services/T00/B00/xxx")
    mock_reconciler.detect_and_repair.return_value = _result()
    mock_slack.side_effect = requests.HTTPError("400 Client Error: invalid_blocks")

    result = runner.invoke(main, ["detect", "--post-slack"])

    assert result.exit_code == 0
    assert "could not post the report to Slack" in result.output


@patch("lakedrift.cli.post_report_to_slack")
def test_detect_slack_bad_webhook_uses_result_exit_code(
    mock_slack, runner, mock_reconciler, monkeypatch
):
    monkeypatch.setenv("LAKEDRIFT_SLACK_WEBHOOK", "https://evil.example.com/webhook")
    mock_reconciler.detect_and_repair.return_value = _result(
        drifted=True, needs_repair=True, repair_attempted=True
    )
    mock_slack.side_effect = ValueError("Invalid Slack webhook host")

    result = runner.invoke(main, ["detect", "--post-slack"])

    assert result.exit_code == 1
    assert "Invalid Slack webhook host" in result.output
