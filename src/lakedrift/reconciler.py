"""Detects stack drift, reports it and optionally repairs it."""

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import replace

import click

from lakedrift.analyzer import analyze_drifts
from lakedrift.aws.client import CloudFormationClient
from lakedrift.aws.deployer import CdkDeployer
from lakedrift.config import (
    DEFAULT_MAX_POLL_ATTEMPTS,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_STACK_NAME,
)
from lakedrift.errors import (
    DetectionError,
    DetectionFailedError,
    DetectionTimeoutError,
    InfrastructureQueryError,
    RepairError,
)
from lakedrift.formatter import format_report
from lakedrift.models import (
    DetectionStatus,
    DriftAnalysis,
    DriftStatus,
    ReconciliationResult,
    ResourceDrift,
)

logger = logging.getLogger(__name__)

REPAIR_QUESTION = "Repair the stack drift? This redeploys the stack"

Renderer = Callable[[DriftStatus, DriftAnalysis], str]


class DriftReconciler:
    """Checks one stack for drift and drives its repair.

    The confirmation channel is owned by the reconciler and released at the
    end of every top-level flow.
    """

    def __init__(
        self,
        client: CloudFormationClient,
        deployer: CdkDeployer,
        confirmation,
        stack_name: str = DEFAULT_STACK_NAME,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_poll_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS,
        renderer: Renderer = format_report,
        echo: Callable[..., None] = click.echo,
    ):
        self._client = client
        self._deployer = deployer
        self._confirmation = confirmation
        self.stack_name = stack_name
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts
        self._renderer = renderer
        self._echo = echo

    def _say(self, message: str, nl: bool = True) -> None:
        # Progress and status go to stderr so stdout carries only the report.
        self._echo(message, nl=nl, err=True)

    def close(self) -> None:
        self._confirmation.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def check_stack_exists(self) -> bool:
        return self._client.describe_stack(self.stack_name) is not None

    def start_drift_detection(self) -> str:
        self._say(f"Starting drift detection for stack {self.stack_name}...")
        detection_id = self._client.start_drift_detection(self.stack_name)
        logger.info("Started drift detection %s for %s", detection_id, self.stack_name)
        return detection_id

    def wait_for_drift_detection(self, detection_id: str) -> DriftStatus:
        """Poll a detection run until it completes.

        Polls every ``poll_interval`` seconds, at most ``max_poll_attempts``
        times.

        Raises:
            DetectionFailedError: The provider reported the run as failed.
            DetectionTimeoutError: The run was still in progress after the
                last poll.
        """
        self._say("Waiting for drift detection to complete", nl=False)

        for attempt in range(1, self._max_poll_attempts + 1):
            run = self._client.describe_detection_status(detection_id, self.stack_name)

            if run.status == DetectionStatus.COMPLETE:
                self._say("")
                return DriftStatus.from_run(run)
            elif run.status == DetectionStatus.FAILED:
                self._say("")
                logger.warning(
                    "Drift detection failed for %s: %s",
                    self.stack_name,
                    run.status_reason,
                )
                raise DetectionFailedError(run.status_reason)

            self._say(".", nl=False)
            logger.debug(
                "Detection %s still in progress (attempt %d/%d)",
                detection_id,
                attempt,
                self._max_poll_attempts,
            )
            if attempt < self._max_poll_attempts:
                time.sleep(self._poll_interval)

        self._say("")
        logger.warning("Drift detection timed out for %s", self.stack_name)
        raise DetectionTimeoutError(self._max_poll_attempts, self._poll_interval)

    def get_drift_details(self) -> list[ResourceDrift]:
        return self._client.get_resource_drifts(self.stack_name)

    def analyze_drifts(self, drifts: Iterable[ResourceDrift]) -> DriftAnalysis:
        return analyze_drifts(drifts)

    def display_drift_report(self, status: DriftStatus, analysis: DriftAnalysis) -> None:
        self._echo(self._renderer(status, analysis))

    def detect(self) -> tuple[DriftStatus, DriftAnalysis]:
        """Run one detection to completion and classify the results."""
        detection_id = self.start_drift_detection()
        status = self.wait_for_drift_detection(detection_id)
        self._say("Drift detection complete.")
        analysis = self.analyze_drifts(self.get_drift_details())
        return status, analysis

    def _ask_for_repair(self, analysis: DriftAnalysis) -> bool:
        if not analysis.has_drift:
            self._say("Stack is in sync. No repair needed.")
            return False

        self._say(f"Stack drift detected on {analysis.drifted} resource(s).")
        return self._confirmation.prompt(REPAIR_QUESTION)

    def repair_drift(self) -> bool:
        """Redeploy the stack and check that the drift is gone.

        Returns False if drift remains or the check itself could not be
        completed.

        Raises:
            RepairError: The redeploy failed.
            DeployerUnavailableError: The redeploy could not be started.
        """
        self._say(f"Redeploying stack {self.stack_name} to repair drift...")
        self._deployer.deploy(self.stack_name)
        self._say("Redeploy complete. Verifying...")

        try:
            detection_id = self.start_drift_detection()
            status = self.wait_for_drift_detection(detection_id)
        except (DetectionError, InfrastructureQueryError) as exc:
            logger.warning("Could not verify repair of %s: %s", self.stack_name, exc)
            self._say("Could not verify the repair. Check the stack drift manually.")
            return False

        if status.in_sync:
            self._say("Repair succeeded. All resources are in sync.")
            return True

        self._say(
            f"Stack is still {status.stack_status.value} after redeploy. "
            "Check the remaining drift manually."
        )
        return False

    def detect_and_report(self) -> ReconciliationResult:
        """Detect and report drift, then ask whether to repair it.

        Does not repair anything. A missing stack short-circuits before any
        detection is started.
        """
        try:
            if not self.check_stack_exists():
                self._say(f"Stack {self.stack_name} does not exist. Nothing to check.")
                return ReconciliationResult(stack_exists=False, needs_repair=False)

            status, analysis = self.detect()
            self.display_drift_report(status, analysis)
            needs_repair = self._ask_for_repair(analysis)

            return ReconciliationResult(
                stack_exists=True,
                needs_repair=needs_repair,
                drift_status=status,
                analysis=analysis,
            )
        finally:
            self.close()

    def detect_and_repair(self) -> ReconciliationResult:
        """Full flow: detect, report, and repair if the operator agrees."""
        result = self.detect_and_report()
        if not result.needs_repair:
            return result

        try:
            succeeded = self.repair_drift()
        except RepairError as exc:
            logger.error("Repair of %s failed: %s", self.stack_name, exc, exc_info=exc)
            self._say(f"Repair failed: {exc.message}")
            succeeded = False
        finally:
            self.close()

        return replace(result, repair_attempted=True, repair_succeeded=succeeded)
