"""Thin boto3 wrapper for CloudFormation stack and drift detection API calls."""

import logging
from datetime import UTC, datetime

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from lakedrift.errors import DetectionStartError, InfrastructureQueryError
from lakedrift.models import (
    DetectionRun,
    DetectionStatus,
    DiffType,
    PropertyDiff,
    ResourceDrift,
    ResourceStatus,
    StackStatus,
)

logger = logging.getLogger(__name__)

ALL_DRIFT_STATUSES = ["MODIFIED", "DELETED", "NOT_CHECKED", "IN_SYNC"]


def _is_missing_stack(exc: ClientError) -> bool:
    return "does not exist" in str(exc)


class CloudFormationClient:
    """Wraps boto3 CloudFormation calls and returns lakedrift dataclasses."""

    def __init__(self, region: str | None = None):
        self._client = boto3.client("cloudformation", **({"region_name": region} if region else {}))

    def describe_stack(self, stack_name: str) -> dict | None:
        """Return the stack description, or None if the stack does not exist."""
        try:
            resp = self._client.describe_stacks(StackName=stack_name)
        except ClientError as exc:
            if _is_missing_stack(exc):
                logger.debug("Stack %s does not exist", stack_name)
                return None
            raise InfrastructureQueryError(f"Could not describe stack {stack_name}: {exc}") from exc
        except BotoCoreError as exc:
            raise InfrastructureQueryError(f"Could not describe stack {stack_name}: {exc}") from exc

        stacks = resp.get("Stacks", [])
        return stacks[0] if stacks else None

    def start_drift_detection(self, stack_name: str) -> str:
        """Trigger drift detection for a stack. Returns the detection id."""
        try:
            response = self._client.detect_stack_drift(StackName=stack_name)
        except (ClientError, BotoCoreError) as exc:
            raise DetectionStartError(
                f"Could not start drift detection for {stack_name}: {exc}"
            ) from exc
        return response["StackDriftDetectionId"]

    def describe_detection_status(self, detection_id: str, stack_name: str) -> DetectionRun:
        """Check status of a drift detection operation."""
        try:
            resp = self._client.describe_stack_drift_detection_status(
                StackDriftDetectionId=detection_id
            )
        except (ClientError, BotoCoreError) as exc:
            raise InfrastructureQueryError(
                f"Could not read status of drift detection {detection_id}: {exc}"
            ) from exc

        status = DetectionStatus(resp["DetectionStatus"])
        stack_status = None
        drifted_count = None
        status_reason = None

        if status == DetectionStatus.COMPLETE:
            stack_status = StackStatus(resp["StackDriftStatus"])
            drifted_count = resp.get("DriftedStackResourceCount", 0)
        elif status == DetectionStatus.FAILED:
            status_reason = resp.get("DetectionStatusReason")

        return DetectionRun(
            detection_id=detection_id,
            stack_name=stack_name,
            status=status,
            started_at=resp.get("Timestamp") or datetime.now(UTC),
            stack_status=stack_status,
            drifted_resource_count=drifted_count,
            status_reason=status_reason,
        )

    def get_resource_drifts(self, stack_name: str) -> list[ResourceDrift]:
        """Fetch resource-level drift details for a stack."""
        results = []
        next_token = None

        while True:
            kwargs: dict = {
                "StackName": stack_name,
                "StackResourceDriftStatusFilters": ALL_DRIFT_STATUSES,
            }
            if next_token:
                kwargs["NextToken"] = next_token

            try:
                resp = self._client.describe_stack_resource_drifts(**kwargs)
            except (ClientError, BotoCoreError) as exc:
                raise InfrastructureQueryError(
                    f"Could not fetch resource drifts for {stack_name}: {exc}"
                ) from exc

            for resource in resp["StackResourceDrifts"]:
                property_diffs = [
                    PropertyDiff(
                        property_path=pd["PropertyPath"],
                        diff_type=DiffType(pd["DifferenceType"]),
                        expected_value=pd.get("ExpectedValue"),
                        actual_value=pd.get("ActualValue"),
                    )
                    for pd in resource.get("PropertyDifferences", [])
                ]

                results.append(
                    ResourceDrift(
                        logical_id=resource["LogicalResourceId"],
                        physical_id=resource.get("PhysicalResourceId", ""),
                        resource_type=resource["ResourceType"],
                        status=ResourceStatus(resource["StackResourceDriftStatus"]),
                        property_diffs=property_diffs,
                        timestamp=resource["Timestamp"],
                    )
                )

            next_token = resp.get("NextToken")
            if not next_token:
                break

        return results
