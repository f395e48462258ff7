"""Core data models for stack drift detection and repair."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class DetectionStatus(StrEnum):
    """Status of a drift detection operation."""

    IN_PROGRESS = "DETECTION_IN_PROGRESS"
    COMPLETE = "DETECTION_COMPLETE"
    FAILED = "DETECTION_FAILED"


class StackStatus(StrEnum):
    """Overall stack drift status."""

    DRIFTED = "DRIFTED"
    IN_SYNC = "IN_SYNC"
    NOT_CHECKED = "NOT_CHECKED"
    UNKNOWN = "UNKNOWN"


class ResourceStatus(StrEnum):
    """Individual resource drift status."""

    IN_SYNC = "IN_SYNC"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    NOT_CHECKED = "NOT_CHECKED"
    UNKNOWN = "UNKNOWN"
    UNSUPPORTED = "UNSUPPORTED"


class DiffType(StrEnum):
    """Kind of property difference."""

    ADD = "ADD"
    REMOVE = "REMOVE"
    NOT_EQUAL = "NOT_EQUAL"


@dataclass(frozen=True)
class PropertyDiff:
    """A single property difference between expected and actual configuration.

    ``ADD`` differences have no expected value and ``REMOVE`` differences
    have no actual value.
    """

    property_path: str
    diff_type: DiffType
    expected_value: str | None = None
    actual_value: str | None = None


@dataclass(frozen=True)
class ResourceDrift:
    """Drift information for a single resource of the stack."""

    logical_id: str
    physical_id: str
    resource_type: str
    status: ResourceStatus
    property_diffs: list[PropertyDiff]
    timestamp: datetime


@dataclass(frozen=True)
class DetectionRun:
    """Tracks an in-progress drift detection operation for polling."""

    detection_id: str
    stack_name: str
    status: DetectionStatus
    started_at: datetime
    stack_status: StackStatus | None = None
    drifted_resource_count: int | None = None
    status_reason: str | None = None


@dataclass(frozen=True)
class DriftStatus:
    """Stack-level outcome of a completed drift detection run."""

    stack_name: str
    detection_id: str
    stack_status: StackStatus
    drifted_resource_count: int
    timestamp: datetime
    status_reason: str | None = None

    @property
    def in_sync(self) -> bool:
        return self.stack_status == StackStatus.IN_SYNC

    @classmethod
    def from_run(cls, run: DetectionRun) -> "DriftStatus":
        return cls(
            stack_name=run.stack_name,
            detection_id=run.detection_id,
            stack_status=run.stack_status or StackStatus.UNKNOWN,
            drifted_resource_count=run.drifted_resource_count or 0,
            timestamp=run.started_at,
            status_reason=run.status_reason,
        )


@dataclass(frozen=True)
class DriftAnalysis:
    """Classification of one batch of resource drifts."""

    total: int
    drifted: int
    in_sync: int
    deleted: list[ResourceDrift] = field(default_factory=list)
    modified: list[ResourceDrift] = field(default_factory=list)

    @property
    def has_drift(self) -> bool:
        return self.drifted > 0


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome of a detect, report and optional repair flow."""

    stack_exists: bool
    needs_repair: bool = False
    repair_attempted: bool = False
    repair_succeeded: bool = False
    drift_status: DriftStatus | None = None
    analysis: DriftAnalysis | None = None

    def __post_init__(self):
        if self.repair_attempted and not self.needs_repair:
            raise ValueError("repair_attempted requires needs_repair")
        if self.repair_succeeded and not self.repair_attempted:
            raise ValueError("repair_succeeded requires repair_attempted")

    @property
    def healthy(self) -> bool:
        """True when the stack exists and no outstanding repair failed."""
        return self.stack_exists and (not self.needs_repair or self.repair_succeeded)
