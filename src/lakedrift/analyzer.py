"""Classification of resource drift results."""

from collections.abc import Iterable

from lakedrift.models import DriftAnalysis, ResourceDrift, ResourceStatus


def analyze_drifts(drifts: Iterable[ResourceDrift]) -> DriftAnalysis:
    """Partition resource drifts into deleted, modified and in-sync.

    Input order is kept within each partition. Resources that were not
    checked (or whose status is unknown or unsupported) count towards the
    total only.
    """
    total = 0
    in_sync = 0
    deleted: list[ResourceDrift] = []
    modified: list[ResourceDrift] = []

    for rd in drifts:
        total += 1
        if rd.status == ResourceStatus.DELETED:
            deleted.append(rd)
        elif rd.status == ResourceStatus.MODIFIED:
            modified.append(rd)
        elif rd.status == ResourceStatus.IN_SYNC:
            in_sync += 1

    return DriftAnalysis(
        total=total,
        drifted=len(deleted) + len(modified),
        in_sync=in_sync,
        deleted=deleted,
        modified=modified,
    )
