"""Error taxonomy for drift detection and repair."""

CHECK_CREDENTIALS = "Check AWS credentials, region and CloudFormation permissions."
RETRY_LATER = "Wait for any in-progress stack operation to finish, then retry."
REDEPLOY = "Redeploy the stack: lakedrift detect --auto-approve"


class DriftError(Exception):
    """Base error. Carries a suggested corrective action for the operator."""

    default_suggestion: str | None = None

    def __init__(self, message: str, *, suggestion: str | None = None):
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion or self.default_suggestion


class InfrastructureQueryError(DriftError):
    """Transport or permission failure while querying the stack."""

    default_suggestion = CHECK_CREDENTIALS


class DetectionError(DriftError):
    """A drift detection run could not be completed."""

    default_suggestion = RETRY_LATER


class DetectionStartError(DetectionError):
    """The provider refused to start a drift detection run."""


class DetectionFailedError(DetectionError):
    """The provider reported the detection run as failed."""

    def __init__(self, reason: str | None, **kwargs):
        self.reason = reason or "unknown reason"
        super().__init__(f"Drift detection failed: {self.reason}", **kwargs)


class DetectionTimeoutError(DetectionError):
    """Detection was still in progress when the poll budget ran out."""

    def __init__(self, attempts: int, interval: float, **kwargs):
        self.attempts = attempts
        self.interval = interval
        super().__init__(
            f"Drift detection did not complete after {attempts} polls "
            f"({attempts * interval:.0f}s)",
            **kwargs,
        )


class RepairError(DriftError):
    """The redeploy ran but did not succeed."""

    default_suggestion = "Inspect the deploy output above and redeploy manually."


class DeployerUnavailableError(DriftError):
    """The redeploy could not be started at all."""

    default_suggestion = "Install the AWS CDK toolkit or set LAKEDRIFT_DEPLOY_COMMAND."
