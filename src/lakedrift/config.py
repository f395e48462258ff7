"""Settings for a reconciliation run, loaded from the environment."""

import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass

from lakedrift.aws.deployer import DEFAULT_DEPLOY_COMMAND

DEFAULT_STACK_NAME = "IcebergCdkStack"
DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_MAX_POLL_ATTEMPTS = 30

_YES = {"1", "true", "yes", "y"}
_NO = {"0", "false", "no", "n"}


@dataclass(frozen=True)
class ReconcilerConfig:
    """Configuration for the drift reconciler.

    ``auto_approve`` of None means the operator is asked before a repair.
    """

    stack_name: str = DEFAULT_STACK_NAME
    region: str | None = None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_poll_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS
    deploy_command: tuple[str, ...] = DEFAULT_DEPLOY_COMMAND
    auto_approve: bool | None = None

    def __post_init__(self):
        if not self.stack_name:
            raise ValueError("Stack name must not be empty")
        if self.poll_interval < 0:
            raise ValueError("Poll interval must not be negative")
        if self.max_poll_attempts < 1:
            raise ValueError("Max poll attempts must be at least 1")
        if not self.deploy_command:
            raise ValueError("Deploy command must not be empty")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ReconcilerConfig":
        """Build a config from LAKEDRIFT_* variables.

        Raises:
            ValueError: If a variable cannot be parsed or is out of range.
        """
        env = os.environ if environ is None else environ

        try:
            poll_interval = float(env.get("LAKEDRIFT_POLL_INTERVAL", DEFAULT_POLL_INTERVAL))
        except ValueError:
            raise ValueError("LAKEDRIFT_POLL_INTERVAL must be a number") from None
        try:
            max_attempts = int(env.get("LAKEDRIFT_MAX_POLL_ATTEMPTS", DEFAULT_MAX_POLL_ATTEMPTS))
        except ValueError:
            raise ValueError("LAKEDRIFT_MAX_POLL_ATTEMPTS must be an integer") from None

        command = env.get("LAKEDRIFT_DEPLOY_COMMAND")

        return cls(
            stack_name=env.get("LAKEDRIFT_STACK_NAME", DEFAULT_STACK_NAME),
            region=env.get("AWS_REGION") or None,
            poll_interval=poll_interval,
            max_poll_attempts=max_attempts,
            deploy_command=tuple(shlex.split(command)) if command else DEFAULT_DEPLOY_COMMAND,
            auto_approve=parse_answer(env.get("LAKEDRIFT_AUTO_APPROVE")),
        )


def parse_answer(value: str | None) -> bool | None:
    """Parse a yes/no setting. Empty or missing means "ask"."""
    if value is None or not value.strip():
        return None
    normalized = value.strip().lower()
    if normalized in _YES:
        return True
    if normalized in _NO:
        return False
    raise ValueError(f"Expected yes or no, got {value!r}")
