"""Redeploys the declared infrastructure with the CDK toolkit."""

import logging
import subprocess
from collections.abc import Sequence

from lakedrift.errors import DeployerUnavailableError, RepairError

logger = logging.getLogger(__name__)

DEFAULT_DEPLOY_COMMAND = ("npx", "cdk", "deploy", "--require-approval", "never")


class CdkDeployer:
    """Applies the declared stack by running a deploy command.

    The stack name is appended to the command so only the managed stack is
    deployed. Output is streamed to the terminal.
    """

    def __init__(self, command: Sequence[str] = DEFAULT_DEPLOY_COMMAND, cwd: str | None = None):
        if not command:
            raise ValueError("Deploy command must not be empty")
        self._command = tuple(command)
        self._cwd = cwd

    @property
    def command(self) -> tuple[str, ...]:
        return self._command

    def deploy(self, stack_name: str) -> None:
        """Run the deploy command. Raises RepairError if it exits non-zero."""
        args = [*self._command, stack_name]
        logger.info("Running %s", " ".join(args))
        try:
            subprocess.run(args, check=True, cwd=self._cwd)
        except subprocess.CalledProcessError as exc:
            raise RepairError(
                f"Deploy of {stack_name} exited with status {exc.returncode}"
            ) from exc
        except OSError as exc:
            raise DeployerUnavailableError(
                f"Could not run deploy command {self._command[0]!r}: {exc}"
            ) from exc
