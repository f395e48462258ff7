"""CLI entrypoint for lakedrift."""

import logging
import os
import shlex
import sys
from dataclasses import replace
from functools import partial

import click
import requests
from rich.console import Console
from rich.logging import RichHandler

from lakedrift.aws.client import CloudFormationClient
from lakedrift.aws.deployer import CdkDeployer
from lakedrift.config import ReconcilerConfig
from lakedrift.confirm import AutoConfirmation, ConsoleConfirmation
from lakedrift.errors import REDEPLOY, DriftError
from lakedrift.formatter import format_failure, format_json, format_report, format_result
from lakedrift.integrations.slack import post_report_to_slack
from lakedrift.reconciler import DriftReconciler

FORMATTERS = {
    "table": format_report,
    "json": format_json,
}

CONTINUE_QUESTION = "Continue with the tests anyway?"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _confirmation(auto_approve: bool | None, input_tty: str | None):
    if auto_approve is not None:
        return AutoConfirmation(auto_approve)
    return ConsoleConfirmation(input_path=input_tty)


def _build_reconciler(config: ReconcilerConfig, confirmation, renderer=format_report):
    client = CloudFormationClient(region=config.region)
    deployer = CdkDeployer(config.deploy_command)
    return DriftReconciler(
        client,
        deployer,
        confirmation,
        stack_name=config.stack_name,
        poll_interval=config.poll_interval,
        max_poll_attempts=config.max_poll_attempts,
        renderer=renderer,
    )


def _apply_repair_options(config, auto_approve, auto_deny, deploy_command) -> ReconcilerConfig:
    if auto_approve and auto_deny:
        raise click.UsageError("--auto-approve and --auto-deny are mutually exclusive.")
    overrides = {}
    if auto_approve or auto_deny:
        overrides["auto_approve"] = bool(auto_approve)
    if deploy_command:
        overrides["deploy_command"] = tuple(shlex.split(deploy_command))
    try:
        return replace(config, **overrides)
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc


def repair_options(func):
    """Options shared by the commands that may redeploy the stack."""
    func = click.option(
        "--input-tty",
        default=None,
        help="Read answers from this terminal device, e.g. /dev/tty.",
    )(func)
    func = click.option(
        "--deploy-command",
        default=None,
        help="Command used to redeploy the stack (stack name is appended).",
    )(func)
    func = click.option(
        "--auto-deny", is_flag=True, help="Decline every prompt without asking."
    )(func)
    func = click.option(
        "--auto-approve", is_flag=True, help="Accept every prompt without asking."
    )(func)
    return func


def format_options(func):
    func = click.option(
        "--redact-values", is_flag=True, help="Hide expected/actual property values."
    )(func)
    func = click.option(
        "--format",
        "output_format",
        type=click.Choice(sorted(FORMATTERS)),
        default="table",
        help="Report format.",
    )(func)
    return func


@click.group()
@click.option("--stack", "stack_name", default=None, help="Stack to check.")
@click.option("--region", default=None, help="AWS region.")
@click.option(
    "--poll-interval",
    type=click.FloatRange(min=0),
    default=None,
    help="Seconds between detection status polls.",
)
@click.option(
    "--max-poll-attempts",
    type=click.IntRange(1, 360),
    default=None,
    help="Polls before drift detection times out.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log progress details.")
@click.pass_context
def main(ctx, stack_name, region, poll_interval, max_poll_attempts, verbose):
    """Detect and repair CloudFormation drift on the data lake stack."""
    _configure_logging(verbose)
    overrides = {
        "stack_name": stack_name,
        "region": region,
        "poll_interval": poll_interval,
        "max_poll_attempts": max_poll_attempts,
    }
    try:
        config = ReconcilerConfig.from_env()
        ctx.obj = replace(config, **{k: v for k, v in overrides.items() if v is not None})
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc


@main.command()
@repair_options
@format_options
@click.option("--post-slack", is_flag=True, help="Post report to Slack webhook.")
@click.pass_obj
def detect(
    config,
    auto_approve,
    auto_deny,
    deploy_command,
    input_tty,
    output_format,
    redact_values,
    post_slack,
):
    """Detect drift, report it and repair it if approved."""
    config = _apply_repair_options(config, auto_approve, auto_deny, deploy_command)

    webhook_url = None
    if post_slack:
        webhook_url = os.environ.get("LAKEDRIFT_SLACK_WEBHOOK")
        if not webhook_url:
            click.echo("Error: LAKEDRIFT_SLACK_WEBHOOK env var not set.", err=True)
            sys.exit(2)

    renderer = partial(FORMATTERS[output_format], redact=redact_values)
    reconciler = _build_reconciler(
        config, _confirmation(config.auto_approve, input_tty), renderer=renderer
    )

    try:
        result = reconciler.detect_and_repair()
    except DriftError as exc:
        click.echo(format_failure(exc, config.stack_name), err=True)
        sys.exit(1)

    click.echo(format_result(result), err=True)

    if webhook_url and result.drift_status is not None and result.analysis is not None:
        try:
            post_report_to_slack(result.drift_status, result.analysis, webhook_url)
        except (ValueError, requests.RequestException) as exc:
            click.echo(f"Warning: could not post the report to Slack: {exc}", err=True)

    sys.exit(0 if result.healthy else 1)


@main.command()
@format_options
@click.pass_obj
def verify(config, output_format, redact_values):
    """Check a freshly deployed stack for drift without repairing it."""
    renderer = partial(FORMATTERS[output_format], redact=redact_values)
    reconciler = _build_reconciler(config, AutoConfirmation(False), renderer=renderer)

    with reconciler:
        try:
            if not reconciler.check_stack_exists():
                click.echo(
                    f"Stack {config.stack_name} does not exist. The deploy may have failed.",
                    err=True,
                )
                sys.exit(1)
            status, analysis = reconciler.detect()
            reconciler.display_drift_report(status, analysis)
        except DriftError as exc:
            click.echo(
                format_failure(exc, config.stack_name, checked="Post-deploy verification"),
                err=True,
            )
            sys.exit(1)

    if status.in_sync:
        click.echo("Post-deploy verification passed. The stack is in sync.", err=True)
        sys.exit(0)

    click.echo("Drift detected after deploy.", err=True)
    if analysis.deleted:
        click.echo("Required resources are missing. " + REDEPLOY, err=True)
        sys.exit(1)
    if analysis.modified:
        click.echo(
            "Some resources differ from the template but tests are not affected. "
            "Repair them if needed: lakedrift detect",
            err=True,
        )
    sys.exit(0)


@main.command()
@repair_options
@click.pass_obj
def preflight(config, auto_approve, auto_deny, deploy_command, input_tty):
    """Make sure the stack is deployed and drift-free before running tests."""
    config = _apply_repair_options(config, auto_approve, auto_deny, deploy_command)
    reconciler = _build_reconciler(config, _confirmation(config.auto_approve, input_tty))

    try:
        result = reconciler.detect_and_repair()
    except DriftError as exc:
        click.echo(format_failure(exc, config.stack_name, checked="Pre-test check"), err=True)
        sys.exit(1)

    if not result.stack_exists:
        click.echo("The stack does not exist. Deploy it first: npx cdk deploy", err=True)
        sys.exit(1)

    if result.repair_attempted and not result.repair_succeeded:
        click.echo("Stack drift repair failed. Repair the stack manually.", err=True)
        sys.exit(1)

    if result.analysis is not None and result.analysis.has_drift and not result.needs_repair:
        click.echo("Drift was detected but not repaired. Tests may fail.", err=True)
        with _confirmation(config.auto_approve, input_tty) as confirmation:
            if not confirmation.prompt(CONTINUE_QUESTION):
                click.echo("Tests cancelled.", err=True)
                sys.exit(1)

    click.echo("Pre-test check passed. Tests can start.", err=True)


@main.command()
@click.pass_obj
def exists(config):
    """Check that the stack exists."""
    reconciler = _build_reconciler(config, AutoConfirmation(False))

    with reconciler:
        try:
            found = reconciler.check_stack_exists()
        except DriftError as exc:
            click.echo(
                format_failure(exc, config.stack_name, checked="Stack existence check"),
                err=True,
            )
            sys.exit(1)

    if not found:
        click.echo(
            f"Stack {config.stack_name} does not exist. Deploy it first: npx cdk deploy",
            err=True,
        )
        sys.exit(1)

    click.echo(f"Stack {config.stack_name} exists.")
