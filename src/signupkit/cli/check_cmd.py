"""Rule and record commands: check a single value or validate a whole record."""

import asyncio
import json
from pathlib import Path
from typing import Any

import click
import yaml

from signupkit.checks.oracle import InMemoryAvailabilityOracle, OracleKind
from signupkit.config import Settings
from signupkit.controller.registration import (
    FormStatus,
    RegistrationController,
    SubmissionResult,
)
from signupkit.validation.messages import all_messages, describe
from signupkit.validation.registry import RuleRegistry, register_builtin_rules


@click.command()
@click.argument("rule")
@click.argument("value")
@click.option("--param", default=None, help="Rule parameter (e.g. 3 for minLength).")
def check(rule: str, value: str, param: str | None):
    """Run one field RULE against VALUE."""
    register_builtin_rules()
    try:
        validate_value = RuleRegistry.create_field_rule(rule, param)
    except (ValueError, TypeError) as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(2)

    errors = validate_value(value)
    if not errors:
        click.echo(click.style(f"✓ {value!r} passes {rule}", fg="green"))
        return

    for kind, payload in errors.items():
        click.echo(click.style(f"✗ {kind}: {describe(kind, payload)}", fg="red"))
    raise SystemExit(1)


# =============================================================================
# Record validation
# =============================================================================


def _load_record(path: Path) -> dict[str, Any]:
    with path.open() as fh:
        data = yaml.safe_load(fh)
    if not isinstance(data, dict):
        raise click.ClickException(f"{path} must contain a mapping of field values")
    return data


def _apply_record(controller: RegistrationController, record: dict[str, Any]) -> list[str]:
    """Feed every value of ``record`` through the controller. Returns unknown paths."""
    unknown: list[str] = []

    def assign(path: str, value: Any) -> None:
        try:
            controller.set_value(path, value)
            controller.touch(path)
        except KeyError:
            unknown.append(path)

    for key, value in record.items():
        if key in controller.form.arrays and isinstance(value, list):
            for entry in value:
                if not controller.add_phone():
                    unknown.append(f"{key}.{controller.phone_count}")
                    continue
                index = controller.phone_count - 1
                for name, item in (entry or {}).items():
                    assign(f"{key}.{index}.{name}", item)
        elif key in controller.form.groups and isinstance(value, dict):
            for name, item in value.items():
                assign(f"{key}.{name}", item)
        else:
            assign(key, value)
    return unknown


def _report(result: SubmissionResult) -> None:
    for path, errors in sorted(result.errors.items()):
        label = path or "(form)"
        for message in all_messages(errors):
            click.echo(click.style(f"✗ {label}: {message}", fg="red"))


@click.command()
@click.argument("record_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--submit", "do_submit", is_flag=True, default=False, help="Submit when valid.")
@click.option(
    "--latency-ms",
    default=None,
    type=click.IntRange(min=0),
    help="Simulated availability-service latency (default from settings).",
)
def validate(record_path: Path, do_submit: bool, latency_ms: int | None):
    """Validate a registration RECORD (YAML or JSON)."""
    settings = Settings.from_env()
    if latency_ms is not None:
        settings.oracle_latency_ms = latency_ms
    record = _load_record(record_path)
    oracle = InMemoryAvailabilityOracle(
        latency=settings.oracle_latency,
        failure_rate=settings.oracle_failure_rate,
    )

    async def echo_submit(values: dict[str, Any]) -> bool:
        click.echo(json.dumps(values, indent=2, ensure_ascii=False))
        oracle.register(OracleKind.EMAIL, values["email"])
        oracle.register(OracleKind.USERNAME, values["username"])
        oracle.register(OracleKind.NATIONAL_ID, values["national_id"])
        return True

    async def run() -> tuple[list[str], SubmissionResult, FormStatus]:
        controller = RegistrationController.for_registration(
            echo_submit, oracle=oracle, settings=settings
        )
        try:
            unknown = _apply_record(controller, record)
            await controller.wait_for_checks()
            if do_submit:
                result = await controller.submit()
            else:
                controller.form.mark_all_touched()
                result = SubmissionResult(
                    status=controller.status,
                    errors=controller.form.errors_by_path(),
                )
            return unknown, result, controller.status
        finally:
            controller.dispose()

    unknown, result, status = asyncio.run(run())

    for path in unknown:
        click.echo(click.style(f"Warning: unknown field '{path}'", fg="yellow"), err=True)
    _report(result)

    if result.status == FormStatus.SUBMITTED:
        click.echo(click.style("✓ Registration submitted", fg="green"))
        return
    if status == FormStatus.VALID and not do_submit:
        click.echo(click.style("✓ Record is valid", fg="green"))
        return

    click.echo(click.style(f"Record is not valid ({len(result.errors)} path(s) with errors)", fg="red"))
    raise SystemExit(1)
