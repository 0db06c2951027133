"""signupkit CLI entry point."""

import logging

import click

from signupkit.config import Settings


@click.group()
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (default: SIGNUPKIT_LOG_LEVEL or WARNING).",
)
def cli(log_level: str | None):
    """signupkit: registration form validation CLI."""
    level = (log_level or Settings.from_env().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Register subcommands
from signupkit.cli.check_cmd import check, validate  # noqa: E402
from signupkit.cli.definition_cmd import definition  # noqa: E402

cli.add_command(check)
cli.add_command(validate)
cli.add_command(definition)
