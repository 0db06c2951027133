"""Form-definition commands."""

from pathlib import Path

import click

from signupkit.forms.loader import DEFINITIONS_DIR, FormLoader
from signupkit.forms.schema import FormDefinitionError, validate_definition_file


@click.group()
def definition():
    """Form-definition commands."""
    pass


@definition.command()
@click.argument(
    "path",
    required=False,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
def validate(path: Path | None):
    """Validate a form-definition YAML file (default: the registration form)."""
    target = path or DEFINITIONS_DIR / "registration.yaml"

    issues = validate_definition_file(target)
    for issue in issues:
        click.echo(click.style(str(issue), fg="red"))
    if issues:
        click.echo(f"\n{len(issues)} schema error(s).", err=True)
        raise SystemExit(1)

    # Schema is fine; make sure every rule name resolves too
    loader = FormLoader()
    try:
        form_definition = loader.load(target)
        loader.factory(form_definition)
    except FormDefinitionError as e:
        for issue in e.issues:
            click.echo(click.style(str(issue), fg="red"))
        raise SystemExit(1)

    field_count = len(form_definition.fields) + sum(len(g.fields) for g in form_definition.groups)
    click.echo(
        f"  {form_definition.name}: {field_count} fields, "
        f"{len(form_definition.arrays)} array(s), "
        f"{len(form_definition.cross_field)} cross-field rule(s)"
    )
    click.echo(click.style("\n✓ Definition is valid", fg="green"))
