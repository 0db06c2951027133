"""
forms/schema.py: JSON Schema validation for form-definition YAML documents.

Usage:
    from signupkit.forms.schema import validate_definition, validate_definition_file

    issues = validate_definition_file(Path("registration.yaml"))
    for issue in issues:
        print(issue)
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

logger = logging.getLogger(__name__)

_SCHEMAS_DIR = Path(__file__).resolve().parent.parent / "schemas"
FORM_SCHEMA = "form.schema.json"


# ---------------------------------------------------------------------------
# Public data types
# ---------------------------------------------------------------------------


@dataclass
class DefinitionIssue:
    """A single finding for a form-definition document."""

    message: str
    path: str = ""              # location within the document, e.g. "fields[2]/rules"
    source: str = "<definition>"

    def __str__(self) -> str:
        loc = f" at {self.path}" if self.path else ""
        return f"[ERROR] {self.source}{loc}: {self.message}"


class FormDefinitionError(ValueError):
    """A form definition failed schema validation or could not be resolved."""

    def __init__(self, issues: list[DefinitionIssue]):
        self.issues = issues
        summary = "; ".join(str(issue) for issue in issues[:5])
        if len(issues) > 5:
            summary += f" (+{len(issues) - 5} more)"
        super().__init__(summary)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


@lru_cache(maxsize=None)
def _load_schema(name: str = FORM_SCHEMA) -> dict[str, Any]:
    schema_path = _SCHEMAS_DIR / name
    with schema_path.open() as fh:
        return json.load(fh)


def _json_path(error: ValidationError) -> str:
    """Convert a jsonschema ValidationError path to a readable string."""
    parts = []
    for p in error.absolute_path:
        if isinstance(p, int):
            parts.append(f"[{p}]")
        else:
            parts.append(str(p))
    return "/".join(parts).replace("/[", "[")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_definition(
    document: Any,
    *,
    source: str = "<definition>",
) -> list[DefinitionIssue]:
    """
    Validate an already-parsed form definition.

    Returns:
        A list of :class:`DefinitionIssue` objects (empty on success).
    """
    if document is None:
        return [DefinitionIssue(message="Definition is empty", source=source)]

    validator = Draft202012Validator(_load_schema())
    issues = [
        DefinitionIssue(message=error.message, path=_json_path(error), source=source)
        for error in validator.iter_errors(document)
    ]
    issues.sort(key=lambda issue: issue.path)
    return issues


def load_definition_file(path: Path) -> Any:
    """Parse a YAML definition file.

    Raises:
        FormDefinitionError: If the file is not valid YAML
    """
    try:
        with path.open() as fh:
            return yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise FormDefinitionError(
            [DefinitionIssue(message=f"YAML parse error: {exc}", source=str(path))]
        ) from exc


def validate_definition_file(path: Path) -> list[DefinitionIssue]:
    """Parse and validate a YAML definition file, reporting parse errors as issues."""
    try:
        document = load_definition_file(path)
    except FormDefinitionError as exc:
        return exc.issues

    issues = validate_definition(document, source=str(path))
    if issues:
        logger.debug("%d issue(s) in %s", len(issues), path)
    return issues
