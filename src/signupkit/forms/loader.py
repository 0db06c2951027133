"""Load form definitions from YAML and build FormRecord trees."""

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from signupkit.config import Settings
from signupkit.forms.schema import (
    DefinitionIssue,
    FormDefinitionError,
    load_definition_file,
    validate_definition,
)
from signupkit.forms.state import UPDATE_ON_CHANGE, FieldState, FormArray, FormRecord
from signupkit.validation.cross_field import CrossFieldRule
from signupkit.validation.registry import RuleRegistry, register_builtin_rules
from signupkit.validation.types import FieldRule

DEFINITIONS_DIR = Path(__file__).resolve().parent.parent / "definitions"


@dataclass
class FieldConfig:
    """Field definition from YAML."""

    name: str
    default: Any = ""
    rules: list[Any] = field(default_factory=list)
    async_check: str | None = None
    update_on: str = UPDATE_ON_CHANGE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FieldConfig":
        return cls(
            name=data["name"],
            default=data.get("default", ""),
            rules=list(data.get("rules", [])),
            async_check=data.get("async"),
            update_on=data.get("update_on", UPDATE_ON_CHANGE),
        )


@dataclass
class CrossFieldConfig:
    type: str
    params: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CrossFieldConfig":
        return cls(type=data["type"], params=dict(data.get("params", {})))


@dataclass
class GroupConfig:
    name: str
    fields: list[FieldConfig]
    cross_field: list[CrossFieldConfig] = field(default_factory=list)


@dataclass
class ArrayConfig:
    name: str
    fields: list[FieldConfig]
    max: int | None = None


@dataclass
class FormDefinition:
    """A parsed, schema-valid form definition."""

    name: str
    fields: list[FieldConfig]
    groups: list[GroupConfig] = field(default_factory=list)
    arrays: list[ArrayConfig] = field(default_factory=list)
    cross_field: list[CrossFieldConfig] = field(default_factory=list)
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FormDefinition":
        """Create FormDefinition from a YAML/JSON dict (already schema-checked)."""
        return cls(
            name=data["form"],
            description=data.get("description", ""),
            fields=[FieldConfig.from_dict(f) for f in data["fields"]],
            groups=[
                GroupConfig(
                    name=g["name"],
                    fields=[FieldConfig.from_dict(f) for f in g["fields"]],
                    cross_field=[
                        CrossFieldConfig.from_dict(c) for c in g.get("cross_field", [])
                    ],
                )
                for g in data.get("groups", [])
            ],
            arrays=[
                ArrayConfig(
                    name=a["name"],
                    fields=[FieldConfig.from_dict(f) for f in a["fields"]],
                    max=a.get("max"),
                )
                for a in data.get("arrays", [])
            ],
            cross_field=[CrossFieldConfig.from_dict(c) for c in data.get("cross_field", [])],
        )


def _rule_spec(spec: Any) -> tuple[str, Any]:
    """Split ``"name"`` or ``{"name": param}`` into (name, param)."""
    if isinstance(spec, str):
        return spec, None
    ((name, param),) = spec.items()
    return name, param


class FormLoader:
    """Parses form definitions and resolves them into FormRecord factories."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()
        register_builtin_rules()

    # -------------------------------------------------------------------------
    # Parsing
    # -------------------------------------------------------------------------

    def parse(self, document: Any, source: str = "<definition>") -> FormDefinition:
        """Validate a parsed document against the schema and build a FormDefinition.

        Raises:
            FormDefinitionError: If the document does not match the schema
        """
        issues = validate_definition(document, source=source)
        if issues:
            raise FormDefinitionError(issues)
        return FormDefinition.from_dict(document)

    def load(self, path: Path) -> FormDefinition:
        return self.parse(load_definition_file(path), source=str(path))

    def load_builtin(self, name: str = "registration") -> FormDefinition:
        """Load a definition shipped with the package."""
        return self.load(DEFINITIONS_DIR / f"{name}.yaml")

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def factory(self, definition: FormDefinition) -> Callable[[], FormRecord]:
        """Resolve every rule name once and return a FormRecord factory.

        Raises:
            FormDefinitionError: If a rule or check name is not registered
        """
        issues: list[DefinitionIssue] = []

        def resolve_fields(configs: list[FieldConfig], where: str):
            resolved = []
            for index, config in enumerate(configs):
                location = f"{where}[{index}]"
                rules: list[FieldRule] = []
                for spec in config.rules:
                    name, param = _rule_spec(spec)
                    try:
                        rules.append(RuleRegistry.create_field_rule(name, param))
                    except (ValueError, TypeError) as e:
                        issues.append(DefinitionIssue(message=str(e), path=location))
                check = None
                if config.async_check:
                    params: dict[str, Any] = {}
                    debounce = self.settings.debounce_seconds(config.async_check)
                    if debounce is not None:
                        params["debounce"] = debounce
                    try:
                        check = RuleRegistry.create_async_check(config.async_check, params)
                    except ValueError as e:
                        issues.append(DefinitionIssue(message=str(e), path=location))
                resolved.append((config, tuple(rules), check))
            return resolved

        def resolve_cross(configs: list[CrossFieldConfig], where: str) -> list[CrossFieldRule]:
            rules = []
            for index, config in enumerate(configs):
                try:
                    rules.append(
                        RuleRegistry.create_cross_field_rule(config.type, config.params)
                    )
                except (ValueError, KeyError, TypeError) as e:
                    issues.append(
                        DefinitionIssue(message=str(e), path=f"{where}[{index}]")
                    )
            return rules

        top_fields = resolve_fields(definition.fields, "fields")
        top_cross = resolve_cross(definition.cross_field, "cross_field")
        groups = [
            (
                group.name,
                resolve_fields(group.fields, f"groups/{group.name}/fields"),
                resolve_cross(group.cross_field, f"groups/{group.name}/cross_field"),
            )
            for group in definition.groups
        ]
        arrays = [
            (
                array.name,
                resolve_fields(array.fields, f"arrays/{array.name}/fields"),
                array.max if array.max is not None else self.settings.max_extra_phones,
            )
            for array in definition.arrays
        ]

        if issues:
            raise FormDefinitionError(issues)

        def make_fields(resolved) -> list[FieldState]:
            return [
                FieldState(
                    name=config.name,
                    value=config.default,
                    rules=rules,
                    async_check=check,
                    update_on=config.update_on,
                )
                for config, rules, check in resolved
            ]

        def make_entry_factory(name: str, resolved) -> Callable[[], FormRecord]:
            return lambda: FormRecord(name=name, fields=make_fields(resolved))

        def build() -> FormRecord:
            return FormRecord(
                name=definition.name,
                fields=make_fields(top_fields),
                groups=[
                    FormRecord(name=name, fields=make_fields(resolved), cross_field_rules=cross)
                    for name, resolved, cross in groups
                ],
                arrays=[
                    FormArray(name, make_entry_factory(name, resolved), max_length=max_length)
                    for name, resolved, max_length in arrays
                ],
                cross_field_rules=top_cross,
            )

        return build

    def build(self, definition: FormDefinition) -> FormRecord:
        return self.factory(definition)()


def load_registration_form(settings: Settings | None = None) -> FormRecord:
    """Build a fresh registration FormRecord from the shipped definition."""
    loader = FormLoader(settings)
    return loader.build(loader.load_builtin("registration"))
