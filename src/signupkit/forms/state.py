"""Field and record state for signupkit forms.

- FieldState: one value with its rules, errors and interaction flags
- FormRecord: ordered fields, nested groups, repeated arrays and
  record-level cross-field rules
- FormArray: bounded, ordered list of sub-records (additional phones)

Validity of a record is the AND of its fields, its cross-field rules and all
child records. A field with an outstanding async check is never valid.
"""

import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from signupkit.validation.cross_field import CrossFieldRule
from signupkit.validation.types import ErrorSet, FieldRule, merge_errors

if TYPE_CHECKING:
    from signupkit.checks.scheduler import AsyncCheck

logger = logging.getLogger(__name__)

UPDATE_ON_CHANGE = "change"
UPDATE_ON_BLUR = "blur"

_UNSET: Any = object()


# =============================================================================
# Field State
# =============================================================================


@dataclass(eq=False)
class FieldState:
    """State of a single form field.

    Attributes:
        name: Field name within its record
        value: Current committed value
        rules: Synchronous rules, all of which run on every change
        async_check: Optional availability check
        update_on: "change" commits every edit, "blur" commits on touch
        sync_errors: Merged output of ``rules`` for the current value
        async_errors: Outcome of the latest applied async check
        touched: The user has left the field (or a submit forced it)
        dirty: The value was edited since creation or reset
        pending_async: An async check for the current value is outstanding
    """

    name: str
    value: Any = ""
    rules: tuple[FieldRule, ...] = ()
    async_check: "AsyncCheck | None" = None
    update_on: str = UPDATE_ON_CHANGE
    sync_errors: ErrorSet = field(default_factory=dict)
    async_errors: ErrorSet = field(default_factory=dict)
    touched: bool = False
    dirty: bool = False
    pending_async: bool = False
    initial: Any = _UNSET
    staged_value: Any = _UNSET

    def __post_init__(self) -> None:
        if self.initial is _UNSET:
            self.initial = self.value
        self.validate()

    @property
    def errors(self) -> ErrorSet:
        return merge_errors(self.sync_errors, self.async_errors)

    @property
    def valid(self) -> bool:
        return not self.errors and not self.pending_async

    @property
    def has_staged(self) -> bool:
        return self.staged_value is not _UNSET

    def validate(self) -> ErrorSet:
        """Re-run the synchronous rules against the current value."""
        self.sync_errors = merge_errors(*(rule(self.value) for rule in self.rules))
        return self.sync_errors

    def stage(self, value: Any) -> None:
        """Hold an edit until the field is blurred."""
        self.staged_value = value
        self.dirty = True

    def take_staged(self) -> Any:
        value, self.staged_value = self.staged_value, _UNSET
        return value

    def reset(self) -> None:
        self.value = self.initial
        self.staged_value = _UNSET
        self.async_errors = {}
        self.touched = False
        self.dirty = False
        self.pending_async = False
        self.validate()


# =============================================================================
# Form Array
# =============================================================================


class FormArray:
    """Ordered list of sub-records created from a factory.

    Order is insertion order. ``add`` is a no-op once ``max_length`` entries
    exist; ``remove_at`` shifts later entries down and ignores out-of-range
    indices.
    """

    def __init__(
        self,
        name: str,
        factory: Callable[[], "FormRecord"],
        max_length: int | None = None,
    ):
        self.name = name
        self.factory = factory
        self.max_length = max_length
        self.entries: list[FormRecord] = []

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator["FormRecord"]:
        return iter(self.entries)

    def __getitem__(self, index: int) -> "FormRecord":
        return self.entries[index]

    @property
    def full(self) -> bool:
        return self.max_length is not None and len(self.entries) >= self.max_length

    def add(self) -> "FormRecord | None":
        """Append a fresh entry, or return None when the array is full."""
        if self.full:
            logger.debug("Array '%s' is full (%d entries)", self.name, len(self.entries))
            return None
        entry = self.factory()
        self.entries.append(entry)
        return entry

    def remove_at(self, index: int) -> "FormRecord | None":
        """Remove and return the entry at ``index``, or None if out of range."""
        if index < 0 or index >= len(self.entries):
            logger.warning(
                "Ignoring removal of index %d from '%s' (%d entries)",
                index,
                self.name,
                len(self.entries),
            )
            return None
        return self.entries.pop(index)

    def clear(self) -> list["FormRecord"]:
        removed, self.entries = self.entries, []
        return removed

    @property
    def valid(self) -> bool:
        return all(entry.valid for entry in self.entries)

    def values(self) -> list[dict[str, Any]]:
        return [entry.values() for entry in self.entries]


# =============================================================================
# Form Record
# =============================================================================


class FormRecord:
    """A group of fields with nested groups, arrays and cross-field rules."""

    def __init__(
        self,
        name: str = "",
        fields: Iterable[FieldState] = (),
        groups: Iterable["FormRecord"] = (),
        arrays: Iterable[FormArray] = (),
        cross_field_rules: Iterable[CrossFieldRule] = (),
    ):
        self.name = name
        self.fields: dict[str, FieldState] = {f.name: f for f in fields}
        self.groups: dict[str, FormRecord] = {g.name: g for g in groups}
        self.arrays: dict[str, FormArray] = {a.name: a for a in arrays}
        self.cross_field_rules: list[CrossFieldRule] = list(cross_field_rules)
        self.cross_errors: dict[str, ErrorSet] = {}
        self.touched = False
        self.run_cross_field_rules()

    # -------------------------------------------------------------------------
    # Values and errors
    # -------------------------------------------------------------------------

    def field_values(self) -> dict[str, Any]:
        """Values of this record's own fields (input to cross-field rules)."""
        return {name: state.value for name, state in self.fields.items()}

    def values(self) -> dict[str, Any]:
        """Fully nested value tree: fields, groups and arrays."""
        result = self.field_values()
        for name, group in self.groups.items():
            result[name] = group.values()
        for name, array in self.arrays.items():
            result[name] = array.values()
        return result

    @property
    def errors(self) -> ErrorSet:
        """Record-level errors from cross-field rules."""
        return merge_errors(*self.cross_errors.values())

    def run_cross_field_rules(self, changed: str | None = None) -> ErrorSet:
        """Re-run cross-field rules; only those watching ``changed`` if given."""
        values = self.field_values()
        for rule in self.cross_field_rules:
            if changed is not None and not rule.watches(changed):
                continue
            result = rule(values)
            if result:
                self.cross_errors[rule.name] = result
            else:
                self.cross_errors.pop(rule.name, None)
        return self.errors

    def validate(self) -> bool:
        """Re-run every synchronous and cross-field rule in the tree."""
        for state in self.fields.values():
            state.validate()
        self.run_cross_field_rules()
        for group in self.groups.values():
            group.validate()
        for array in self.arrays.values():
            for entry in array:
                entry.validate()
        return self.valid

    @property
    def valid(self) -> bool:
        return (
            all(state.valid for state in self.fields.values())
            and not self.errors
            and all(group.valid for group in self.groups.values())
            and all(array.valid for array in self.arrays.values())
        )

    @property
    def pending(self) -> bool:
        return any(state.pending_async for _, state in self.iter_fields())

    def errors_by_path(self) -> dict[str, ErrorSet]:
        """Every non-empty ErrorSet in the tree keyed by dotted path.

        Record-level errors are keyed by the record's path ("" for the root).
        """
        found: dict[str, ErrorSet] = {}
        for path, record in self.iter_records():
            if record.errors:
                found[path] = record.errors
        for path, state in self.iter_fields():
            if state.errors:
                found[path] = state.errors
        return found

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def iter_records(self, prefix: str = "") -> Iterator[tuple[str, "FormRecord"]]:
        yield prefix, self
        for name, group in self.groups.items():
            yield from group.iter_records(_join(prefix, name))
        for name, array in self.arrays.items():
            for index, entry in enumerate(array):
                yield from entry.iter_records(_join(prefix, f"{name}.{index}"))

    def iter_fields(self, prefix: str = "") -> Iterator[tuple[str, FieldState]]:
        for path, record in self.iter_records(prefix):
            for name, state in record.fields.items():
                yield _join(path, name), state

    def locate(self, path: str) -> tuple["FormRecord", FieldState]:
        """Resolve a dotted path to its owning record and field.

        Raises:
            KeyError: If any segment does not exist
        """
        record = self
        parts = path.split(".")
        index = 0
        while index < len(parts) - 1:
            part = parts[index]
            if part in record.groups:
                record = record.groups[part]
                index += 1
            elif part in record.arrays:
                position = parts[index + 1] if index + 1 < len(parts) - 1 else None
                if position is None or not position.isdigit():
                    raise KeyError(path)
                array = record.arrays[part]
                if int(position) >= len(array):
                    raise KeyError(path)
                record = array[int(position)]
                index += 2
            else:
                raise KeyError(path)

        name = parts[-1]
        if name not in record.fields:
            raise KeyError(path)
        return record, record.fields[name]

    def get(self, path: str) -> FieldState:
        return self.locate(path)[1]

    def array(self, name: str) -> FormArray:
        if name not in self.arrays:
            raise KeyError(name)
        return self.arrays[name]

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def set_value(self, path: str, value: Any) -> FieldState:
        """Commit a value and re-run the affected synchronous rules."""
        record, state = self.locate(path)
        state.value = value
        state.dirty = True
        state.validate()
        record.run_cross_field_rules(state.name)
        return state

    def mark_all_touched(self) -> None:
        for _, record in self.iter_records():
            record.touched = True
        for _, state in self.iter_fields():
            state.touched = True

    def reset(self) -> None:
        """Restore initial values and flags; arrays are emptied."""
        for state in self.fields.values():
            state.reset()
        for group in self.groups.values():
            group.reset()
        for array in self.arrays.values():
            array.clear()
        self.touched = False
        self.run_cross_field_rules()


def _join(prefix: str, name: str) -> str:
    return f"{prefix}.{name}" if prefix else name
