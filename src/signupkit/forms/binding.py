"""Two-way binding between input widgets and controller fields.

A widget is anything that satisfies ``ValueAccessor``: the binding writes the
form value into it and receives change/touch notifications back.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from signupkit.controller.registration import FormStatus, RegistrationController

ChangeCallback = Callable[[Any], None]
TouchedCallback = Callable[[], None]


class ValueAccessor(Protocol):
    """Capability contract of a bindable widget."""

    def write(self, value: Any) -> None:
        """Display ``value`` without reporting it back as a change."""
        ...

    def on_change(self, callback: ChangeCallback) -> None:
        ...

    def on_touched(self, callback: TouchedCallback) -> None:
        ...


class WidgetValue:
    """In-memory widget: holds a value and reports user input and blur."""

    def __init__(self, value: Any = ""):
        self.value = value
        self._on_change: ChangeCallback | None = None
        self._on_touched: TouchedCallback | None = None

    def write(self, value: Any) -> None:
        self.value = value

    def on_change(self, callback: ChangeCallback) -> None:
        self._on_change = callback

    def on_touched(self, callback: TouchedCallback) -> None:
        self._on_touched = callback

    def input(self, value: Any) -> None:
        """Simulate the user typing ``value``."""
        self.value = value
        if self._on_change is not None:
            self._on_change(value)

    def blur(self) -> None:
        if self._on_touched is not None:
            self._on_touched()


def bind_field(
    controller: "RegistrationController",
    path: str,
    accessor: ValueAccessor,
) -> Callable[[], None]:
    """Bind ``accessor`` to the field at ``path``.

    The widget is refreshed from the form whenever the controller goes back
    to EDITING or reaches SUBMITTED (both follow a form reset or a failed
    submission). Returns a callable that undoes the binding.
    """
    from signupkit.controller.registration import FormStatus

    accessor.write(controller.value(path))
    active = True

    def changed(value: Any) -> None:
        if active:
            controller.set_value(path, value)

    def touched() -> None:
        if active:
            controller.touch(path)

    def status_changed(status: "FormStatus") -> None:
        if status not in (FormStatus.EDITING, FormStatus.SUBMITTED):
            return
        try:
            value = controller.value(path)
        except KeyError:
            # Bound to an array entry that no longer exists
            return
        accessor.write(value)

    accessor.on_change(changed)
    accessor.on_touched(touched)
    unsubscribe = controller.status_changes.subscribe(status_changed, replay=False)

    def unbind() -> None:
        nonlocal active
        active = False
        unsubscribe()

    return unbind
