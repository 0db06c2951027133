"""Form state, definitions and widget binding."""

from signupkit.forms.loader import FormDefinition, FormLoader, load_registration_form
from signupkit.forms.schema import DefinitionIssue, FormDefinitionError
from signupkit.forms.state import FieldState, FormArray, FormRecord

__all__ = [
    "DefinitionIssue",
    "FieldState",
    "FormArray",
    "FormDefinition",
    "FormDefinitionError",
    "FormLoader",
    "FormRecord",
    "load_registration_form",
]
