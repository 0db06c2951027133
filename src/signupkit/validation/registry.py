"""Rule registry for signupkit.

Provides registration and lookup for the rules that form definitions refer to
by name:
- Field rules (``required``, ``nif``, ``minLength`` ...)
- Cross-field rules (``passwordMatch``, ``atLeastOneRequired`` ...)
- Asynchronous availability checks (``emailUnique`` ...)
"""

from collections.abc import Callable
from typing import Any

from signupkit.checks.scheduler import (
    AsyncCheck,
    email_unique,
    nif_unique,
    username_available,
)
from signupkit.validation import rules
from signupkit.validation.cross_field import (
    CrossFieldRule,
    at_least_one_required,
    date_range,
    password_match,
)
from signupkit.validation.types import FieldRule

# Factories receive the parameter given in the definition (None when bare).
FieldRuleFactory = Callable[[Any], FieldRule]
CrossFieldRuleFactory = Callable[[dict[str, Any]], CrossFieldRule]
AsyncCheckFactory = Callable[[dict[str, Any]], AsyncCheck]


class RuleRegistry:
    """Registry for named rules.

    Rules must be registered before a form definition can refer to them.
    Built-ins are registered by ``register_builtin_rules()``; applications
    add their own at startup.

    Example:
        RuleRegistry.register_field_rule("iban", lambda _: iban_rule())
        rule = RuleRegistry.create_field_rule("iban")
    """

    _field_rules: dict[str, FieldRuleFactory] = {}
    _cross_field_rules: dict[str, CrossFieldRuleFactory] = {}
    _async_checks: dict[str, AsyncCheckFactory] = {}

    @classmethod
    def register_field_rule(cls, name: str, factory: FieldRuleFactory) -> None:
        """Register a field rule factory by name.

        Idempotent - re-registering the same name is a no-op.
        """
        if name in cls._field_rules:
            return
        cls._field_rules[name] = factory

    @classmethod
    def register_cross_field_rule(cls, name: str, factory: CrossFieldRuleFactory) -> None:
        """Register a cross-field rule factory. Idempotent."""
        if name in cls._cross_field_rules:
            return
        cls._cross_field_rules[name] = factory

    @classmethod
    def register_async_check(cls, name: str, factory: AsyncCheckFactory) -> None:
        """Register an asynchronous check factory. Idempotent."""
        if name in cls._async_checks:
            return
        cls._async_checks[name] = factory

    @classmethod
    def create_field_rule(cls, name: str, param: Any = None) -> FieldRule:
        """Build a field rule from its registered name.

        Raises:
            ValueError: If the rule is not registered
        """
        if name not in cls._field_rules:
            raise ValueError(
                f"Field rule '{name}' is not registered. "
                "Available rules: " + ", ".join(sorted(cls._field_rules))
            )
        return cls._field_rules[name](param)

    @classmethod
    def create_cross_field_rule(
        cls, name: str, params: dict[str, Any] | None = None
    ) -> CrossFieldRule:
        if name not in cls._cross_field_rules:
            raise ValueError(
                f"Cross-field rule '{name}' is not registered. "
                "Available rules: " + ", ".join(sorted(cls._cross_field_rules))
            )
        return cls._cross_field_rules[name](params or {})

    @classmethod
    def create_async_check(
        cls, name: str, params: dict[str, Any] | None = None
    ) -> AsyncCheck:
        if name not in cls._async_checks:
            raise ValueError(
                f"Async check '{name}' is not registered. "
                "Available checks: " + ", ".join(sorted(cls._async_checks))
            )
        return cls._async_checks[name](params or {})

    @classmethod
    def is_registered(cls, name: str) -> bool:
        """Check if a name is registered in any of the three tables."""
        return (
            name in cls._field_rules
            or name in cls._cross_field_rules
            or name in cls._async_checks
        )

    @classmethod
    def list_registered(cls) -> list[str]:
        """List all registered names."""
        return sorted(
            set(cls._field_rules) | set(cls._cross_field_rules) | set(cls._async_checks)
        )

    @classmethod
    def list_field_rules(cls) -> list[str]:
        return sorted(cls._field_rules)

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._field_rules.clear()
        cls._cross_field_rules.clear()
        cls._async_checks.clear()


# =============================================================================
# Built-in Registration
# =============================================================================


def _debounce(params: dict[str, Any]) -> dict[str, Any]:
    if "debounce" in params:
        return {"debounce": float(params["debounce"])}
    return {}


def register_builtin_rules() -> None:
    """Register every rule shipped with signupkit.

    Safe to call more than once.
    """
    RuleRegistry.register_field_rule("required", lambda _: rules.required())
    RuleRegistry.register_field_rule("requiredTrue", lambda _: rules.required_true())
    RuleRegistry.register_field_rule("minLength", lambda n: rules.MinLength(int(n)))
    RuleRegistry.register_field_rule("maxLength", lambda n: rules.MaxLength(int(n)))
    RuleRegistry.register_field_rule("email", lambda _: rules.email())
    RuleRegistry.register_field_rule("passwordStrength", lambda _: rules.password_strength())
    RuleRegistry.register_field_rule("nif", lambda _: rules.nif())
    RuleRegistry.register_field_rule("telefono", lambda _: rules.telefono())
    RuleRegistry.register_field_rule("codigoPostal", lambda _: rules.codigo_postal())
    RuleRegistry.register_field_rule("minAge", lambda years: rules.MinAge(int(years)))

    RuleRegistry.register_cross_field_rule(
        "passwordMatch",
        lambda p: password_match(p.get("password", "password"), p.get("confirm", "confirm_password")),
    )
    RuleRegistry.register_cross_field_rule(
        "atLeastOneRequired",
        lambda p: at_least_one_required(*p.get("fields", [])),
    )
    RuleRegistry.register_cross_field_rule(
        "dateRange",
        lambda p: date_range(p["start"], p["end"]),
    )

    RuleRegistry.register_async_check("emailUnique", lambda p: email_unique(**_debounce(p)))
    RuleRegistry.register_async_check(
        "usernameAvailable", lambda p: username_available(**_debounce(p))
    )
    RuleRegistry.register_async_check("nifUnique", lambda p: nif_unique(**_debounce(p)))
