"""Rule-based validation for wizard forms.

A ruleset maps field names to rule expressions:

    {
        "name": "required|string|max:120",
        "email": "required|email",
        "code": ["required", "regex:^[A-Z]{2}|[0-9]{4}$"],   # list form keeps '|'
        "age": "nullable|integer|between:18,120",
        "nickname": ["sometimes", check_nickname],          # callable rule
    }

Validation runs in two phases:

1. Base phase: every field's rules. Any failure short-circuits to
   Invalid; extra validators are never reached.
2. Post phase: extra validators run in declared order on top of the
   accumulator. Each receives (context, data, accumulator) and may return
   a mapping that is shallow-merged into the accumulator (right wins), so
   later hooks see earlier additions. Hooks may also add errors through
   the context, which turns the outcome Invalid.

Messages resolve as "field.rule" override → "rule" override → default,
formatted with {field} and the rule's own parameters ({min}, {other}, …).
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from formwizard.middleware.exceptions import ConfigurationError
from formwizard.schemas.validators import (
    ALPHA_DASH_REGEX,
    ALPHA_NUM_REGEX,
    ALPHA_REGEX,
    is_empty,
    measure,
    validate_accepted,
    validate_boolean,
    validate_date,
    validate_email,
    validate_integer,
    validate_numeric,
    validate_pattern,
    validate_phone,
    validate_url,
)

logger = logging.getLogger(__name__)

ExtraValidator = Callable[["ValidationContext", Mapping[str, Any], Mapping[str, Any]], Optional[Mapping[str, Any]]]

# Rules that change how a field is validated rather than checking its value.
MODIFIERS = {"required", "nullable", "sometimes", "bail"}
NUMERIC_RULES = {"integer", "numeric"}
NUMERIC_ARG_RULES = {"min", "max", "between", "size", "digits"}
INTEGER_ARG_RULES = {"digits"}


class RuleViolation(ValueError):
    """Raised by a rule; carries the default message template and its params."""

    def __init__(self, template: str, **params: Any):
        self.template = template
        self.params = params
        super().__init__(template)


@dataclass(frozen=True)
class RuleCall:
    field: str
    value: Any
    args: tuple[str, ...]
    data: Mapping[str, Any]
    numeric: bool = False


@dataclass(frozen=True)
class ParsedRule:
    name: str
    args: tuple[str, ...] = ()
    func: Optional[Callable[..., Any]] = None


# ── Rule registry ────────────────────────────────────────────

_RULES: dict[str, tuple[Callable[[RuleCall], None], Optional[int]]] = {}


def register_rule(name: str, arity: Optional[int] = 0):
    """Register a named rule.

    `arity` is the exact number of arguments the rule takes, or None for
    "one or more" (e.g. `in:a,b,c`).

    Example:
        @register_rule("uppercase")
        def _uppercase(call: RuleCall) -> None:
            if call.value != str(call.value).upper():
                raise RuleViolation("The {field} must be uppercase.")
    """

    def decorator(func: Callable[[RuleCall], None]) -> Callable[[RuleCall], None]:
        _RULES[name] = (func, arity)
        return func

    return decorator


def _check(fn: Callable[[Any], Any], value: Any, template: str, **params: Any) -> None:
    try:
        fn(value)
    except ValueError:
        raise RuleViolation(template, **params) from None


def _number(arg: str) -> float:
    return float(arg) if "." in arg else int(arg)


def _is_number(arg: str) -> bool:
    try:
        _number(arg)
    except ValueError:
        return False
    return True


def _size_template(call: RuleCall, numeric_tpl: str, string_tpl: str, list_tpl: str) -> str:
    if call.numeric or (isinstance(call.value, (int, float)) and not isinstance(call.value, bool)):
        return numeric_tpl
    if isinstance(call.value, (list, tuple, dict, set)):
        return list_tpl
    return string_tpl


def _measure(call: RuleCall, template: str, **params: Any) -> float:
    try:
        return measure(call.value, numeric=call.numeric)
    except ValueError:
        raise RuleViolation(template, **params) from None


@register_rule("string")
def _string(call: RuleCall) -> None:
    if not isinstance(call.value, str):
        raise RuleViolation("The {field} must be a string.")


@register_rule("integer")
def _integer(call: RuleCall) -> None:
    _check(validate_integer, call.value, "The {field} must be an integer.")


@register_rule("numeric")
def _numeric(call: RuleCall) -> None:
    _check(validate_numeric, call.value, "The {field} must be a number.")


@register_rule("boolean")
def _boolean(call: RuleCall) -> None:
    _check(validate_boolean, call.value, "The {field} field must be true or false.")


@register_rule("accepted")
def _accepted(call: RuleCall) -> None:
    _check(validate_accepted, call.value, "The {field} must be accepted.")


@register_rule("email")
def _email(call: RuleCall) -> None:
    _check(validate_email, call.value, "The {field} must be a valid email address.")


@register_rule("url")
def _url(call: RuleCall) -> None:
    _check(validate_url, call.value, "The {field} format is invalid.")


@register_rule("phone")
def _phone(call: RuleCall) -> None:
    _check(validate_phone, call.value, "The {field} must be a valid phone number.")


@register_rule("date")
def _date(call: RuleCall) -> None:
    _check(validate_date, call.value, "The {field} is not a valid date.")


@register_rule("alpha")
def _alpha(call: RuleCall) -> None:
    _check(lambda v: validate_pattern(v, ALPHA_REGEX), call.value,
           "The {field} may only contain letters.")


@register_rule("alpha_num")
def _alpha_num(call: RuleCall) -> None:
    _check(lambda v: validate_pattern(v, ALPHA_NUM_REGEX), call.value,
           "The {field} may only contain letters and numbers.")


@register_rule("alpha_dash")
def _alpha_dash(call: RuleCall) -> None:
    _check(lambda v: validate_pattern(v, ALPHA_DASH_REGEX), call.value,
           "The {field} may only contain letters, numbers, dashes and underscores.")


@register_rule("regex", arity=1)
def _regex(call: RuleCall) -> None:
    _check(lambda v: validate_pattern(v, re.compile(call.args[0])), call.value,
           "The {field} format is invalid.")


@register_rule("min", arity=1)
def _min(call: RuleCall) -> None:
    limit = _number(call.args[0])
    template = _size_template(
        call,
        "The {field} must be at least {min}.",
        "The {field} must be at least {min} characters.",
        "The {field} must have at least {min} items.",
    )
    if _measure(call, template, min=call.args[0]) < limit:
        raise RuleViolation(template, min=call.args[0])


@register_rule("max", arity=1)
def _max(call: RuleCall) -> None:
    limit = _number(call.args[0])
    template = _size_template(
        call,
        "The {field} may not be greater than {max}.",
        "The {field} may not be greater than {max} characters.",
        "The {field} may not have more than {max} items.",
    )
    if _measure(call, template, max=call.args[0]) > limit:
        raise RuleViolation(template, max=call.args[0])


@register_rule("between", arity=2)
def _between(call: RuleCall) -> None:
    low, high = _number(call.args[0]), _number(call.args[1])
    params = {"min": call.args[0], "max": call.args[1]}
    template = _size_template(
        call,
        "The {field} must be between {min} and {max}.",
        "The {field} must be between {min} and {max} characters.",
        "The {field} must have between {min} and {max} items.",
    )
    if not low <= _measure(call, template, **params) <= high:
        raise RuleViolation(template, **params)


@register_rule("size", arity=1)
def _size(call: RuleCall) -> None:
    template = _size_template(
        call,
        "The {field} must be {size}.",
        "The {field} must be {size} characters.",
        "The {field} must contain {size} items.",
    )
    if _measure(call, template, size=call.args[0]) != _number(call.args[0]):
        raise RuleViolation(template, size=call.args[0])


@register_rule("digits", arity=1)
def _digits(call: RuleCall) -> None:
    text = str(call.value)
    if not text.isdigit() or len(text) != int(call.args[0]):
        raise RuleViolation("The {field} must be {digits} digits.", digits=call.args[0])


@register_rule("in", arity=None)
def _in(call: RuleCall) -> None:
    values = call.value if isinstance(call.value, (list, tuple)) else [call.value]
    if any(str(v) not in call.args for v in values):
        raise RuleViolation("The selected {field} is invalid.", values=", ".join(call.args))


@register_rule("not_in", arity=None)
def _not_in(call: RuleCall) -> None:
    values = call.value if isinstance(call.value, (list, tuple)) else [call.value]
    if any(str(v) in call.args for v in values):
        raise RuleViolation("The selected {field} is invalid.", values=", ".join(call.args))


@register_rule("same", arity=1)
def _same(call: RuleCall) -> None:
    other = call.args[0]
    if call.data.get(other) != call.value:
        raise RuleViolation("The {field} and {other} must match.", other=_label(other))


@register_rule("different", arity=1)
def _different(call: RuleCall) -> None:
    other = call.args[0]
    if call.data.get(other) == call.value:
        raise RuleViolation("The {field} and {other} must be different.", other=_label(other))


@register_rule("confirmed")
def _confirmed(call: RuleCall) -> None:
    if call.data.get(f"{call.field}_confirmation") != call.value:
        raise RuleViolation("The {field} confirmation does not match.")


# ── Parsing ──────────────────────────────────────────────────

def parse_rules(expression: Union[str, Iterable[Any]]) -> list[ParsedRule]:
    """Turn a rule expression into ParsedRules.

    Raises ConfigurationError for unknown rule names or wrong arity.
    """
    tokens = expression.split("|") if isinstance(expression, str) else list(expression)
    parsed = []
    for token in tokens:
        if callable(token):
            parsed.append(ParsedRule(name=getattr(token, "__name__", "custom"), func=token))
            continue
        if not isinstance(token, str):
            raise ConfigurationError(f"Invalid rule token: {token!r}")
        token = token.strip()
        if not token:
            continue

        name, _, raw = token.partition(":")
        if name == "regex":
            args = (raw,) if raw else ()
        else:
            args = tuple(a.strip() for a in raw.split(",")) if raw else ()

        if name in MODIFIERS:
            parsed.append(ParsedRule(name=name))
            continue
        if name not in _RULES:
            raise ConfigurationError(f"Unknown validation rule: {name!r}")

        arity = _RULES[name][1]
        if (arity is None and not args) or (arity is not None and len(args) != arity):
            raise ConfigurationError(f"Rule {name!r} got wrong number of arguments: {token!r}")
        if name in NUMERIC_ARG_RULES and not all(_is_number(a) for a in args):
            raise ConfigurationError(f"Rule {name!r} needs numeric arguments: {token!r}")
        if name in INTEGER_ARG_RULES and not all(a.isdigit() for a in args):
            raise ConfigurationError(f"Rule {name!r} needs a whole-number argument: {token!r}")
        parsed.append(ParsedRule(name=name, args=args))
    return parsed


def check_ruleset(ruleset: Mapping[str, Any]) -> None:
    """Parse every expression so misconfigured rules fail at definition time."""
    for expression in ruleset.values():
        parse_rules(expression)


def accepted_fields(ruleset: Mapping[str, Any]) -> list[str]:
    """Field names a ruleset keeps once it passes.

    A `confirmed` field also keeps its `<field>_confirmation` companion so
    the pair can be checked again later from stored values.
    """
    names = []
    for field_name, expression in ruleset.items():
        names.append(field_name)
        if any(rule.name == "confirmed" for rule in parse_rules(expression)):
            names.append(f"{field_name}_confirmation")
    return names


# ── Engine ───────────────────────────────────────────────────

class _Params(dict):
    def __missing__(self, key):
        return "{" + key + "}"


def _label(field_name: str) -> str:
    return field_name.replace("_", " ")


class ValidationContext:
    """Passed to extra validators; lets them inspect data and add errors."""

    def __init__(self, data: Mapping[str, Any], validated: Mapping[str, Any]):
        self.data = data
        self.validated = dict(validated)
        self.errors: dict[str, list[str]] = {}

    def add_error(self, field_name: str, message: str) -> None:
        self.errors.setdefault(field_name, []).append(message)

    def fails(self) -> bool:
        return bool(self.errors)


@dataclass(frozen=True)
class Valid:
    """Accepted. `fields` is the accumulator after every extra validator."""

    fields: dict[str, Any] = field(default_factory=dict)
    result: Any = None
    ok = True


@dataclass(frozen=True)
class Invalid:
    errors: dict[str, list[str]] = field(default_factory=dict)
    ok = False


ValidationOutcome = Union[Valid, Invalid]


class ValidationEngine:
    def validate(
        self,
        data: Mapping[str, Any],
        ruleset: Mapping[str, Any],
        messages: Optional[Mapping[str, str]] = None,
        extra_validators: Iterable[ExtraValidator] = (),
        accumulator: Optional[Mapping[str, Any]] = None,
        hook_data: Optional[Mapping[str, Any]] = None,
    ) -> ValidationOutcome:
        """Validate `data` against `ruleset`, then run extra validators.

        `hook_data` is what extra validators receive as their data
        argument; it defaults to `data`.
        """
        messages = messages or {}
        hook_data = data if hook_data is None else hook_data
        errors: dict[str, list[str]] = {}

        for field_name, expression in ruleset.items():
            field_errors = self._validate_field(field_name, parse_rules(expression), data, messages)
            if field_errors:
                errors[field_name] = field_errors

        if errors:
            logger.debug(f"Base validation failed for fields: {sorted(errors)}")
            return Invalid(errors)

        validated = {f: data[f] for f in accepted_fields(ruleset) if f in data}
        context = ValidationContext(hook_data, validated)
        acc = {**(accumulator or {}), **validated}
        result = None

        for hook in extra_validators:
            result = hook(context, hook_data, dict(acc))
            if isinstance(result, Mapping):
                acc.update(result)

        if context.fails():
            logger.debug(f"Extra validation failed for fields: {sorted(context.errors)}")
            return Invalid(context.errors)

        return Valid(fields=acc, result=result)

    def _validate_field(
        self,
        field_name: str,
        rules: list[ParsedRule],
        data: Mapping[str, Any],
        messages: Mapping[str, str],
    ) -> list[str]:
        names = {r.name for r in rules}
        if "sometimes" in names and field_name not in data:
            return []

        value = data.get(field_name)
        if is_empty(value):
            if "required" in names:
                return [self._message(field_name, "required", "The {field} field is required.", {}, messages)]
            return []

        numeric = bool(names & NUMERIC_RULES)
        found: list[str] = []
        for rule in rules:
            if rule.name in MODIFIERS:
                continue
            message = self._run_rule(field_name, rule, value, data, numeric, messages)
            if message:
                found.append(message)
                if "bail" in names:
                    break
        return found

    def _run_rule(self, field_name, rule, value, data, numeric, messages) -> Optional[str]:
        if rule.func is not None:
            # Callable rules return an error message (or False) on failure.
            outcome = rule.func(field_name, value, data)
            if outcome is None or outcome is True:
                return None
            template = outcome if isinstance(outcome, str) else "The {field} is invalid."
            return self._message(field_name, rule.name, template, {}, messages)

        func, _ = _RULES[rule.name]
        try:
            func(RuleCall(field=field_name, value=value, args=rule.args, data=data, numeric=numeric))
        except RuleViolation as exc:
            return self._message(field_name, rule.name, exc.template, exc.params, messages)
        return None

    @staticmethod
    def _message(field_name, rule_name, default, params, messages) -> str:
        template = messages.get(f"{field_name}.{rule_name}") or messages.get(rule_name) or default
        return template.format_map(_Params(field=_label(field_name), **params))


engine = ValidationEngine()
