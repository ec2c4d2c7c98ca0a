"""
Rule-based input validation.

Rules are given per field as a pipe-delimited string, e.g.
``{"email": "required|email", "name": "min:3"}``. Only ``required``,
``email`` and ``min:N`` are understood.
"""

import re
from typing import Any, Callable, Dict, Mapping, Optional

EMAIL_PATTERN = re.compile(
    r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)+$"
)


def _check_required(field: str, value: Any, argument: Optional[str]) -> Optional[str]:
    if not value:
        return f"The {field} field is required."
    return None


def _check_email(field: str, value: Any, argument: Optional[str]) -> Optional[str]:
    if not isinstance(value, str) or not EMAIL_PATTERN.match(value):
        return f"The {field} field must be a valid email address."
    return None


def _check_min(field: str, value: Any, argument: Optional[str]) -> Optional[str]:
    try:
        minimum = int(argument or "")
    except ValueError:
        raise ValueError(f"Rule 'min' for field '{field}' needs an integer argument") from None
    text = "" if value is None else str(value)
    if len(text) < minimum:
        return f"The {field} field must be at least {minimum} characters."
    return None


RuleCheck = Callable[[str, Any, Optional[str]], Optional[str]]

RULES: Dict[str, RuleCheck] = {
    "required": _check_required,
    "email": _check_email,
    "min": _check_min,
}


class Validator:
    """
    Applies rule strings to values fetched through ``lookup``.

    Rules for a field run left to right and stop at the first failure, so
    each field reports at most one message.
    """

    def __init__(self, lookup: Callable[[str], Any]):
        self._lookup = lookup

    def validate(self, rules: Mapping[str, str]) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        for field, rule_string in rules.items():
            value = self._lookup(field)
            for token in filter(None, (part.strip() for part in rule_string.split("|"))):
                name, _, argument = token.partition(":")
                check = RULES.get(name)
                if check is None:
                    raise ValueError(f"Unknown validation rule '{name}' for field '{field}'")
                message = check(field, value, argument or None)
                if message is not None:
                    errors[field] = message
                    break
        return errors
