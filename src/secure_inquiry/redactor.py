"""Redactor: replaces PII in free text with typed tags.

Usage:
    from secure_inquiry import redact

    redact("Contact me at test@example.com immediately.")
    # "Contact me at <REDACTED: EMAIL> immediately."
"""

from __future__ import annotations
from typing import Iterable

from .patterns import RULES, RedactionRule


class Redactor:
    """Applies an ordered rule set. Stateless and thread-safe."""

    def __init__(self, rules: Iterable[RedactionRule] = RULES) -> None:
        self.rules = tuple(rules)

    def redact(self, text: str | None) -> str | None:
        """Return text with every PII match replaced by its category tag.

        Total: empty or ``None`` input is returned unchanged.
        """
        if not text:
            return text
        result = text
        for rule in self.rules:
            result = rule.pattern.sub(rule.replacement_tag, result)
        return result


_default = Redactor()


def redact(text: str | None) -> str | None:
    """Redact with the default EMAIL, SSN, CREDIT_CARD rule set."""
    return _default.redact(text)
