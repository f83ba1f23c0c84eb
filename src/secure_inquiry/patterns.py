"""Regex rules for structured PII.

Three categories, applied in a fixed order: EMAIL, then SSN, then
CREDIT_CARD.  SSNs go before cards so a 9-digit SSN is tagged before the
looser card rule sees it; tags contain no digits, so later rules never
re-match earlier replacements.

Every quantifier is bounded and no repetition nests over an ambiguous
character class, so each rule runs in time linear in the input length.
"""

from __future__ import annotations
import re
from typing import NamedTuple

from .types import Category, PIIMatch


class RedactionRule(NamedTuple):
    """One PII category: its pattern and the literal tag that replaces it."""
    category: Category
    pattern: re.Pattern
    replacement_tag: str


def _tag(category: Category) -> str:
    return f"<REDACTED: {category.value}>"


RULES: tuple[RedactionRule, ...] = (
    # Email: labels cannot contain dots, so the domain split is unambiguous
    RedactionRule(Category.EMAIL, re.compile(
        r"\b[A-Za-z0-9._%+\-]{1,256}@"
        r"(?:[A-Za-z0-9\-]{1,63}\.){1,8}"
        r"[A-Za-z]{2,24}\b",
        re.ASCII,
    ), _tag(Category.EMAIL)),

    # SSN (US): 123-45-6789 or 123456789
    RedactionRule(Category.SSN, re.compile(
        r"\b\d{3}-?\d{2}-?\d{4}\b",
        re.ASCII,
    ), _tag(Category.SSN)),

    # Credit card: 4x4 groups with optional dash/space, or a contiguous
    # Visa / Mastercard / Amex / Discover run
    RedactionRule(Category.CREDIT_CARD, re.compile(
        r"\b(?:"
        r"\d{4}[ \-]?\d{4}[ \-]?\d{4}[ \-]?\d{4}"
        r"|4\d{12}(?:\d{3})?"
        r"|5[1-5]\d{14}"
        r"|3[47]\d{13}"
        r"|6(?:011|5\d{2})\d{12}"
        r")\b",
        re.ASCII,
    ), _tag(Category.CREDIT_CARD)),
)


def scan(text: str) -> list[PIIMatch]:
    """Run every rule against the raw text. Returns non-overlapping matches.

    Overlaps are resolved in rule order, the same precedence ``redact``
    gives them.
    """
    matches: list[PIIMatch] = []
    taken: list[tuple[int, int]] = []
    for rule in RULES:
        for m in rule.pattern.finditer(text):
            if any(m.start() < e and m.end() > s for s, e in taken):
                continue
            taken.append((m.start(), m.end()))
            matches.append(PIIMatch(
                category=rule.category,
                start=m.start(),
                end=m.end(),
                text=m.group(),
            ))
    return sorted(matches, key=lambda m: m.start)
