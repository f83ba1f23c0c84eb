"""Core types."""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum


class Category(str, Enum):
    EMAIL = "EMAIL"
    CREDIT_CARD = "CREDIT_CARD"
    SSN = "SSN"


class BreakerPhase(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class Outcome(str, Enum):
    ANSWER = "ANSWER"
    SERVICE_BUSY = "SERVICE_BUSY"
    ERROR = "ERROR"


@dataclass(frozen=True, slots=True)
class PIIMatch:
    """A single detected PII span."""
    category: Category
    start: int
    end: int
    text: str


@dataclass(frozen=True, slots=True)
class BreakerSnapshot:
    """Point-in-time view of the breaker."""
    phase: BreakerPhase
    consecutive_failures: int

    def to_dict(self) -> dict:
        return {"phase": self.phase.value, "failCount": self.consecutive_failures}
