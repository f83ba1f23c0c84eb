"""InquiryPipeline: redact, encrypt, gate, call, audit.

Per request, in this order:
  1. validate userId / message (nothing else runs on failure)
  2. redact and encrypt the original, always
  3. consult the breaker; call downstream or answer "Service Busy"
  4. read the breaker's post-decision phase
  5. append the audit record, always
  6. return the response payload
"""

from __future__ import annotations
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Protocol

from .audit import AuditRecord, AuditSink
from .breaker import CircuitBreaker
from .cipher import Cipher
from .errors import DownstreamError, ValidationError, WriteError
from .redactor import Redactor
from .types import BreakerPhase, Outcome

logger = logging.getLogger(__name__)

SERVICE_BUSY_ANSWER = "Service Busy"
DOWNSTREAM_FAILED_ANSWER = "AI Service Unavailable"

_HTTP_STATUS = {
    Outcome.ANSWER: 200,
    Outcome.SERVICE_BUSY: 200,
    Outcome.ERROR: 503,
}


class Downstream(Protocol):
    """The expensive, unreliable call the breaker protects."""

    def call(self, redacted_message: str, *, force_failure: bool = False) -> str:
        ...


class SimulatedDownstream:
    """Stand-in model call with fixed latency."""

    def __init__(self, latency_seconds: float = 2.0, answer: str = "Generated Answer.") -> None:
        self.latency_seconds = latency_seconds
        self.answer = answer

    def call(self, redacted_message: str, *, force_failure: bool = False) -> str:
        if self.latency_seconds > 0:
            time.sleep(self.latency_seconds)
        if force_failure:
            raise DownstreamError("AI Service Failed")
        return self.answer


@dataclass(frozen=True, slots=True)
class InquiryResponse:
    """Result returned on every path except validation failure."""
    user_id: str
    redacted_message: str
    answer: str
    breaker_phase: BreakerPhase
    fail_count: int
    outcome: Outcome

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self.outcome]

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "redactedMessage": self.redacted_message,
            "answer": self.answer,
            "breakerPhase": self.breaker_phase.value,
            "failCount": self.fail_count,
        }


_LONE_SURROGATE = re.compile("[\ud800-\udfff]")


def _require_text(field: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, f"{field} is required and must be a non-empty string")
    # JSON allows unpaired \uD800-style escapes; they cannot be UTF-8 encoded
    return _LONE_SURROGATE.sub("\ufffd", value)


class InquiryPipeline:
    """Orchestrates one inquiry. Safe to call from many threads at once."""

    def __init__(
        self,
        *,
        cipher: Cipher,
        breaker: CircuitBreaker,
        sink: AuditSink,
        downstream: Downstream,
        redactor: Redactor | None = None,
    ) -> None:
        self.cipher = cipher
        self.breaker = breaker
        self.sink = sink
        self.downstream = downstream
        self.redactor = redactor or Redactor()

    def handle(
        self,
        user_id: Any,
        message: Any,
        force_downstream_failure: bool = False,
    ) -> InquiryResponse:
        """Process one inquiry.

        Raises:
            ValidationError: userId or message missing or blank.
        """
        user_id = _require_text("userId", user_id)
        message = _require_text("message", message)

        redacted = self.redactor.redact(message)
        envelope = self.cipher.encrypt(message)

        answer: str | None = None
        if not self.breaker.can_execute():
            outcome = Outcome.SERVICE_BUSY
        else:
            try:
                answer = self.downstream.call(redacted, force_failure=force_downstream_failure)
            except Exception as e:
                # Any downstream fault, including a collaborator timeout,
                # counts as a breaker failure
                logger.warning("Downstream call failed for user %s: %s", user_id, e)
                self.breaker.record_failure()
                outcome = Outcome.ERROR
            else:
                self.breaker.record_success()
                outcome = Outcome.ANSWER

        state = self.breaker.get_state()

        record = AuditRecord(
            user_id=user_id,
            encrypted_original=envelope.to_token(),
            redacted_message=redacted,
            outcome=outcome,
            answer=answer,
            breaker_phase=state.phase,
        )
        try:
            self.sink.append(record).result()
        except WriteError as e:
            logger.error("Audit append failed for record %s: %s", record.id, e)

        if outcome is Outcome.ANSWER:
            reply = answer
        elif outcome is Outcome.SERVICE_BUSY:
            reply = SERVICE_BUSY_ANSWER
        else:
            reply = DOWNSTREAM_FAILED_ANSWER

        return InquiryResponse(
            user_id=user_id,
            redacted_message=redacted,
            answer=reply,
            breaker_phase=state.phase,
            fail_count=state.consecutive_failures,
            outcome=outcome,
        )
