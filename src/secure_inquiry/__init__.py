"""Secure inquiry: PII redaction, encrypted originals, audited and breaker-gated calls."""

from .redactor import Redactor, redact
from .patterns import RedactionRule, scan
from .cipher import Cipher, EncryptedEnvelope, encrypt, decrypt
from .breaker import CircuitBreaker, BreakerConfig
from .audit import AuditRecord, AuditSink, JsonFileAuditStore
from .pipeline import InquiryPipeline, InquiryResponse, SimulatedDownstream
from .config import ServiceConfig, build_pipeline, load_config, load_from_env, load_from_yaml
from .errors import (
    SecureInquiryError, ValidationError, KeyConfigurationError, ConfigurationError,
    AuthenticationError, DownstreamError, WriteError,
)
from .types import BreakerPhase, BreakerSnapshot, Category, Outcome, PIIMatch

__all__ = [
    "Redactor", "redact", "RedactionRule", "scan",
    "Cipher", "EncryptedEnvelope", "encrypt", "decrypt",
    "CircuitBreaker", "BreakerConfig",
    "AuditRecord", "AuditSink", "JsonFileAuditStore",
    "InquiryPipeline", "InquiryResponse", "SimulatedDownstream",
    "ServiceConfig", "build_pipeline", "load_config", "load_from_env", "load_from_yaml",
    "SecureInquiryError", "ValidationError", "KeyConfigurationError", "ConfigurationError",
    "AuthenticationError", "DownstreamError", "WriteError",
    "BreakerPhase", "BreakerSnapshot", "Category", "Outcome", "PIIMatch",
]
__version__ = "0.1.0"
