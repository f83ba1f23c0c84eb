"""YAML/dict/env config loader for secure-inquiry.

Supports loading from a YAML file, a plain dict (flat or nested under a
``secure_inquiry`` key), or the process environment.

Example YAML:

    secure_inquiry:
      audit_path: data/audit-log.json
      host: 127.0.0.1
      port: 3000
      breaker:
        failure_threshold: 3
        cooldown_seconds: 30
      downstream:
        latency_seconds: 2.0
      logging:
        level: INFO
        file: logs/secure-inquiry.log

The encryption key is never read from YAML; it comes from
``AUDIT_ENCRYPTION_KEY`` (optionally via a ``.env`` file).
"""

from __future__ import annotations
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping

from dotenv import load_dotenv

from .audit import AuditSink, JsonFileAuditStore
from .breaker import BreakerConfig, CircuitBreaker
from .cipher import Cipher
from .errors import ConfigurationError
from .pipeline import InquiryPipeline, SimulatedDownstream


@dataclass(frozen=True)
class ServiceConfig:
    """Everything needed to wire up the service."""
    encryption_key: str | None = None      # 64 hex chars
    audit_path: str = "data/audit-log.json"
    host: str = "127.0.0.1"
    port: int = 3000
    failure_threshold: int = 3
    cooldown_seconds: float = 30.0
    downstream_latency_seconds: float = 2.0
    log_level: str = "INFO"
    log_file: str | None = None

    def __repr__(self) -> str:
        key = "<set>" if self.encryption_key else None
        return (
            f"ServiceConfig(encryption_key={key!r}, audit_path={self.audit_path!r}, "
            f"host={self.host!r}, port={self.port})"
        )


def _number(name: str, value: Any, kind: type) -> Any:
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


def load_config(data: Mapping[str, Any]) -> ServiceConfig:
    """Normalize a config dict (from YAML or inline)."""
    if "secure_inquiry" in data:
        data = data["secure_inquiry"] or {}

    defaults = ServiceConfig()
    breaker = data.get("breaker", {}) or {}
    downstream = data.get("downstream", {}) or {}
    logging_cfg = data.get("logging", {}) or {}

    return ServiceConfig(
        audit_path=str(data.get("audit_path", defaults.audit_path)),
        host=data.get("host", defaults.host),
        port=_number("port", data.get("port", defaults.port), int),
        failure_threshold=_number(
            "breaker.failure_threshold",
            breaker.get("failure_threshold", defaults.failure_threshold), int,
        ),
        cooldown_seconds=_number(
            "breaker.cooldown_seconds",
            breaker.get("cooldown_seconds", defaults.cooldown_seconds), float,
        ),
        downstream_latency_seconds=_number(
            "downstream.latency_seconds",
            downstream.get("latency_seconds", defaults.downstream_latency_seconds), float,
        ),
        log_level=logging_cfg.get("level", defaults.log_level),
        log_file=logging_cfg.get("file", defaults.log_file),
    )


def load_from_yaml(path: str | Path) -> ServiceConfig:
    """Load config from a YAML file."""
    import yaml
    with open(path) as f:
        return load_config(yaml.safe_load(f) or {})


def load_from_env(environ: Mapping[str, str] | None = None) -> ServiceConfig:
    """Build config from the environment, layered over an optional YAML file.

    Reads ``.env`` first when using the real process environment.
    Environment variables win over ``SECURE_INQUIRY_CONFIG`` file values.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    config_path = environ.get("SECURE_INQUIRY_CONFIG")
    cfg = load_from_yaml(config_path) if config_path else ServiceConfig()

    overrides: dict[str, Any] = {"encryption_key": environ.get("AUDIT_ENCRYPTION_KEY")}
    if "PORT" in environ:
        overrides["port"] = _number("PORT", environ["PORT"], int)
    if "HOST" in environ:
        overrides["host"] = environ["HOST"]
    if "AUDIT_LOG_PATH" in environ:
        overrides["audit_path"] = environ["AUDIT_LOG_PATH"]
    if "LOG_LEVEL" in environ:
        overrides["log_level"] = environ["LOG_LEVEL"]
    return replace(cfg, **overrides)


def build_pipeline(config: ServiceConfig) -> InquiryPipeline:
    """Create a fully wired pipeline.

    The key is validated first, so a bad key fails before any file is
    touched.

    Raises:
        KeyConfigurationError: Key missing or not 32 bytes of hex.
    """
    cipher = Cipher.from_hex(config.encryption_key)
    breaker = CircuitBreaker(BreakerConfig(
        failure_threshold=config.failure_threshold,
        cooldown_seconds=config.cooldown_seconds,
    ))
    sink = AuditSink(JsonFileAuditStore(config.audit_path))
    return InquiryPipeline(
        cipher=cipher,
        breaker=breaker,
        sink=sink,
        downstream=SimulatedDownstream(latency_seconds=config.downstream_latency_seconds),
    )
