"""CLI interface for secure-inquiry.

Usage:
    # Run the HTTP service (key from AUDIT_ENCRYPTION_KEY or .env)
    secure-inquiry serve --port 3000

    # Redact plain text (stdin: text, stdout: redacted text)
    echo 'Mail me at a@b.com' | secure-inquiry redact-text

    # Dump the audit trail, optionally decrypting originals
    secure-inquiry audit-dump --decrypt

    # Check every stored envelope authenticates under the current key
    secure-inquiry verify
"""

from __future__ import annotations
import argparse
import json
import sys
from dataclasses import replace

from .audit import AuditSink, JsonFileAuditStore
from .cipher import Cipher, EncryptedEnvelope
from .config import ServiceConfig, build_pipeline, load_from_env
from .errors import AuthenticationError, ConfigurationError, KeyConfigurationError
from .logging_utils import configure_logging, get_logger
from .redactor import redact

logger = get_logger(__name__)


def _config(args: argparse.Namespace) -> ServiceConfig:
    try:
        cfg = load_from_env()
    except ConfigurationError as e:
        sys.stderr.write(f"CRITICAL: {e}\n")
        sys.exit(1)
    overrides = {}
    if args.audit_path:
        overrides["audit_path"] = args.audit_path
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None):
        overrides["port"] = args.port
    return replace(cfg, **overrides)


def _load_cipher(cfg: ServiceConfig) -> Cipher:
    try:
        return Cipher.from_hex(cfg.encryption_key)
    except KeyConfigurationError as e:
        sys.stderr.write(f"CRITICAL: {e}\n")
        sys.exit(1)


def cmd_serve(args: argparse.Namespace) -> None:
    """Run the HTTP service. Refuses to start without a valid key."""
    from .server import serve

    cfg = _config(args)
    configure_logging(cfg.log_level, cfg.log_file)
    try:
        pipeline = build_pipeline(cfg)
    except KeyConfigurationError as e:
        logger.critical("Failed to start server. %s", e)
        sys.exit(1)
    serve(pipeline, host=cfg.host, port=cfg.port)


def cmd_redact_text(args: argparse.Namespace) -> None:
    """Redact PII from plain text on stdin."""
    sys.stdout.write(redact(sys.stdin.read()))


def cmd_audit_dump(args: argparse.Namespace) -> None:
    """Dump audit records as JSON."""
    cfg = _config(args)
    cipher = _load_cipher(cfg) if args.decrypt else None
    with AuditSink(JsonFileAuditStore(cfg.audit_path)) as sink:
        records = sink.read_records()

    out = []
    for record in records:
        entry = record.to_dict()
        if cipher is not None:
            try:
                entry["originalMessage"] = cipher.decrypt(
                    EncryptedEnvelope.from_token(record.encrypted_original)
                )
            except AuthenticationError as e:
                entry["decryptError"] = str(e)
        out.append(entry)
    json.dump(out, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


def cmd_verify(args: argparse.Namespace) -> None:
    """Verify every stored envelope. Exit 1 if any fail authentication."""
    cfg = _config(args)
    cipher = _load_cipher(cfg)
    with AuditSink(JsonFileAuditStore(cfg.audit_path)) as sink:
        records = sink.read_records()

    failed = []
    for record in records:
        try:
            cipher.decrypt(EncryptedEnvelope.from_token(record.encrypted_original))
        except AuthenticationError:
            failed.append(record.id)

    json.dump({"records": len(records), "failed": failed}, sys.stdout)
    sys.stdout.write("\n")
    if failed:
        sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="secure-inquiry",
        description="PII-redacting, audited inquiry service",
    )
    parser.add_argument("--audit-path", default=None, help="Audit log JSON file")

    sub = parser.add_subparsers(dest="command", required=True)
    p_serve = sub.add_parser("serve", help="Run the HTTP service")
    p_serve.add_argument("--host", default=None)
    p_serve.add_argument("--port", type=int, default=None)
    sub.add_parser("redact-text", help="Redact plain text (stdin)")
    p_dump = sub.add_parser("audit-dump", help="Dump audit records")
    p_dump.add_argument("--decrypt", action="store_true", help="Decrypt stored originals")
    sub.add_parser("verify", help="Verify stored envelopes authenticate")

    args = parser.parse_args(argv)

    cmds = {
        "serve": cmd_serve,
        "redact-text": cmd_redact_text,
        "audit-dump": cmd_audit_dump,
        "verify": cmd_verify,
    }
    cmds[args.command](args)


if __name__ == "__main__":
    main()
