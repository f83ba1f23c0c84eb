"""HTTP front end for the inquiry pipeline.

One thread per request; the pipeline itself is shared.

Endpoints:
    POST /secure-inquiry  Process an inquiry (JSON body)
    GET  /health          Health check with breaker posture

Body format: {"userId": "...", "message": "..."}
Header ``x-mock-ai-fail: true`` forces the downstream call to fail.

Status mapping: answer 200, breaker open ("Service Busy") 200,
downstream failure 503, invalid input 400.
"""

from __future__ import annotations
import json
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

from .errors import ValidationError
from .logging_utils import get_logger
from .pipeline import InquiryPipeline

logger = get_logger(__name__)

FORCE_FAILURE_HEADER = "x-mock-ai-fail"


class InquiryHTTPServer(ThreadingHTTPServer):
    """Threaded HTTP server holding a reference to the pipeline."""

    daemon_threads = True

    def __init__(self, address: tuple[str, int], pipeline: InquiryPipeline) -> None:
        super().__init__(address, InquiryHandler)
        self.pipeline = pipeline


class InquiryHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the secure inquiry service."""

    server: InquiryHTTPServer

    def _read_json(self) -> Any:
        length = max(0, int(self.headers.get("Content-Length", 0)))
        body = self.rfile.read(length).decode("utf-8")
        return json.loads(body) if body else {}

    def _respond(self, status: int, data: Any) -> None:
        body = json.dumps(data, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        # Access lines go through logging; never includes the body
        logger.debug("%s - %s", self.client_address[0], format % args)

    def _log_request_line(self) -> None:
        logger.info("%s %s - IP: %s", self.command, self.path, self.client_address[0])

    def do_GET(self) -> None:
        self._log_request_line()
        if self.path == "/health":
            state = self.server.pipeline.breaker.get_state()
            self._respond(200, {"status": "ok", "breaker": state.to_dict()})
        else:
            self._respond(404, {"error": "not found"})

    def do_POST(self) -> None:
        self._log_request_line()
        if self.path != "/secure-inquiry":
            self._respond(404, {"error": "not found"})
            return

        try:
            body = self._read_json()
        except (ValueError, UnicodeDecodeError):
            self._respond(400, {"error": "request body must be valid JSON"})
            return
        if not isinstance(body, dict):
            self._respond(400, {"error": "request body must be a JSON object"})
            return

        force_failure = self.headers.get(FORCE_FAILURE_HEADER, "").lower() == "true"
        try:
            result = self.server.pipeline.handle(
                body.get("userId"),
                body.get("message"),
                force_downstream_failure=force_failure,
            )
        except ValidationError as e:
            self._respond(400, {"error": e.message, "field": e.field})
            return
        except Exception:
            logger.exception("Unhandled error processing %s", self.path)
            self._respond(500, {"error": "Internal Server Error"})
            return

        self._respond(result.http_status, result.to_dict())


def serve(pipeline: InquiryPipeline, host: str = "127.0.0.1", port: int = 3000) -> None:
    """Start the HTTP server and block until interrupted."""
    server = InquiryHTTPServer((host, port), pipeline)
    logger.info("Secure inquiry service listening on http://%s:%d", host, port)
    logger.info("Encryption check passed.")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        server.server_close()
        pipeline.sink.close()
