# finance_tracker/web.py
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict
from urllib.parse import parse_qs, urlparse

from finance_tracker import auth
from finance_tracker.config import DEFAULT_CONFIG
from finance_tracker.database import get_membership, init_db, list_transactions, save_transactions
from finance_tracker.errors import FinanceTrackerError, ValidationError
from finance_tracker.parser import parse_transaction_text

logger = logging.getLogger(__name__)

ORGANIZATION_HEADER = "x-organization-id"


def _parse_int(value: str | None, default: int | None = None) -> int | None:
    if value is None or value == "":
        return default
    return int(value)


def _get_param(query: dict[str, list[str]], key: str) -> str | None:
    values = query.get(key)
    return values[0] if values else None


class FinanceTrackerHandler(BaseHTTPRequestHandler):
    db_path = "finance_tracker.db"
    config: Dict[str, Any] = DEFAULT_CONFIG
    _body = b""

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)

    def _cors_headers(self) -> None:
        origin = self.headers.get("Origin")
        allowed = self.config.get("cors_origins") or []
        if origin and (origin in allowed or "*" in allowed):
            self.send_header("Access-Control-Allow-Origin", origin)
            self.send_header("Access-Control-Allow-Credentials", "true")
            self.send_header("Vary", "Origin")

    def _json_response(self, payload: Any, status: int = 200) -> None:
        body = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self._cors_headers()
        self.send_header("Content-Type", "application/json")
        self.send_header("Cache-Control", "no-store")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _read_body(self) -> bytes:
        try:
            length = _parse_int(self.headers.get("Content-Length"), default=0) or 0
        except ValueError:
            length = 0
        return self.rfile.read(length) if length > 0 else b""

    def _read_json(self) -> Any:
        try:
            return json.loads(self._body.decode("utf-8") or "null")
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValidationError("Invalid JSON body") from exc

    def do_OPTIONS(self) -> None:
        self.send_response(204)
        self._cors_headers()
        self.send_header("Access-Control-Allow-Methods", "GET, POST, OPTIONS")
        self.send_header(
            "Access-Control-Allow-Headers",
            f"Authorization, Content-Type, {ORGANIZATION_HEADER}",
        )
        self.send_header("Content-Length", "0")
        self.end_headers()

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        routes = {
            "/": self._handle_root,
            "/api/health": self._handle_health,
            "/api/transactions": self._handle_list_transactions,
        }
        self._dispatch(routes, parsed)

    def do_POST(self) -> None:
        parsed = urlparse(self.path)
        routes = {
            "/api/auth/register": self._handle_register,
            "/api/auth/login": self._handle_login,
            "/api/transactions/extract": self._handle_extract,
        }
        self._dispatch(routes, parsed)

    def _dispatch(self, routes, parsed) -> None:
        # Drain the body first so early rejections still consume the request.
        self._body = self._read_body()
        handler = routes.get(parsed.path.rstrip("/") or "/")
        if handler is None:
            self._json_response({"error": "not found"}, status=404)
            return
        try:
            handler(parse_qs(parsed.query))
        except FinanceTrackerError as exc:
            self._json_response(exc.to_payload(), status=exc.status)
        except Exception as exc:
            logger.exception("Unhandled error for %s %s", self.command, parsed.path)
            self._json_response({"error": str(exc)}, status=500)

    def _authenticate(self) -> Dict[str, Any]:
        session = auth.authenticate(self.db_path, self.headers.get("Authorization"))
        return session["user"]

    def _require_organization(self, user: Dict[str, Any]) -> int:
        """Return the requested organization id once *user* is known to belong to it."""
        org_header = self.headers.get(ORGANIZATION_HEADER)
        if not org_header:
            raise FinanceTrackerError("Organization ID required", status=400)
        try:
            organization_id = int(org_header)
        except ValueError:
            organization_id = None
        if organization_id is None or get_membership(self.db_path, organization_id, user["id"]) is None:
            raise FinanceTrackerError("Not a member of this organization", status=403)
        return organization_id

    def _handle_root(self, query) -> None:
        self._json_response(
            {
                "message": "Finance Tracker API",
                "status": "healthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )

    def _handle_health(self, query) -> None:
        self._json_response({"status": "ok"})

    def _handle_register(self, query) -> None:
        payload = auth.register(
            self.db_path,
            self._read_json(),
            rounds=int(self.config.get("bcrypt_rounds", auth.DEFAULT_BCRYPT_ROUNDS)),
            ttl_days=int(self.config.get("session_ttl_days", auth.DEFAULT_SESSION_TTL_DAYS)),
        )
        self._json_response(payload, status=201)

    def _handle_login(self, query) -> None:
        payload = auth.login(
            self.db_path,
            self._read_json(),
            ttl_days=int(self.config.get("session_ttl_days", auth.DEFAULT_SESSION_TTL_DAYS)),
        )
        self._json_response(payload)

    def _handle_extract(self, query) -> None:
        user = self._authenticate()
        body = self._read_json()
        text = body.get("text") if isinstance(body, dict) else None
        if not isinstance(text, str) or len(text) < 1:
            raise ValidationError(
                details=[{"field": "text", "message": "Must contain at least 1 character(s)"}]
            )

        organization_id = self._require_organization(user)
        candidates = parse_transaction_text(text)
        if not candidates:
            self._json_response({"error": "No transactions found in text", "transactions": []}, status=400)
            return

        saved = save_transactions(self.db_path, candidates, text, user["id"], organization_id)
        logger.info(
            "Extracted %d transaction(s) for user %s in organization %s",
            len(saved),
            user["id"],
            organization_id,
        )
        self._json_response({"success": True, "count": len(saved), "transactions": saved})

    def _handle_list_transactions(self, query) -> None:
        user = self._authenticate()
        default_limit = int(self.config.get("page_size", 20))
        max_limit = int(self.config.get("max_page_size", 100))
        try:
            cursor = _parse_int(_get_param(query, "cursor"))
            limit = _parse_int(_get_param(query, "limit"), default=default_limit)
        except ValueError as exc:
            raise ValidationError("Invalid query parameters") from exc
        limit = max(1, min(limit, max_limit))

        organization_id = self._require_organization(user)
        payload = list_transactions(self.db_path, organization_id, user["id"], cursor=cursor, limit=limit)
        self._json_response(payload)


def make_server(config: Dict[str, Any], host: str | None = None, port: int | None = None) -> ThreadingHTTPServer:
    """Build a server bound to *host*/*port* (falling back to the config)."""
    db_path = str(config["db_path"])
    init_db(db_path)
    handler = type(
        "FinanceTrackerHandler",
        (FinanceTrackerHandler,),
        {"db_path": db_path, "config": config},
    )
    address = (host or config["host"], config["port"] if port is None else port)
    return ThreadingHTTPServer(address, handler)


def serve(config: Dict[str, Any], host: str | None = None, port: int | None = None) -> None:
    server = make_server(config, host, port)
    bound_host, bound_port = server.server_address[:2]
    logger.info("Finance Tracker API running at http://%s:%s (db: %s)", bound_host, bound_port, config["db_path"])
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        server.server_close()
