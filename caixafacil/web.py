from __future__ import annotations

import argparse
import json
import logging
import os
from datetime import date
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qs, urlparse

from caixafacil.config import load_config
from caixafacil.dashboard import cash_projection
from caixafacil.database import (
    account_balance,
    delete_import,
    list_accounts,
    list_imports,
    query_transactions,
    summarize_by_category,
    summarize_by_month,
)
from caixafacil.errors import AggregatorError, CaixaFacilError, StatementError
from caixafacil.importer import import_statement

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _parse_int(value: str | None, default: int | None = None) -> int | None:
    if value is None or value == "":
        return default
    return int(value)


def _json_response(handler: BaseHTTPRequestHandler, payload: Any, status: int = 200) -> None:
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    handler.send_response(status)
    handler.send_header("Content-Type", "application/json; charset=utf-8")
    handler.send_header("Cache-Control", "no-store")
    handler.send_header("Content-Length", str(len(body)))
    handler.end_headers()
    handler.wfile.write(body)


def _error_status(exc: Exception) -> int:
    if isinstance(exc, (StatementError, ValueError)):
        return 400
    if isinstance(exc, AggregatorError):
        return 502
    return 500


class CaixaFacilHandler(BaseHTTPRequestHandler):
    db_path = "caixafacil.db"
    config: dict = {}

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        query = parse_qs(parsed.query)
        path = parsed.path

        try:
            if path == "/api/summary/month":
                payload = summarize_by_month(
                    self.db_path,
                    start_date=_parse_date(_get_param(query, "start_date")),
                    end_date=_parse_date(_get_param(query, "end_date")),
                    bank_account=_get_param(query, "account"),
                )
                _json_response(self, payload)
                return

            if path == "/api/summary/category":
                payload = summarize_by_category(
                    self.db_path,
                    tx_type=_get_param(query, "type"),
                    start_date=_parse_date(_get_param(query, "start_date")),
                    end_date=_parse_date(_get_param(query, "end_date")),
                    bank_account=_get_param(query, "account"),
                )
                _json_response(self, payload)
                return

            if path == "/api/balance":
                account = _get_param(query, "account")
                _json_response(self, {"account": account, "balance": account_balance(self.db_path, account)})
                return

            if path == "/api/projection":
                months = _parse_int(_get_param(query, "months"), default=3) or 3
                _json_response(self, cash_projection(self.db_path, self.config, months=months))
                return

            if path == "/api/accounts":
                payload = [
                    {"account": account, "balance": account_balance(self.db_path, account)}
                    for account in list_accounts(self.db_path)
                ]
                _json_response(self, payload)
                return

            if path == "/api/imports":
                _json_response(self, list_imports(self.db_path))
                return

            if path == "/api/transactions":
                payload = query_transactions(
                    self.db_path,
                    start_date=_parse_date(_get_param(query, "start_date")),
                    end_date=_parse_date(_get_param(query, "end_date")),
                    bank_account=_get_param(query, "account"),
                    tx_type=_get_param(query, "type"),
                    category=_get_param(query, "category"),
                    limit=_parse_int(_get_param(query, "limit"), default=200) or 200,
                )
                _json_response(self, payload)
                return
        except Exception as exc:
            logger.exception("GET %s failed", path)
            _json_response(self, {"error": str(exc)}, status=_error_status(exc))
            return

        _json_response(self, {"error": "not found"}, status=404)

    def do_POST(self) -> None:
        parsed = urlparse(self.path)
        query = parse_qs(parsed.query)
        if parsed.path != "/api/import":
            _json_response(self, {"error": "not found"}, status=404)
            return

        try:
            length = _parse_int(self.headers.get("Content-Length"), default=0)
        except ValueError:
            length = -1
        if length < 0:
            _json_response(self, {"success": False, "error": "Content-Length inválido."}, status=400)
            return
        if length > MAX_UPLOAD_BYTES:
            _json_response(self, {"success": False, "error": "Arquivo muito grande."}, status=413)
            return
        body = self.rfile.read(length)
        try:
            text = body.decode("utf-8-sig")
            result = import_statement(
                _get_param(query, "filename") or "extrato.csv",
                _get_param(query, "account"),
                self.db_path,
                config=self.config,
                text=text,
            )
        except UnicodeDecodeError:
            _json_response(self, {"success": False, "error": "O arquivo deve estar em UTF-8."}, status=400)
            return
        except CaixaFacilError as exc:
            logger.warning("Import failed: %s", exc)
            _json_response(self, {"success": False, "error": str(exc)}, status=_error_status(exc))
            return

        _json_response(self, {"success": True, **result.as_dict()})

    def do_DELETE(self) -> None:
        parsed = urlparse(self.path)
        query = parse_qs(parsed.query)
        if parsed.path != "/api/imports":
            _json_response(self, {"error": "not found"}, status=404)
            return
        notes = _get_param(query, "notes")
        if not notes:
            _json_response(self, {"error": "notes is required"}, status=400)
            return
        deleted = delete_import(self.db_path, notes, _get_param(query, "account"))
        _json_response(self, {"deleted": deleted})


def _get_param(query: dict[str, list[str]], key: str) -> str | None:
    values = query.get(key)
    return values[0] if values else None


def make_handler(db_path: str, config: dict) -> type:
    return type(
        "CaixaFacilHandler",
        (CaixaFacilHandler,),
        {"db_path": db_path, "config": config},
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="CaixaFácil JSON API")
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml")
    parser.add_argument("--db", dest="db_path", default=None, help="Path to SQLite database")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind (default: 8000)")
    args = parser.parse_args()

    logging.basicConfig(level=os.getenv("CAIXAFACIL_LOG_LEVEL", "INFO").upper())
    config = load_config(args.config)
    db_path = args.db_path or config["db_path"]
    server = ThreadingHTTPServer((args.host, args.port), make_handler(db_path, config))
    logger.info("CaixaFácil API running at http://%s:%s (db: %s)", args.host, args.port, db_path)
    server.serve_forever()


if __name__ == "__main__":
    main()
