"""
Per-request diagnostics for the blog API.

Every HTTP response carries ``X-Response-Time-Ms`` and ``X-Query-Count``,
and one line per request goes to the ``app.access`` logger. SQL statements
are counted through a ContextVar that the engine listener bumps, so the
count covers eager loads and the view-count UPDATE as well.
"""
import logging
import time
from contextvars import ContextVar

from sqlalchemy import event
from starlette.types import ASGIApp, Message, Receive, Scope, Send

access_logger = logging.getLogger("app.access")

query_count_var: ContextVar[int] = ContextVar("query_count", default=0)


def install_query_counter(engine) -> None:
    """Count every statement *engine* executes into ``query_count_var``."""

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _count_statement(conn, cursor, statement, parameters, context, executemany):
        query_count_var.set(query_count_var.get() + 1)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class RequestDiagnosticsMiddleware:
    """
    Pure ASGI middleware: a BaseHTTPMiddleware would run the route in a
    separate context and never see the query count it accumulates.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        query_count_var.set(0)
        started = time.perf_counter()
        status = 500

        async def send_with_diagnostics(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
                message["headers"] = [
                    *message.get("headers", []),
                    (b"x-response-time-ms", str(_elapsed_ms(started)).encode()),
                    (b"x-query-count", str(query_count_var.get()).encode()),
                ]
            await send(message)

        try:
            await self.app(scope, receive, send_with_diagnostics)
        finally:
            access_logger.info(
                "%s %s -> %d in %.2f ms, %d SQL statements",
                scope["method"],
                scope["path"],
                status,
                _elapsed_ms(started),
                query_count_var.get(),
            )
