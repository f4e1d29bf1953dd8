# leadbot/middleware/request_logger.py
import logging
import time

from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("leadbot.http")


class RequestLoggerMiddleware:
    """
    Logs every HTTP request with method, path, status and duration,
    plus X-Req-Id (from client) and X-Sid (chat session id) when present.
    """
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = {k.decode("latin-1").lower(): v.decode("latin-1") for k, v in scope.get("headers", [])}
        rid = headers.get("x-req-id", "-")
        sid = headers.get("x-sid", "-")
        method = scope.get("method", "-")
        path = scope.get("path", "-")
        status = {"code": 0}
        start = time.time()

        async def send_wrapper(message: Message):
            if message["type"] == "http.response.start":
                status["code"] = message["status"]
            await send(message)

        logger.info("[HTTP >] rid=%s sid=%s %s %s", rid, sid, method, path)
        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            dur_ms = (time.time() - start) * 1000
            logger.info("[HTTP <] rid=%s sid=%s %s %s status=%s in %.1fms", rid, sid, method, path, status["code"], dur_ms)
