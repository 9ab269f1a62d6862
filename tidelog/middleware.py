"""
HTTP access logging - ASGI middleware writing Apache "combined" lines

Usage:
    middleware = await logger.enable_request_rotation({"destination": "/var/log/app"})
    app = middleware(app)

    # or with Starlette/FastAPI
    app.add_middleware(AccessLogMiddleware, stream=LogStream(dispatcher))
"""

import time
from datetime import datetime, timezone
from typing import Iterable, Optional

CLF_DATE_FORMAT = "%d/%b/%Y:%H:%M:%S +0000"


class LogStream:
    """
    Write-only stream forwarding each line to a dispatcher at a fixed level.

    Example:
        stream = LogStream(web_dispatcher)
        stream.write('127.0.0.1 - - [...] "GET / HTTP/1.1" 200 2\\n')
    """

    def __init__(self, dispatcher, level: str = "info"):
        self.dispatcher = dispatcher
        self.level = level

    def write(self, line: str):
        self.dispatcher.log(self.level, line.rstrip("\r\n"))


def _header(headers: Iterable, name: bytes) -> Optional[str]:
    for key, value in headers:
        if key.lower() == name:
            return value.decode("latin-1")
    return None


def _quoted(value: Optional[str]) -> str:
    return f'"{value if value else "-"}"'


class AccessLogMiddleware:
    """
    Pure ASGI middleware writing one access line per HTTP request.

    Line format (Apache combined, optional allowed headers appended):
        remote - - [date] "METHOD url HTTP/version" status length "referer" "user-agent" - (x-id) 42

    Args:
        app: wrapped ASGI application
        stream: object with a write(line) method
        xheaders: request header names listed at the end of the line
    """

    def __init__(self, app, stream, xheaders: Iterable[str] = ()):
        self.app = app
        self.stream = stream
        self.xheaders = [header.lower() for header in xheaders]

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = time.time()
        response = {"status": 500, "length": 0, "content_length": None}

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                response["status"] = message["status"]
                response["content_length"] = _header(message.get("headers", []), b"content-length")
            elif message["type"] == "http.response.body":
                response["length"] += len(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            self.stream.write(self.format_line(scope, response, started) + "\n")

    def format_line(self, scope, response: dict, started: float) -> str:
        headers = scope.get("headers", [])
        client = scope.get("client")
        remote = client[0] if client else "-"
        date = datetime.fromtimestamp(started, tz=timezone.utc).strftime(CLF_DATE_FORMAT)

        url = (scope.get("raw_path") or b"").decode("latin-1") or scope.get("path") or "/"
        query = (scope.get("query_string") or b"").decode("latin-1")
        if query and "?" not in url:
            url = f"{url}?{query}"

        request = f'{scope.get("method", "-")} {url} HTTP/{scope.get("http_version", "1.1")}'
        length = response["content_length"] or (str(response["length"]) if response["length"] else "-")

        line = (
            f'{remote} - - [{date}] "{request}" {response["status"]} {length} '
            f'{_quoted(_header(headers, b"referer"))} {_quoted(_header(headers, b"user-agent"))}'
        )

        if self.xheaders:
            line = f"{line} - {self.format_xheaders(headers)}"
        return line

    def format_xheaders(self, headers) -> str:
        """List "(name) value" for allowed request headers, in request order"""
        values = []
        for key, value in headers:
            name = key.decode("latin-1").lower()
            if name in self.xheaders:
                values.append(f"({name}) {value.decode('latin-1')}")
        return " - ".join(values)
