"""Fake requests.Session for streaming tests.

Replays canned status codes and body lines without touching the network,
records every request, and can hold a stream open mid-body so tests can
cancel while a read is in flight.
"""

import threading
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Sequence

import requests


class FakeResponse:
    """Minimal stand-in for a streamed requests.Response."""

    def __init__(
        self,
        status_code: int = 200,
        lines: Sequence[str] = (),
        hold_after: Optional[int] = None,
        fail_after: Optional[int] = None,
        text: str = "",
        encoding: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.lines = list(lines)
        self.hold_after = hold_after
        self.fail_after = fail_after
        self._text = text
        self.encoding = encoding
        self.lines_read = 0
        self.closed = False
        self.iterated = False
        self.holding = threading.Event()
        self._released = threading.Event()

    @property
    def text(self) -> str:
        return self._text

    def release(self) -> None:
        """Let a held stream continue with its remaining lines."""
        self._released.set()

    def close(self) -> None:
        self.closed = True
        self._released.set()

    def iter_lines(self, decode_unicode: bool = False):
        self.iterated = True
        for index, line in enumerate(self.lines):
            if self.hold_after is not None and index == self.hold_after:
                self.holding.set()
                self._released.wait(timeout=5)
            if self.closed:
                raise requests.exceptions.ConnectionError("connection closed")
            if self.fail_after is not None and index == self.fail_after:
                raise requests.exceptions.ChunkedEncodingError("connection broken mid-body")
            self.lines_read += 1
            yield line if decode_unicode else line.encode("utf-8")
        if self.fail_after is not None and self.fail_after >= len(self.lines):
            raise requests.exceptions.ChunkedEncodingError("connection broken mid-body")


class FakeSession:
    """Hands out queued FakeResponses in order and records each post()."""

    def __init__(self) -> None:
        self.responses: Deque[Any] = deque()
        self.requests: List[Dict[str, Any]] = []

    def queue(self, response: Any) -> Any:
        self.responses.append(response)
        return response

    def post(self, url: str, json: Any = None, headers: Optional[Dict[str, str]] = None, stream: bool = False, timeout: Any = None):
        self.requests.append({"url": url, "json": json, "headers": dict(headers or {}), "stream": stream, "timeout": timeout})
        if not self.responses:
            raise AssertionError(f"unexpected request to {url}")
        response = self.responses.popleft()
        if isinstance(response, BaseException):
            raise response
        return response
