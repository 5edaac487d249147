import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, final

import requests

from tunesync.core.errors import ParseError, TransportError


DEFAULT_TIMEOUT_SECONDS = 1.0


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""

        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    def json(self) -> Any:
        """Decodes the body, returning None for an empty one."""

        if not self.body.strip():
            return None
        try:
            return json.loads(self.body)
        except (ValueError, UnicodeDecodeError) as e:
            raise ParseError(f"Failed to parse json response: {e}") from e


@final
class HttpTransport:
    """
    Thin synchronous request executor. Holds a pooled session but no
    request state between calls.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS, session: requests.Session | None = None):
        self.timeout = timeout
        self._session = session or requests.Session()

    def request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | None = None,
        data: Mapping[str, str] | None = None,
        json_body: Any = None,
        timeout: float | None = None,
    ) -> HttpResponse:
        timeout = self.timeout if timeout is None else timeout
        try:
            r = self._session.request(
                method,
                url,
                headers=dict(headers or {}),
                data=data,
                json=json_body,
                timeout=timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e.__class__.__name__}") from e

        return HttpResponse(status_code=r.status_code, body=r.content, headers=dict(r.headers))

    def close(self):
        self._session.close()
