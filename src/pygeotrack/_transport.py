"""JSON-over-HTTP transport shared by the remote sinks."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pygeotrack._constants import USER_AGENT
from pygeotrack._redact import redact_for_log
from pygeotrack.exceptions import TransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the sink modules.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`RestTransport`) concrete.
    """

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json_body: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        ...


class RestTransport:
    """aiohttp transport that adds fixed headers and decodes JSON replies."""

    def __init__(
        self,
        base_url: str,
        http_session: aiohttp.ClientSession,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float = 15.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http_session
        self._headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": USER_AGENT,
        }
        if headers:
            self._headers.update(headers)
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json_body: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (``None`` when empty).

        Raises :class:`TransportError` on network failures, non-2xx statuses
        and undecodable bodies.
        """
        url = f"{self._base_url}{path}"
        merged = dict(self._headers)
        if headers:
            merged.update(headers)
        data = json.dumps(json_body, separators=(",", ":")) if json_body is not None else None

        _logger.debug(
            "%s %s params=%s body=%s",
            method,
            url,
            redact_for_log(dict(params or {})),
            redact_for_log(json_body),
        )

        try:
            async with self._http.request(
                method,
                url,
                params=params,
                data=data,
                headers=merged,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                if resp.status < 200 or resp.status >= 300:
                    raise TransportError(
                        f"HTTP {resp.status} from {path}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=path,
                    )
        except TransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise TransportError(
                f"Request to {path} failed: {exc}",
                endpoint=path,
            ) from exc

        if not text.strip():
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise TransportError(
                f"Invalid JSON from {path}: {text[:200]}",
                endpoint=path,
            ) from exc
