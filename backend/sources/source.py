from __future__ import annotations

import json
import logging
import re
from typing import Any, Protocol

import aiohttp

from sources.config import DeploymentSettings, deployment_settings
from sources.datasets import get_dataset
from sources.errors import NetworkError, ParseError

_logger = logging.getLogger(__name__)

_ABSOLUTE_RE = re.compile(r"^https?://", re.IGNORECASE)


def is_absolute(identifier: str) -> bool:
    return bool(_ABSOLUTE_RE.match(identifier or ""))


def normalize(base: str, path: str) -> str:
    """
    Join a deployment base path and a dataset path with exactly one "/" between them.

    The result always starts with "/" and never contains "//". A path that already
    carries the base prefix is returned as-is, so normalizing twice is a no-op.
    """
    prefix = (base or "").strip().strip("/")
    prefix = f"/{prefix}" if prefix else ""
    rel = "/" + (path or "").strip().lstrip("/")
    if prefix and (rel == prefix or rel.startswith(prefix + "/")):
        return rel
    return f"{prefix}{rel}"


def resolve_url(identifier: str, *, settings: DeploymentSettings | None = None) -> str:
    if is_absolute(identifier):
        return identifier
    s = settings or deployment_settings()
    return s.asset_origin.rstrip("/") + normalize(s.base_prefix, identifier)


class Fetcher(Protocol):
    """Structural interface of the adapter, so hooks can take test doubles."""

    async def fetch(self, identifier: str) -> Any: ...


class DataSource:
    """
    Data Source Adapter: identifier -> URL -> HTTP GET -> JSON -> typed records.

    No retries and no caching happen here; both belong to the dataset hooks.
    """

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        *,
        settings: DeploymentSettings | None = None,
    ) -> None:
        self._http = http_session
        self._settings = settings

    @property
    def settings(self) -> DeploymentSettings:
        return self._settings or deployment_settings()

    async def fetch(self, identifier: str) -> Any:
        spec = get_dataset(identifier)
        url = resolve_url(identifier, settings=self.settings)
        _logger.debug("GET %s", url)

        try:
            async with self._http.get(url) as resp:
                status = resp.status
                body = await resp.read()
        except aiohttp.ClientError as exc:
            raise NetworkError(identifier, None, detail=str(exc)) from exc

        if not 200 <= status < 300:
            raise NetworkError(identifier, status)

        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ParseError(identifier, "payload is not UTF-8 JSON") from exc

        return spec.decode(identifier, payload)
