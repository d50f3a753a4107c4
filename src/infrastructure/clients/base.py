"""Shared plumbing for the REST collaborators."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class WireModel(BaseModel):
    """Base for payloads in the collaborators' camelCase JSON."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)


class JsonClient:
    """Synchronous JSON client where 404 means "absent"."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(base_url=self._base_url, timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET *path* and return the decoded body, or ``None`` on 404."""
        resp = self._client.get(path, params=params)
        if resp.status_code == 404:
            logger.debug("%s returned 404 for %s", type(self).__name__, path)
            return None
        resp.raise_for_status()
        return resp.json()
