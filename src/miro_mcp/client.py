"""
Thin synchronous client for the Miro REST API v2.

Implements :class:`~miro_mcp.models.BoardSource` for a single board. Only
transport concerns live here: URL building, authentication, status-code
mapping and envelope unwrapping. Nothing is retried: a failed call surfaces
to the caller as :class:`MiroApiError`.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from miro_mcp.models import ItemPage, ItemType

logger = logging.getLogger("miro-mcp.client")

DEFAULT_BASE_URL = "https://api.miro.com"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class MiroApiError(Exception):
    """A request to the board API failed."""

    def __init__(self, status_code: int, message: str, body: Any = None) -> None:
        self.status_code = status_code
        self.message = message
        self.body = body
        super().__init__(message)


class ItemNotFoundError(MiroApiError):
    """The named item (or frame, or parent) does not exist on the board."""

    def __init__(self, item_id: str, body: Any = None) -> None:
        self.item_id = item_id
        super().__init__(404, f"Item '{item_id}' not found on the board.", body)


def endpoint_for(item_type: str) -> str:
    """Collection path segment of a type-specific endpoint."""
    if item_type == ItemType.STICKY_NOTE.value:
        return "sticky_notes"
    return f"{item_type}s"


def _unwrap(payload: Any) -> list[dict[str, Any]]:
    if isinstance(payload, dict):
        payload = payload.get("data") or []
    return [r for r in payload if isinstance(r, dict)] if isinstance(payload, list) else []


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class MiroClient:
    """:class:`BoardSource` backed by the Miro REST API."""

    def __init__(
        self,
        token: str,
        board_id: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.board_id = board_id
        self._http = http_client or httpx.Client(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(timeout),
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> MiroClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # -- transport ----------------------------------------------------------

    @property
    def _board(self) -> str:
        return f"/v2/boards/{self.board_id}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        item_id: Optional[str] = None,
    ) -> Any:
        logger.debug("%s %s params=%s", method, path, params)
        try:
            response = self._http.request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            raise MiroApiError(0, f"{method} {path} failed: {exc}") from exc
        return self._handle_response(response, item_id)

    @staticmethod
    def _handle_response(response: httpx.Response, item_id: Optional[str]) -> Any:
        if response.is_success and (response.status_code == 204 or not response.content):
            return None
        try:
            body = response.json()
        except ValueError:
            body = response.text
        if response.status_code == 404 and item_id:
            raise ItemNotFoundError(item_id, body)
        if response.is_error:
            message = body.get("message") if isinstance(body, dict) else None
            raise MiroApiError(
                response.status_code,
                f"Miro API error {response.status_code}: {message or response.reason_phrase}",
                body,
            )
        return body

    # -- reads --------------------------------------------------------------

    def get_board(self) -> dict[str, Any]:
        return self._request("GET", self._board) or {}

    def list_items(
        self, item_type: Optional[str] = None, cursor: Optional[str] = None, limit: int = 50,
    ) -> ItemPage:
        params: dict[str, Any] = {"limit": str(limit)}
        if item_type:
            params["type"] = item_type
        if cursor:
            params["cursor"] = cursor
        payload = self._request("GET", f"{self._board}/items", params=params) or {}
        return ItemPage(records=_unwrap(payload), cursor=payload.get("cursor") or None)

    def get_item(self, item_id: str) -> dict[str, Any]:
        return self._request("GET", f"{self._board}/items/{item_id}", item_id=item_id) or {}

    def get_item_detail(self, item_id: str, item_type: str) -> dict[str, Any]:
        path = f"{self._board}/{endpoint_for(item_type)}/{item_id}"
        return self._request("GET", path, item_id=item_id) or {}

    def list_tags(self) -> list[dict[str, Any]]:
        return _unwrap(self._request("GET", f"{self._board}/tags"))

    def get_tag_items(self, tag_id: str) -> list[str]:
        records = _unwrap(self._request("GET", f"{self._board}/tags/{tag_id}/items"))
        return [str(r["id"]) for r in records if r.get("id")]

    def list_groups(self) -> list[dict[str, Any]]:
        return _unwrap(self._request("GET", f"{self._board}/groups"))

    def get_group_items(self, group_id: str) -> list[str]:
        records = _unwrap(self._request("GET", f"{self._board}/groups/{group_id}/items"))
        return [str(r["id"]) for r in records if r.get("id")]

    def list_comments(self) -> list[dict[str, Any]]:
        return _unwrap(self._request("GET", f"{self._board}/comments"))

    # -- writes -------------------------------------------------------------

    def create_items(self, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return _unwrap(self._request("POST", f"{self._board}/items/bulk", json=items))

    def update_item(self, item_id: str, body: dict[str, Any]) -> dict[str, Any]:
        path = f"{self._board}/items/{item_id}"
        return self._request("PATCH", path, json=body, item_id=item_id) or {}

    def delete_item(self, item_id: str) -> None:
        self._request("DELETE", f"{self._board}/items/{item_id}", item_id=item_id)
