import logging
from typing import Any

import httpx

from shortform.core import get_settings

logger = logging.getLogger(__name__)


class NotionServiceError(Exception):
    """Raised when the workspace API fails or returns an unexpected response."""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        self.status_code = status_code
        self.code = code
        super().__init__(message)

    @property
    def not_found(self) -> bool:
        return self.status_code == 404 or self.code == "object_not_found"


class NotionConfigError(NotionServiceError):
    """Raised when workspace configuration is missing."""


class NotionWorkspace:
    """Minimal async client for the parts of the Notion API this service uses."""

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.notion.com/v1",
        notion_version: str = "2022-06-28",
        timeout: float = 30.0,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.notion_version = notion_version
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Notion-Version": self.notion_version,
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict | None = None,
        params: dict | None = None,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    json=json,
                    params=params,
                    headers=self._headers(),
                )
                r.raise_for_status()
                return r.json()
        except httpx.HTTPStatusError as e:
            code = None
            message = f"Workspace API returned {e.response.status_code}."
            try:
                body = e.response.json()
                code = body.get("code")
                message = body.get("message") or message
            except ValueError:
                body_text = getattr(e.response, "text", None) or ""
                if body_text:
                    logger.warning("Workspace API error %s: %s", e.response.status_code, body_text[:500])
            raise NotionServiceError(message, status_code=e.response.status_code, code=code) from e
        except httpx.RequestError as e:
            raise NotionServiceError("Workspace API unavailable (timeout or connection error).") from e
        except ValueError as e:
            raise NotionServiceError("Workspace API returned a non-JSON body.") from e

    async def retrieve_page(self, page_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/pages/{page_id}")

    async def list_block_children(self, block_id: str, page_size: int = 100) -> list[dict[str, Any]]:
        """All child blocks of a page/block, following pagination."""
        blocks: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            params: dict[str, Any] = {"page_size": page_size}
            if cursor:
                params["start_cursor"] = cursor
            data = await self._request("GET", f"/blocks/{block_id}/children", params=params)
            blocks.extend(data.get("results") or [])
            cursor = data.get("next_cursor")
            if not data.get("has_more") or not cursor:
                return blocks

    async def query_database(
        self,
        database_id: str,
        filter: dict | None = None,
        page_size: int = 100,
    ) -> list[dict[str, Any]]:
        """First page of matching rows; callers here only need existence or a small count."""
        body: dict[str, Any] = {"page_size": page_size}
        if filter is not None:
            body["filter"] = filter
        data = await self._request("POST", f"/databases/{database_id}/query", json=body)
        return data.get("results") or []

    async def create_page(
        self,
        parent_database_id: str,
        properties: dict[str, Any],
        children: list[dict[str, Any]],
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/pages",
            json={
                "parent": {"database_id": parent_database_id},
                "properties": properties,
                "children": children,
            },
        )


def get_notion_workspace() -> NotionWorkspace:
    s = get_settings()
    if not s.notion_token:
        raise NotionConfigError("Workspace not configured. Set NOTION_TOKEN.")
    return NotionWorkspace(
        token=s.notion_token,
        base_url=s.notion_api_base_url,
        notion_version=s.notion_version,
    )
