"""Async client for the Markji REST API.

Every endpoint answers with an envelope ``{"success": bool, "data": {...},
"errors": [{"message": ...}]}``. call() unwraps it: the data object on
success, a RemoteError otherwise. HTTP errors, timeouts and connection
failures are RemoteErrors too, classified so the retry executor can decide.

Example:
    >>> async with MarkjiClient(token) as client:
    ...     chapters = await client.list_chapters(deck_id)
    ...     card = await client.create_card(deck_id, chapters[-1].id, "Front\\n---\\nBack")
"""

from __future__ import annotations

from typing import Any, Literal

import httpx
import orjson
from pydantic import BaseModel, ConfigDict, Field

from markji_mcp.foundation.config import MarkjiSettings
from markji_mcp.foundation.errors import ErrorCode, JsonDict, RemoteError, code_for_status
from markji_mcp.runtime.batch import NamedResource
from markji_mcp.runtime.observability import get_logger

DEFAULT_BASE_URL = "https://www.markji.com/api/v1"
DEFAULT_CHAPTER_NAME = "默认章节"

HttpMethod = Literal["GET", "POST", "DELETE"]

log = get_logger("markji_mcp.client")


# ═══════════════════════════════════════════════════════════════════════════════
# Remote Models
# ═══════════════════════════════════════════════════════════════════════════════


class _Remote(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class Folder(_Remote):
    id: str
    name: str
    items: list[JsonDict] = Field(default_factory=list)

    def deck_ids(self) -> list[str]:
        return [i["object_id"] for i in self.items if i.get("object_class") == "DECK" and "object_id" in i]


class Deck(_Remote):
    id: str
    name: str


class Chapter(_Remote):
    id: str
    name: str
    card_ids: list[str] = Field(default_factory=list)

    def as_resource(self) -> NamedResource:
        return NamedResource(self.id, self.name)


class Card(_Remote):
    id: str
    content: str = ""
    grammar_version: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Client
# ═══════════════════════════════════════════════════════════════════════════════


def _first_error(envelope: JsonDict) -> str | None:
    errors = envelope.get("errors") or []
    if errors and isinstance(errors[0], dict):
        return errors[0].get("message") or None
    return None


class MarkjiClient:
    """Thin async wrapper over the Markji API.

    The httpx client is created lazily and reused; close with aclose() or use
    the client as an async context manager.
    """

    __slots__ = ("_token", "_base_url", "_timeout", "_user_agent", "_transport", "_client")

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        user_agent: str = "markji-mcp/1.2.0",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._user_agent = user_agent
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: MarkjiSettings, *, transport: httpx.AsyncBaseTransport | None = None) -> MarkjiClient:
        """Build a client from settings. Raises ConfigurationError if the token is unset."""
        return cls(
            settings.require_token(),
            base_url=settings.base_url,
            timeout=settings.http.timeout,
            user_agent=settings.http.user_agent,
            transport=transport,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={"token": self._token, "User-Agent": self._user_agent},
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> MarkjiClient:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    # ─────────────────────────────────────────────────────────────────
    # Request Core
    # ─────────────────────────────────────────────────────────────────

    async def call(
        self,
        method: HttpMethod,
        path: str,
        body: JsonDict | None = None,
        *,
        files: dict[str, Any] | None = None,
    ) -> JsonDict:
        """Issue one request and return the envelope's data object.

        Raises:
            RemoteError: kind="transport" for HTTP >= 400, timeouts and
                connection failures; kind="response" for success=false.
        """
        client = await self._get_client()
        try:
            response = await client.request(method, path, json=body, files=files)
        except httpx.TimeoutException as e:
            raise RemoteError(f"Request timed out: {method} {path}", ErrorCode.TIMEOUT) from e
        except httpx.TransportError as e:
            raise RemoteError(f"Network error: {e}", ErrorCode.NETWORK_ERROR) from e

        envelope = self._decode(response)
        status = response.status_code
        log.debug("markji response", method=method, path=path, status=status)

        if status >= 400:
            message = _first_error(envelope) or f"Status {status}: {response.reason_phrase}"
            raise RemoteError(message, code_for_status(status), status_code=status, kind="transport")
        if not envelope.get("success"):
            raise RemoteError(_first_error(envelope) or "Unknown API error", ErrorCode.REJECTED,
                              status_code=status, kind="response")
        data = envelope.get("data")
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _decode(response: httpx.Response) -> JsonDict:
        if not response.content:
            return {}
        try:
            decoded = orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            if response.status_code >= 400:
                return {}
            raise RemoteError(f"Invalid JSON from Markji API: {e}", ErrorCode.PARSE_ERROR,
                              status_code=response.status_code, kind="response") from e
        return decoded if isinstance(decoded, dict) else {}

    # ─────────────────────────────────────────────────────────────────
    # Folders & Decks
    # ─────────────────────────────────────────────────────────────────

    async def list_folders(self) -> list[Folder]:
        data = await self.call("GET", "/decks/folders")
        return [Folder.model_validate(f) for f in data.get("folders") or []]

    async def list_decks(self) -> list[Deck]:
        data = await self.call("GET", "/decks")
        return [Deck.model_validate(d) for d in data.get("decks") or []]

    async def create_deck(self, name: str, folder_id: str, description: str = "", is_private: bool = False) -> Deck:
        data = await self.call("POST", "/decks", {
            "name": name,
            "description": description,
            "is_private": is_private,
            "folder_id": folder_id,
        })
        return Deck.model_validate(data["deck"])

    # ─────────────────────────────────────────────────────────────────
    # Chapters
    # ─────────────────────────────────────────────────────────────────

    async def list_chapters(self, deck_id: str) -> list[Chapter]:
        data = await self.call("GET", f"/decks/{deck_id}/chapters")
        return [Chapter.model_validate(c) for c in data.get("chapters") or []]

    async def list_chapter_resources(self, deck_id: str) -> list[NamedResource]:
        """Chapters as name/id pairs, in listing order."""
        return [c.as_resource() for c in await self.list_chapters(deck_id)]

    async def chapter_ids(self, deck_id: str) -> list[str]:
        """Chapter ids in deck order, from the chapterset."""
        data = await self.call("GET", f"/decks/{deck_id}/chapters")
        return list((data.get("chapterset") or {}).get("chapter_ids") or [])

    async def create_chapter(self, deck_id: str, name: str) -> Chapter:
        data = await self.call("POST", f"/decks/{deck_id}/chapters", {"name": name})
        return Chapter.model_validate(data["chapter"])

    async def create_chapter_id(self, deck_id: str, name: str) -> str:
        return (await self.create_chapter(deck_id, name)).id

    # ─────────────────────────────────────────────────────────────────
    # Cards
    # ─────────────────────────────────────────────────────────────────

    async def get_card(self, deck_id: str, card_id: str) -> Card:
        data = await self.call("GET", f"/decks/{deck_id}/cards/{card_id}")
        return Card.model_validate(data["card"])

    async def create_card(
        self,
        deck_id: str,
        chapter_id: str,
        content: str,
        *,
        grammar_version: int = 3,
        order: int | None = None,
    ) -> Card:
        body: JsonDict = {"card": {"content": content, "grammar_version": grammar_version}}
        if order is not None:
            body["order"] = order
        data = await self.call("POST", f"/decks/{deck_id}/chapters/{chapter_id}/cards", body)
        return Card.model_validate(data["card"])

    async def update_card(self, deck_id: str, card_id: str, content: str, grammar_version: int | None) -> JsonDict:
        return await self.call("POST", f"/decks/{deck_id}/cards/{card_id}", {
            "card": {"content": content, "grammar_version": grammar_version},
        })

    async def delete_card(self, deck_id: str, chapter_id: str, card_id: str) -> JsonDict:
        return await self.call("DELETE", f"/decks/{deck_id}/chapters/{chapter_id}/cards/{card_id}")

    async def move_cards(
        self,
        deck_id: str,
        from_chapter_id: str,
        to_chapter_id: str,
        card_ids: list[str],
        order: int = 0,
    ) -> JsonDict:
        return await self.call("POST", f"/decks/{deck_id}/chapters/{from_chapter_id}/cards/move", {
            "to_chapter_id": to_chapter_id,
            "card_ids": card_ids,
            "order": order,
        })

    # ─────────────────────────────────────────────────────────────────
    # Files
    # ─────────────────────────────────────────────────────────────────

    async def upload_file(self, filename: str, content: bytes, content_type: str) -> str:
        """Multipart upload to /files; returns the new file id."""
        data = await self.call("POST", "/files", files={"file": (filename, content, content_type)})
        file_id = (data.get("file") or {}).get("id")
        if not file_id:
            raise RemoteError("File ID not found in upload response.", ErrorCode.PARSE_ERROR, kind="response")
        return str(file_id)

    async def download(self, url: str) -> tuple[bytes, str]:
        """Fetch url without Markji credentials; returns (content, content_type)."""
        async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True, transport=self._transport) as dl:
            try:
                response = await dl.get(url)
            except httpx.TimeoutException as e:
                raise RemoteError(f"Request timed out: GET {url}", ErrorCode.TIMEOUT) from e
            except httpx.TransportError as e:
                raise RemoteError(f"Network error: {e}", ErrorCode.NETWORK_ERROR) from e
        if response.status_code >= 400:
            raise RemoteError(f"Status {response.status_code}: {response.reason_phrase}",
                              code_for_status(response.status_code), status_code=response.status_code)
        content_type = response.headers.get("content-type", "").split(";")[0].strip() or "image/jpeg"
        return response.content, content_type

    async def upload_image_from_url(self, url: str) -> str:
        """Download an image and upload it to Markji; returns the file id."""
        try:
            content, content_type = await self.download(url)
            extension = content_type.split("/")[1] if "/" in content_type and content_type.split("/")[1] else "jpg"
            return await self.upload_file(f"mcp-upload.{extension}", content, content_type)
        except RemoteError as e:
            raise RemoteError(f"Failed to upload image from URL {url}: {e.message}", e.code,
                              status_code=e.status_code, kind=e.kind) from e
