"""Shared fixtures: a near-zero-backoff retry policy and an in-memory Markji."""

from __future__ import annotations

import itertools
from typing import Any

import pytest

from markji_mcp.foundation.errors import ErrorCode, RemoteError
from markji_mcp.io.client import Card, Chapter, Deck, Folder
from markji_mcp.runtime.batch import NamedResource
from markji_mcp.runtime.retry import ExponentialBackoff, RetryPolicy
from markji_mcp.tools import build_registry


class FakeMarkji:
    """In-memory stand-in for MarkjiClient with scripted failures.

    fail(method, *errors, match=...) queues exceptions for calls to method;
    with match set, only calls having match among their positional arguments
    consume them.
    """

    def __init__(self) -> None:
        self.folders: list[Folder] = []
        self.decks: list[Deck] = []
        self.chapters: dict[str, tuple[str, list[str]]] = {}
        self.cards: dict[str, Card] = {}
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self._failures: list[tuple[str, str | None, list[BaseException]]] = []
        self._ids = itertools.count(1)

    # ─── Scripting ───────────────────────────────────────────────────

    def add_chapter(self, name: str, card_ids: list[str] | None = None, chapter_id: str | None = None) -> str:
        chapter_id = chapter_id or self._new_id("ch")
        self.chapters[chapter_id] = (name, list(card_ids or []))
        for card_id in card_ids or []:
            self.cards.setdefault(card_id, Card(id=card_id, content=f"card {card_id}", grammar_version=3))
        return chapter_id

    def fail(self, method: str, *errors: BaseException, match: str | None = None) -> None:
        self._failures.append((method, match, list(errors)))

    def count(self, method: str) -> int:
        return sum(1 for name, _, _ in self.calls if name == method)

    def args_of(self, method: str) -> list[tuple[Any, ...]]:
        return [args for name, args, _ in self.calls if name == method]

    def _new_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def _enter(self, method: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((method, args, kwargs))
        for name, match, queue in self._failures:
            if name == method and queue and (match is None or match in args):
                raise queue.pop(0)

    def _chapter(self, chapter_id: str) -> Chapter:
        name, card_ids = self.chapters[chapter_id]
        return Chapter(id=chapter_id, name=name, card_ids=list(card_ids))

    # ─── Client Surface ──────────────────────────────────────────────

    async def list_folders(self) -> list[Folder]:
        self._enter("list_folders")
        return list(self.folders)

    async def list_decks(self) -> list[Deck]:
        self._enter("list_decks")
        return list(self.decks)

    async def create_deck(self, name: str, folder_id: str, description: str = "", is_private: bool = False) -> Deck:
        self._enter("create_deck", name, folder_id)
        deck = Deck(id=self._new_id("deck"), name=name)
        self.decks.append(deck)
        return deck

    async def list_chapters(self, deck_id: str) -> list[Chapter]:
        self._enter("list_chapters", deck_id)
        return [self._chapter(cid) for cid in self.chapters]

    async def list_chapter_resources(self, deck_id: str) -> list[NamedResource]:
        return [c.as_resource() for c in await self.list_chapters(deck_id)]

    async def chapter_ids(self, deck_id: str) -> list[str]:
        self._enter("chapter_ids", deck_id)
        return list(self.chapters)

    async def create_chapter(self, deck_id: str, name: str) -> Chapter:
        self._enter("create_chapter", deck_id, name)
        return self._chapter(self.add_chapter(name))

    async def create_chapter_id(self, deck_id: str, name: str) -> str:
        return (await self.create_chapter(deck_id, name)).id

    async def get_card(self, deck_id: str, card_id: str) -> Card:
        self._enter("get_card", deck_id, card_id)
        if card_id not in self.cards:
            raise RemoteError("Card not found", ErrorCode.NOT_FOUND, status_code=404)
        return self.cards[card_id]

    async def create_card(
        self, deck_id: str, chapter_id: str, content: str, *, grammar_version: int = 3, order: int | None = None,
    ) -> Card:
        self._enter("create_card", deck_id, chapter_id, content, grammar_version=grammar_version, order=order)
        card = Card(id=self._new_id("card"), content=content, grammar_version=grammar_version)
        self.cards[card.id] = card
        self.chapters[chapter_id][1].append(card.id)
        return card

    async def update_card(self, deck_id: str, card_id: str, content: str, grammar_version: int | None) -> dict[str, Any]:
        self._enter("update_card", deck_id, card_id, content, grammar_version)
        self.cards[card_id] = Card(id=card_id, content=content, grammar_version=grammar_version)
        return {}

    async def delete_card(self, deck_id: str, chapter_id: str, card_id: str) -> dict[str, Any]:
        self._enter("delete_card", deck_id, chapter_id, card_id)
        self.chapters[chapter_id][1].remove(card_id)
        del self.cards[card_id]
        return {}

    async def move_cards(
        self, deck_id: str, from_chapter_id: str, to_chapter_id: str, card_ids: list[str], order: int = 0,
    ) -> dict[str, Any]:
        self._enter("move_cards", deck_id, from_chapter_id, to_chapter_id)
        source, target = self.chapters[from_chapter_id][1], self.chapters[to_chapter_id][1]
        for card_id in card_ids:
            source.remove(card_id)
        target[order:order] = card_ids
        return {}

    async def upload_image_from_url(self, url: str) -> str:
        self._enter("upload_image_from_url", url)
        return "file-1"


@pytest.fixture
def fast_policy() -> RetryPolicy:
    """Default attempt budget with millisecond delays."""
    return RetryPolicy(max_attempts=3, backoff=ExponentialBackoff(base=0.001, max_delay=0.01))


@pytest.fixture
def markji() -> FakeMarkji:
    return FakeMarkji()


@pytest.fixture
def registry(markji: FakeMarkji, fast_policy: RetryPolicy):
    return build_registry(markji, fast_policy)  # type: ignore[arg-type]

