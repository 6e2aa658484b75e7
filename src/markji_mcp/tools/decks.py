"""Deck and folder tools: listDecks, listFolders, createDeck."""

from __future__ import annotations

import asyncio
from typing import ClassVar

from pydantic import Field

from markji_mcp.foundation.core import BaseTool, EmptyParams, ToolMetadata, ToolOutput, ToolParams
from markji_mcp.foundation.errors import JsonDict, MarkjiError
from markji_mcp.io.client import DEFAULT_CHAPTER_NAME

UNFILED_FOLDER_NAME = "未分类"


class ListDecksTool(BaseTool[EmptyParams]):
    """Every deck with the folder it lives in.

    Folders and decks are fetched concurrently. The synthetic "root" folder
    is skipped; decks outside any folder are listed under 未分类.
    """

    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="listDecks",
        description="List all decks of the user, including the folder each deck belongs to.",
        category="decks",
    )
    params_schema: ClassVar[type[EmptyParams]] = EmptyParams
    failure_prefix: ClassVar[str] = "Failed to list decks"

    async def _run(self, params: EmptyParams) -> ToolOutput:
        folders, decks = await asyncio.gather(
            self._call(self.client.list_folders, "list folders"),
            self._call(self.client.list_decks, "list decks"),
        )
        names = {d.id: d.name for d in decks}
        entries: list[JsonDict] = []
        seen: set[str] = set()

        for folder in folders:
            if folder.name == "root":
                continue
            for deck_id in folder.deck_ids():
                if (deck_name := names.get(deck_id)) is None:
                    continue
                entries.append({"deckId": deck_id, "deckName": deck_name, "folderId": folder.id, "folderName": folder.name})
                seen.add(deck_id)

        entries += [
            {"deckId": d.id, "deckName": d.name, "folderId": None, "folderName": UNFILED_FOLDER_NAME}
            for d in decks if d.id not in seen
        ]
        if not entries:
            return ToolOutput.ok("No decks found.")
        return ToolOutput.as_json(entries)


class ListFoldersTool(BaseTool[EmptyParams]):
    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="listFolders",
        description="List all deck folders with their IDs.",
        category="decks",
    )
    params_schema: ClassVar[type[EmptyParams]] = EmptyParams
    failure_prefix: ClassVar[str] = "Failed to list folders"

    async def _run(self, params: EmptyParams) -> ToolOutput:
        folders = await self._call(self.client.list_folders, "list folders")
        return ToolOutput.as_json([{"id": f.id, "name": f.name} for f in folders])


class CreateDeckParams(ToolParams):
    name: str = Field(..., min_length=1, description="The name for the new deck.")
    folder_id: str = Field(..., description="The ID of the folder to create the deck in. Can be obtained from listFolders.")
    description: str | None = Field(default=None, description="An optional description for the new deck.")
    is_private: bool = Field(default=False, description="Whether the deck should be private. Defaults to false.")


class CreateDeckTool(BaseTool[CreateDeckParams]):
    """Create a deck, then its default chapter.

    A failed default chapter is a partial failure: the deck exists, the
    output carries a warning and is flagged as an error.
    """

    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="createDeck",
        description="Create a new deck in a folder, together with a default chapter.",
        category="decks",
    )
    params_schema: ClassVar[type[CreateDeckParams]] = CreateDeckParams
    failure_prefix: ClassVar[str] = "Failed to create deck"

    async def _run(self, params: CreateDeckParams) -> ToolOutput:
        deck = await self._call(
            lambda: self.client.create_deck(params.name, params.folder_id, params.description or "", params.is_private),
            "create deck",
        )
        try:
            chapter = await self._call(lambda: self.client.create_chapter(deck.id, DEFAULT_CHAPTER_NAME), "create chapter")
        except MarkjiError as e:
            return ToolOutput.as_json({
                "message": f"Successfully created deck with ID: {deck.id}, but failed to create a default chapter.",
                "warning": f"Chapter creation failed: {e.message}",
                "deckId": deck.id,
                "deckName": deck.name,
            }, is_error=True)

        return ToolOutput.as_json({
            "message": f"Successfully created deck with ID: {deck.id}",
            "deckId": deck.id,
            "deckName": deck.name,
            "defaultChapterId": chapter.id,
            "defaultChapterName": chapter.name,
        })
