"""Chapter tools: addChapters, listChapters."""

from __future__ import annotations

from typing import ClassVar

from pydantic import Field, field_validator

from markji_mcp.foundation.core import BaseTool, BatchParams, ToolMetadata, ToolOutput, ToolParams
from markji_mcp.io.client import Chapter
from markji_mcp.runtime.batch import Scheduling, run_batch


class ChapterInput(ToolParams):
    name: str = Field(..., min_length=1, description="The name of the chapter.")


class AddChaptersParams(BatchParams):
    deck_id: str = Field(..., description="The ID of the deck to add the chapters to.")
    chapters: ChapterInput | list[ChapterInput] = Field(
        ..., description="A single chapter object or an array of chapter objects to add.",
    )

    @field_validator("chapters", mode="after")
    @classmethod
    def _as_list(cls, v: ChapterInput | list[ChapterInput]) -> list[ChapterInput]:
        chapters = [v] if isinstance(v, ChapterInput) else v
        if not chapters:
            raise ValueError("at least one chapter is required")
        return chapters


class AddChaptersTool(BaseTool[AddChaptersParams]):
    """Create one chapter per input item.

    Output is JSON: the rendered report under "summary" and a name -> id map
    of the chapters that were created.
    """

    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="addChapters",
        description="Add one or more chapters to a deck. Returns the IDs of the created chapters.",
        category="chapters",
    )
    params_schema: ClassVar[type[AddChaptersParams]] = AddChaptersParams
    failure_prefix: ClassVar[str] = "Failed to add chapters"
    default_scheduling: ClassVar[Scheduling] = Scheduling.SERIAL

    async def _run(self, params: AddChaptersParams) -> ToolOutput:
        chapters: list[ChapterInput] = params.chapters  # type: ignore[assignment]
        report = await run_batch(
            chapters,
            lambda ch: self.client.create_chapter(params.deck_id, ch.name),
            self._batch_config(params.scheduling),
            key=lambda ch: ch.name,
            label=self.metadata.name,
        )
        text = report.render(
            lambda o: f"✅ Successfully created chapter: {o.value.id}",
            lambda o: f'❌ Failed to create chapter "{o.key}": {o.message}',
        )
        created: dict[str, str] = {o.key: o.value.id for o in report.succeeded}
        return ToolOutput.as_json({"summary": text, "createdChapters": created}, is_error=report.is_error)


class ListChaptersParams(ToolParams):
    deck_id: str = Field(..., description="The ID of the deck to list chapters for.")


class ListChaptersTool(BaseTool[ListChaptersParams]):
    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="listChapters",
        description="List all chapters of a deck with their card counts and card IDs.",
        category="chapters",
    )
    params_schema: ClassVar[type[ListChaptersParams]] = ListChaptersParams

    def _failure_prefix(self, params: ListChaptersParams) -> str:
        return f"Failed to list chapters for deck {params.deck_id}"

    async def _run(self, params: ListChaptersParams) -> ToolOutput:
        chapters: list[Chapter] = await self._call(lambda: self.client.list_chapters(params.deck_id), "list chapters")
        if not chapters:
            return ToolOutput.error(f"No chapters found for deck {params.deck_id}.")
        return ToolOutput.as_json([
            {"id": ch.id, "name": ch.name, "cardCount": len(ch.card_ids), "cardIds": ch.card_ids}
            for ch in chapters
        ])
