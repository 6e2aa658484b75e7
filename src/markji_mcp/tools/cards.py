"""Card tools.

Batch tools (addTextCards, getCards, batchUpdateCards, deleteCards,
batchMoveCards, batchAddCardsToChapters) run their items through run_batch
and report per-item outcomes; one failing card never stops the others. Tools
that address chapters by name resolve them through a ContainerResolver
seeded from a single chapter listing, creating missing chapters once.
"""

from __future__ import annotations

from typing import ClassVar, NamedTuple

from pydantic import Field, field_validator

from markji_mcp.foundation.core import BaseTool, BatchParams, ToolMetadata, ToolOutput, ToolParams
from markji_mcp.foundation.errors import ErrorCode, MarkjiError, RemoteError
from markji_mcp.io.client import Card, MarkjiClient
from markji_mcp.runtime.batch import ContainerResolver, Outcome, Scheduling, run_batch
from markji_mcp.runtime.retry import RetryPolicy, execute_with_retry

TEXT_GRAMMAR_VERSION = 3
IMAGE_GRAMMAR_VERSION = 2


# ═══════════════════════════════════════════════════════════════════════════════
# Shared Schemas & Helpers
# ═══════════════════════════════════════════════════════════════════════════════


class TextCard(ToolParams):
    content: str = Field(..., description="The front content of the card.")
    back_content: str | None = Field(default=None, description="The back content of the card.")

    def render(self) -> str:
        """Markji text card source: front and back separated by a '---' line."""
        return compose_content(self.content, self.back_content)

    @property
    def preview(self) -> str:
        return self.content[:20]


def compose_content(front: str, back: str | None) -> str:
    return f"{front}\n---\n{back}" if back else front


async def last_chapter_id(client: MarkjiClient, deck_id: str, policy: RetryPolicy) -> str:
    """Id of the deck's last chapter, where new cards go by default."""
    try:
        ids = await execute_with_retry(lambda: client.chapter_ids(deck_id), policy, "chapter ids")
    except RemoteError as e:
        raise RemoteError(f"Failed to get chapters for deck {deck_id}: {e.message}", e.code,
                          status_code=e.status_code, kind=e.kind) from e
    if not ids:
        raise MarkjiError(f"No chapters found for deck {deck_id}.", ErrorCode.NOT_FOUND)
    return ids[-1]


async def load_chapter_resolver(client: MarkjiClient, deck_id: str, policy: RetryPolicy) -> ContainerResolver:
    """Resolver for chapter names in a deck, seeded from one listing."""
    return await ContainerResolver.load(
        lambda: client.list_chapter_resources(deck_id),
        lambda name: client.create_chapter_id(deck_id, name),
        policy=policy,
        label="chapter",
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Creating Cards
# ═══════════════════════════════════════════════════════════════════════════════


class AddTextCardsParams(BatchParams):
    deck_id: str = Field(..., description="The ID of the deck to add the cards to.")
    cards: TextCard | list[TextCard] = Field(
        ..., description="A single card object or an array of card objects to add.",
    )
    chapter_id: str | None = Field(
        default=None,
        description="The ID of the chapter to add cards to. Defaults to the last chapter of the deck.",
    )

    @field_validator("cards", mode="after")
    @classmethod
    def _as_list(cls, v: TextCard | list[TextCard]) -> list[TextCard]:
        cards = [v] if isinstance(v, TextCard) else v
        if not cards:
            raise ValueError("at least one card is required")
        return cards


class AddTextCardsTool(BaseTool[AddTextCardsParams]):
    """Create text cards in one chapter, keeping input order as card order."""

    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="addTextCards",
        description="Add one or more text cards (front and optional back) to a deck chapter.",
        category="cards",
    )
    params_schema: ClassVar[type[AddTextCardsParams]] = AddTextCardsParams
    failure_prefix: ClassVar[str] = "Failed to add text cards"
    default_scheduling: ClassVar[Scheduling] = Scheduling.SERIAL

    async def _run(self, params: AddTextCardsParams) -> ToolOutput:
        cards: list[TextCard] = params.cards  # type: ignore[assignment]
        chapter_id = params.chapter_id or await last_chapter_id(self.client, params.deck_id, self.policy)

        report = await run_batch(
            list(enumerate(cards, start=1)),
            lambda item: self.client.create_card(
                params.deck_id, chapter_id, item[1].render(),
                grammar_version=TEXT_GRAMMAR_VERSION, order=item[0],
            ),
            self._batch_config(params.scheduling),
            label=self.metadata.name,
        )
        text = report.render(
            lambda o: f"✅ Successfully created card: {o.value.id}",
            lambda o: f'❌ Failed to create card "{cards[o.index].preview}...": {o.message}',
        )
        return ToolOutput(text=text, is_error=report.is_error)


class AddImageCardParams(ToolParams):
    deck_id: str = Field(..., description="The ID of the deck to add the card to. Can be obtained from listDecks.")
    image_url: str = Field(..., description="The public URL of the image to add.")
    caption: str | None = Field(default=None, description="An optional caption for the image.")
    chapter_id: str | None = Field(
        default=None,
        description="The ID of the chapter to add the card to. Defaults to the last chapter of the deck.",
    )

    @field_validator("image_url")
    @classmethod
    def _http_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("imageUrl must be an http(s) URL")
        return v


class AddImageCardTool(BaseTool[AddImageCardParams]):
    """Download an image, upload it to Markji, and create a card showing it."""

    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="addImageCard",
        description="Add an image card to a deck from a public image URL, with an optional caption.",
        category="cards",
    )
    params_schema: ClassVar[type[AddImageCardParams]] = AddImageCardParams
    failure_prefix: ClassVar[str] = "Failed to add image card"

    async def _run(self, params: AddImageCardParams) -> ToolOutput:
        file_id = await self._call(lambda: self.client.upload_image_from_url(params.image_url), "upload image")
        content = f"{params.caption}\n[Pic#{file_id}#]" if params.caption else f"[Pic#{file_id}#]"
        chapter_id = params.chapter_id or await last_chapter_id(self.client, params.deck_id, self.policy)
        card = await self._call(
            lambda: self.client.create_card(params.deck_id, chapter_id, content, grammar_version=IMAGE_GRAMMAR_VERSION),
            "create card",
        )
        return ToolOutput.ok(f"Successfully created image card with ID: {card.id}")


# ═══════════════════════════════════════════════════════════════════════════════
# Reading & Updating Cards
# ═══════════════════════════════════════════════════════════════════════════════


class GetCardsParams(BatchParams):
    deck_id: str = Field(..., description="The ID of the deck containing the cards.")
    card_ids: list[str] = Field(..., min_length=1, description="An array of card IDs to retrieve details for.")


class GetCardsTool(BaseTool[GetCardsParams]):
    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="getCards",
        description="Get the content and timestamps of specific cards by ID.",
        category="cards",
    )
    params_schema: ClassVar[type[GetCardsParams]] = GetCardsParams
    failure_prefix: ClassVar[str] = "Failed to get cards"

    async def _run(self, params: GetCardsParams) -> ToolOutput:
        report = await run_batch(
            params.card_ids,
            lambda card_id: self.client.get_card(params.deck_id, card_id),
            self._batch_config(params.scheduling),
            key=str,
            label=self.metadata.name,
        )

        def entry(o: Outcome[Card]) -> dict[str, object]:
            if o.is_err:
                return {"cardId": o.key, "error": o.message}
            card = o.value
            return {
                "cardId": o.key,
                "content": card.content,
                "grammarVersion": card.grammar_version,
                "createdAt": card.created_at,
                "updatedAt": card.updated_at,
            }

        return ToolOutput.as_json({
            "summary": f"Retrieved {report.succeeded_count} card(s) successfully, {report.failed_count} failed.",
            "cards": [entry(o) for o in report],
        }, is_error=report.is_error)


class UpdateCardParams(ToolParams):
    deck_id: str = Field(..., description="The ID of the deck containing the card.")
    card_id: str = Field(..., description="The ID of the card to update.")
    content: str = Field(..., description="The new content for the card.")
    back_content: str | None = Field(default=None, description="The new back content for the card.")


class UpdateCardTool(BaseTool[UpdateCardParams]):
    """Replace a card's content, keeping its grammar version."""

    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="updateCard",
        description="Update the content of an existing card, preserving its format version.",
        category="cards",
    )
    params_schema: ClassVar[type[UpdateCardParams]] = UpdateCardParams
    failure_prefix: ClassVar[str] = "Failed to update card"

    async def _run(self, params: UpdateCardParams) -> ToolOutput:
        current = await self._call(lambda: self.client.get_card(params.deck_id, params.card_id), "get card")
        await self._call(
            lambda: self.client.update_card(
                params.deck_id, params.card_id,
                compose_content(params.content, params.back_content), current.grammar_version,
            ),
            "update card",
        )
        return ToolOutput.ok(f"Successfully updated card {params.card_id}")


class CardUpdate(ToolParams):
    card_id: str = Field(..., description="The ID of the card to update.")
    content: str = Field(..., description="The new content for the card.")
    back_content: str | None = Field(default=None, description="The new back content for the card.")


class BatchUpdateCardsParams(BatchParams):
    deck_id: str = Field(..., description="The ID of the deck containing the cards.")
    updates: list[CardUpdate] = Field(..., min_length=1, description="An array of card update objects.")


class BatchUpdateCardsTool(BaseTool[BatchUpdateCardsParams]):
    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="batchUpdateCards",
        description="Update the content of several cards at once, preserving each card's format version.",
        category="cards",
    )
    params_schema: ClassVar[type[BatchUpdateCardsParams]] = BatchUpdateCardsParams
    failure_prefix: ClassVar[str] = "Failed to batch update cards"

    async def _update(self, deck_id: str, update: CardUpdate) -> str:
        current = await self.client.get_card(deck_id, update.card_id)
        await self.client.update_card(
            deck_id, update.card_id, compose_content(update.content, update.back_content), current.grammar_version,
        )
        return update.card_id

    async def _run(self, params: BatchUpdateCardsParams) -> ToolOutput:
        report = await run_batch(
            params.updates,
            lambda update: self._update(params.deck_id, update),
            self._batch_config(params.scheduling),
            key=lambda update: update.card_id,
            label=self.metadata.name,
        )
        text = report.render(
            lambda o: f"✅ Successfully updated card: {o.key}",
            lambda o: f"❌ Failed to update card {o.key}: {o.message}",
            header=f"Batch update completed: {report.summary}.",
        )
        return ToolOutput(text=text, is_error=report.is_error)


# ═══════════════════════════════════════════════════════════════════════════════
# Deleting Cards
# ═══════════════════════════════════════════════════════════════════════════════


class DeleteCardsParams(BatchParams):
    deck_id: str = Field(..., description="The ID of the deck containing the cards.")
    card_ids: list[str] = Field(..., min_length=1, description="An array of card IDs to delete.")


class DeleteCardsTool(BaseTool[DeleteCardsParams]):
    """Delete cards by id.

    The card -> chapter map comes from a single chapter listing; if that
    listing fails, nothing is deleted and the whole call reports the error.
    """

    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="deleteCards",
        description="Delete one or more cards from a deck by card ID.",
        category="cards",
    )
    params_schema: ClassVar[type[DeleteCardsParams]] = DeleteCardsParams
    failure_prefix: ClassVar[str] = "Failed to delete cards"

    async def _run(self, params: DeleteCardsParams) -> ToolOutput:
        chapters = await self._call(lambda: self.client.list_chapters(params.deck_id), "list chapters")
        chapter_of = {card_id: ch.id for ch in chapters for card_id in ch.card_ids}

        async def delete(card_id: str) -> str:
            if (chapter_id := chapter_of.get(card_id)) is None:
                raise MarkjiError(f"Card {card_id} not found in any chapter.", ErrorCode.NOT_FOUND)
            await self.client.delete_card(params.deck_id, chapter_id, card_id)
            return card_id

        report = await run_batch(
            params.card_ids, delete, self._batch_config(params.scheduling), key=str, label=self.metadata.name,
        )
        text = report.render(
            lambda o: f"✅ Successfully deleted card: {o.key}",
            lambda o: f"❌ Failed to delete card {o.key}: {o.message}",
            header=f"Delete operation completed: {report.summary}.",
        )
        return ToolOutput(text=text, is_error=report.is_error)


# ═══════════════════════════════════════════════════════════════════════════════
# Moving Cards Between Chapters
# ═══════════════════════════════════════════════════════════════════════════════


class MoveCardsParams(ToolParams):
    deck_id: str = Field(..., description="The ID of the deck containing the cards.")
    from_chapter_id: str = Field(..., description="The ID of the chapter the cards are currently in.")
    card_ids: list[str] = Field(..., min_length=1, description="An array of card IDs to move.")
    to_chapter_name: str = Field(
        ..., min_length=1, description="The name of the destination chapter. It will be created if it doesn't exist.",
    )
    order: int = Field(default=0, ge=0, description="The position of the cards in the new chapter (0 for top).")


class MoveCardsToChapterTool(BaseTool[MoveCardsParams]):
    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="moveCardsToChapter",
        description="Move cards to a chapter identified by name, creating the chapter if needed.",
        category="cards",
    )
    params_schema: ClassVar[type[MoveCardsParams]] = MoveCardsParams

    async def _run(self, params: MoveCardsParams) -> ToolOutput:
        resolver = await load_chapter_resolver(self.client, params.deck_id, self.policy)
        to_chapter_id = await resolver.resolve(params.to_chapter_name)
        await self._call(
            lambda: self.client.move_cards(
                params.deck_id, params.from_chapter_id, to_chapter_id, params.card_ids, params.order,
            ),
            "move cards",
        )
        return ToolOutput.ok(
            f'Successfully moved {len(params.card_ids)} card(s) to chapter "{params.to_chapter_name}" '
            f"(ID: {to_chapter_id})."
        )


class MoveOperation(ToolParams):
    from_chapter_id: str = Field(..., description="The ID of the source chapter.")
    to_chapter_name: str = Field(
        ..., min_length=1, description="The name of the destination chapter (will be created if it doesn't exist).",
    )
    card_ids: list[str] = Field(..., min_length=1, description="Array of card IDs to move.")
    order: int = Field(default=0, ge=0, description="Position in the destination chapter (0 for top).")


class BatchMoveCardsParams(BatchParams):
    deck_id: str = Field(..., description="The ID of the deck containing all the cards.")
    operations: list[MoveOperation] = Field(..., min_length=1, description="Array of move operations to perform.")


class BatchMoveCardsTool(BaseTool[BatchMoveCardsParams]):
    """Run several move operations; destination chapters are resolved by name."""

    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="batchMoveCards",
        description="Move groups of cards to different chapters (by name) in one call.",
        category="cards",
    )
    params_schema: ClassVar[type[BatchMoveCardsParams]] = BatchMoveCardsParams
    failure_prefix: ClassVar[str] = "Batch move operation failed"
    default_scheduling: ClassVar[Scheduling] = Scheduling.SERIAL

    async def _run(self, params: BatchMoveCardsParams) -> ToolOutput:
        resolver = await load_chapter_resolver(self.client, params.deck_id, self.policy)
        report = await run_batch(
            params.operations,
            lambda op, chapter_id: self.client.move_cards(
                params.deck_id, op.from_chapter_id, chapter_id, op.card_ids, op.order,
            ),
            self._batch_config(params.scheduling),
            resolver=resolver,
            target=lambda op: op.to_chapter_name,
            key=lambda op: op.to_chapter_name,
            label=self.metadata.name,
        )
        ops = params.operations
        lines = [
            f"Batch move completed: {report.succeeded_count} operations succeeded, {report.failed_count} failed.",
            *(f'Created new chapter: "{ch.name}" (ID: {ch.id})' for ch in resolver.created),
            *(f'✅ Moved {len(ops[o.index].card_ids)} card(s) to "{o.key}"' if o.is_ok
              else f'❌ Operation failed for "{o.key}": {o.message}' for o in report),
        ]
        return ToolOutput(text="\n".join(lines), is_error=report.is_error)


# ═══════════════════════════════════════════════════════════════════════════════
# Adding Cards Across Chapters
# ═══════════════════════════════════════════════════════════════════════════════


class ChapterCards(ToolParams):
    chapter_name: str = Field(
        ..., min_length=1, description="The name of the chapter to add cards to. Will be created if it doesn't exist.",
    )
    cards: list[TextCard] = Field(..., min_length=1, description="An array of card objects to add to this chapter.")


class BatchAddCardsToChaptersParams(BatchParams):
    deck_id: str = Field(..., description="The ID of the deck to add the cards to.")
    chapter_cards: list[ChapterCards] = Field(
        ..., min_length=1,
        description="An array of objects, each containing a chapter name and cards to add to that chapter.",
    )


class _PlacedCard(NamedTuple):
    group: int
    chapter_name: str
    position: int
    card: TextCard


class BatchAddCardsToChaptersTool(BaseTool[BatchAddCardsToChaptersParams]):
    """Add cards to several chapters by name, creating missing chapters once.

    Every card is one batch item. A chapter that cannot be created is tried
    once; all of its cards count as failed and the output carries one line
    for the chapter.
    """

    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="batchAddCardsToChapters",
        description="Add text cards to multiple chapters (by name) in one call, creating chapters as needed.",
        category="cards",
    )
    params_schema: ClassVar[type[BatchAddCardsToChaptersParams]] = BatchAddCardsToChaptersParams
    failure_prefix: ClassVar[str] = "Failed to batch add cards to chapters"
    default_scheduling: ClassVar[Scheduling] = Scheduling.SERIAL

    async def _run(self, params: BatchAddCardsToChaptersParams) -> ToolOutput:
        resolver = await load_chapter_resolver(self.client, params.deck_id, self.policy)
        placed = [
            _PlacedCard(g, group.chapter_name, pos, card)
            for g, group in enumerate(params.chapter_cards)
            for pos, card in enumerate(group.cards, start=1)
        ]
        report = await run_batch(
            placed,
            lambda item, chapter_id: self.client.create_card(
                params.deck_id, chapter_id, item.card.render(),
                grammar_version=TEXT_GRAMMAR_VERSION, order=item.position,
            ),
            self._batch_config(params.scheduling),
            resolver=resolver,
            target=lambda item: item.chapter_name,
            key=lambda item: f"{item.chapter_name}#{item.position}",
            label=self.metadata.name,
        )

        created = resolver.created
        created_ids = {ch.name: ch.id for ch in created}
        lines = [
            f"Batch add operation completed: {report.succeeded_count} cards added successfully, "
            f"{report.failed_count} failed.",
            f"Created {len(created)} new chapter(s): {', '.join(ch.name for ch in created)}"
            if created else "No new chapters were created.",
            "",
        ]
        announced: set[str] = set()
        for g, group in enumerate(params.chapter_cards):
            name = group.chapter_name
            if name in created_ids and name not in announced:
                lines.append(f'📁 Created new chapter: "{name}" (ID: {created_ids[name]})')
                announced.add(name)
            outcomes = [o for o in report if placed[o.index].group == g]
            # attempts == 0: the chapter itself could not be created
            if unplaced := next((o for o in outcomes if o.is_err and o.attempts == 0), None):
                lines.append(f'❌ Failed to create chapter "{name}": {unplaced.message}')
            lines += [
                f'  ❌ Failed to create card "{placed[o.index].card.preview}..." in "{name}": {o.message}'
                for o in outcomes if o.is_err and o.attempts
            ]
            if ok := sum(1 for o in outcomes if o.is_ok):
                lines.append(f'  ✅ Successfully added {ok} card(s) to "{name}"')
        return ToolOutput(text="\n".join(lines), is_error=report.is_error)
