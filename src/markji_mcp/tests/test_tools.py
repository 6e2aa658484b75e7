"""End-to-end tool tests through the registry against an in-memory Markji."""

from __future__ import annotations

import orjson
import pytest

from markji_mcp.foundation.errors import ErrorCode, RemoteError
from markji_mcp.foundation.registry import ToolRegistry
from markji_mcp.io.client import Card, Deck, Folder

DECK = "deck-1"


def rejected(message: str) -> RemoteError:
    return RemoteError(message, ErrorCode.REJECTED, kind="response")


# ═════════════════════════════════════════════════════════════════════════════
# Decks & Folders
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_list_decks_groups_by_folder(markji, registry: ToolRegistry) -> None:
    markji.folders = [
        Folder(id="root-id", name="root", items=[{"object_id": "d1", "object_class": "DECK"}]),
        Folder(id="f1", name="Languages", items=[{"object_id": "d2", "object_class": "DECK"}]),
    ]
    markji.decks = [Deck(id="d1", name="Loose"), Deck(id="d2", name="French")]

    output = await registry.execute("listDecks", {})

    assert not output.is_error
    assert orjson.loads(output.text) == [
        {"deckId": "d2", "deckName": "French", "folderId": "f1", "folderName": "Languages"},
        {"deckId": "d1", "deckName": "Loose", "folderId": None, "folderName": "未分类"},
    ]


@pytest.mark.asyncio
async def test_list_decks_empty(registry: ToolRegistry) -> None:
    output = await registry.execute("listDecks", {})
    assert output.text == "No decks found."


@pytest.mark.asyncio
async def test_list_decks_failure(markji, registry: ToolRegistry) -> None:
    markji.fail("list_decks", rejected("Invalid token"))

    output = await registry.execute("listDecks", {})

    assert output.is_error
    assert output.text == "Failed to list decks: Invalid token"


@pytest.mark.asyncio
async def test_create_deck_with_default_chapter(markji, registry: ToolRegistry) -> None:
    output = await registry.execute("createDeck", {"name": "Spanish", "folderId": "f1"})

    payload = orjson.loads(output.text)
    assert not output.is_error
    assert payload["deckName"] == "Spanish"
    assert payload["defaultChapterName"] == "默认章节"
    assert payload["message"] == f"Successfully created deck with ID: {payload['deckId']}"


@pytest.mark.asyncio
async def test_create_deck_chapter_failure_is_partial(markji, registry: ToolRegistry) -> None:
    markji.fail("create_chapter", rejected("Chapter service unavailable"))

    output = await registry.execute("createDeck", {"name": "Spanish", "folderId": "f1"})

    payload = orjson.loads(output.text)
    assert output.is_error
    assert payload["warning"] == "Chapter creation failed: Chapter service unavailable"
    assert payload["message"].endswith("but failed to create a default chapter.")


# ═════════════════════════════════════════════════════════════════════════════
# Chapters
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_add_chapters_partial_failure(markji, registry: ToolRegistry) -> None:
    markji.fail("create_chapter", rejected("Name too long"), match="Two")

    output = await registry.execute("addChapters", {
        "deckId": DECK, "chapters": [{"name": "One"}, {"name": "Two"}, {"name": "Three"}],
    })

    payload = orjson.loads(output.text)
    lines = payload["summary"].splitlines()
    assert output.is_error
    assert lines[0] == "Batch operation summary: 2 succeeded, 1 failed."
    assert lines[2] == '❌ Failed to create chapter "Two": Name too long'
    assert sorted(payload["createdChapters"]) == ["One", "Three"]


@pytest.mark.asyncio
async def test_add_chapters_accepts_single_object(markji, registry: ToolRegistry) -> None:
    output = await registry.execute("addChapters", {"deckId": DECK, "chapters": {"name": "Only"}})

    assert not output.is_error
    assert list(orjson.loads(output.text)["createdChapters"]) == ["Only"]


@pytest.mark.asyncio
async def test_list_chapters(markji, registry: ToolRegistry) -> None:
    markji.add_chapter("Intro", ["k1", "k2"], chapter_id="c1")

    output = await registry.execute("listChapters", {"deckId": DECK})

    assert orjson.loads(output.text) == [{"id": "c1", "name": "Intro", "cardCount": 2, "cardIds": ["k1", "k2"]}]


@pytest.mark.asyncio
async def test_list_chapters_empty_and_failure(markji, registry: ToolRegistry) -> None:
    empty = await registry.execute("listChapters", {"deckId": DECK})
    assert (empty.is_error, empty.text) == (True, f"No chapters found for deck {DECK}.")

    markji.fail("list_chapters", RemoteError("Deck not found", ErrorCode.NOT_FOUND, status_code=404))
    failed = await registry.execute("listChapters", {"deckId": DECK})
    assert failed.text == f"Failed to list chapters for deck {DECK}: Deck not found"


# ═════════════════════════════════════════════════════════════════════════════
# Adding Cards
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_add_text_cards_go_to_last_chapter_in_order(markji, registry: ToolRegistry) -> None:
    markji.add_chapter("First", chapter_id="c1")
    markji.add_chapter("Last", chapter_id="c2")

    output = await registry.execute("addTextCards", {"deckId": DECK, "cards": [
        {"content": "Q1", "backContent": "A1"},
        {"content": "Q2"},
    ]})

    assert not output.is_error
    assert output.text.splitlines()[0] == "Batch operation summary: 2 succeeded, 0 failed."
    created = [(args[1], args[2], kw["order"]) for name, args, kw in markji.calls if name == "create_card"]
    assert created == [("c2", "Q1\n---\nA1", 1), ("c2", "Q2", 2)]


@pytest.mark.asyncio
async def test_add_text_cards_isolates_failures(markji, registry: ToolRegistry) -> None:
    markji.add_chapter("Only", chapter_id="c1")
    markji.fail("create_card", rejected("Content too long"), match="A very long question body")

    output = await registry.execute("addTextCards", {"deckId": DECK, "chapterId": "c1", "cards": [
        {"content": "Q1"}, {"content": "A very long question body"}, {"content": "Q3"},
    ]})

    lines = output.text.splitlines()
    assert output.is_error
    assert lines[0] == "Batch operation summary: 2 succeeded, 1 failed."
    assert lines[2] == '❌ Failed to create card "A very long question...": Content too long'
    assert lines[1].startswith("✅ Successfully created card: card-")
    assert markji.count("chapter_ids") == 0


@pytest.mark.asyncio
async def test_add_text_cards_retries_rate_limits(markji, registry: ToolRegistry) -> None:
    markji.add_chapter("Only", chapter_id="c1")
    limit = RemoteError("Too many requests", ErrorCode.RATE_LIMITED, status_code=429)
    markji.fail("create_card", limit, limit)

    output = await registry.execute("addTextCards", {"deckId": DECK, "cards": {"content": "Q"}})

    assert not output.is_error
    assert markji.count("create_card") == 3


@pytest.mark.asyncio
async def test_add_text_cards_without_chapters(registry: ToolRegistry) -> None:
    output = await registry.execute("addTextCards", {"deckId": DECK, "cards": [{"content": "Q"}]})

    assert output.is_error
    assert output.text == f"Failed to add text cards: No chapters found for deck {DECK}."


@pytest.mark.asyncio
async def test_add_image_card(markji, registry: ToolRegistry) -> None:
    markji.add_chapter("Only", chapter_id="c1")

    output = await registry.execute("addImageCard", {
        "deckId": DECK, "imageUrl": "https://img.example.com/cat.png", "caption": "A cat",
    })

    (args,) = markji.args_of("create_card")
    assert args == (DECK, "c1", "A cat\n[Pic#file-1#]")
    assert output.text.startswith("Successfully created image card with ID: card-")


@pytest.mark.asyncio
async def test_add_image_card_rejects_non_http_url(registry: ToolRegistry) -> None:
    output = await registry.execute("addImageCard", {"deckId": DECK, "imageUrl": "file:///etc/passwd"})

    assert output.is_error
    assert "Invalid parameters" in output.text


# ═════════════════════════════════════════════════════════════════════════════
# Reading, Updating & Deleting
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_get_cards_partial(markji, registry: ToolRegistry) -> None:
    markji.cards["k1"] = Card(id="k1", content="Q", grammar_version=3, created_at="2024-01-01")

    output = await registry.execute("getCards", {"deckId": DECK, "cardIds": ["k1", "missing"]})

    payload = orjson.loads(output.text)
    assert output.is_error
    assert payload["summary"] == "Retrieved 1 card(s) successfully, 1 failed."
    assert payload["cards"] == [
        {"cardId": "k1", "content": "Q", "grammarVersion": 3, "createdAt": "2024-01-01", "updatedAt": None},
        {"cardId": "missing", "error": "Card not found"},
    ]


@pytest.mark.asyncio
async def test_get_cards_requires_ids(registry: ToolRegistry) -> None:
    output = await registry.execute("getCards", {"deckId": DECK, "cardIds": []})
    assert output.is_error and "cardIds" in output.text


@pytest.mark.asyncio
async def test_update_card_keeps_grammar_version(markji, registry: ToolRegistry) -> None:
    markji.cards["k1"] = Card(id="k1", content="old", grammar_version=2)

    output = await registry.execute("updateCard", {
        "deckId": DECK, "cardId": "k1", "content": "new", "backContent": "back",
    })

    assert output.text == "Successfully updated card k1"
    assert markji.args_of("update_card") == [(DECK, "k1", "new\n---\nback", 2)]


@pytest.mark.asyncio
async def test_batch_update_cards(markji, registry: ToolRegistry) -> None:
    markji.cards["k1"] = Card(id="k1", content="old", grammar_version=3)

    output = await registry.execute("batchUpdateCards", {"deckId": DECK, "updates": [
        {"cardId": "k1", "content": "new"},
        {"cardId": "k2", "content": "other"},
    ]})

    assert output.text.splitlines() == [
        "Batch update completed: 1 succeeded, 1 failed.",
        "✅ Successfully updated card: k1",
        "❌ Failed to update card k2: Card not found",
    ]


@pytest.mark.asyncio
async def test_delete_cards(markji, registry: ToolRegistry) -> None:
    markji.add_chapter("Intro", ["k1", "k2"], chapter_id="c1")

    output = await registry.execute("deleteCards", {"deckId": DECK, "cardIds": ["k1", "ghost"]})

    assert output.text.splitlines() == [
        "Delete operation completed: 1 succeeded, 1 failed.",
        "✅ Successfully deleted card: k1",
        "❌ Failed to delete card ghost: Card ghost not found in any chapter.",
    ]
    assert markji.chapters["c1"][1] == ["k2"]


@pytest.mark.asyncio
async def test_delete_cards_setup_failure_aborts(markji, registry: ToolRegistry) -> None:
    markji.fail("list_chapters", rejected("Deck archived"))

    output = await registry.execute("deleteCards", {"deckId": DECK, "cardIds": ["k1"]})

    assert output.is_error
    assert output.text == "Failed to delete cards: Deck archived"
    assert markji.count("delete_card") == 0


# ═════════════════════════════════════════════════════════════════════════════
# Moving Cards
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_move_cards_to_existing_chapter(markji, registry: ToolRegistry) -> None:
    markji.add_chapter("Intro", ["k1", "k2"], chapter_id="c1")
    markji.add_chapter("Later", chapter_id="c2")

    output = await registry.execute("moveCardsToChapter", {
        "deckId": DECK, "fromChapterId": "c1", "cardIds": ["k1"], "toChapterName": "Later",
    })

    assert output.text == 'Successfully moved 1 card(s) to chapter "Later" (ID: c2).'
    assert markji.count("create_chapter") == 0
    assert markji.chapters["c2"][1] == ["k1"]


@pytest.mark.asyncio
async def test_move_cards_setup_failure(markji, registry: ToolRegistry) -> None:
    markji.fail("list_chapters", rejected("Deck archived"))

    output = await registry.execute("moveCardsToChapter", {
        "deckId": DECK, "fromChapterId": "c1", "cardIds": ["k1"], "toChapterName": "Later",
    })

    assert output.text == "Operation failed: Deck archived"


@pytest.mark.asyncio
async def test_batch_move_creates_shared_chapter_once(markji, registry: ToolRegistry) -> None:
    markji.add_chapter("Intro", ["k1", "k2", "k3"], chapter_id="c1")

    output = await registry.execute("batchMoveCards", {"deckId": DECK, "operations": [
        {"fromChapterId": "c1", "toChapterName": "History", "cardIds": ["k1"]},
        {"fromChapterId": "c1", "toChapterName": "History", "cardIds": ["k2", "k3"]},
    ]})

    lines = output.text.splitlines()
    assert markji.args_of("create_chapter") == [(DECK, "History")]
    assert lines[0] == "Batch move completed: 2 operations succeeded, 0 failed."
    assert lines[1].startswith('Created new chapter: "History" (ID: ')
    assert lines[2:] == ['✅ Moved 1 card(s) to "History"', '✅ Moved 2 card(s) to "History"']


@pytest.mark.asyncio
async def test_batch_move_isolates_failures(markji, registry: ToolRegistry) -> None:
    markji.add_chapter("Intro", ["k1"], chapter_id="c1")
    markji.add_chapter("Later", chapter_id="c2")

    output = await registry.execute("batchMoveCards", {"deckId": DECK, "scheduling": "concurrent", "operations": [
        {"fromChapterId": "c1", "toChapterName": "Later", "cardIds": ["k1"]},
        {"fromChapterId": "nope", "toChapterName": "Later", "cardIds": ["k9"]},
    ]})

    assert output.is_error
    assert output.text.splitlines()[0] == "Batch move completed: 1 operations succeeded, 1 failed."


@pytest.mark.asyncio
async def test_batch_add_cards_to_chapters(markji, registry: ToolRegistry) -> None:
    markji.add_chapter("Intro", chapter_id="c1")
    markji.fail("create_card", rejected("Duplicate card"), match="Dup")

    output = await registry.execute("batchAddCardsToChapters", {"deckId": DECK, "chapterCards": [
        {"chapterName": "Intro", "cards": [{"content": "Q1"}]},
        {"chapterName": "History", "cards": [{"content": "Dup"}, {"content": "Q3", "backContent": "A3"}]},
    ]})

    lines = output.text.splitlines()
    history_id = next(cid for cid, (name, _) in markji.chapters.items() if name == "History")
    assert output.is_error
    assert lines == [
        "Batch add operation completed: 2 cards added successfully, 1 failed.",
        "Created 1 new chapter(s): History",
        "",
        '  ✅ Successfully added 1 card(s) to "Intro"',
        f'📁 Created new chapter: "History" (ID: {history_id})',
        '  ❌ Failed to create card "Dup..." in "History": Duplicate card',
        '  ✅ Successfully added 1 card(s) to "History"',
    ]
    orders = [kw["order"] for name, _, kw in markji.calls if name == "create_card"]
    assert orders == [1, 1, 2]


@pytest.mark.asyncio
async def test_batch_add_without_new_chapters(markji, registry: ToolRegistry) -> None:
    markji.add_chapter("Intro", chapter_id="c1")

    output = await registry.execute("batchAddCardsToChapters", {"deckId": DECK, "chapterCards": [
        {"chapterName": "Intro", "cards": [{"content": "Q1"}]},
    ]})

    assert output.text.splitlines()[1] == "No new chapters were created."


@pytest.mark.asyncio
async def test_batch_add_failed_chapter_is_tried_once(markji, registry: ToolRegistry) -> None:
    markji.add_chapter("Intro", chapter_id="c1")
    busy = [RemoteError("Too many requests", ErrorCode.RATE_LIMITED, status_code=429) for _ in range(3)]
    markji.fail("create_chapter", *busy, match="Bad")

    output = await registry.execute("batchAddCardsToChapters", {"deckId": DECK, "chapterCards": [
        {"chapterName": "Bad", "cards": [{"content": f"Q{n}"} for n in range(4)]},
        {"chapterName": "Intro", "cards": [{"content": "Q9"}]},
    ]})

    assert output.is_error
    assert markji.count("create_chapter") == 3
    assert output.text.splitlines() == [
        "Batch add operation completed: 1 cards added successfully, 4 failed.",
        "No new chapters were created.",
        "",
        '❌ Failed to create chapter "Bad": Too many requests',
        '  ✅ Successfully added 1 card(s) to "Intro"',
    ]


# ═════════════════════════════════════════════════════════════════════════════
# Registry
# ═════════════════════════════════════════════════════════════════════════════


def test_registry_has_every_tool(registry: ToolRegistry) -> None:
    assert sorted(registry.names()) == sorted([
        "listDecks", "listFolders", "createDeck", "addChapters", "listChapters",
        "addTextCards", "addImageCard", "getCards", "updateCard", "batchUpdateCards",
        "deleteCards", "moveCardsToChapter", "batchMoveCards", "batchAddCardsToChapters",
    ])


@pytest.mark.asyncio
async def test_unknown_tool(registry: ToolRegistry) -> None:
    output = await registry.execute("explode", {})

    assert output.is_error
    assert output.text.startswith("**Tool Error (explode):** Tool 'explode' not found")


@pytest.mark.asyncio
async def test_missing_required_parameter(registry: ToolRegistry) -> None:
    output = await registry.execute("listChapters", {})

    assert output.is_error
    assert "Invalid parameters: deckId: Field required" in output.text


@pytest.mark.asyncio
async def test_unexpected_exception_is_rendered(markji, registry: ToolRegistry) -> None:
    markji.fail("list_folders", ZeroDivisionError("division by zero"))

    output = await registry.execute("listFolders", {})

    assert output.is_error
    assert "Execution failed: division by zero" in output.text
