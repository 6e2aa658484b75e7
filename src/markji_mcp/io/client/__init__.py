"""Markji API client and remote models."""

from .markji import (
    DEFAULT_BASE_URL,
    DEFAULT_CHAPTER_NAME,
    Card,
    Chapter,
    Deck,
    Folder,
    MarkjiClient,
)

__all__ = ["MarkjiClient", "Folder", "Deck", "Chapter", "Card", "DEFAULT_BASE_URL", "DEFAULT_CHAPTER_NAME"]
