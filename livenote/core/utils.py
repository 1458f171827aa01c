"""Shared utility functions for LiveNote."""

import inspect
import re
import uuid
from datetime import UTC, datetime


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences wrapping JSON from LLM responses."""
    text = text.strip()
    if text.startswith("```"):
        text = re.sub(r"^```\w*\n?", "", text)
        text = re.sub(r"\n?```$", "", text)
    return text.strip()


def new_id() -> str:
    """Return a fresh opaque identifier for blocks, documents and messages."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(UTC)


async def maybe_await(result) -> None:
    """Await ``result`` when a callback turned out to be a coroutine function."""
    if inspect.isawaitable(result):
        await result
