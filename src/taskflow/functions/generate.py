# src/taskflow/functions/generate.py

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any

from ..core.ports import LLMClient
from ..llm.client import complete_text

logger = logging.getLogger(__name__)

MAX_SUBTASKS = 7
MAX_TITLE_LEN = 120

SYSTEM_PROMPT = (
    "You are a planning assistant that breaks a task into subtasks.\n"
    f"Reply ONLY with a JSON array of 3 to {MAX_SUBTASKS} short, actionable subtask titles "
    "(strings), in the order they should be done. No prose, no numbering."
)

_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")

Response = tuple[int, dict[str, Any]]


def parse_subtasks(text: str) -> list[str]:
    """
    Extract subtask titles from a model reply.

    Prefers a JSON array anywhere in the text; falls back to one item per line.
    """
    raw = (text or "").strip()
    items: list[Any] = []

    start, end = raw.find("["), raw.rfind("]")
    if start != -1 and end > start:
        try:
            parsed = json.loads(raw[start : end + 1])
            if isinstance(parsed, list):
                items = parsed
        except ValueError:
            items = []

    if not items:
        items = [_BULLET_RE.sub("", line) for line in raw.splitlines()]

    out: list[str] = []
    seen: set[str] = set()
    for item in items:
        if isinstance(item, dict):
            item = item.get("title", "")
        title = str(item).strip().strip('"').strip()
        if not title:
            continue
        title = title[:MAX_TITLE_LEN]
        key = title.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(title)
        if len(out) >= MAX_SUBTASKS:
            break
    return out


async def handle_generate_subtasks(payload: Any, *, llm: LLMClient) -> Response:
    title = payload.get("taskTitle") if isinstance(payload, dict) else None
    if not isinstance(title, str) or not title.strip():
        return 400, {"error": "Task title is required"}

    messages = [{"role": "user", "content": title.strip()}]
    try:
        reply = await asyncio.to_thread(complete_text, llm, messages, SYSTEM_PROMPT)
    except RuntimeError as e:
        logger.error("generate-subtasks: LLM failed: %s", e)
        return 500, {"error": "Failed to generate subtasks"}

    subtasks = parse_subtasks(reply)
    if not subtasks:
        logger.info("generate-subtasks: model reply had no usable items")
        return 500, {"error": "Failed to generate subtasks"}

    logger.info("generate-subtasks: %d items for %r", len(subtasks), title.strip())
    return 200, {"subtasks": subtasks}
