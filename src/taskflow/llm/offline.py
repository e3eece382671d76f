# src/taskflow/llm/offline.py

from __future__ import annotations

import json
from collections.abc import Iterable

from ..core.ports import ChatMessage


class OfflineLLMClient:
    """
    Offline deterministic LLM client used for demos when no external API is configured.

    Behavior:
    - Subtask planner prompts -> a JSON array of generic steps for the task title
    - Anything else -> a short offline notice
    """

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        sp = (system_prompt or "").lower()

        user_text = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_text = m["content"]
                break

        if "subtask" in sp:
            title = user_text.strip().rstrip(".") or "the task"
            steps = [
                f"Clarify the goal of: {title}",
                "List what is needed to get started",
                "Do the first concrete step",
                "Review the result and finish up",
            ]
            yield json.dumps(steps, ensure_ascii=False)
            return

        yield (
            "Offline demo mode: no external LLM is configured.\n"
            "Set TASKFLOW_OPENAI_API_KEY (and TASKFLOW_LLM_MODELS) to enable real responses."
        )
