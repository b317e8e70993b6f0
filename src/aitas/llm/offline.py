# src/aitas/llm/offline.py

from __future__ import annotations


class OfflineReasoner:
    """
    Offline deterministic reasoner used when no backend is configured.

    Behavior:
    - Category classifier prompts -> {"action": "fallback"}
    - Task review prompts -> "{}" (parsed as neutral perspectives)
    """

    name = "offline"

    async def complete(self, system_prompt: str, prompt: str, timeout: float) -> str:
        sp = (system_prompt or "").lower()

        if "category classifier" in sp:
            return '{"action": "fallback"}'

        return "{}"
