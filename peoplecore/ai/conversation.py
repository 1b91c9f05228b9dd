"""
PeopleCore HR Assistant
Conversation window.

The client resends prior turns with every request; only the most recent
``max_turns`` of them are carried into the model call, behind a freshly
built system turn.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

# Maximum prior turns sent to the model (context window management)
DEFAULT_MAX_TURNS = 10

_CARRIED_ROLES = {"user", "assistant"}


class ConversationWindow:
    """Bounds client-supplied history to the last ``max_turns`` turns."""

    def __init__(self, max_turns: int = DEFAULT_MAX_TURNS):
        self.max_turns = max(0, int(max_turns))

    @staticmethod
    def _normalise(turn) -> dict | None:
        if not isinstance(turn, dict):
            return None
        role = str(turn.get("role") or "").strip().lower()
        if role not in _CARRIED_ROLES:
            return None
        text = turn.get("text")
        if text is None:
            text = turn.get("content")
        if not isinstance(text, str) or not text.strip():
            return None
        return {"role": role, "content": text}

    def trim(self, prior_turns) -> list[dict]:
        """Drop system/unknown/empty turns, then keep the most recent ones."""
        history = []
        dropped = 0
        for turn in prior_turns or []:
            normalised = self._normalise(turn)
            if normalised is None:
                dropped += 1
                continue
            history.append(normalised)
        if dropped:
            logger.debug("Dropped %d unusable history turn(s)", dropped)

        if self.max_turns == 0:
            return []
        if len(history) > self.max_turns:
            history = history[-self.max_turns:]
        return history

    def build_messages(self, system_turn: dict, prior_turns, user_message: str) -> list[dict]:
        """Return ``[system, *last K prior turns, user]``."""
        messages = [system_turn]
        messages.extend(self.trim(prior_turns))
        messages.append({"role": "user", "content": user_message})
        return messages
