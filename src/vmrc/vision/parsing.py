"""Parsing of vision-model responses into validated action plans.

Models are asked for ``{"summary": str, "actions": [InputEvent, ...]}``
but routinely wrap it in markdown, add prose, or emit half-broken JSON.
Parsing therefore narrows the text to the most likely JSON object first,
and when that still fails, salvages ``click``/``type``/``key`` fragments
with regular expressions. The salvage pass is best effort and will miss
actions written in other shapes; the raw text is always kept on the plan.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from vmrc.domain.models import (
    InputEvent,
    KeyEvent,
    MouseButtonEvent,
    MouseMoveEvent,
    TextEvent,
    VisionActionPlan,
    coerce_input_event,
)
from vmrc.errors import VMRCError

logger = logging.getLogger(__name__)

SALVAGE_SUMMARY = "Fallback parsed actions from non-JSON response"

_FENCED_JSON = re.compile(r"```json\s*(.+?)```", re.IGNORECASE | re.DOTALL)
_ACTION_FRAGMENT = re.compile(
    r'\{[^}]*?"?type"?\s*:\s*"?(click|type|key)"?[^}]*?\}', re.IGNORECASE
)
_NUMBER = r"(-?\d+(?:\.\d+)?)"
_X_FIELD = re.compile(r'"?x"?\s*:\s*' + _NUMBER, re.IGNORECASE)
_Y_FIELD = re.compile(r'"?y"?\s*:\s*' + _NUMBER, re.IGNORECASE)
_TEXT_FIELD = re.compile(r'"?text"?\s*:\s*"([^"]+)"', re.IGNORECASE)
_KEY_FIELD = re.compile(r'"?key"?\s*:\s*"([^"]+)"', re.IGNORECASE)


def extract_json_text(text: str) -> str | None:
    """Narrow model output to the JSON object it most likely contains.

    Prefers a fenced ```json block, then the span from the first ``{`` to
    the last ``}``. Returns None when neither is present.
    """
    fenced = _FENCED_JSON.search(text)
    if fenced:
        return fenced.group(1).strip()
    first = text.find("{")
    last = text.rfind("}")
    if first >= 0 and last > first:
        return text[first:last + 1].strip()
    return None


def normalize_actions(raw_actions: Any) -> list[InputEvent]:
    """Validate each candidate action, dropping the ones that do not fit."""
    if not isinstance(raw_actions, list):
        return []
    actions: list[InputEvent] = []
    for candidate in raw_actions:
        event = coerce_input_event(candidate)
        if event is None:
            logger.debug("Dropping invalid action: %r", candidate)
            continue
        actions.append(event)
    return actions


def salvage_actions(text: str) -> list[InputEvent]:
    """Recover actions from free text with regular expressions.

    - ``click`` with x/y becomes mouse-move, left down, left up.
    - ``type`` with text becomes a text event.
    - ``key`` with key becomes a key-down event.
    """
    actions: list[InputEvent] = []
    for match in _ACTION_FRAGMENT.finditer(text):
        fragment = match.group(0)
        kind = match.group(1).lower()
        if kind == "click":
            x = _X_FIELD.search(fragment)
            y = _Y_FIELD.search(fragment)
            if x and y:
                px, py = float(x.group(1)), float(y.group(1))
                actions.append(MouseMoveEvent(x=px, y=py))
                actions.append(MouseButtonEvent(button="left", action="down", x=px, y=py))
                actions.append(MouseButtonEvent(button="left", action="up", x=px, y=py))
        elif kind == "type":
            typed = _TEXT_FIELD.search(fragment)
            if typed:
                actions.append(TextEvent(text=typed.group(1)))
        elif kind == "key":
            key = _KEY_FIELD.search(fragment)
            if key:
                actions.append(KeyEvent(key=key.group(1), action="down"))
    return actions


def parse_vision_plan(text: str) -> VisionActionPlan:
    """Parse a model response into a VisionActionPlan.

    Raises:
        VisionParseError: If the text is not JSON and salvage finds
            nothing. The raw text travels on the exception.
    """
    candidate = extract_json_text(text) or text.strip()
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        salvaged = salvage_actions(text)
        if salvaged:
            logger.info("Salvaged %d actions from non-JSON vision response", len(salvaged))
            return VisionActionPlan(
                summary=SALVAGE_SUMMARY, actions=salvaged, raw=text, salvaged=True
            )
        raise VisionParseError(
            f"Failed to parse vision plan JSON: {e}", raw_response=text
        ) from e

    if isinstance(parsed, list):
        parsed = {"actions": parsed}
    if not isinstance(parsed, dict):
        parsed = {}

    if "actions" not in parsed:
        # Valid JSON that is not a plan, e.g. a single bare action object.
        salvaged = salvage_actions(text)
        if salvaged:
            return VisionActionPlan(
                summary=SALVAGE_SUMMARY, actions=salvaged, raw=text, salvaged=True
            )

    summary = parsed.get("summary")
    return VisionActionPlan(
        summary=summary if isinstance(summary, str) else None,
        actions=normalize_actions(parsed.get("actions")),
        raw=text,
    )


class VisionError(VMRCError):
    """Base class for vision planning failures."""


class VisionParseError(VisionError):
    """Raised when a model response yields no plan, even after salvage."""

    def __init__(self, message: str, raw_response: str = "") -> None:
        super().__init__(message)
        self.raw_response = raw_response
