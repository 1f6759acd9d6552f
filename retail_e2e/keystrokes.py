"""
Keystroke Sequences

Parses type sequences such as "Keyboard{enter}" into plain text runs and
named key presses, and applies them to Playwright locators.
"""

import re
from dataclasses import dataclass
from typing import List

TEXT = "text"
KEY = "key"

SPECIAL_KEYS = {
    "enter": "Enter",
    "esc": "Escape",
    "backspace": "Backspace",
    "del": "Delete",
    "tab": "Tab",
    "leftarrow": "ArrowLeft",
    "rightarrow": "ArrowRight",
    "uparrow": "ArrowUp",
    "downarrow": "ArrowDown",
    "home": "Home",
    "end": "End",
    "pageup": "PageUp",
    "pagedown": "PageDown",
    "movetostart": "Home",
    "movetoend": "End",
    "selectall": "ControlOrMeta+A",
}

_TOKEN_RE = re.compile(r"\{(\{|[^{}]*)\}")


class KeystrokeError(ValueError):
    """Raised for sequences that cannot be typed."""


@dataclass(frozen=True)
class Keystroke:
    """A run of literal text or a single named key."""

    kind: str
    value: str


def parse_keystrokes(sequence: str) -> List[Keystroke]:
    """
    Split a type sequence into keystrokes.

    "{{}" types a literal "{". Adjacent text is merged.

    Raises:
        KeystrokeError: empty sequence, unknown token or unclosed "{"
    """
    if not sequence:
        raise KeystrokeError("Cannot type an empty sequence")

    strokes: List[Keystroke] = []
    pos = 0

    def add_text(text: str) -> None:
        if not text:
            return
        if strokes and strokes[-1].kind == TEXT:
            strokes[-1] = Keystroke(TEXT, strokes[-1].value + text)
        else:
            strokes.append(Keystroke(TEXT, text))

    while pos < len(sequence):
        brace = sequence.find("{", pos)
        if brace == -1:
            add_text(sequence[pos:])
            break

        add_text(sequence[pos:brace])
        match = _TOKEN_RE.match(sequence, brace)
        if not match:
            raise KeystrokeError(f"Unclosed special key at position {brace}: {sequence[brace:]!r}")

        token = match.group(1)
        if token == "{":
            add_text("{")
        else:
            key = SPECIAL_KEYS.get(token.lower())
            if key is None:
                raise KeystrokeError(f"Unknown special key: {{{token}}}")
            strokes.append(Keystroke(KEY, key))
        pos = match.end()

    return strokes


def type_sequence(locator, sequence: str, delay: float = 0) -> List[Keystroke]:
    """Type a sequence into a sync Playwright locator."""
    strokes = parse_keystrokes(sequence)
    for stroke in strokes:
        if stroke.kind == TEXT:
            locator.press_sequentially(stroke.value, delay=delay)
        else:
            locator.press(stroke.value)
    return strokes


async def type_sequence_async(locator, sequence: str, delay: float = 0) -> List[Keystroke]:
    """Type a sequence into an async Playwright locator."""
    strokes = parse_keystrokes(sequence)
    for stroke in strokes:
        if stroke.kind == TEXT:
            await locator.press_sequentially(stroke.value, delay=delay)
        else:
            await locator.press(stroke.value)
    return strokes
