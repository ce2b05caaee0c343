"""Key name tables and coordinate scaling for the backend drivers.

The backends use disjoint key-naming conventions:

- QEMU QMP ``input-send-event`` takes QKeyCode names (``ret``, ``spc``, ``a``).
- ``virsh send-key`` takes Linux input codes (``KEY_ENTER``, ``KEY_A``).
- vncdo takes X keysym-like names joined with ``+`` (``ctrl+alt+del``).

Lookups are case-insensitive. Unmapped keys return None; drivers drop
them with a warning.
"""

from __future__ import annotations

import math

# Largest value of QEMU's absolute pointer axes
ABS_MAX_RANGE: int = 65535

# ---------------------------------------------------------------------------
# QMP QKeyCode names
# ---------------------------------------------------------------------------

QMP_KEY_ALIASES: dict[str, str] = {
    "enter": "ret",
    "return": "ret",
    "tab": "tab",
    "esc": "esc",
    "escape": "esc",
    "backspace": "backspace",
    "delete": "delete",
    "space": "spc",
    " ": "spc",
    "up": "up",
    "down": "down",
    "left": "left",
    "right": "right",
    "home": "home",
    "end": "end",
    "pageup": "pgup",
    "pagedown": "pgdn",
    "shift": "shift",
    "ctrl": "ctrl",
    "control": "ctrl",
    "alt": "alt",
    "meta": "meta_l",
    "super": "meta_l",
    "win": "meta_l",
    "dot": "dot",
    ".": "dot",
    "-": "minus",
    "minus": "minus",
    "=": "equal",
    "equal": "equal",
    "/": "slash",
    "slash": "slash",
    ",": "comma",
    "comma": "comma",
    ";": "semicolon",
    "'": "apostrophe",
    "[": "bracket_left",
    "]": "bracket_right",
    "\\": "backslash",
    "`": "grave_accent",
}
QMP_KEY_ALIASES.update({f"f{i}": f"f{i}" for i in range(1, 13)})
QMP_KEY_ALIASES.update({"\n": "ret", "\t": "tab"})

# Characters that require Shift to type (US keyboard layout)
SHIFT_CHARS: dict[str, str] = {
    "!": "1", "@": "2", "#": "3", "$": "4",
    "%": "5", "^": "6", "&": "7", "*": "8",
    "(": "9", ")": "0", "_": "-", "+": "=",
    "{": "[", "}": "]", "|": "\\",
    ":": ";", '"': "'", "~": "`",
    "<": ",", ">": ".", "?": "/",
}

# ---------------------------------------------------------------------------
# virsh send-key (Linux input event codes)
# ---------------------------------------------------------------------------

VIRSH_KEY_ALIASES: dict[str, str] = {
    "enter": "KEY_ENTER",
    "return": "KEY_ENTER",
    "tab": "KEY_TAB",
    "esc": "KEY_ESC",
    "escape": "KEY_ESC",
    "backspace": "KEY_BACKSPACE",
    "delete": "KEY_DELETE",
    "space": "KEY_SPACE",
    " ": "KEY_SPACE",
    "up": "KEY_UP",
    "down": "KEY_DOWN",
    "left": "KEY_LEFT",
    "right": "KEY_RIGHT",
    "home": "KEY_HOME",
    "end": "KEY_END",
    "pageup": "KEY_PAGEUP",
    "pagedown": "KEY_PAGEDOWN",
    "shift": "KEY_LEFTSHIFT",
    "ctrl": "KEY_LEFTCTRL",
    "control": "KEY_LEFTCTRL",
    "alt": "KEY_LEFTALT",
    "meta": "KEY_LEFTMETA",
    "super": "KEY_LEFTMETA",
    "win": "KEY_LEFTMETA",
}
VIRSH_KEY_ALIASES.update({f"f{i}": f"KEY_F{i}" for i in range(1, 13)})
VIRSH_KEY_ALIASES.update({"\n": "KEY_ENTER", "\t": "KEY_TAB"})

# Single punctuation characters send-key understands
VIRSH_PUNCTUATION: dict[str, str] = {
    ".": "KEY_DOT",
    "-": "KEY_MINUS",
    "=": "KEY_EQUAL",
    "/": "KEY_SLASH",
    ",": "KEY_COMMA",
}

# ---------------------------------------------------------------------------
# vncdo key names
# ---------------------------------------------------------------------------

VNC_KEY_ALIASES: dict[str, str] = {
    "return": "enter",
    "escape": "esc",
    "backspace": "bsp",
    "delete": "del",
    "pageup": "pgup",
    "pagedown": "pgdn",
    "control": "ctrl",
    "win": "super",
    " ": "space",
}


def _is_ascii_alnum(char: str) -> bool:
    return char.isascii() and char.isalnum()


def key_to_qmp(key: str) -> str | None:
    """Convert a logical key name to a QMP QKeyCode, or None if unmapped."""
    if not key:
        return None
    normalized = key.lower()
    if normalized in QMP_KEY_ALIASES:
        return QMP_KEY_ALIASES[normalized]
    if len(normalized) == 1 and _is_ascii_alnum(normalized):
        return normalized
    return None


def char_to_qmp(char: str) -> tuple[str, bool] | None:
    """Convert one typed character to (qcode, needs_shift).

    Uppercase letters and shifted US-layout symbols report needs_shift.
    Returns None when the character has no mapping.
    """
    if len(char) != 1:
        return None
    if char in SHIFT_CHARS:
        base = key_to_qmp(SHIFT_CHARS[char])
        return (base, True) if base else None
    code = key_to_qmp(char)
    if code is None:
        return None
    return (code, char.isascii() and char.isupper())


def key_to_virsh(key: str) -> str | None:
    """Convert a logical key name to a virsh send-key code, or None."""
    if not key:
        return None
    normalized = key.lower()
    if normalized in VIRSH_KEY_ALIASES:
        return VIRSH_KEY_ALIASES[normalized]
    if len(normalized) == 1:
        if _is_ascii_alnum(normalized):
            return f"KEY_{normalized.upper()}"
        return VIRSH_PUNCTUATION.get(normalized)
    return None


def char_to_virsh(char: str) -> list[str] | None:
    """send-key codes that type one character, with shift held when needed."""
    if len(char) != 1:
        return None
    shifted = char in SHIFT_CHARS or (char.isascii() and char.isupper())
    code = key_to_virsh(SHIFT_CHARS.get(char, char))
    if code is None:
        return None
    return [VIRSH_KEY_ALIASES["shift"], code] if shifted else [code]


def keys_to_qmp(keys: list[str]) -> list[str]:
    """Map several key names, silently skipping unmapped ones."""
    return [code for code in (key_to_qmp(k) for k in keys) if code]


def keys_to_virsh(keys: list[str]) -> list[str]:
    return [code for code in (key_to_virsh(k) for k in keys) if code]


def vnc_key_combo(key: str, modifiers: list[str] | None = None) -> str:
    """Build a vncdo ``key`` argument such as ``ctrl+shift+t``."""
    parts = [m.lower() for m in (modifiers or [])] + [key.lower()]
    return "+".join(VNC_KEY_ALIASES.get(p, p) for p in parts)


def scale_absolute(logical: float, dimension: int, max_range: int = ABS_MAX_RANGE) -> int:
    """Scale a logical pixel coordinate into an absolute axis range.

    ``clamp(round(logical / dimension * max_range), 0, max_range)`` with
    exact halves rounded down, so the centre of a 1280 wide viewport maps
    to 32767 rather than 32768.
    """
    if dimension <= 0:
        raise ValueError(f"Viewport dimension must be positive, got {dimension}")
    scaled = math.ceil(logical / dimension * max_range - 0.5)
    return max(0, min(max_range, scaled))
