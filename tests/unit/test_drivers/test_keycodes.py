"""Tests for key tables and absolute coordinate scaling."""

from __future__ import annotations

import pytest

from vmrc.drivers.keycodes import (
    char_to_qmp,
    char_to_virsh,
    key_to_qmp,
    key_to_virsh,
    keys_to_qmp,
    scale_absolute,
    vnc_key_combo,
)


class TestScaleAbsolute:
    def test_centre_of_1280(self) -> None:
        assert scale_absolute(640, 1280) == 32767

    def test_edges(self) -> None:
        assert scale_absolute(0, 1280) == 0
        assert scale_absolute(1280, 1280) == 65535

    def test_clamped_out_of_range(self) -> None:
        assert scale_absolute(-50, 1280) == 0
        assert scale_absolute(5000, 1280) == 65535

    def test_custom_range(self) -> None:
        assert scale_absolute(50, 100, max_range=1000) == 500

    def test_rejects_empty_dimension(self) -> None:
        with pytest.raises(ValueError):
            scale_absolute(10, 0)


class TestQmpKeys:
    @pytest.mark.parametrize(
        "key,expected",
        [
            ("Enter", "ret"),
            ("ESC", "esc"),
            ("space", "spc"),
            ("PageDown", "pgdn"),
            ("F5", "f5"),
            ("a", "a"),
            ("Z", "z"),
            ("7", "7"),
            ("/", "slash"),
        ],
    )
    def test_known_keys(self, key: str, expected: str) -> None:
        assert key_to_qmp(key) == expected

    def test_unmapped_key_returns_none(self) -> None:
        assert key_to_qmp("hyperdrive") is None
        assert key_to_qmp("é") is None
        assert key_to_qmp("") is None

    def test_keys_to_qmp_skips_unmapped(self) -> None:
        assert keys_to_qmp(["ctrl", "bogus", "shift"]) == ["ctrl", "shift"]

    def test_char_to_qmp_shift(self) -> None:
        assert char_to_qmp("a") == ("a", False)
        assert char_to_qmp("A") == ("a", True)
        assert char_to_qmp("!") == ("1", True)
        assert char_to_qmp("?") == ("slash", True)
        assert char_to_qmp("\n") == ("ret", False)
        assert char_to_qmp("€") is None


class TestVirshKeys:
    @pytest.mark.parametrize(
        "key,expected",
        [
            ("enter", "KEY_ENTER"),
            ("Ctrl", "KEY_LEFTCTRL"),
            ("f12", "KEY_F12"),
            ("q", "KEY_Q"),
            ("Q", "KEY_Q"),
            ("3", "KEY_3"),
            (".", "KEY_DOT"),
            ("-", "KEY_MINUS"),
        ],
    )
    def test_known_keys(self, key: str, expected: str) -> None:
        assert key_to_virsh(key) == expected

    def test_unmapped_punctuation(self) -> None:
        assert key_to_virsh("@") is None

    def test_char_to_virsh_holds_shift(self) -> None:
        assert char_to_virsh("a") == ["KEY_A"]
        assert char_to_virsh("A") == ["KEY_LEFTSHIFT", "KEY_A"]
        assert char_to_virsh("?") == ["KEY_LEFTSHIFT", "KEY_SLASH"]
        assert char_to_virsh("@") == ["KEY_LEFTSHIFT", "KEY_2"]
        assert char_to_virsh("{") is None
        assert char_to_virsh("ab") is None


class TestVncCombo:
    def test_plain_key(self) -> None:
        assert vnc_key_combo("Enter") == "enter"

    def test_modifiers_joined(self) -> None:
        assert vnc_key_combo("T", ["Ctrl", "Shift"]) == "ctrl+shift+t"

    def test_aliases(self) -> None:
        assert vnc_key_combo("Delete", ["control", "alt"]) == "ctrl+alt+del"
