"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from vmrc.config.settings import (
    OCRConfig,
    Settings,
    SpiceConfig,
    VisionConfig,
    load_settings,
)
from vmrc.domain.models import BackendKind
from vmrc.errors import ConfigError

OVERRIDE_VARS = [
    "VMRC_BACKEND",
    "SPICE_DOMAIN",
    "VMRC_SPICE_DOMAIN",
    "VMRC_VNC_HOST",
    "VMRC_VNC_PORT",
    "VMRC_VNC_PASSWORD",
    "VMRC_VISION_MODEL",
    "VMRC_VISION_BASE_URL",
    "VMRC_VISION_TIMEOUT",
    "VMRC_VISION_MAX_WIDTH",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Run from an empty directory with no override variables set."""
    for name in OVERRIDE_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


class TestSettings:
    def test_default_settings(self) -> None:
        settings = Settings()
        assert settings.default_backend is BackendKind.MOCK
        assert settings.frame_interval == 1.0
        assert settings.vnc.host == "127.0.0.1"
        assert settings.vnc.port == 5901
        assert settings.spice.domain is None

    def test_section_defaults(self) -> None:
        spice = SpiceConfig()
        assert spice.input_retry_count == 2
        assert spice.guest_screenshot_width == 800
        vision = VisionConfig()
        assert vision.model == "qwen3-vl:8b"
        assert vision.max_image_width == 1024
        assert OCRConfig().psm == 6

    def test_invalid_values_rejected(self) -> None:
        with pytest.raises(ValueError):
            OCRConfig(psm=20)
        with pytest.raises(ValueError):
            SpiceConfig(port=0)


class TestLoadSettings:
    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        settings = load_settings(tmp_path / "nonexistent.yaml")
        assert settings.default_backend is BackendKind.MOCK

    def test_yaml_populates_sections(self, tmp_path: Path) -> None:
        path = tmp_path / "vmrc.yaml"
        path.write_text(
            "default_backend: spice\n"
            "frame_interval: 0.5\n"
            "spice:\n"
            "  domain: win11\n"
            "  use_guest_screenshot: true\n"
            "vision:\n"
            "  model: llava:13b\n"
            "  temperature: 0.2\n"
        )
        settings = load_settings(path)
        assert settings.default_backend is BackendKind.SPICE
        assert settings.frame_interval == 0.5
        assert settings.spice.domain == "win11"
        assert settings.spice.use_guest_screenshot is True
        assert settings.vision.model == "llava:13b"
        assert settings.vision.temperature == 0.2

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "vmrc.yaml"
        path.write_text("spice:\n  domain: from-yaml\nvnc:\n  port: 5902\n")
        monkeypatch.setenv("VMRC_VNC_PORT", "5999")
        monkeypatch.setenv("VMRC_VNC_PASSWORD", "hunter2")
        monkeypatch.setenv("VMRC_VISION_TIMEOUT", "12.5")
        monkeypatch.setenv("VMRC_BACKEND", "vnc")

        settings = load_settings(path)
        assert settings.default_backend is BackendKind.VNC
        assert settings.vnc.port == 5999
        assert settings.vnc.password is not None
        assert settings.vnc.password.get_secret_value() == "hunter2"
        assert settings.vision.timeout == 12.5
        assert settings.spice.domain == "from-yaml"

    def test_prefixed_spice_domain_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPICE_DOMAIN", "plain")
        assert load_settings().spice.domain == "plain"
        monkeypatch.setenv("VMRC_SPICE_DOMAIN", "prefixed")
        assert load_settings().spice.domain == "prefixed"

    def test_dotenv_is_loaded(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / ".env").write_text("# local\nVMRC_VISION_MODEL=moondream\n")
        # empty values are overwritten; monkeypatch restores the variable afterwards
        monkeypatch.setenv("VMRC_VISION_MODEL", "")
        settings = load_settings()
        assert settings.vision.model == "moondream"

    def test_malformed_yaml_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("spice: [unclosed\n")
        with pytest.raises(ConfigError):
            load_settings(path)

    def test_non_mapping_yaml_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            load_settings(path)

    def test_invalid_value_raises_config_error(self, tmp_path: Path) -> None:
        path = tmp_path / "vmrc.yaml"
        path.write_text("default_backend: telnet\n")
        with pytest.raises(ConfigError):
            load_settings(path)
