"""Configuration management for vmrc.

Loads settings from a YAML configuration file with environment variable
overrides for connection details and the vision model. Supports .env
files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings

from vmrc.domain.models import BackendKind
from vmrc.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/vmrc.yaml")


class MockConfig(BaseModel):
    label: str | None = Field(default=None)
    width: int | None = Field(default=None, gt=0)
    height: int | None = Field(default=None, gt=0)
    frame_interval: float | None = Field(default=None, gt=0)


class SpiceConfig(BaseModel):
    domain: str | None = Field(default=None, description="libvirt domain name")
    host: str | None = Field(default=None)
    port: int | None = Field(default=None, ge=1, le=65535)
    password: SecretStr | None = Field(default=None)
    absolute_mouse: bool = Field(default=True)
    input_retry_count: int = Field(default=2, ge=0)
    input_retry_delay: float = Field(default=0.06, ge=0)
    use_guest_screenshot: bool = Field(default=False)
    guest_screenshot_path: str = Field(default="C:\\Windows\\Temp\\vmrc_shot.png")
    guest_screenshot_width: int = Field(default=800, gt=0)
    virsh_path: str = Field(default="virsh")


class VncConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=5901, ge=1, le=65535)
    password: SecretStr | None = Field(default=None)
    vncdo_path: str = Field(default="vncdo")
    vncsnapshot_path: str = Field(default="vncsnapshot")
    input_retry_count: int = Field(default=2, ge=0)
    input_retry_delay: float = Field(default=0.06, ge=0)


class RdpConfig(BaseModel):
    host: str | None = Field(default=None)
    port: int = Field(default=3389, ge=1, le=65535)
    username: str | None = Field(default=None)
    password: SecretStr | None = Field(default=None)


class WebRtcConfig(BaseModel):
    signaling_url: str | None = Field(default=None)
    token: SecretStr | None = Field(default=None)


class CustomConfig(BaseModel):
    label: str | None = Field(default=None)


class VisionConfig(BaseModel):
    model: str = Field(default="qwen3-vl:8b")
    base_url: str | None = Field(default=None, description="Defaults to OLLAMA_HOST")
    system_prompt: str | None = Field(default=None)
    temperature: float | None = Field(default=None, ge=0)
    max_tokens: int | None = Field(default=None, gt=0)
    timeout: float = Field(default=30.0, gt=0)
    max_image_width: int = Field(default=1024, gt=0)


class OCRConfig(BaseModel):
    language: str = Field(default="eng")
    psm: int = Field(default=6, ge=0, le=13)
    oem: int | None = Field(default=None, ge=0, le=3)
    tesseract_path: str = Field(default="tesseract")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for vmrc.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "VMRC_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    default_backend: BackendKind = Field(default=BackendKind.MOCK)
    frame_interval: float = Field(default=1.0, gt=0, description="Seconds between frames")

    # Backend sections
    mock: MockConfig = Field(default_factory=MockConfig)
    spice: SpiceConfig = Field(default_factory=SpiceConfig)
    vnc: VncConfig = Field(default_factory=VncConfig)
    rdp: RdpConfig = Field(default_factory=RdpConfig)
    webrtc: WebRtcConfig = Field(default_factory=WebRtcConfig)
    custom: CustomConfig = Field(default_factory=CustomConfig)

    # Pipelines
    vision: VisionConfig = Field(default_factory=VisionConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults

    Raises:
        ConfigError: If the YAML file is malformed or a value is invalid.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    _load_dotenv()

    yaml_data: dict = {}
    if path.exists():
        try:
            with open(path) as f:
                yaml_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid configuration file {path}: {e}") from e
        if not isinstance(yaml_data, dict):
            raise ConfigError(f"Configuration file {path} must contain a mapping")
        logger.info("Loaded configuration from %s", path)
    else:
        logger.debug("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    try:
        return Settings(**yaml_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                if not os.environ.get(key):
                    os.environ[key] = value


# env var -> (section, field); section None means top level
_ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "VMRC_BACKEND": (None, "default_backend"),
    "SPICE_DOMAIN": ("spice", "domain"),
    "VMRC_SPICE_DOMAIN": ("spice", "domain"),
    "VMRC_VNC_HOST": ("vnc", "host"),
    "VMRC_VNC_PORT": ("vnc", "port"),
    "VMRC_VNC_PASSWORD": ("vnc", "password"),
    "VMRC_VISION_MODEL": ("vision", "model"),
    "VMRC_VISION_BASE_URL": ("vision", "base_url"),
    "VMRC_VISION_TIMEOUT": ("vision", "timeout"),
    "VMRC_VISION_MAX_WIDTH": ("vision", "max_image_width"),
}


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply single-underscore environment overrides on top of the YAML.

    Later entries in the table win, so ``VMRC_SPICE_DOMAIN`` beats
    ``SPICE_DOMAIN``.
    """
    for env_name, (section, field) in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name, "")
        if not value:
            continue
        if section is None:
            yaml_data[field] = value
            continue
        target = yaml_data.get(section)
        if not isinstance(target, dict):
            target = {}
            yaml_data[section] = target
        target[field] = value
