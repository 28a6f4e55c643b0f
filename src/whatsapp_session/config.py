"""Configuration for WhatsApp session clients."""

import json
import os
import platform
from dataclasses import dataclass, field, asdict
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, Mapping, Tuple

from .exceptions import ConfigurationError
from .logging import LogLevel


class BrowserProfile(str, Enum):
    """Browser identities the linked device can present."""

    UBUNTU = "ubuntu"
    MACOS = "macOS"
    WINDOWS = "windows"
    BAILEYS = "baileys"
    APPROPRIATE = "appropriate"


_PLATFORMS = {
    BrowserProfile.UBUNTU: ("Ubuntu", "22.04.4"),
    BrowserProfile.MACOS: ("Mac OS", "14.4.1"),
    BrowserProfile.WINDOWS: ("Windows", "10.0.22631"),
    BrowserProfile.BAILEYS: ("Baileys", "6.5.0"),
}

_HOST_PLATFORMS = {
    "Darwin": BrowserProfile.MACOS,
    "Linux": BrowserProfile.UBUNTU,
    "Windows": BrowserProfile.WINDOWS,
}


def browser_description(profile: BrowserProfile, device: str) -> Tuple[str, str, str]:
    """
    Build the (platform, device, version) triple sent during pairing.

    ``APPROPRIATE`` resolves to the profile of the host operating system and
    falls back to Ubuntu.
    """
    profile = BrowserProfile(profile)
    if profile is BrowserProfile.APPROPRIATE:
        profile = _HOST_PLATFORMS.get(platform.system(), BrowserProfile.UBUNTU)
    name, version = _PLATFORMS[profile]
    return (name, device, version)


@dataclass(frozen=True)
class AuthStoreConfig:
    """Connection descriptor for the document-store auth backend."""

    url: str
    database_name: str = "whatsapp"
    collection_name: str = "auth_state"

    def __post_init__(self) -> None:
        if not self.url:
            raise ConfigurationError("auth_store.url must not be empty")
        if not self.database_name or not self.collection_name:
            raise ConfigurationError(
                "auth_store database and collection names must not be empty"
            )


@dataclass(frozen=True)
class ClientConfig:
    """WhatsApp session client configuration."""

    # Logging
    log_path: str = "./whatsapp.log"
    log_level: LogLevel = LogLevel.INFO

    # Session storage
    session_dir: str = "./whatsapp_session"
    auth_store: Optional[AuthStoreConfig] = None

    # Reconnection
    max_retries: int = 3

    # Device identity
    browser: BrowserProfile = BrowserProfile.MACOS
    device: str = "Desktop"
    phone_number: Optional[str] = None

    # Extra options handed to the socket untouched
    socket_options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int):
            raise ConfigurationError("max_retries must be an integer")
        if self.max_retries < 1:
            raise ConfigurationError("maxRetries must be at least 1")

        try:
            object.__setattr__(self, "browser", BrowserProfile(self.browser))
        except ValueError:
            raise ConfigurationError(f"Unknown browser profile: {self.browser}")

        try:
            object.__setattr__(self, "log_level", LogLevel(self.log_level))
        except ValueError:
            raise ConfigurationError(f"Unknown log level: {self.log_level}")

        if isinstance(self.auth_store, Mapping):
            try:
                auth_store = AuthStoreConfig(**self.auth_store)
            except TypeError as e:
                raise ConfigurationError(f"Invalid auth_store: {e}") from e
            object.__setattr__(self, "auth_store", auth_store)
        if self.phone_number == "":
            object.__setattr__(self, "phone_number", None)

        try:
            object.__setattr__(self, "socket_options", dict(self.socket_options))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid socket_options: {e}") from e

    @property
    def browser_description(self) -> Tuple[str, str, str]:
        """Browser triple for this configuration."""
        return browser_description(self.browser, self.device)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        data = asdict(self)
        data["browser"] = self.browser.value
        data["log_level"] = self.log_level.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientConfig":
        """Create config from dictionary."""
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration key(s): {', '.join(sorted(unknown))}"
            )
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_config(config_file: str) -> ClientConfig:
    """
    Load configuration from a JSON file.

    Args:
        config_file: Path to config JSON file

    Raises:
        ConfigurationError: If the file is missing or invalid
    """
    config_path = Path(config_file).expanduser()

    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_file}")

    try:
        with open(config_path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid config file {config_file}: {e}") from e

    return ClientConfig.from_dict(data)


def save_config(config: ClientConfig, config_file: str) -> None:
    """Save configuration to a JSON file."""
    config_path = Path(config_file).expanduser()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)


def config_from_env(environ: Optional[Mapping[str, str]] = None) -> ClientConfig:
    """
    Build configuration from ``WHATSAPP_*`` environment variables.

    Variables that are not set keep their defaults.
    """
    env = os.environ if environ is None else environ
    data: Dict[str, Any] = {}

    if "WHATSAPP_LOG_PATH" in env:
        data["log_path"] = env["WHATSAPP_LOG_PATH"]
    if "WHATSAPP_LOG_LEVEL" in env:
        data["log_level"] = env["WHATSAPP_LOG_LEVEL"].upper()
    if "WHATSAPP_SESSION_DIR" in env:
        data["session_dir"] = env["WHATSAPP_SESSION_DIR"]
    if "WHATSAPP_MAX_RETRIES" in env:
        try:
            data["max_retries"] = int(env["WHATSAPP_MAX_RETRIES"])
        except ValueError:
            raise ConfigurationError(
                f"WHATSAPP_MAX_RETRIES is not an integer: {env['WHATSAPP_MAX_RETRIES']}"
            )
    if "WHATSAPP_BROWSER" in env:
        data["browser"] = env["WHATSAPP_BROWSER"]
    if "WHATSAPP_DEVICE" in env:
        data["device"] = env["WHATSAPP_DEVICE"]
    if "WHATSAPP_PHONE_NUMBER" in env:
        data["phone_number"] = env["WHATSAPP_PHONE_NUMBER"]

    if env.get("WHATSAPP_MONGODB_URL"):
        store: Dict[str, Any] = {"url": env["WHATSAPP_MONGODB_URL"]}
        if "WHATSAPP_MONGODB_DATABASE" in env:
            store["database_name"] = env["WHATSAPP_MONGODB_DATABASE"]
        if "WHATSAPP_MONGODB_COLLECTION" in env:
            store["collection_name"] = env["WHATSAPP_MONGODB_COLLECTION"]
        data["auth_store"] = AuthStoreConfig(**store)

    return ClientConfig(**data)
