"""
Configuration management for keyshare.

Handles:
- HKP server binding
- DNS-SD advertisement settings
- Key backend settings
"""

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Default paths
DEFAULT_DATA_DIR = Path.home() / ".keyshare"

# 0 lets the OS pick; the port is advertised over DNS-SD anyway.
# 11371 is the well-known HKP port if a fixed one is wanted.
DEFAULT_HKP_PORT = 0


def _known(cls, data: dict) -> dict:
    """Filter to known fields to handle config evolution."""
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass
class ServerConfig:
    """Configuration for the HKP server."""
    host: str = "0.0.0.0"
    port: int = DEFAULT_HKP_PORT

    def to_dict(self) -> dict:
        return {
            "host": self.host,
            "port": self.port,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ServerConfig":
        return cls(**_known(cls, data))


@dataclass
class SharingConfig:
    """Configuration for the DNS-SD advertisement."""
    enabled: bool = True
    share_name: Optional[str] = None  # None = derive from the user's name
    retry_delay: float = 1.0

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "share_name": self.share_name,
            "retry_delay": self.retry_delay,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SharingConfig":
        return cls(**_known(cls, data))


@dataclass
class KeyStoreConfig:
    """Configuration for the GnuPG key backend."""
    gpg_binary: str = "gpg"
    homedir: Optional[str] = None  # None = gpg's default (~/.gnupg)

    def to_dict(self) -> dict:
        return {
            "gpg_binary": self.gpg_binary,
            "homedir": self.homedir,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "KeyStoreConfig":
        return cls(**_known(cls, data))


@dataclass
class Config:
    """
    Main keyshare configuration.

    Stored at ~/.keyshare/config.json
    """
    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)
    server: ServerConfig = field(default_factory=ServerConfig)
    sharing: SharingConfig = field(default_factory=SharingConfig)
    keystore: KeyStoreConfig = field(default_factory=KeyStoreConfig)

    @property
    def config_path(self) -> Path:
        return self.data_dir / "config.json"

    def ensure_data_dir(self) -> None:
        """Create data directory if it doesn't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def save(self) -> None:
        """Save configuration to disk."""
        self.ensure_data_dir()

        data = {
            "server": self.server.to_dict(),
            "sharing": self.sharing.to_dict(),
            "keystore": self.keystore.to_dict(),
        }

        with open(self.config_path, "w") as f:
            json.dump(data, f, indent=2)

        logger.debug(f"Configuration saved to {self.config_path}")

    @classmethod
    def load(cls, data_dir: Optional[Path] = None) -> "Config":
        """Load configuration from disk."""
        data_dir = data_dir or DEFAULT_DATA_DIR
        config_path = data_dir / "config.json"

        if not config_path.exists():
            return cls(data_dir=data_dir)

        with open(config_path, "r") as f:
            data = json.load(f)

        config = cls(data_dir=data_dir)

        if "server" in data:
            config.server = ServerConfig.from_dict(data["server"])
        if "sharing" in data:
            config.sharing = SharingConfig.from_dict(data["sharing"])
        if "keystore" in data:
            config.keystore = KeyStoreConfig.from_dict(data["keystore"])

        return config

    @classmethod
    def exists(cls, data_dir: Optional[Path] = None) -> bool:
        """Check if configuration exists."""
        data_dir = data_dir or DEFAULT_DATA_DIR
        return (data_dir / "config.json").exists()


# Global config instance
_config: Optional[Config] = None


def get_config(data_dir: Optional[Path] = None) -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load(data_dir)
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
