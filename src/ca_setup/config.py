"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables prefixed with CA_SETUP_
  - Fall back to .env in the working directory (or the file given with `--config`)
  - Validate paths and the log level before anything is written

Only AppSettings is a BaseSettings instance. StoreSettings is a plain
BaseModel populated via env_nested_delimiter="__", so CA_SETUP_STORE__CADIR
maps to store.cadir.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = Path(".env")

DEFAULT_CADIR = Path("/etc/puppetlabs/puppetserver/ca")


class StoreSettings(BaseModel):
    """
    Where validated CA material is installed.

    The three files always live in `cadir`; only their names are configurable.
    """

    cadir: Path = Field(default=DEFAULT_CADIR, description="CA store directory")
    cert_filename: str = Field(default="ca_crt.pem", description="CA certificate bundle file")
    key_filename: str = Field(default="ca_key.pem", description="CA private key file")
    crl_filename: str = Field(default="ca_crl.pem", description="CA CRL chain file")

    @field_validator("cert_filename", "key_filename", "crl_filename")
    @classmethod
    def validate_bare_filename(cls, value: str) -> str:
        """Reject names that would escape `cadir`."""
        name = value.strip()
        if not name or Path(name).name != name or name in (".", ".."):
            raise ValueError(f"Expected a bare file name, got {value!r}")
        return name

    @property
    def ca_cert_path(self) -> Path:
        return self.cadir / self.cert_filename

    @property
    def ca_key_path(self) -> Path:
        return self.cadir / self.key_filename

    @property
    def ca_crl_path(self) -> Path:
        return self.cadir / self.crl_filename


class AppSettings(BaseSettings):
    """
    Root application settings.

    Load order (highest priority first):
      1. Environment variables (CA_SETUP_*)
      2. .env file in the working directory
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="CA_SETUP_",
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    store: StoreSettings = Field(default_factory=lambda: StoreSettings())
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value!r}")
        return level


def load_settings(config_file: Path | None = None) -> AppSettings:
    """
    Build AppSettings, reading `config_file` instead of the default .env
    when one is given. Raises pydantic.ValidationError on bad values.
    """
    if config_file is None:
        return AppSettings()
    return AppSettings(_env_file=config_file)  # type: ignore[call-arg]
