from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class InspectorSettings(BaseSettings):
    """
    Defaults for the command line, read from BIKECERT_* environment variables
    or a .env file. The library entry point never reads these itself; every
    input is passed per call.
    """

    # hex or base64 Ed25519 public keys of the issuing authority, tried in order
    authority_keys: list[str] = Field(default_factory=list)
    verbose: bool = False
    allow_legacy_layout: bool = False
    log_level: str = "WARNING"
    log_format: Literal["console", "json"] = "console"

    model_config = SettingsConfigDict(
        env_prefix="BIKECERT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
