from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_HEADER = "// This file was generated by tidebind. Do not edit this file manually."


class ExportConfig(BaseSettings):
    """Where and how the TypeScript bindings are written; every field can come from TIDEBIND_* env vars."""
    model_config = SettingsConfigDict(
        env_prefix="TIDEBIND_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    output: Path | None = Field(default=None)
    header: str = Field(default=DEFAULT_HEADER)

    # Module providing `invoke(cmd, args)`, `listen(event, cb)` and `once(event, cb)`.
    runtime_module: str = Field(default="tsunami")

    # Shell command run on the written file, e.g. "npx prettier --write".
    formatter: str | None = Field(default=None)

    indent: str = Field(default="  ")
