"""Configuration model for Branchwise."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, field_validator

from branchwise.models.requests import SyncStrategy


class BranchwiseConfig(BaseModel):
    """Effective settings for one repository."""

    protected_branches: list[str] = ["main", "master", "develop"]
    sync_strategy: SyncStrategy = SyncStrategy.MERGE
    default_remote: str = "origin"
    default_target: Optional[str] = None
    snip_suffix: str = "-snipped"
    set_upstream: bool = True
    fetch: bool = True

    @field_validator("protected_branches", mode="before")
    @classmethod
    def _split_csv(cls, value: object) -> object:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("default_remote")
    @classmethod
    def _non_empty_remote(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("remote name cannot be empty")
        return value.strip()
