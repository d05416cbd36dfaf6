"""STEP header section record."""

from __future__ import annotations

from pydantic import BaseModel, Field


class HeaderInfo(BaseModel):
    """Fields of FILE_DESCRIPTION, FILE_NAME and FILE_SCHEMA."""

    description: list[str] = Field(default_factory=list)
    implementation_level: str | None = None
    name: str | None = None
    timestamp: str | None = None
    author: list[str] = Field(default_factory=list)
    organization: list[str] = Field(default_factory=list)
    preprocessor: str | None = None
    originating_system: str | None = None
    authorization: str | None = None
    schemas: list[str] = Field(default_factory=list)

    @property
    def schema_identifier(self) -> str | None:
        return self.schemas[0] if self.schemas else None
