"""Option models passed in by the command line or any other front end."""

from __future__ import annotations

from pydantic import BaseModel, Field


class Exclusion(BaseModel):
    """A user rule protecting matching files from cleanup and wipe."""

    id: str | None = None
    type: str = Field(pattern="^(category|project|path)$")
    value: str = Field(min_length=1)
    description: str | None = None

    def key(self) -> str:
        return self.id or f"{self.type}:{self.value}"


class InventoryOptions(BaseModel):
    project: str | None = None


class CleanOptions(BaseModel):
    project: str | None = None
    categories: list[str] | None = None
    days: int | None = Field(default=None, ge=0)
    dry_run: bool = True
    preserve_settings: bool = True
    exclusions: list[Exclusion] = Field(default_factory=list)


class WipeOptions(BaseModel):
    confirm: bool = False
    keep_settings: bool = False
    keep_plugins: bool = False
    exclusions: list[Exclusion] = Field(default_factory=list)


class PreviewOptions(BaseModel):
    operation: str = Field(default="clean", pattern="^(clean|wipe)$")
    categories: list[str] | None = None
    days: int | None = Field(default=None, ge=0)
    exclusions: list[Exclusion] = Field(default_factory=list)


class GuardOptions(BaseModel):
    mode: str = Field(default="moderate", pattern="^(paranoid|moderate|minimal)$")
