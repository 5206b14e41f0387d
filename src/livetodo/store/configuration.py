"""How an ObjectStore instance is opened."""

from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, model_validator

from livetodo.store.schema import DEFAULT_ENTITIES, Entity

if TYPE_CHECKING:
    from livetodo.config import BaseSettings


class StoreConfiguration(BaseModel):
    """Location and schema of one store.

    Exactly one of `path` (file-backed) or `in_memory_identifier`
    (nothing touches disk) must be set.

    Example:
        >>> config = StoreConfiguration(in_memory_identifier="preview")
        >>> config.is_in_memory
        True
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    path: Path | None = None
    in_memory_identifier: str | None = None
    entities: tuple[type[Entity], ...] = Field(default=DEFAULT_ENTITIES)

    @model_validator(mode="after")
    def _check_location(self) -> "StoreConfiguration":
        if (self.path is None) == (self.in_memory_identifier is None):
            raise ValueError("Set exactly one of 'path' or 'in_memory_identifier'")
        return self

    @property
    def is_in_memory(self) -> bool:
        return self.in_memory_identifier is not None

    @property
    def location(self) -> str:
        """Human-readable location, reported once when a store opens."""
        if self.path is not None:
            return str(self.path)
        return f"memory:{self.in_memory_identifier}"

    @classmethod
    def from_settings(cls, settings: "BaseSettings") -> "StoreConfiguration":
        """Default configuration: the store file in the workspace."""
        if settings.in_memory:
            return cls(in_memory_identifier=settings.app_name)
        return cls(path=settings.store_path)
