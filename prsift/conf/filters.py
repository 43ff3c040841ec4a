from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


def default_filter_store_path() -> Path:
    return Path.home() / ".config" / "prsift" / "filters.json"


class FilterSettings(BaseSettings):
    """Filtering, search and filter persistence settings."""

    filter_store_path: Path = Field(
        default_factory=default_filter_store_path,
        description="Location of the JSON file holding the persisted filter configuration",
    )

    search_debounce_ms: int = Field(
        default=300,
        description="Delay in milliseconds before a search query is applied",
    )

    @field_validator("search_debounce_ms")
    @classmethod
    def validate_debounce(cls, v: int) -> int:
        """Validate debounce delay is in a usable range."""
        if not 0 <= v <= 5000:
            raise ValueError("search_debounce_ms must be between 0 and 5000")
        return v

    @property
    def search_debounce_seconds(self) -> float:
        return self.search_debounce_ms / 1000
