"""Process-wide settings, read once from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .errors import ConfigurationError

DEFAULT_PAGE_SIZE = 10


def get_env(var_name: str, default=None, required: bool = False):
    value = os.environ.get(var_name, default)
    if required and value in (None, ""):
        raise ConfigurationError(f"Missing required environment variable: {var_name}")
    return value


@dataclass(frozen=True)
class Settings:
    page_size: int = DEFAULT_PAGE_SIZE
    database_path: str = ":memory:"

    def __post_init__(self) -> None:
        if not isinstance(self.page_size, int) or self.page_size < 1:
            raise ConfigurationError(f"Page size must be a positive integer, got {self.page_size!r}")

    @classmethod
    def from_env(cls) -> "Settings":
        raw_page_size = get_env("CABINADMIN_PAGE_SIZE", str(DEFAULT_PAGE_SIZE))
        try:
            page_size = int(raw_page_size)
        except ValueError as exc:
            raise ConfigurationError(
                f"CABINADMIN_PAGE_SIZE must be an integer, got {raw_page_size!r}"
            ) from exc
        return cls(
            page_size=page_size,
            database_path=get_env("CABINADMIN_DATABASE", "cabinadmin.db"),
        )
