"""Configuration error types shared by context resolution and topology derivation."""

from __future__ import annotations

from typing import Optional


class ConfigurationError(ValueError):
    """Raised when context, database or event binding data is invalid."""

    def __init__(self, message: str, *, database: Optional[str] = None, environment: Optional[str] = None) -> None:
        self.database = database
        self.environment = environment
        details = []
        if database:
            details.append(f"database={database}")
        if environment:
            details.append(f"environment={environment}")
        super().__init__(f"{message} ({', '.join(details)})" if details else message)


class ContextResolutionError(LookupError):
    """Raised when no environment entry matches the selection key."""

    def __init__(self, selection_key: str, known: tuple[str, ...] = ()) -> None:
        self.selection_key = selection_key
        self.known = known
        listed = ", ".join(known) if known else "none"
        super().__init__(f"No environment matches '{selection_key}' (known: {listed})")
