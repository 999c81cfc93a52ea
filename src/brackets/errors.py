"""
Exceptions raised by the bracket engine.
"""
from typing import List, Optional


class BracketError(Exception):
    """Base exception for every error the bracket engine raises."""
    pass


class ConfigurationError(BracketError):
    """
    Raised when a tournament, its team list or the generation options are invalid.

    Carries every violation found, not only the first one. Raised before any
    match is built, so callers never receive a partial bracket.
    """

    def __init__(self, errors: List[str], prefix: str = "Invalid bracket configuration"):
        self.errors = list(errors)
        super().__init__(f"{prefix}: {', '.join(self.errors)}")


class UnsupportedFormatError(ConfigurationError):
    """Raised when a tournament type has no registered format handler."""

    def __init__(self, tournament_type: str):
        self.tournament_type = tournament_type
        super().__init__(
            [f"Unsupported tournament format: {tournament_type}"],
            prefix="Cannot generate bracket",
        )


class SeedingError(ConfigurationError):
    """Raised for an unknown seeding method or inconsistent seeding input."""

    def __init__(self, message: str):
        super().__init__([message], prefix="Seeding failed")


class InvariantError(BracketError):
    """
    Raised when progression is asked to work on a match history that
    contradicts the bracket (caller or programmer error).
    """

    def __init__(self, message: str, match_id: Optional[str] = None):
        self.match_id = match_id
        super().__init__(message)
