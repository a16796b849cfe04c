"""
errors.py
---------
Engine exceptions. Resolver failures are not exceptions at this level: they
degrade to an empty candidate set plus telemetry.
"""


class ProfileInvariantError(RuntimeError):
    """Raised when a stop reaches scoring without a profile (strict builds only)."""


class PatchInvariantError(RuntimeError):
    """Raised when applying patch ops would break plan invariants (strict builds only)."""


class UndoUnavailableError(RuntimeError):
    """Raised when undo is requested but no prior baseline is retained."""


class SuggestionNotFoundError(RuntimeError):
    """Raised when previewing or applying an unknown suggestion id."""
