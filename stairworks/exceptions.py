"""Exception hierarchy for the stair pricing and cut sheet engines."""


class StairworksError(Exception):
    """Base exception for all Stairworks errors."""


class InvalidSpecificationError(StairworksError):
    """A stair specification is structurally incomplete.

    Raised before any pricing lookup or geometry work begins. ``field`` names
    the offending input so the caller can surface a field-level reason.
    """

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class CatalogUnavailableError(StairworksError):
    """The pricing catalog could not be reached. Safe to retry."""


class ConfigurationLockedError(StairworksError):
    """The configuration belongs to an order that already has a shop run."""


class ShopGenerationError(StairworksError):
    """The requested jobs cannot be put on a shop run."""
