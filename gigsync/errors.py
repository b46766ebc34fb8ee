class GigsyncError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(GigsyncError):
    """A required secret or credential is missing on the server."""


class AuthorizationError(GigsyncError):
    """The caller presented a missing or mismatched credential."""


class UnknownSourceError(GigsyncError):
    def __init__(self, source_id, available):
        self.source_id = source_id
        self.available = sorted(available)
        super().__init__(
            f"Unknown source '{source_id}'. Available: {', '.join(self.available)}"
        )


class ValidationError(GigsyncError):
    """A raw event is missing required data or references unknown data."""


class SchemaError(GigsyncError):
    """A structured JSON field does not match its versioned schema."""


class ProviderError(GigsyncError):
    """An enrichment or forecast provider failed to answer."""
