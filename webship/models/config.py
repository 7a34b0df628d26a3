"""Configuration error types."""


class ConfigValidationError(ValueError):
    """Raised when the servers configuration file is missing or malformed."""
    pass
