"""Exception types raised by the Incident Statistics Engine."""


class IncidentStatsError(Exception):
    """Base class for all engine errors."""
    pass


class NormalizationError(IncidentStatsError):
    """Raised when a raw export cannot be parsed; aborts the whole run."""

    def __init__(self, message: str, row: int | None = None, column: str | None = None):
        self.row = row
        self.column = column
        location = []
        if row is not None:
            location.append(f"row {row}")
        if column is not None:
            location.append(f"column '{column}'")
        if location:
            message = f"{message} ({', '.join(location)})"
        super().__init__(message)


class ConfigurationError(IncidentStatsError):
    """Raised when settings or classification rules are invalid."""
    pass
