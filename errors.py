"""Error types raised by the weather cache."""


class WeatherError(Exception):
    """Base exception for all weather cache errors."""


class InvalidInput(WeatherError, ValueError):
    """Raised when a lookup key or query parameter is unusable."""


class FetchFailed(WeatherError):
    """Raised when the upstream provider cannot be reached or answers with an error."""


class StorageFailed(WeatherError):
    """Raised when reading from or writing to the record store fails."""
