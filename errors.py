from typing import Optional


class MovieGPTError(Exception):
    """Base class for every error raised by the core."""


class ProviderError(MovieGPTError):
    """The metadata provider failed or answered with an unexpected shape."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body_snippet: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body_snippet = body_snippet


class ProviderUnavailable(ProviderError):
    """Network or HTTP failure talking to the metadata provider."""


class NotFound(ProviderError):
    """The requested movie or person does not exist upstream."""


class MalformedImport(MovieGPTError, ValueError):
    """An import payload could not be parsed into watched entries."""


class ValidationError(MovieGPTError, ValueError):
    """A caller supplied invalid input, e.g. a bad person id for discovery."""
