"""Exception hierarchy for the sdwebui client."""

from __future__ import annotations


class StableDiffusionError(Exception):
    """Base class for every error raised by this library."""


class ConfigurationError(StableDiffusionError):
    """Invalid client configuration, raised at construction time."""


class ApiError(StableDiffusionError):
    """A WebUI call failed.

    Carries the HTTP status and raw body when the server answered, and the
    lower-level exception (as ``__cause__``) when it did not.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        if status_code is not None:
            message = f"{message} (Status: {status_code})"
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body

    @property
    def cause(self) -> BaseException | None:
        return self.__cause__
