"""Exception types shared by the portal services.

Services raise these; the HTTP controllers in `portal.main` translate
them into `HTTPException` responses.
"""


class PortalError(Exception):
    """Base class for portal domain errors."""


class NotFound(PortalError):
    """A course or assignment id has no backing document."""


class FetchFailure(PortalError):
    """The document store failed or returned a document that does not parse."""


class InvalidAnswer(PortalError, ValueError):
    """An answer value does not match the shape its question variant expects."""


class AuthError(PortalError):
    """Authentication failure whose message is shown to the caller as is."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
