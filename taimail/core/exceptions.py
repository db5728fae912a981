"""
Error taxonomy for the mail client.

Everything raised on purpose by this package derives from TaiMailError so
the poller can tell expected failures apart from bugs.
"""


class TaiMailError(Exception):
    """Base class for mail client errors."""

    kind = "error"


class AuthError(TaiMailError):
    """Bad credentials, missing/expired token, or a rejected retry."""

    kind = "auth"


class TransportError(TaiMailError):
    """Network failure or timeout before a usable response arrived."""

    kind = "transport"


class ApiError(TaiMailError):
    """The service answered with an error status or an error envelope."""

    kind = "api"

    def __init__(self, message: str, status: int | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code or (f"HTTP_{status}" if status else "UNKNOWN_ERROR")

    def __str__(self) -> str:
        if self.status:
            return f"{self.code} ({self.status}): {self.message}"
        return f"{self.code}: {self.message}"


class ValidationError(TaiMailError):
    """Malformed settings or caller-supplied input."""

    kind = "validation"
