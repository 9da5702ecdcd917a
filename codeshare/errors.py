# codeshare/errors.py
# Error taxonomy shared by the service, the web adapter and the CLI.
# Messages follow the "problem, then → fix" layout used across the project.


class ShareError(Exception):
    """Base class for every error raised by the share service."""

    http_status: int = 500


class InvalidInput(ShareError, ValueError):
    """Malformed code, oversized file or empty payload. Never retried."""

    http_status = 400


class UpstreamUnavailable(ShareError):
    """The blob store or the record store could not be reached."""

    http_status = 502


class Conflict(ShareError):
    """A record with the same code already exists in the store."""

    http_status = 409

    def __init__(self, code: str) -> None:
        super().__init__(f"Code '{code}' is already taken.")
        self.code = code


class CapacityExhausted(ShareError):
    """No free code could be found within the retry budget."""

    http_status = 503


class NotFound(ShareError):
    """No live record for the given code (absent or expired)."""

    http_status = 404


NOT_FOUND_MESSAGE: str = (
    "No content found with that code.\n"
    "    → Check the code. Shares expire after two hours."
)
