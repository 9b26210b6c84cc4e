# errors.py
from __future__ import annotations


class MeetingError(RuntimeError):
    """Base error for meeting creation. `status_code` is what the HTTP layer returns."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self):
        return {"error": self.message}


class Unauthorized(MeetingError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class InvalidInput(MeetingError):
    status_code = 400


class ProviderFailure(MeetingError):
    """Calendar provider rejected the call or answered with something unusable."""

    status_code = 502
