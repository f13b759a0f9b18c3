from typing import Optional


class LendingError(Exception):
    """Base for every outcome the lending core reports instead of succeeding.

    ``message`` is meant for people, ``reason`` is a stable machine-readable
    code for logs and clients.
    """

    status_code = 500
    reason = "lending_error"

    def __init__(self, message: str, *, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if reason is not None:
            self.reason = reason

    def to_dict(self) -> dict:
        return {"message": self.message, "reason": self.reason}


class ValidationError(LendingError):
    status_code = 400
    reason = "validation_failed"

    def __init__(self, errors: list[str], *, reason: Optional[str] = None):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors), reason=reason)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class NotFound(LendingError):
    status_code = 404
    reason = "not_found"


class Conflict(LendingError):
    status_code = 409
    reason = "conflict"


class AssetUnavailable(Conflict):
    # POST /borrow reports an unavailable asset as a bad request
    status_code = 400
    reason = "asset_unavailable"


class StorageError(LendingError):
    status_code = 503
    reason = "storage_error"


class UnexpectedError(LendingError):
    status_code = 500
    reason = "unexpected_error"
