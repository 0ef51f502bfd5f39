"""Service-layer failures and the HTTP status each one maps to."""

from __future__ import annotations


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def payload(self) -> dict:
        return {"error": self.message}


class ValidationError(ServiceError):
    status_code = 400


class InvalidLink(ServiceError):
    """The link parsed fine but no preview could be resolved for it."""

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid or inaccessible post URL. Please check the link.",
        details: str | None = None,
    ):
        super().__init__(message)
        self.details = details

    def payload(self) -> dict:
        body = super().payload()
        if self.details:
            body["details"] = self.details
        return body


class InvalidReference(ServiceError):
    status_code = 400


class Forbidden(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class Duplicate(ServiceError):
    status_code = 409

    def __init__(self, message: str, existing_id: int | None = None):
        super().__init__(message)
        self.existing_id = existing_id

    def payload(self) -> dict:
        body = super().payload()
        if self.existing_id is not None:
            body["id"] = self.existing_id
        return body


class QuotaExceeded(ServiceError):
    status_code = 429

    def __init__(self, limit: int):
        super().__init__(f"Storage limit reached ({limit} posts)")
        self.limit = limit

    def payload(self) -> dict:
        body = super().payload()
        body["limit"] = self.limit
        return body
