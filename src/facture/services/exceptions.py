from __future__ import annotations


class FactureError(Exception):
    """Base class for errors reported back to the caller."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(FactureError):
    """Missing or invalid input. Never retried."""

    status_code = 400


class MissingRequiredField(ValidationError):
    def __init__(self, field: str) -> None:
        super().__init__(f"Missing required field: {field}")
        self.field = field


class InvalidLineItem(ValidationError):
    """A line item failed validation; ``index`` is its position in the submitted list."""

    def __init__(self, message: str, index: int | None = None) -> None:
        if index is not None:
            message = f"Item {index + 1}: {message}"
        super().__init__(message)
        self.index = index


class UnsupportedProvince(ValidationError):
    def __init__(self, province: object) -> None:
        super().__init__(f"Unsupported province: {province!r}")
        self.province = province


class UnknownProvince(UnsupportedProvince):
    """Raised by the tax table for a province it has no rate for."""


class NotFoundError(FactureError):
    status_code = 404


class PersistenceFailure(FactureError):
    """The data store was unavailable or rejected a write."""

    status_code = 500


class RenderError(FactureError):
    """The PDF service failed or answered with an error."""

    status_code = 502

    def __init__(self, message: str, response_body: str = "") -> None:
        super().__init__(message)
        self.response_body = response_body
