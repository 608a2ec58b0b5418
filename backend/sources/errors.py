from __future__ import annotations


class DatasetError(Exception):
    """Base class for failures while acquiring a dataset."""

    def __init__(self, message: str, *, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(message)


class NetworkError(DatasetError):
    """
    The transport failed or answered with a non-success status.

    `status` is None when no HTTP response was received at all (DNS, refused
    connection, reset).
    """

    def __init__(
        self, identifier: str, status: int | None, *, detail: str = ""
    ) -> None:
        self.status = status
        self.detail = detail
        msg = (
            f"Failed to fetch {identifier}: {status}"
            if status is not None
            else f"Failed to fetch {identifier}: {detail or 'transport error'}"
        )
        super().__init__(msg, identifier=identifier)


class ParseError(DatasetError):
    """The payload could not be decoded into the dataset's declared shape."""

    def __init__(self, identifier: str, detail: str = "") -> None:
        self.detail = detail
        msg = f"Could not decode {identifier}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg, identifier=identifier)


class UnknownDatasetError(DatasetError, ValueError):
    """The identifier (or locator) names no registered dataset."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Unknown dataset identifier: {identifier!r}", identifier=identifier)
