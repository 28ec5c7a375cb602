from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class AppError(Exception):
    code: str
    http_status: int
    log_detail: str | None = None
    extra: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.log_detail or self.code


class MetadataFetchError(AppError):
    """The remote anime source was unreachable or returned a malformed payload."""

    def __init__(self, log_detail: str | None = None, *, anime_id: int | None = None) -> None:
        super().__init__(
            code="metadata_unavailable",
            http_status=503,
            log_detail=log_detail,
            extra={"anime_id": anime_id} if anime_id is not None else None,
        )


class DocumentStoreError(AppError):
    """Reading or writing the per-user remote document failed."""

    def __init__(self, log_detail: str | None = None) -> None:
        super().__init__(code="document_store_unavailable", http_status=503, log_detail=log_detail)


class DurableStoreError(AppError):
    """Reading or writing the local durable store failed."""

    def __init__(self, log_detail: str | None = None) -> None:
        super().__init__(code="durable_store_unavailable", http_status=503, log_detail=log_detail)


class RequestInvalidError(AppError):
    def __init__(self, log_detail: str | None = None) -> None:
        super().__init__(code="request_invalid", http_status=422, log_detail=log_detail)


class SelectionNotReadyError(AppError):
    def __init__(self, log_detail: str | None = None) -> None:
        super().__init__(code="selection_loading", http_status=409, log_detail=log_detail)


class InternalError(AppError):
    def __init__(self, log_detail: str | None = None) -> None:
        super().__init__(code="internal_error", http_status=500, log_detail=log_detail)
