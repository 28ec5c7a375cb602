from __future__ import annotations

from typing import Any, Protocol


class DocumentStore(Protocol):
    async def get_document(self, user_id: str) -> dict[str, Any] | None:
        ...

    async def upsert_document(self, user_id: str, fields: dict[str, Any], *, merge: bool = True) -> None:
        ...
