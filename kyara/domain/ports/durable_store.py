from __future__ import annotations

from typing import Protocol


class DurableStore(Protocol):
    async def get(self, key: str) -> bytes | None:
        ...

    async def set(self, key: str, value: bytes) -> None:
        ...
