from __future__ import annotations

import asyncio
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kyara.domain.ports.document_store import DocumentStore
from kyara.infrastructure.db.models import UserDocument


class SqlAlchemyDocumentStore(DocumentStore):
    """Per-user documents stored as one JSON object per row."""

    def __init__(self, *, sessionmaker: async_sessionmaker[AsyncSession], timeout_seconds: float) -> None:
        self._sessionmaker = sessionmaker
        self._timeout_seconds = float(timeout_seconds)

    async def get_document(self, user_id: str) -> dict[str, Any] | None:
        uid = _require_user_id(user_id)
        stmt = select(UserDocument.fields).where(UserDocument.user_id == uid).limit(1)
        async with self._sessionmaker() as session:
            result = await asyncio.wait_for(session.execute(stmt), timeout=self._timeout_seconds)
            fields = result.scalar_one_or_none()
        if fields is None:
            return None
        return dict(fields) if isinstance(fields, dict) else {}

    async def upsert_document(self, user_id: str, fields: dict[str, Any], *, merge: bool = True) -> None:
        uid = _require_user_id(user_id)
        await asyncio.wait_for(self._upsert(uid, dict(fields), merge=merge), timeout=self._timeout_seconds)

    async def _upsert(self, user_id: str, fields: dict[str, Any], *, merge: bool) -> None:
        async with self._sessionmaker() as session:
            async with session.begin():
                stmt = select(UserDocument).where(UserDocument.user_id == user_id).with_for_update().limit(1)
                row = (await session.execute(stmt)).scalar_one_or_none()
                if row is None:
                    session.add(UserDocument(user_id=user_id, fields=fields))
                    return
                # Top-level keys only; nested values are replaced whole.
                if merge:
                    row.fields = {**(row.fields or {}), **fields}
                else:
                    row.fields = fields


def _require_user_id(user_id: str) -> str:
    uid = (user_id or "").strip()
    if not uid:
        raise ValueError("user_id must not be blank")
    return uid
