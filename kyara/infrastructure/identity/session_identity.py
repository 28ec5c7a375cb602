from __future__ import annotations

import logging
from typing import Callable

from kyara.domain.ports.identity import IdentityListener, IdentityProvider

logger = logging.getLogger(__name__)


class SessionIdentityProvider(IdentityProvider):
    """In-process identity state for the single user of this engine.

    Starts out initializing; nothing is reported as signed in or out until
    ``complete_initialization`` runs. Listeners are awaited in subscription
    order on every change.
    """

    def __init__(self) -> None:
        self._initializing = True
        self._user_id: str | None = None
        self._listeners: list[IdentityListener] = []

    def current_user(self) -> str | None:
        return self._user_id

    def is_initializing(self) -> bool:
        return self._initializing

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def complete_initialization(self, user_id: str | None = None) -> None:
        self._user_id = _normalize_user_id(user_id)
        self._initializing = False
        logger.info("identity_initialized", extra={"user_id": self._user_id or "-"})
        await self._notify()

    async def sign_in(self, user_id: str) -> None:
        uid = _normalize_user_id(user_id)
        if uid is None:
            raise ValueError("user_id must not be blank")
        if not self._initializing and uid == self._user_id:
            return
        self._user_id = uid
        self._initializing = False
        logger.info("identity_signed_in", extra={"user_id": uid})
        await self._notify()

    async def sign_out(self) -> None:
        if not self._initializing and self._user_id is None:
            return
        self._user_id = None
        self._initializing = False
        logger.info("identity_signed_out")
        await self._notify()

    async def _notify(self) -> None:
        for listener in list(self._listeners):
            await listener()


def _normalize_user_id(user_id: str | None) -> str | None:
    if not isinstance(user_id, str):
        return None
    value = user_id.strip()
    return value or None
