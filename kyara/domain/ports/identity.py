from __future__ import annotations

from typing import Awaitable, Callable, Protocol

IdentityListener = Callable[[], Awaitable[None]]


class IdentityProvider(Protocol):
    def current_user(self) -> str | None:
        ...

    def is_initializing(self) -> bool:
        ...

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        ...
