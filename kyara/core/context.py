from __future__ import annotations

from contextvars import ContextVar

request_id_ctx_var: ContextVar[str] = ContextVar("request_id", default="-")
locale_ctx_var: ContextVar[str] = ContextVar("locale", default="-")
user_id_ctx_var: ContextVar[str] = ContextVar("user_id", default="-")
