from __future__ import annotations

from fastapi import Depends, Request

from kyara.core.config import Settings, get_settings
from kyara.core.context import locale_ctx_var
from kyara.core.errors import SelectionNotReadyError
from kyara.core.i18n import infer_locale_from_headers
from kyara.infrastructure.identity.session_identity import SessionIdentityProvider
from kyara.services.selection_synchronizer import SelectionSynchronizer


def settings_dep() -> Settings:
    return get_settings()


def locale_dep(request: Request, settings: Settings = Depends(settings_dep)) -> str:
    locale = infer_locale_from_headers(
        request.headers,
        default_locale=settings.default_locale,
        locale_header=settings.locale_header,
    )
    request.state.locale = locale
    locale_ctx_var.set(locale)
    return locale


def synchronizer_dep(request: Request) -> SelectionSynchronizer:
    synchronizer: SelectionSynchronizer | None = getattr(request.app.state, "synchronizer", None)
    if synchronizer is None:
        raise RuntimeError("Selection synchronizer is not initialized")
    return synchronizer


def ready_synchronizer_dep(
    synchronizer: SelectionSynchronizer = Depends(synchronizer_dep),
) -> SelectionSynchronizer:
    if synchronizer.is_loading():
        raise SelectionNotReadyError("selection still loading")
    return synchronizer


def identity_dep(request: Request) -> SessionIdentityProvider:
    identity: SessionIdentityProvider | None = getattr(request.app.state, "identity", None)
    if identity is None:
        raise RuntimeError("Identity provider is not initialized")
    return identity
