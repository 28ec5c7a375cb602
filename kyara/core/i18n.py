from __future__ import annotations

import re
from typing import Mapping

_SUPPORTED = {"es", "en"}

_LANG_RE = re.compile(r"^[a-zA-Z]{1,8}(?:-[a-zA-Z0-9]{1,8})*$")


def infer_locale_from_headers(headers: Mapping[str, str], *, default_locale: str, locale_header: str) -> str:
    explicit = headers.get(locale_header, "") or headers.get(locale_header.lower(), "")
    explicit = explicit.strip().lower()
    if explicit:
        for lang in _SUPPORTED:
            if explicit.startswith(lang):
                return lang

    accept = headers.get("accept-language", "") or headers.get("Accept-Language", "")
    accept = accept.strip()
    if accept:
        best = _best_match_accept_language(accept)
        if best in _SUPPORTED:
            return best

    return default_locale if default_locale in _SUPPORTED else "es"


def _best_match_accept_language(value: str) -> str:
    candidates: list[tuple[str, float]] = []
    for part in value.split(","):
        lang_part = part.strip()
        if not lang_part:
            continue
        lang, q = _parse_lang_q(lang_part)
        if not lang:
            continue
        primary = lang.split("-")[0]
        if primary in _SUPPORTED:
            candidates.append((primary, q))
    if not candidates:
        return ""
    candidates.sort(key=lambda x: x[1], reverse=True)
    return candidates[0][0]


def _parse_lang_q(part: str) -> tuple[str, float]:
    if ";" not in part:
        lang = part.strip()
        if _LANG_RE.match(lang):
            return lang.lower(), 1.0
        return "", 0.0
    lang_raw, params_raw = part.split(";", 1)
    lang = lang_raw.strip()
    if not _LANG_RE.match(lang):
        return "", 0.0
    q = 1.0
    for p in params_raw.split(";"):
        p = p.strip()
        if p.startswith("q="):
            try:
                q = float(p[2:])
            except ValueError:
                q = 0.0
    return lang.lower(), q


_MESSAGES: dict[str, dict[str, str]] = {
    "es": {
        "request_invalid": "Solicitud no válida.",
        "not_found": "Recurso no encontrado.",
        "method_not_allowed": "Método no permitido.",
        "selection_loading": "Tu selección todavía se está cargando. Inténtalo de nuevo en un momento.",
        "metadata_unavailable": "No se pudo obtener la información del anime. Inténtalo más tarde.",
        "document_store_unavailable": "No se pudo sincronizar con tu cuenta. Inténtalo más tarde.",
        "durable_store_unavailable": "No se pudo acceder al almacenamiento local.",
        "internal_error": "Error interno del servicio.",
    },
    "en": {
        "request_invalid": "Invalid request.",
        "not_found": "Resource not found.",
        "method_not_allowed": "Method not allowed.",
        "selection_loading": "Your selection is still loading. Try again in a moment.",
        "metadata_unavailable": "Anime information is unavailable right now. Try again later.",
        "document_store_unavailable": "Could not sync with your account. Try again later.",
        "durable_store_unavailable": "Local storage is unavailable.",
        "internal_error": "Internal service error.",
    },
}


def t(locale: str, key: str) -> str:
    lang = locale if locale in _SUPPORTED else "es"
    return _MESSAGES.get(lang, {}).get(key, _MESSAGES["es"].get(key, ""))
