"""Lightweight i18n utilities for user-facing notices."""
from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Iterable

from fastapi import HTTPException, status

SUPPORTED_LOCALES: tuple[str, ...] = ("pt-BR", "en")
DEFAULT_LOCALE = "pt-BR"
_I18N_DIR = Path(__file__).resolve().parent / "locales"


def _load_messages(locale: str) -> dict[str, str]:
    path = _I18N_DIR / f"{locale}.json"
    if not path.exists():
        raise FileNotFoundError(f"Missing locale bundle: {locale}")
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


@lru_cache(maxsize=8)
def get_messages(locale: str) -> dict[str, str]:
    normalized = normalize_locale(locale)
    try:
        return _load_messages(normalized)
    except (OSError, ValueError) as exc:  # pragma: no cover - IO bound
        if normalized != DEFAULT_LOCALE:
            return get_messages(DEFAULT_LOCALE)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load translations") from exc


def normalize_locale(locale: str | None) -> str:
    if not locale:
        return DEFAULT_LOCALE
    value = locale.strip()
    if value in SUPPORTED_LOCALES:
        return value
    lowered = value.lower()
    if lowered.startswith("pt"):
        return "pt-BR"
    if lowered.startswith("en"):
        return "en"
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported locale")


def select_locale(candidate: str | None, fallbacks: Iterable[str | None] = ()) -> str:
    """First supported locale among ``candidate`` and ``fallbacks``."""

    for value in (candidate, *fallbacks):
        if not value:
            continue
        try:
            return normalize_locale(value)
        except HTTPException:
            continue
    return DEFAULT_LOCALE


def translate(locale: str, key: str, default: str | None = None) -> str:
    messages = get_messages(select_locale(locale))
    if key in messages:
        return messages[key]
    fallback = get_messages(DEFAULT_LOCALE)
    if key in fallback:
        return fallback[key]
    return default if default is not None else key


__all__ = [
    "DEFAULT_LOCALE",
    "SUPPORTED_LOCALES",
    "get_messages",
    "normalize_locale",
    "select_locale",
    "translate",
]
