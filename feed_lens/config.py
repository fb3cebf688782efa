"""Settings lookups and defaults shared by the providers and the CLI.

A provider never reads the environment directly for credentials: it is handed
a ``SettingsLookup`` (name -> value or None) by whoever calls ``get``.
"""
from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Callable

import yaml

SettingsLookup = Callable[[str], str | None]

DEFAULT_TTL = timedelta(minutes=15)
DEFAULT_HTTP_TIMEOUT = 30.0


def env_settings() -> SettingsLookup:
    """Look settings up in the process environment."""
    return os.getenv


def file_settings(path: Path) -> SettingsLookup:
    """Look settings up in a YAML mapping, falling back to the environment.

    Lists are joined with commas so ``KOL_ACCOUNTS: [a, b]`` reads the same as
    ``KOL_ACCOUNTS=a,b`` in the environment.
    """
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping of setting names")

    values: dict[str, str] = {}
    for name, value in data.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            value = ",".join(str(v) for v in value)
        values[str(name)] = str(value)

    def lookup(name: str) -> str | None:
        if name in values:
            return values[name]
        return os.getenv(name)

    return lookup


def parse_accounts(raw: str | None) -> list[str]:
    """Split a comma/whitespace separated account list, dropping '@' and dupes."""
    if not raw:
        return []
    accounts: list[str] = []
    for part in raw.replace(",", " ").split():
        name = part.strip().lstrip("@")
        if name and name.lower() not in {a.lower() for a in accounts}:
            accounts.append(name)
    return accounts


def ttl_from_env(default: timedelta = DEFAULT_TTL) -> timedelta:
    minutes = os.getenv("FEED_LENS_TTL_MINUTES")
    if not minutes:
        return default
    return timedelta(minutes=float(minutes))


def http_timeout_from_env(default: float = DEFAULT_HTTP_TIMEOUT) -> float:
    value = os.getenv("FEED_LENS_HTTP_TIMEOUT")
    return float(value) if value else default
