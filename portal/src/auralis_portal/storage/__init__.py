from __future__ import annotations

from auralis_portal.storage.cookies import CookieJar, StoredCookie
from auralis_portal.storage.files import JsonFileStorage
from auralis_portal.storage.memory import MemoryStorage

__all__ = [
    "CookieJar",
    "JsonFileStorage",
    "MemoryStorage",
    "StoredCookie",
]
