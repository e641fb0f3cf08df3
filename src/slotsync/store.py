"""File-backed edit-link store.

One JSON file per week, named after the week link's trailing path segment,
holding ``{email: edit_link}``. File I/O runs in worker threads. Reads are
lock-free (files are replaced atomically); writes are serialized per week
file so concurrent puts for different emails cannot clobber each other.
"""

import asyncio
import json
import os
import re
import tempfile
from pathlib import Path
from urllib.parse import urlparse

from pydantic import TypeAdapter, ValidationError

from src.slotsync.errors import StoreCorrupt
from src.slotsync.logging import get_logger

logger = get_logger(__name__)

_RECORD = TypeAdapter(dict[str, str])
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def week_key(week_link: str) -> str:
    """Derive the record namespace from a week link.

    ``https://terminplaner4.dfn.de/AbC123`` -> ``AbC123``.

    Raises:
        ValueError: If the link has no path segment to key on.
    """
    path = urlparse(week_link.strip()).path.rstrip("/")
    segment = path.rsplit("/", 1)[-1]
    key = _UNSAFE_CHARS.sub("_", segment)
    if not key.strip("_"):
        raise ValueError(f"Cannot derive a store key from week link {week_link!r}")
    return key


def normalize_email(email: str) -> str:
    return email.strip().lower()


class EditLinkStore:
    """Maps (week key, email) to the edit link the site issued for it."""

    def __init__(self, base_dir: str = "data/edit-links") -> None:
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._locks: dict[str, asyncio.Lock] = {}

    def _path(self, key: str) -> Path:
        return self.base_dir / f"{key}.json"

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def _read(self, key: str) -> dict[str, str]:
        path = self._path(key)
        if not path.exists():
            return {}
        try:
            return _RECORD.validate_json(path.read_bytes())
        except ValidationError as e:
            raise StoreCorrupt(f"Unparsable edit-link record {path}") from e

    def _read_or_empty(self, key: str) -> dict[str, str]:
        try:
            return self._read(key)
        except StoreCorrupt as e:
            logger.warning("edit_link_record_corrupt", key=key, error=str(e))
            return {}

    def _write(self, key: str, record: dict[str, str]) -> None:
        path = self._path(key)
        fd, tmp = tempfile.mkstemp(dir=self.base_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record, f, indent=2, sort_keys=True)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    async def get(self, week_link: str, email: str) -> str | None:
        """Return the stored edit link, or None when there is none.

        A corrupt record reads as empty.
        """
        key = week_key(week_link)
        record = await asyncio.to_thread(self._read_or_empty, key)
        link = record.get(normalize_email(email))
        logger.debug("edit_link_lookup", key=key, found=link is not None)
        return link

    async def put(self, week_link: str, email: str, edit_link: str) -> None:
        """Store ``edit_link`` for (week, email), keeping other emails' links."""
        key = week_key(week_link)
        async with self._lock(key):
            record = await asyncio.to_thread(self._read_or_empty, key)
            record[normalize_email(email)] = edit_link
            await asyncio.to_thread(self._write, key, record)
        logger.info("edit_link_stored", key=key)
