"""Session descriptor persistence: in memory and as a JSON file."""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any

from specsync.observability import get_logger

log = get_logger("specsync.store")


class InMemorySessionPersistence:
    """Keeps the last saved descriptor list in memory."""

    def __init__(self, descriptors: list[dict[str, Any]] | None = None) -> None:
        self._descriptors = [dict(d) for d in descriptors] if descriptors is not None else None
        self.save_count = 0

    async def save(self, descriptors: list[dict[str, Any]]) -> None:
        self._descriptors = [dict(d) for d in descriptors]
        self.save_count += 1

    async def load(self) -> list[dict[str, Any]] | None:
        if self._descriptors is None:
            return None
        return [dict(d) for d in self._descriptors]


class JsonFileSessionPersistence:
    """Writes descriptors to a JSON file, replacing it atomically.

    Parameters
    ----------
    path:
        Target file.  Parent directories are created on first save.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _write(self, payload: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(payload, encoding="utf-8")
        os.replace(tmp, self._path)

    def _read(self) -> str | None:
        try:
            return self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    async def save(self, descriptors: list[dict[str, Any]]) -> None:
        payload = json.dumps({"version": 1, "sessions": descriptors}, indent=2, default=str)
        await asyncio.to_thread(self._write, payload)

    async def load(self) -> list[dict[str, Any]] | None:
        """Return saved descriptors, or ``None`` if nothing usable is on disk.

        A corrupt file is logged and treated as empty so startup proceeds.
        """
        text = await asyncio.to_thread(self._read)
        if text is None:
            return None
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            log.warning(
                "session file is not valid JSON; ignoring it",
                extra={"extra_fields": {"path": str(self._path), "error": str(exc)}},
            )
            return None
        sessions = data.get("sessions") if isinstance(data, dict) else None
        if not isinstance(sessions, list):
            return None
        return [s for s in sessions if isinstance(s, dict)]
