"""
Key-value stores holding a book's glossary.

Callers depend on the narrow GlossaryStore interface and receive an
implementation chosen for their lifetime: in-memory for short-lived runs,
a JSON file for the offline CLI, or the SQLite-backed store from
``glossa.persistence`` for resumable jobs.
"""

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Dict, Optional

import aiofiles

from glossa.core.exceptions import CheckpointLoadError, CheckpointSaveError

logger = logging.getLogger(__name__)


class GlossaryStore(ABC):
    """Source term to canonical translation mapping"""

    @abstractmethod
    async def get(self, term: str) -> Optional[str]:
        """Return the canonical translation of ``term``, or None"""

    @abstractmethod
    async def set(self, term: str, translation: str) -> None:
        """Store a translation; an existing value for the term is replaced"""

    @abstractmethod
    async def get_all_entries(self) -> Dict[str, str]:
        """Return a copy of every entry"""


class InMemoryGlossaryStore(GlossaryStore):
    """Ephemeral store backed by a dict"""

    def __init__(self, entries: Optional[Dict[str, str]] = None):
        self._entries: Dict[str, str] = dict(entries or {})

    async def get(self, term: str) -> Optional[str]:
        return self._entries.get(term)

    async def set(self, term: str, translation: str) -> None:
        self._entries[term] = translation

    async def get_all_entries(self) -> Dict[str, str]:
        return dict(self._entries)


class JsonFileGlossaryStore(GlossaryStore):
    """
    Store persisted as a JSON object in a single file.

    The file is read on first access and rewritten after every ``set``.
    """

    def __init__(self, path: str):
        self.path = path
        self._entries: Optional[Dict[str, str]] = None
        self._lock = asyncio.Lock()

    async def _load(self) -> Dict[str, str]:
        if self._entries is not None:
            return self._entries

        if not os.path.exists(self.path):
            self._entries = {}
            return self._entries

        try:
            async with aiofiles.open(self.path, 'r', encoding='utf-8') as f:
                data = json.loads(await f.read() or '{}')
        except (OSError, json.JSONDecodeError) as e:
            raise CheckpointLoadError(f"Cannot load glossary file: {e}",
                                      context={'path': self.path}) from e

        if not isinstance(data, dict):
            raise CheckpointLoadError("Glossary file must contain a JSON object",
                                      context={'path': self.path})

        self._entries = {str(k): str(v) for k, v in data.items()}
        logger.debug(f"Loaded {len(self._entries)} glossary entries from {self.path}")
        return self._entries

    async def _save(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        try:
            async with aiofiles.open(self.path, 'w', encoding='utf-8') as f:
                await f.write(json.dumps(self._entries, ensure_ascii=False, indent=2))
        except OSError as e:
            raise CheckpointSaveError(f"Cannot write glossary file: {e}",
                                      context={'path': self.path}) from e

    async def get(self, term: str) -> Optional[str]:
        entries = await self._load()
        return entries.get(term)

    async def set(self, term: str, translation: str) -> None:
        async with self._lock:
            entries = await self._load()
            entries[term] = translation
            await self._save()

    async def get_all_entries(self) -> Dict[str, str]:
        return dict(await self._load())
