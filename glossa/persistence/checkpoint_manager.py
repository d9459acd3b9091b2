"""
Checkpoint manager for offline translation runs.

Every completed segment is appended as one JSON line. On startup the file is
replayed into an in-memory index keyed by (chapter_number, node_address),
so an interrupted run skips the segments it already finished. The last
record for a key wins; the file itself is never rewritten except by
``clear``.
"""

import asyncio
import json
import logging
import os
from typing import Dict, List, Optional, Tuple

import aiofiles

from glossa.config import CHECKPOINT_FILE
from glossa.core.exceptions import CheckpointLoadError, CheckpointSaveError
from glossa.core.models import TranslationResult

logger = logging.getLogger(__name__)

CheckpointKey = Tuple[int, str]


class InMemoryCheckpointManager:
    """
    Checkpoint index without a backing file.

    Used when a run does not need to survive a restart, and as the base of
    the file-backed manager.
    """

    def __init__(self):
        self._results: Dict[CheckpointKey, TranslationResult] = {}

    def load(self) -> int:
        return len(self._results)

    def _remember(self, result: TranslationResult) -> None:
        # Re-insert so iteration order follows the latest write
        self._results.pop(result.key, None)
        self._results[result.key] = result

    async def save(self, result: TranslationResult) -> None:
        self._remember(result)

    def is_completed(self, chapter_number: int, node_address: str) -> bool:
        return (chapter_number, node_address) in self._results

    def get(self, chapter_number: int, node_address: str) -> Optional[TranslationResult]:
        return self._results.get((chapter_number, node_address))

    def get_translations_dict(self, chapter_number: Optional[int] = None) -> Dict[str, str]:
        """
        Map of node address to translated text.

        Args:
            chapter_number: Restrict to one chapter (addresses are only unique per chapter)
        """
        return {
            result.node_address: result.translated_text
            for result in self._results.values()
            if chapter_number is None or result.chapter_number == chapter_number
        }

    def get_completed_count(self) -> int:
        return len(self._results)

    def get_all_results(self) -> List[TranslationResult]:
        """Every result ordered by chapter, then by write order"""
        return sorted(self._results.values(), key=lambda result: result.chapter_number)

    async def clear(self) -> None:
        self._results.clear()


class CheckpointManager(InMemoryCheckpointManager):
    """
    JSONL-backed checkpoint index.

    Args:
        checkpoint_file: Path of the append-only checkpoint file
    """

    def __init__(self, checkpoint_file: str = CHECKPOINT_FILE):
        super().__init__()
        self.checkpoint_file = checkpoint_file
        self._lock = asyncio.Lock()
        self.load()

    def load(self) -> int:
        """
        Replay the checkpoint file.

        Malformed lines are skipped with a warning.

        Returns:
            Number of distinct completed segments
        """
        self._results.clear()
        if not os.path.exists(self.checkpoint_file):
            return 0

        skipped = 0
        try:
            with open(self.checkpoint_file, 'r', encoding='utf-8') as f:
                for line_number, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        self._remember(TranslationResult.from_dict(json.loads(line)))
                    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                        skipped += 1
                        logger.warning(f"Skipping malformed checkpoint line {line_number} "
                                       f"in {self.checkpoint_file}: {e}")
        except OSError as e:
            raise CheckpointLoadError(f"Cannot read checkpoint file: {e}",
                                      context={'path': self.checkpoint_file}) from e

        logger.info(f"Loaded {len(self._results)} checkpointed segments from {self.checkpoint_file}"
                    + (f" ({skipped} malformed lines skipped)" if skipped else ""))
        return len(self._results)

    async def save(self, result: TranslationResult) -> None:
        """Append one result and index it"""
        line = json.dumps(result.to_dict(), ensure_ascii=False) + '\n'
        async with self._lock:
            directory = os.path.dirname(self.checkpoint_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            try:
                async with aiofiles.open(self.checkpoint_file, 'a', encoding='utf-8') as f:
                    await f.write(line)
            except OSError as e:
                raise CheckpointSaveError(f"Cannot append to checkpoint file: {e}",
                                          context={'path': self.checkpoint_file}) from e
            self._remember(result)

    async def clear(self) -> None:
        """Forget every result and delete the file"""
        async with self._lock:
            self._results.clear()
            if os.path.exists(self.checkpoint_file):
                os.remove(self.checkpoint_file)
