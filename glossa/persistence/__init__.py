"""
Persistence module for translation jobs, checkpoints and glossaries.
"""

from .database import Database
from .checkpoint_manager import CheckpointManager, InMemoryCheckpointManager
from .glossary_store import SqliteGlossaryStore

__all__ = ['Database', 'CheckpointManager', 'InMemoryCheckpointManager', 'SqliteGlossaryStore']
