"""
Durable per-book glossary store for resumable jobs.
"""

from typing import Dict, Optional

from glossa.core.glossary.store import GlossaryStore
from .database import Database


class SqliteGlossaryStore(GlossaryStore):
    """Glossary rows of one book in the jobs database"""

    def __init__(self, database: Database, book_id: str):
        self.database = database
        self.book_id = book_id

    async def get(self, term: str) -> Optional[str]:
        return self.database.get_glossary_entry(self.book_id, term)

    async def set(self, term: str, translation: str) -> None:
        self.database.set_glossary_entry(self.book_id, term, translation)

    async def get_all_entries(self) -> Dict[str, str]:
        return self.database.get_glossary(self.book_id)
