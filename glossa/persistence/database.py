"""
SQLite database manager for books, translation rows, jobs and glossaries.
"""

import sqlite3
import json
import os
import uuid
from typing import Optional, Dict, List, Any, Set
import threading

from glossa.config import DATABASE_PATH
from glossa.core.exceptions import CheckpointLoadError, CheckpointSaveError
from glossa.core.models import Book, JobStatus, TextNode, TranslationJob


class Database:
    """
    Manages the SQLite store behind resumable jobs.
    Thread-safe for concurrent access.

    Every sqlite3 failure is raised as CheckpointLoadError (reads) or
    CheckpointSaveError (writes) so the job driver can record it.
    """

    def __init__(self, db_path: str = DATABASE_PATH):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._local = threading.local()
        self._lock = threading.RLock()

        # Ensure directory exists
        directory = os.path.dirname(db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        # Initialize schema
        self._initialize_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, 'connection') or self._local.connection is None:
            self._local.connection = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                timeout=30.0
            )
            self._local.connection.row_factory = sqlite3.Row
            self._local.connection.execute("PRAGMA foreign_keys = ON")
        return self._local.connection

    def _initialize_schema(self):
        """Create database tables if they don't exist."""
        with self._lock:
            try:
                conn = self._get_connection()
                cursor = conn.cursor()

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS books (
                        book_id TEXT PRIMARY KEY,
                        title TEXT NOT NULL,
                        translated_title TEXT,
                        author TEXT,
                        language TEXT,
                        styles TEXT,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS chapters (
                        chapter_id INTEGER PRIMARY KEY AUTOINCREMENT,
                        book_id TEXT NOT NULL,
                        chapter_number INTEGER NOT NULL,
                        title TEXT,
                        original_title TEXT,
                        translated_title TEXT,
                        raw_markup TEXT,
                        text_nodes JSON NOT NULL,
                        UNIQUE (book_id, chapter_number),
                        FOREIGN KEY (book_id) REFERENCES books(book_id) ON DELETE CASCADE
                    )
                """)

                # One row per (chapter, address): re-running a batch overwrites
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS translations (
                        chapter_id INTEGER NOT NULL,
                        address TEXT NOT NULL,
                        order_index INTEGER NOT NULL,
                        source_text TEXT NOT NULL,
                        source_markup TEXT,
                        translated_text TEXT NOT NULL,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        PRIMARY KEY (chapter_id, address),
                        FOREIGN KEY (chapter_id) REFERENCES chapters(chapter_id) ON DELETE CASCADE
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS translation_jobs (
                        book_id TEXT PRIMARY KEY,
                        source_language TEXT NOT NULL,
                        target_language TEXT NOT NULL,
                        status TEXT NOT NULL,
                        total_chapters INTEGER NOT NULL,
                        completed_chapters INTEGER NOT NULL DEFAULT 0,
                        current_chapter INTEGER NOT NULL DEFAULT 1,
                        current_item_offset INTEGER NOT NULL DEFAULT 0,
                        glossary_snapshot JSON,
                        glossary_extracted INTEGER NOT NULL DEFAULT 0,
                        title_translated INTEGER NOT NULL DEFAULT 0,
                        error_message TEXT,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (book_id) REFERENCES books(book_id) ON DELETE CASCADE
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS glossary_entries (
                        book_id TEXT NOT NULL,
                        term TEXT NOT NULL,
                        translation TEXT NOT NULL,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        PRIMARY KEY (book_id, term)
                    )
                """)

                # Renderings observed for a term that differ from its canonical one
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS glossary_variants (
                        book_id TEXT NOT NULL,
                        term TEXT NOT NULL,
                        variant TEXT NOT NULL,
                        PRIMARY KEY (book_id, term, variant)
                    )
                """)

                cursor.execute("""
                    CREATE INDEX IF NOT EXISTS idx_jobs_status
                    ON translation_jobs(status)
                """)

                cursor.execute("""
                    CREATE INDEX IF NOT EXISTS idx_chapters_book
                    ON chapters(book_id)
                """)

                conn.commit()
            except sqlite3.Error as e:
                raise CheckpointLoadError(f"Cannot initialize database: {e}",
                                          context={'db_path': self.db_path}) from e

    # ------------------------------------------------------------------
    # Books and chapters
    # ------------------------------------------------------------------

    def create_book(self, book: Book, book_id: Optional[str] = None) -> str:
        """
        Store an extracted book and its chapters.

        Args:
            book: Parsed book
            book_id: Identifier to use (generated when omitted)

        Returns:
            The book identifier
        """
        book_id = book_id or uuid.uuid4().hex
        with self._lock:
            conn = self._get_connection()
            try:
                cursor = conn.cursor()

                cursor.execute("""
                    INSERT INTO books (book_id, title, author, language, styles)
                    VALUES (?, ?, ?, ?, ?)
                """, (book_id, book.title, book.author, book.language, book.styles))

                for chapter in book.chapters:
                    cursor.execute("""
                        INSERT INTO chapters
                        (book_id, chapter_number, title, original_title, raw_markup, text_nodes)
                        VALUES (?, ?, ?, ?, ?, ?)
                    """, (
                        book_id,
                        chapter.number,
                        chapter.title,
                        chapter.original_title,
                        chapter.raw_markup,
                        json.dumps([node.to_dict() for node in chapter.nodes], ensure_ascii=False)
                    ))

                conn.commit()
                return book_id
            except sqlite3.Error as e:
                conn.rollback()
                raise CheckpointSaveError(f"Cannot store book: {e}", context={'book_id': book_id}) from e

    def get_book(self, book_id: str) -> Optional[Dict[str, Any]]:
        """
        Retrieve book metadata.

        Returns:
            Book dictionary or None if not found
        """
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute("SELECT * FROM books WHERE book_id = ?", (book_id,))
                row = cursor.fetchone()
                return dict(row) if row else None
            except sqlite3.Error as e:
                raise CheckpointLoadError(f"Cannot read book: {e}", context={'book_id': book_id}) from e

    def set_book_translated_title(self, book_id: str, translated_title: str) -> None:
        self._execute_write(
            "UPDATE books SET translated_title = ? WHERE book_id = ?",
            (translated_title, book_id),
            "Cannot store book title", book_id=book_id
        )

    def get_chapter(self, book_id: str, chapter_number: int) -> Optional[Dict[str, Any]]:
        """
        Retrieve one chapter with its text nodes.

        Returns:
            Chapter dictionary (``nodes`` holds TextNode objects) or None
        """
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute("""
                    SELECT * FROM chapters WHERE book_id = ? AND chapter_number = ?
                """, (book_id, chapter_number))
                row = cursor.fetchone()
            except sqlite3.Error as e:
                raise CheckpointLoadError(f"Cannot read chapter: {e}",
                                          context={'book_id': book_id, 'chapter': chapter_number}) from e

        if not row:
            return None

        return {
            'chapter_id': row['chapter_id'],
            'book_id': row['book_id'],
            'chapter_number': row['chapter_number'],
            'title': row['title'],
            'original_title': row['original_title'],
            'translated_title': row['translated_title'],
            'raw_markup': row['raw_markup'],
            'nodes': [TextNode.from_dict(node) for node in json.loads(row['text_nodes'])],
        }

    def set_chapter_translated_title(self, chapter_id: int, translated_title: str) -> None:
        self._execute_write(
            "UPDATE chapters SET translated_title = ? WHERE chapter_id = ?",
            (translated_title, chapter_id),
            "Cannot store chapter title", chapter_id=chapter_id
        )

    # ------------------------------------------------------------------
    # Translation rows
    # ------------------------------------------------------------------

    def save_translations(self, chapter_id: int, rows: List[Dict[str, Any]]) -> None:
        """
        Write translation rows for one chapter in a single transaction.

        Each row needs address, order_index, source_text, source_markup and
        translated_text. An existing row for the same address is replaced.
        """
        with self._lock:
            conn = self._get_connection()
            try:
                conn.executemany("""
                    INSERT OR REPLACE INTO translations
                    (chapter_id, address, order_index, source_text, source_markup,
                     translated_text, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
                """, [(
                    chapter_id,
                    row['address'],
                    row['order_index'],
                    row['source_text'],
                    row.get('source_markup'),
                    row['translated_text'],
                ) for row in rows])
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise CheckpointSaveError(f"Cannot save translations: {e}",
                                          context={'chapter_id': chapter_id}) from e

    def get_translations(self, chapter_id: int) -> List[Dict[str, Any]]:
        """
        Retrieve a chapter's translation rows.

        Returns:
            Row dictionaries in document order
        """
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute("""
                    SELECT * FROM translations WHERE chapter_id = ? ORDER BY order_index
                """, (chapter_id,))
                return [dict(row) for row in cursor.fetchall()]
            except sqlite3.Error as e:
                raise CheckpointLoadError(f"Cannot read translations: {e}",
                                          context={'chapter_id': chapter_id}) from e

    def get_book_translations(self, book_id: str) -> List[Dict[str, Any]]:
        """Every translation row of a book, ordered by chapter then position"""
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute("""
                    SELECT t.*, c.chapter_number FROM translations t
                    JOIN chapters c ON c.chapter_id = t.chapter_id
                    WHERE c.book_id = ?
                    ORDER BY c.chapter_number, t.order_index
                """, (book_id,))
                return [dict(row) for row in cursor.fetchall()]
            except sqlite3.Error as e:
                raise CheckpointLoadError(f"Cannot read translations: {e}",
                                          context={'book_id': book_id}) from e

    def count_translations(self, book_id: str) -> int:
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute("""
                    SELECT COUNT(*) FROM translations t
                    JOIN chapters c ON c.chapter_id = t.chapter_id
                    WHERE c.book_id = ?
                """, (book_id,))
                return cursor.fetchone()[0]
            except sqlite3.Error as e:
                raise CheckpointLoadError(f"Cannot count translations: {e}",
                                          context={'book_id': book_id}) from e

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def create_job(self, job: TranslationJob) -> None:
        """Create the job record of a book"""
        self._execute_write("""
            INSERT INTO translation_jobs
            (book_id, source_language, target_language, status, total_chapters,
             completed_chapters, current_chapter, current_item_offset, glossary_snapshot,
             glossary_extracted, title_translated, error_message)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, self._job_params(job), "Cannot create job", book_id=job.book_id)

    def update_job(self, job: TranslationJob) -> None:
        """Write the whole job record back"""
        params = self._job_params(job)
        self._execute_write("""
            UPDATE translation_jobs SET
                source_language = ?, target_language = ?, status = ?, total_chapters = ?,
                completed_chapters = ?, current_chapter = ?, current_item_offset = ?,
                glossary_snapshot = ?, glossary_extracted = ?, title_translated = ?,
                error_message = ?, updated_at = CURRENT_TIMESTAMP
            WHERE book_id = ?
        """, params[1:] + (job.book_id,), "Cannot update job", book_id=job.book_id)

    def get_job(self, book_id: str) -> Optional[TranslationJob]:
        """
        Retrieve a job.

        Returns:
            TranslationJob or None if not found
        """
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute("SELECT * FROM translation_jobs WHERE book_id = ?", (book_id,))
                row = cursor.fetchone()
            except sqlite3.Error as e:
                raise CheckpointLoadError(f"Cannot read job: {e}", context={'book_id': book_id}) from e

        if not row:
            return None

        return TranslationJob(
            book_id=row['book_id'],
            source_language=row['source_language'],
            target_language=row['target_language'],
            total_chapters=row['total_chapters'],
            completed_chapters=row['completed_chapters'],
            current_chapter=row['current_chapter'],
            current_item_offset=row['current_item_offset'],
            glossary_snapshot=json.loads(row['glossary_snapshot']) if row['glossary_snapshot'] else {},
            glossary_extracted=bool(row['glossary_extracted']),
            title_translated=bool(row['title_translated']),
            status=JobStatus(row['status']),
            error_message=row['error_message'],
        )

    def set_job_error(self, book_id: str, message: str) -> None:
        self._execute_write("""
            UPDATE translation_jobs
            SET status = ?, error_message = ?, updated_at = CURRENT_TIMESTAMP
            WHERE book_id = ?
        """, (JobStatus.ERROR.value, message, book_id), "Cannot record job error", book_id=book_id)

    @staticmethod
    def _job_params(job: TranslationJob) -> tuple:
        return (
            job.book_id,
            job.source_language,
            job.target_language,
            job.status.value,
            job.total_chapters,
            job.completed_chapters,
            job.current_chapter,
            job.current_item_offset,
            json.dumps(job.glossary_snapshot, ensure_ascii=False),
            int(job.glossary_extracted),
            int(job.title_translated),
            job.error_message,
        )

    # ------------------------------------------------------------------
    # Glossary
    # ------------------------------------------------------------------

    def get_glossary_entry(self, book_id: str, term: str) -> Optional[str]:
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute("""
                    SELECT translation FROM glossary_entries WHERE book_id = ? AND term = ?
                """, (book_id, term))
                row = cursor.fetchone()
                return row['translation'] if row else None
            except sqlite3.Error as e:
                raise CheckpointLoadError(f"Cannot read glossary: {e}", context={'book_id': book_id}) from e

    def set_glossary_entry(self, book_id: str, term: str, translation: str) -> None:
        self._execute_write("""
            INSERT OR REPLACE INTO glossary_entries (book_id, term, translation, updated_at)
            VALUES (?, ?, ?, CURRENT_TIMESTAMP)
        """, (book_id, term, translation), "Cannot save glossary entry", book_id=book_id)

    def get_glossary(self, book_id: str) -> Dict[str, str]:
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute("""
                    SELECT term, translation FROM glossary_entries WHERE book_id = ? ORDER BY term
                """, (book_id,))
                return {row['term']: row['translation'] for row in cursor.fetchall()}
            except sqlite3.Error as e:
                raise CheckpointLoadError(f"Cannot read glossary: {e}", context={'book_id': book_id}) from e

    def add_glossary_variants(self, book_id: str, variants: Dict[str, Set[str]]) -> None:
        """Record observed non-canonical renderings, ignoring ones already stored"""
        params = [(book_id, term, variant) for term, values in variants.items() for variant in values]
        if not params:
            return
        with self._lock:
            conn = self._get_connection()
            try:
                conn.executemany("""
                    INSERT OR IGNORE INTO glossary_variants (book_id, term, variant)
                    VALUES (?, ?, ?)
                """, params)
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise CheckpointSaveError(f"Cannot save glossary variants: {e}",
                                          context={'book_id': book_id}) from e

    def get_glossary_variants(self, book_id: str) -> Dict[str, Set[str]]:
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute("""
                    SELECT term, variant FROM glossary_variants WHERE book_id = ?
                """, (book_id,))
                variants: Dict[str, Set[str]] = {}
                for row in cursor.fetchall():
                    variants.setdefault(row['term'], set()).add(row['variant'])
                return variants
            except sqlite3.Error as e:
                raise CheckpointLoadError(f"Cannot read glossary variants: {e}",
                                          context={'book_id': book_id}) from e

    # ------------------------------------------------------------------

    def delete_book(self, book_id: str) -> None:
        """Delete a book with its chapters, rows, job and glossary"""
        with self._lock:
            conn = self._get_connection()
            try:
                conn.execute("DELETE FROM glossary_entries WHERE book_id = ?", (book_id,))
                conn.execute("DELETE FROM glossary_variants WHERE book_id = ?", (book_id,))
                conn.execute("DELETE FROM books WHERE book_id = ?", (book_id,))
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise CheckpointSaveError(f"Cannot delete book: {e}", context={'book_id': book_id}) from e

    def _execute_write(self, sql: str, params: tuple, error_message: str, **context) -> None:
        with self._lock:
            conn = self._get_connection()
            try:
                conn.execute(sql, params)
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise CheckpointSaveError(f"{error_message}: {e}", context=context) from e

    def close(self):
        """Close database connection."""
        if hasattr(self._local, 'connection') and self._local.connection:
            self._local.connection.close()
            self._local.connection = None
