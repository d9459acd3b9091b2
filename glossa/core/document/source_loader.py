"""
Loading of BookData documents produced by upstream ingestion.
"""
import json

import aiofiles

from glossa.core.exceptions import BookDataError
from glossa.core.models import BookData


async def load_book_data(path: str) -> BookData:
    """
    Read a BookData JSON file.

    Args:
        path: Path to a JSON file with title, author, language, styles and chapters

    Returns:
        BookData instance

    Raises:
        BookDataError: If the file is unreadable or not valid BookData
    """
    try:
        async with aiofiles.open(path, 'r', encoding='utf-8') as f:
            content = await f.read()
    except OSError as e:
        raise BookDataError(f"Cannot read book file: {e}", context={'path': path}) from e

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise BookDataError(f"Book file is not valid JSON: {e}", context={'path': path}) from e

    return BookData.from_dict(data)
