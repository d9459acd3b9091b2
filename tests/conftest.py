"""
Pytest configuration and fixtures for all tests.

This file is automatically loaded by pytest and provides common fixtures
and configuration for all test modules.
"""

import sys
import inspect
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Import pytest for fixtures
import pytest

from glossa.core.llm.base import LLMProvider, LLMResponse
from glossa.core.models import BookData, ChapterSource
from glossa.persistence.database import Database


class ScriptedProvider(LLMProvider):
    """
    LLM provider double.

    ``handler(messages, tools)`` decides each answer: it may return a string,
    an LLMResponse, or an exception instance to raise, and may be async.
    Without a handler every call echoes the text between the translate tags.
    """

    def __init__(self, handler=None, configured=True):
        super().__init__(model="scripted", timeout=5)
        self.handler = handler
        self.configured = configured
        self.calls = []
        self.closed = False

    @property
    def is_configured(self):
        return self.configured

    async def chat(self, messages, tools=None, temperature=None):
        self.calls.append({'messages': messages, 'tools': tools, 'temperature': temperature})
        if self.handler is None:
            result = "T:" + self.segment_text(messages)
        else:
            result = self.handler(messages, tools)
            if inspect.isawaitable(result):
                result = await result
        if isinstance(result, Exception):
            raise result
        if isinstance(result, LLMResponse):
            return result
        return LLMResponse(content=result)

    @staticmethod
    def segment_text(messages):
        """Text between the translate tags of the last user message"""
        user = messages[-1]['content']
        return user.split('<translate>')[-1].split('</translate>')[0]

    @staticmethod
    def is_glossary_request(messages):
        return messages[0]['role'] == 'system' and 'terminology specialist' in messages[0]['content']

    async def close(self):
        self.closed = True


@pytest.fixture
def scripted_provider():
    """Factory for ScriptedProvider instances."""
    return ScriptedProvider


@pytest.fixture
def sample_html():
    """Sample chapter HTML for testing."""
    return (
        "<html><head><title>Doc Title</title><style>p { color: red; }</style></head>"
        "<body>"
        "<h1>Chapter One</h1>"
        "<p>Mr. Whymper came to the farm.</p>"
        "<div class=\"box\"><p>First <b>inner</b> paragraph.</p><p>Second inner paragraph.</p></div>"
        "<script>var x = 1;</script>"
        "<p>x</p>"
        "<blockquote>Whymper sold the wheat.</blockquote>"
        "</body></html>"
    )


@pytest.fixture
def small_book_data():
    """BookData with 3 chapters of 2 paragraphs each."""
    chapters = []
    for number, (first, second) in enumerate([
        ("Mr. Whymper came to the farm.", "The animals watched him."),
        ("Whymper sold the wheat.", "Napoleon was pleased."),
        ("The windmill was rebuilt.", "Mr. Whymper left again."),
    ], start=1):
        chapters.append(ChapterSource(
            html=f"<html><body><p>{first}</p><p>{second}</p></body></html>",
            title=f"Part {number}",
        ))
    return BookData(title="Animal Farm", author="George Orwell", language="en", chapters=chapters)


@pytest.fixture
def small_book_dict(small_book_data):
    """The same book as a JSON-ready dict."""
    return {
        'title': small_book_data.title,
        'author': small_book_data.author,
        'language': small_book_data.language,
        'styles': '',
        'chapters': [{'title': c.title, 'html': c.html} for c in small_book_data.chapters],
    }


@pytest.fixture
def database(tmp_path):
    """Fresh SQLite database in a temporary directory."""
    db = Database(str(tmp_path / "data" / "glossa.db"))
    yield db
    db.close()
