"""
Centralized configuration class
"""
import os
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

from glossa.core.exceptions import ConfigurationError

# Setup debug logger for configuration
_config_logger = logging.getLogger('config')

# Check for DEBUG_MODE early (before .env is loaded, check environment)
_debug_mode = os.getenv('DEBUG_MODE', 'false').lower() == 'true'
if _debug_mode:
    logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    _config_logger.setLevel(logging.DEBUG)
    _config_logger.debug("DEBUG_MODE enabled - verbose logging active")

# Get config directory (current working directory)
_config_dir = Path.cwd()
_env_file = _config_dir / '.env'

if not _env_file.exists():
    _config_logger.debug(f".env not found at {_env_file.absolute()}, using defaults and process environment")

# Load .env file if it exists
_dotenv_result = load_dotenv(_env_file)
if _debug_mode:
    _config_logger.debug(f"load_dotenv() returned: {_dotenv_result}")

# Languages the pipeline accepts, keyed by code
SUPPORTED_LANGUAGES = {
    'zh': 'Chinese',
    'es': 'Spanish',
    'fr': 'French',
    'de': 'German',
    'ja': 'Japanese',
    'ko': 'Korean',
    'ru': 'Russian',
    'en': 'English',
}

# LLM endpoint configuration (any OpenAI compatible server)
API_BASE_URL = os.getenv('API_BASE_URL', 'https://api.openai.com/v1')
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '')
DEFAULT_MODEL = os.getenv('DEFAULT_MODEL', 'gpt-4o-mini')
TEMPERATURE = float(os.getenv('TEMPERATURE', '0.3'))
GLOSSARY_TEMPERATURE = float(os.getenv('GLOSSARY_TEMPERATURE', '0.1'))
REQUEST_TIMEOUT = int(os.getenv('REQUEST_TIMEOUT', '60'))
MAX_RETRIES = int(os.getenv('MAX_RETRIES', '3'))
MAX_TOOL_ITERATIONS = 5

# Languages
DEFAULT_SOURCE_LANGUAGE = os.getenv('SOURCE_LANGUAGE', 'en')
DEFAULT_TARGET_LANGUAGE = os.getenv('TARGET_LANGUAGE', 'zh')

# Concurrency and batching
CHAPTER_CONCURRENCY = int(os.getenv('CHAPTER_CONCURRENCY', '2'))
ITEM_CONCURRENCY = int(os.getenv('ITEM_CONCURRENCY', '8'))
BATCH_SIZE = int(os.getenv('BATCH_SIZE', '25'))
DELAY_BETWEEN_ITEMS = float(os.getenv('DELAY_BETWEEN_ITEMS', '0.1'))

# Context window around each segment
CONTEXT_BEFORE = int(os.getenv('CONTEXT_BEFORE', '2'))
CONTEXT_AFTER = int(os.getenv('CONTEXT_AFTER', '2'))
# 0 disables token trimming of the context window
CONTEXT_MAX_TOKENS = int(os.getenv('CONTEXT_MAX_TOKENS', '0'))

# Storage
CHECKPOINT_FILE = os.getenv('CHECKPOINT_FILE', 'translation_checkpoint.jsonl')
DATABASE_PATH = os.getenv('DATABASE_PATH', 'data/glossa.db')
GLOSSARY_FILE = os.getenv('GLOSSARY_FILE', '.glossa_glossary.json')

# Web server
HOST = os.getenv('HOST', '127.0.0.1')
PORT = int(os.getenv('PORT', '5000'))

# Debug mode
DEBUG_MODE = os.getenv('DEBUG_MODE', 'false').lower() == 'true'

# Prompt tags wrapped around the segment sent to the model
INPUT_TAG_IN = "<translate>"
INPUT_TAG_OUT = "</translate>"
CONTEXT_TAG_IN = "<context>"
CONTEXT_TAG_OUT = "</context>"

# Placeholders written instead of a translation
PENDING_PLACEHOLDER = "[Translation pending]"

# Extraction thresholds
MIN_TEXT_LENGTH = 2
SHORT_TITLE_BLOCK_LENGTH = 50
MAX_TITLE_BLOCKS = 3

# Glossary sampling
GLOSSARY_SAMPLE_HEAD = 100
GLOSSARY_SAMPLE_MIDDLE = 50
GLOSSARY_SAMPLE_TAIL = 50


def language_name(code: str) -> str:
    """Return the display name for a language code, or the input unchanged."""
    return SUPPORTED_LANGUAGES.get(code, code)


def _int_option(request_data: dict, key: str, default: int) -> int:
    """Integer option from a request body"""
    value = request_data.get(key, default)
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{key} must be an integer", context={key: value}) from e


@dataclass
class TranslationConfig:
    """Unified configuration for both CLI and web interfaces"""

    # Core settings
    source_language: str = DEFAULT_SOURCE_LANGUAGE
    target_language: str = DEFAULT_TARGET_LANGUAGE
    model: str = DEFAULT_MODEL
    api_base_url: str = API_BASE_URL
    api_key: str = OPENAI_API_KEY

    # LLM parameters
    temperature: float = TEMPERATURE
    timeout: int = REQUEST_TIMEOUT
    max_retries: int = MAX_RETRIES

    # Concurrency
    chapter_concurrency: int = CHAPTER_CONCURRENCY
    item_concurrency: int = ITEM_CONCURRENCY
    batch_size: int = BATCH_SIZE
    delay_between_items: float = DELAY_BETWEEN_ITEMS

    # Context window
    context_before: int = CONTEXT_BEFORE
    context_after: int = CONTEXT_AFTER
    context_max_tokens: int = CONTEXT_MAX_TOKENS

    # Offline mode only
    checkpoint_file: str = CHECKPOINT_FILE
    glossary_file: Optional[str] = GLOSSARY_FILE

    # Interface-specific
    interface_type: str = "cli"  # or "web"
    enable_colors: bool = True

    @property
    def mock_mode(self) -> bool:
        """True when no API credential is configured"""
        return not self.api_key

    def validate(self) -> 'TranslationConfig':
        """Raise ConfigurationError if any option is out of range"""
        for field_name in ('source_language', 'target_language'):
            code = getattr(self, field_name)
            if code not in SUPPORTED_LANGUAGES:
                raise ConfigurationError(
                    f"Unsupported language code '{code}'",
                    context={'field': field_name, 'supported': ','.join(SUPPORTED_LANGUAGES)}
                )
        for field_name in ('chapter_concurrency', 'item_concurrency', 'batch_size'):
            if getattr(self, field_name) < 1:
                raise ConfigurationError(f"{field_name} must be at least 1",
                                         context={field_name: getattr(self, field_name)})
        if self.max_retries < 0:
            raise ConfigurationError("max_retries cannot be negative",
                                     context={'max_retries': self.max_retries})
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive", context={'timeout': self.timeout})
        return self

    @classmethod
    def from_cli_args(cls, args) -> 'TranslationConfig':
        """Create config from CLI arguments"""
        return cls(
            source_language=args.source_lang,
            target_language=args.target_lang,
            model=args.model,
            api_base_url=args.api_base_url,
            api_key=getattr(args, 'api_key', OPENAI_API_KEY) or '',
            timeout=getattr(args, 'timeout', REQUEST_TIMEOUT),
            max_retries=getattr(args, 'max_retries', MAX_RETRIES),
            chapter_concurrency=getattr(args, 'chapter_concurrency', CHAPTER_CONCURRENCY),
            item_concurrency=getattr(args, 'item_concurrency', ITEM_CONCURRENCY),
            checkpoint_file=getattr(args, 'checkpoint', None) or CHECKPOINT_FILE,
            glossary_file=getattr(args, 'glossary', None) or GLOSSARY_FILE,
            interface_type="cli",
            enable_colors=not getattr(args, 'no_color', False),
        )

    @classmethod
    def from_web_request(cls, request_data: dict) -> 'TranslationConfig':
        """Create config from web request data"""
        return cls(
            source_language=request_data.get('source_language', DEFAULT_SOURCE_LANGUAGE),
            target_language=request_data.get('target_language', DEFAULT_TARGET_LANGUAGE),
            model=request_data.get('model', DEFAULT_MODEL),
            api_base_url=request_data.get('api_base_url', API_BASE_URL),
            api_key=request_data.get('api_key') or OPENAI_API_KEY,
            timeout=_int_option(request_data, 'timeout', REQUEST_TIMEOUT),
            max_retries=_int_option(request_data, 'max_retries', MAX_RETRIES),
            item_concurrency=_int_option(request_data, 'item_concurrency', ITEM_CONCURRENCY),
            batch_size=_int_option(request_data, 'batch_size', BATCH_SIZE),
            interface_type="web",
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization (the API key is never included)"""
        return {
            'source_language': self.source_language,
            'target_language': self.target_language,
            'model': self.model,
            'api_base_url': self.api_base_url,
            'temperature': self.temperature,
            'timeout': self.timeout,
            'max_retries': self.max_retries,
            'chapter_concurrency': self.chapter_concurrency,
            'item_concurrency': self.item_concurrency,
            'batch_size': self.batch_size,
            'delay_between_items': self.delay_between_items,
            'context_before': self.context_before,
            'context_after': self.context_after,
            'context_max_tokens': self.context_max_tokens,
            'checkpoint_file': self.checkpoint_file,
            'glossary_file': self.glossary_file,
            'interface_type': self.interface_type,
        }
