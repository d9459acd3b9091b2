"""
Command-line interface for book translation
"""
import os
import sys
import json
import argparse
import asyncio

import aiofiles
from tqdm.auto import tqdm

from glossa.config import (
    API_BASE_URL,
    CHAPTER_CONCURRENCY,
    CHECKPOINT_FILE,
    DEFAULT_MODEL,
    DEFAULT_SOURCE_LANGUAGE,
    DEFAULT_TARGET_LANGUAGE,
    GLOSSARY_FILE,
    ITEM_CONCURRENCY,
    MAX_RETRIES,
    OPENAI_API_KEY,
    REQUEST_TIMEOUT,
    SUPPORTED_LANGUAGES,
    TranslationConfig,
)
from glossa.core.book_translator import BookTranslator
from glossa.core.document import extract_book, load_book_data
from glossa.core.events import EventBus
from glossa.core.exceptions import TranslationError
from glossa.core.glossary.store import JsonFileGlossaryStore
from glossa.core.llm import create_llm_provider
from glossa.persistence.checkpoint_manager import CheckpointManager
from glossa.utils.unified_logger import setup_cli_logger, LogType


def build_parser() -> argparse.ArgumentParser:
    languages = ', '.join(sorted(SUPPORTED_LANGUAGES))
    parser = argparse.ArgumentParser(description="Translate a parsed e-book (BookData JSON) using an LLM.")
    parser.add_argument("-i", "--input", required=True, help="Path to the BookData JSON file.")
    parser.add_argument("-o", "--output", default=None, help="Path to the output JSON file. If not specified, uses input filename with suffix.")
    parser.add_argument("-sl", "--source_lang", default=DEFAULT_SOURCE_LANGUAGE, help=f"Source language code ({languages}; default: {DEFAULT_SOURCE_LANGUAGE}).")
    parser.add_argument("-tl", "--target_lang", default=DEFAULT_TARGET_LANGUAGE, help=f"Target language code ({languages}; default: {DEFAULT_TARGET_LANGUAGE}).")
    parser.add_argument("-m", "--model", default=DEFAULT_MODEL, help=f"LLM model (default: {DEFAULT_MODEL}).")
    parser.add_argument("--api_base_url", default=API_BASE_URL, help=f"OpenAI compatible API base URL (default: {API_BASE_URL}).")
    parser.add_argument("--api_key", default=OPENAI_API_KEY, help="API key. Without one, placeholder translations are produced.")
    parser.add_argument("--timeout", type=int, default=REQUEST_TIMEOUT, help=f"Per-request timeout in seconds (default: {REQUEST_TIMEOUT}).")
    parser.add_argument("--max_retries", type=int, default=MAX_RETRIES, help=f"Retries per request (default: {MAX_RETRIES}).")
    parser.add_argument("--chapter_concurrency", type=int, default=CHAPTER_CONCURRENCY, help=f"Chapters translated at once (default: {CHAPTER_CONCURRENCY}).")
    parser.add_argument("--item_concurrency", type=int, default=ITEM_CONCURRENCY, help=f"Segments translated at once per chapter (default: {ITEM_CONCURRENCY}).")
    parser.add_argument("--checkpoint", default=None, help="JSONL checkpoint file (default: derived from the input file and target language).")
    parser.add_argument("--glossary", default=None, help="JSON glossary file, read before and updated during the run (default: derived from the input file and target language).")
    parser.add_argument("--skip-failures", action="store_true", help="Write a failure marker instead of aborting when a segment cannot be translated.")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output.")
    return parser


def resolve_default_paths(args) -> None:
    """
    Fill in the output, checkpoint and glossary paths not given on the command line.

    Each is derived from the input file and target language, so runs over
    different books or into different languages never share a checkpoint or
    glossary.
    """
    base, _ = os.path.splitext(args.input)
    language = args.target_lang.lower()
    if args.output is None:
        args.output = f"{base}_translated_{language}.json"
    if args.checkpoint is None:
        args.checkpoint = f"{base}_{language}.{os.path.basename(CHECKPOINT_FILE).lstrip('.')}"
    if args.glossary is None:
        args.glossary = f"{base}_{language}.{os.path.basename(GLOSSARY_FILE).lstrip('.')}"


async def run_translation(args, config: TranslationConfig, logger) -> dict:
    """Load, extract, translate and write the output file"""
    book = extract_book(await load_book_data(args.input))
    logger.info(f"Extracted {len(book.chapters)} chapters, {book.total_nodes} segments from '{book.title}'")

    store = JsonFileGlossaryStore(config.glossary_file)
    checkpoint = CheckpointManager(config.checkpoint_file)

    event_bus = EventBus()
    event_bus.subscribe_all(logger.create_event_listener())

    progress_bar = tqdm(total=book.total_nodes, desc=f"Translating {config.source_language} to {config.target_language}", unit="seg")

    def on_progress(completed: int, total: int) -> None:
        progress_bar.update(1)

    try:
        async with create_llm_provider(config) as llm:
            translator = BookTranslator(llm, config, store=store, checkpoint=checkpoint,
                                        event_bus=event_bus, skip_failures=args.skip_failures,
                                        on_progress=on_progress)
            result = await translator.translate_book(book)
    finally:
        progress_bar.close()

    async with aiofiles.open(args.output, 'w', encoding='utf-8') as f:
        await f.write(json.dumps(result, ensure_ascii=False, indent=2))
    return result


def main():
    parser = build_parser()
    args = parser.parse_args()

    resolve_default_paths(args)

    # Setup unified logger
    logger = setup_cli_logger(enable_colors=not args.no_color)

    config = TranslationConfig.from_cli_args(args)
    try:
        config.validate()
    except TranslationError as e:
        parser.error(str(e))

    logger.info("Translation Started", LogType.TRANSLATION_START, {
        'source_lang': config.source_language,
        'target_lang': config.target_language,
        'model': config.model,
        'input_file': args.input,
        'mock_mode': config.mock_mode,
    })

    try:
        result = asyncio.run(run_translation(args, config, logger))
    except TranslationError as e:
        logger.error(f"Translation failed: {e}", LogType.ERROR_DETAIL, {
            'details': str(e),
            'input_file': args.input
        })
        logger.info(f"Completed segments are kept in {config.checkpoint_file}; rerun to resume.")
        sys.exit(1)

    segments = [segment for chapter in result['chapters'] for segment in chapter['segments']]
    failed = sum(1 for s in segments if s['translated_text'].startswith('[Translation failed:'))

    logger.info("Translation Completed Successfully", LogType.TRANSLATION_END, {
        'output_file': args.output,
        'stats': {
            'completed': len(segments) - failed,
            'failed': failed,
            'glossary_terms': len(result['glossary']),
        }
    })


if __name__ == "__main__":
    main()
