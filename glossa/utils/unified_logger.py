"""
Unified logging system for Glossa
Provides consistent console output for the CLI and the job API
"""
import sys
import os
from datetime import datetime
from typing import Optional, Dict, Any, Callable
from enum import Enum

from glossa.core.events import Event, EventType


class LogLevel(Enum):
    """Log levels with priority values"""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50


class LogType(Enum):
    """Types of log messages for special handling"""
    GENERAL = "general"
    GLOSSARY = "glossary"
    CHAPTER = "chapter"
    SEGMENT = "segment"
    PROGRESS = "progress"
    CONSISTENCY = "consistency"
    JOB_PHASE = "job_phase"
    TRANSLATION_START = "translation_start"
    TRANSLATION_END = "translation_end"
    ERROR_DETAIL = "error_detail"


class Colors:
    """ANSI color codes for terminal output"""
    # Check if colors should be disabled
    NO_COLOR = os.environ.get('NO_COLOR') is not None or not sys.stdout.isatty()

    YELLOW = '' if NO_COLOR else '\033[93m'       # Headers
    WHITE = '' if NO_COLOR else '\033[97m'        # Main text
    GRAY = '' if NO_COLOR else '\033[90m'         # Technical details
    CYAN = '' if NO_COLOR else '\033[96m'         # Glossary
    GREEN = '' if NO_COLOR else '\033[92m'        # Completed work
    RED = '' if NO_COLOR else '\033[91m'          # Errors
    ENDC = '' if NO_COLOR else '\033[0m'          # Reset

    @classmethod
    def disable(cls):
        """Disable all colors"""
        cls.YELLOW = cls.WHITE = cls.GRAY = cls.CYAN = cls.GREEN = cls.RED = cls.ENDC = ''


class UnifiedLogger:
    """
    Unified logger that provides consistent logging across all interfaces
    """

    def __init__(self,
                 name: str = "Glossa",
                 console_output: bool = True,
                 enable_colors: bool = True,
                 min_level: LogLevel = LogLevel.INFO,
                 storage_callback: Optional[Callable] = None):
        """
        Initialize the unified logger

        Args:
            name: Logger name/identifier
            console_output: Whether to output to console
            enable_colors: Whether to use colored output
            min_level: Minimum log level to display
            storage_callback: Receives every structured log entry (e.g. for tests)
        """
        self.name = name
        self.console_output = console_output
        self.enable_colors = enable_colors
        self.min_level = min_level
        self.storage_callback = storage_callback

        self.translation_state = {
            'source_lang': '',
            'target_lang': '',
            'model': '',
            'start_time': None,
            'in_progress': False
        }

        if not enable_colors:
            Colors.disable()

    def _format_timestamp(self) -> str:
        return datetime.now().strftime("%H:%M:%S")

    def _format_console_message(self, level: LogLevel, message: str,
                                log_type: LogType = LogType.GENERAL,
                                data: Optional[Dict[str, Any]] = None) -> str:
        """Format message for console output"""
        timestamp = self._format_timestamp()
        data = data or {}

        level_colors = {
            LogLevel.DEBUG: Colors.GRAY,
            LogLevel.INFO: Colors.WHITE,
            LogLevel.WARNING: Colors.YELLOW,
            LogLevel.ERROR: Colors.RED,
            LogLevel.CRITICAL: Colors.RED
        }
        color = level_colors.get(level, Colors.WHITE)

        if log_type == LogType.TRANSLATION_START:
            return self._format_translation_start(data)
        elif log_type == LogType.TRANSLATION_END:
            return self._format_translation_end(data)
        elif log_type == LogType.ERROR_DETAIL:
            return self._format_error_detail(message, data)
        elif log_type == LogType.PROGRESS:
            return self._format_progress(data)
        elif log_type == LogType.GLOSSARY:
            return f"{Colors.CYAN}[{timestamp}] GLOSSARY {message}{Colors.ENDC}"
        elif log_type == LogType.CONSISTENCY:
            return f"{Colors.GREEN}[{timestamp}] CONSISTENCY {message}{Colors.ENDC}"

        level_str = f"[{level.name}] " if level != LogLevel.INFO else ""
        return f"{color}[{timestamp}] {level_str}{message}{Colors.ENDC}"

    def _format_progress(self, data: Dict[str, Any]) -> str:
        """Format progress summary"""
        completed = data.get('completed', 0)
        total = data.get('total', 0)
        percentage = (completed / total * 100) if total else 0

        bar_length = 30
        filled = int(bar_length * percentage / 100)
        bar = '█' * filled + '░' * (bar_length - filled)
        return f"{Colors.WHITE}[{bar}] {completed}/{total} segments ({percentage:.1f}%){Colors.ENDC}"

    def _format_translation_start(self, data: Dict[str, Any]) -> str:
        output = [f"{Colors.YELLOW}TRANSLATION STARTED{Colors.ENDC}"]

        self.translation_state.update({
            'source_lang': data.get('source_lang', 'Unknown'),
            'target_lang': data.get('target_lang', 'Unknown'),
            'model': data.get('model', 'Unknown'),
            'start_time': datetime.now(),
            'in_progress': True
        })

        if 'input_file' in data:
            output.append(f"{Colors.WHITE}Input: {data['input_file']}{Colors.ENDC}")
        output.append(f"{Colors.WHITE}Languages: {self.translation_state['source_lang']} → "
                      f"{self.translation_state['target_lang']}{Colors.ENDC}")
        output.append(f"{Colors.GRAY}Model: {self.translation_state['model']}{Colors.ENDC}")
        if data.get('mock_mode'):
            output.append(f"{Colors.YELLOW}No API key configured: placeholder translations only{Colors.ENDC}")
        return '\n'.join(output)

    def _format_translation_end(self, data: Dict[str, Any]) -> str:
        output = [f"\n{Colors.WHITE}TRANSLATION COMPLETE{Colors.ENDC}"]

        if self.translation_state['start_time']:
            duration = datetime.now() - self.translation_state['start_time']
            output.append(f"{Colors.GRAY}Duration: {duration}{Colors.ENDC}")

        if 'output_file' in data:
            output.append(f"{Colors.WHITE}Output saved to: {data['output_file']}{Colors.ENDC}")

        if 'stats' in data:
            stats = data['stats']
            output.append(f"{Colors.WHITE}Translated segments: {stats.get('completed', 0)}{Colors.ENDC}")
            if stats.get('failed', 0) > 0:
                output.append(f"{Colors.YELLOW}Failed segments: {stats['failed']}{Colors.ENDC}")
            if stats.get('glossary_terms') is not None:
                output.append(f"{Colors.CYAN}Glossary terms: {stats['glossary_terms']}{Colors.ENDC}")

        self.translation_state['in_progress'] = False
        return '\n'.join(output)

    def _format_error_detail(self, message: str, data: Dict[str, Any]) -> str:
        output = [f"{Colors.RED}[{self._format_timestamp()}] ERROR: {message}{Colors.ENDC}"]
        if 'details' in data:
            output.append(f"{Colors.RED}Details: {data['details']}{Colors.ENDC}")
        if 'address' in data:
            output.append(f"{Colors.RED}Segment: chapter {data.get('chapter')} {data['address']}{Colors.ENDC}")
        return '\n'.join(output)

    def log(self, level: LogLevel, message: str,
            log_type: LogType = LogType.GENERAL,
            data: Optional[Dict[str, Any]] = None):
        """
        Main logging method

        Args:
            level: Log level
            message: Log message
            log_type: Type of log for special formatting
            data: Additional data for the log entry
        """
        if level.value < self.min_level.value:
            return

        if self.console_output:
            try:
                console_msg = self._format_console_message(level, message, log_type, data)
            except (KeyError, TypeError, ValueError):
                console_msg = f"[{self._format_timestamp()}] {message}"
            try:
                print(console_msg, flush=True)
            except UnicodeEncodeError:
                # Consoles without UTF-8 (Windows cp1252)
                print(console_msg.encode('ascii', 'replace').decode('ascii'), flush=True)

        if self.storage_callback:
            self.storage_callback({
                'timestamp': datetime.now().isoformat(),
                'level': level.name,
                'type': log_type.value,
                'message': message,
                'data': data or {}
            })

    # Convenience methods
    def debug(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.DEBUG, message, log_type, data)

    def info(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.INFO, message, log_type, data)

    def warning(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.WARNING, message, log_type, data)

    def error(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.ERROR, message, log_type, data)

    def create_event_listener(self) -> Callable[[Event], None]:
        """
        Bridge from the event bus to this logger.

        Subscribe the returned callback with ``EventBus.subscribe_all``.
        """
        def listener(event: Event) -> None:
            data = event.data
            if event.type == EventType.GLOSSARY_BUILT:
                self.info(f"{data.get('total', 0)} terms ({data.get('added', 0)} new)", LogType.GLOSSARY, data)
            elif event.type == EventType.GLOSSARY_TERM_SAVED:
                self.debug(f"saved '{data.get('term')}' → '{data.get('translation')}'", LogType.GLOSSARY, data)
            elif event.type == EventType.CHAPTER_STARTED:
                self.debug(f"Chapter {data.get('chapter')} started ({data.get('items_total', 0)} segments)",
                           LogType.CHAPTER, data)
            elif event.type == EventType.CHAPTER_COMPLETED:
                self.info(f"Chapter {data.get('chapter')} completed", LogType.CHAPTER, data)
            elif event.type == EventType.SEGMENT_FAILED:
                self.log(LogLevel.WARNING, "Segment translation failed", LogType.ERROR_DETAIL,
                         {'details': data.get('error'), 'chapter': data.get('chapter'),
                          'address': data.get('address')})
            elif event.type == EventType.CONSISTENCY_FIXED:
                self.info(f"final sweep corrected {data.get('segments', 0)} segments", LogType.CONSISTENCY, data)
            elif event.type == EventType.JOB_PHASE_CHANGED:
                self.info(f"Job {data.get('book_id')}: {data.get('old')} → {data.get('new')}",
                          LogType.JOB_PHASE, data)
            elif event.type == EventType.JOB_FAILED:
                self.error(f"Job {data.get('book_id')} failed", LogType.ERROR_DETAIL,
                           {'details': data.get('error')})

        return listener


# Global logger instance
_global_logger = None


def get_logger(name: str = "Glossa", **kwargs) -> UnifiedLogger:
    """
    Get or create the global logger instance

    Args:
        name: Logger name
        **kwargs: Additional arguments for UnifiedLogger

    Returns:
        UnifiedLogger instance
    """
    global _global_logger
    if _global_logger is None:
        _global_logger = UnifiedLogger(name, **kwargs)
    elif 'storage_callback' in kwargs:
        _global_logger.storage_callback = kwargs['storage_callback']
    return _global_logger


def setup_cli_logger(enable_colors: bool = True) -> UnifiedLogger:
    """Setup logger for CLI usage"""
    # Import here to avoid circular dependencies
    from glossa.config import DEBUG_MODE

    return get_logger(
        console_output=True,
        enable_colors=enable_colors,
        min_level=LogLevel.DEBUG if DEBUG_MODE else LogLevel.INFO
    )
