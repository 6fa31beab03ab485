"""
Centralized logging configuration for the workflow graph pipeline.

Features:
- Colored console output keyed by log level
- Detailed, simple and JSON line formats
- LLM request/response blocks with request ids and dividers
- Tool-call logging for the orchestrator's model loop
"""

import json
import logging
import re
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from pathlib import Path

DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
SIMPLE_FORMAT = "%(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_TIMESTAMP_PATTERN = re.compile(r'(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}(?:\.\d{2,3})?)')


class Colors:
    """ANSI color codes for terminal output"""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    WHITE = "\033[97m"
    GRAY = "\033[90m"


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level, timestamp and logger name"""

    COLORS = {
        logging.DEBUG: Colors.GRAY,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.MAGENTA,
    }

    def format(self, record):
        formatted = super().format(record)

        level_color = self.COLORS.get(record.levelno, Colors.WHITE)
        formatted = formatted.replace(
            record.levelname,
            f"{level_color}{record.levelname}{Colors.RESET}",
            1
        )
        formatted = _TIMESTAMP_PATTERN.sub(f"{Colors.CYAN}\\1{Colors.RESET}", formatted, count=1)

        if record.name:
            formatted = formatted.replace(
                f"{record.name} - ",
                f"{Colors.BLUE}{record.name}{Colors.RESET} - ",
                1
            )
        return formatted


class JSONLineFormatter(logging.Formatter):
    """One JSON object per record, safe for messages containing quotes"""

    def format(self, record):
        payload = {
            "timestamp": self.formatTime(record, DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


class LLMLogger:
    """Request/response blocks for model calls, keyed by request id"""

    DIVIDER = "-" * 60

    def __init__(self, logger: logging.Logger, preview_chars: int = 500):
        self.logger = logger
        self.preview_chars = preview_chars

    def _preview(self, text: str) -> str:
        if len(text) > self.preview_chars:
            return text[:self.preview_chars] + "..."
        return text

    def _block(self, level: int, color: str, title: str, request_id: Optional[str], rows: List[str]):
        emit = lambda text: self.logger.log(level, f"{color}{text}{Colors.RESET}")
        emit(f"\n{self.DIVIDER}")
        emit(title)
        if request_id:
            emit(f"📋 Request ID: {request_id}")
        for row in rows:
            emit(row)
        emit(self.DIVIDER)

    def log_llm_request(self, model: str, prompt: str, request_id: Optional[str] = None,
                        phase: Optional[str] = None):
        title = f"🤖 LLM REQUEST - {model}" + (f" [{phase}]" if phase else "")
        self._block(logging.INFO, Colors.CYAN, title, request_id, ["📝 Prompt:", self._preview(prompt)])

    def log_llm_response(self, model: str, response: str, request_id: Optional[str] = None,
                         duration_ms: Optional[float] = None):
        rows = []
        if duration_ms is not None:
            rows.append(f"⏱️  Response Time: {duration_ms:.2f}ms")
        rows += ["📄 Response:", self._preview(response)]
        self._block(logging.INFO, Colors.CYAN, f"🤖 LLM RESPONSE - {model}", request_id, rows)

    def log_llm_error(self, model: str, error: str, request_id: Optional[str] = None):
        self._block(logging.ERROR, Colors.RED, f"❌ LLM ERROR - {model}", request_id, [f"💥 Error: {error}"])

    def log_tool_call(self, tool: str, arguments: Dict[str, Any], result_size: int):
        """One line per tool invocation requested by the model"""
        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
        self.logger.info(
            f"{Colors.MAGENTA}🔧 TOOL {tool}({json.dumps(arguments, default=str)[:200]}) "
            f"-> {result_size} chars @ {timestamp}{Colors.RESET}"
        )


def _build_console_formatter(log_format: str, enable_colors: bool) -> logging.Formatter:
    colored = enable_colors and sys.stderr.isatty()
    if log_format == "json":
        return JSONLineFormatter()
    if log_format == "simple":
        return ColoredFormatter(SIMPLE_FORMAT) if colored else logging.Formatter(SIMPLE_FORMAT)
    if colored:
        return ColoredFormatter(DETAILED_FORMAT, datefmt=DATE_FORMAT)
    return logging.Formatter(DETAILED_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "detailed",
    log_file: Optional[Union[str, Path]] = None,
    enable_colors: bool = True
) -> logging.Logger:
    """
    Set up centralized logging configuration

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format style ('simple', 'detailed', 'json')
        log_file: Optional file path for logging
        enable_colors: Whether to enable colored output (terminal only)

    Returns:
        Configured root logger
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Console output goes to stderr so CLI results on stdout stay machine readable
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(_build_console_formatter(log_format, enable_colors))
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(DETAILED_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    # httpx logs every request at INFO; keep it quiet unless debugging
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name"""
    return logging.getLogger(name)


def get_llm_logger(name: str) -> LLMLogger:
    """Get an LLM logger for the specified logger name"""
    return LLMLogger(logging.getLogger(name))


def configure_logging_from_settings(app_settings=None, log_format: str = "detailed") -> logging.Logger:
    """Configure logging based on application settings"""
    if app_settings is None:
        from core.config import settings as app_settings

    log_level = "DEBUG" if app_settings.debug else app_settings.log_level
    root_logger = setup_logging(
        log_level=log_level,
        log_format=log_format,
        log_file=app_settings.log_file,
        enable_colors=True
    )
    get_logger(__name__).debug(f"🎨 Logging configured with level: {log_level}, format: {log_format}")
    return root_logger
