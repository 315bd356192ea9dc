"""Centralized logging configuration for procboot."""

import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Literal

import structlog
from pydantic import BaseModel, Field

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingConfig(BaseModel):
    """Configuration for logging system.

    Logging Levels Guide:

    INFO (Default):
    - Configuration sources resolved and loaded (counts)
    - Resolved properties, one line per key (values redacted where configured)
    - Support data at startup
    - Deadlock detection scheduled / shut down

    DEBUG:
    - Per-source resolution decisions
    - Stream parsing details

    WARNING:
    - Recoverable configuration issues (empty values, overridden keys, missing resources)
    - Properties overwritten or removed at runtime
    - Deadlock detector shutdown timeouts

    ERROR:
    - Deadlock reports
    - Unexpected failures inside a detection tick

    Timestamp Format Options:
    - "iso": 2025-10-22T20:50:07.288824Z (full ISO format)
    - "compact": 251022-205007.28 (YYMMDD-HHMMSS.ms) - recommended
    - "time": 20:50:07.28 (time only, good for same-day logs)
    - "short": 1022T205007 (MMDDTHHMMSS, very compact)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Minimum log level (INFO=startup facts, DEBUG=verbose, WARNING=issues only)",
    )
    format: Literal["console", "json"] = Field(
        default="console",
        description="Output format: console, or json",
    )
    timestamp_format: Literal["iso", "compact", "time", "short"] = Field(
        default="compact",
        description="Timestamp format for console output",
    )
    enable_file: bool = Field(
        default=False,
        description="Enable logging to file (WARNING and above by default)",
    )
    file_path: Path | None = Field(
        default=None,
        description="Path to log file (uses logs/procboot.log if None)",
    )
    file_level: LogLevel = Field(
        default="WARNING",
        description="Minimum log level for file output",
    )
    file_rotation: bool = Field(
        default=True,
        description="Enable log file rotation (when file gets too large)",
    )
    max_file_size_mb: int = Field(
        default=10,
        description="Maximum log file size in MB before rotation",
    )
    backup_count: int = Field(
        default=3,
        description="Number of rotated log files to keep",
    )


class LoggerFactory:
    """
    Factory for creating and configuring structured loggers.

    Provides centralized configuration for all procboot logging.
    Call configure() once at application startup, then use get_logger()
    to get configured logger instances throughout the codebase.

    Loggers are not cached on first use, so reset() and structlog's
    capture_logs() apply to module-level loggers straight away.

    Example:
        # At startup
        config = LoggingConfig(level="DEBUG", enable_file=True, file_path=Path("app.log"))
        LoggerFactory.configure(config)

        # In modules
        logger = LoggerFactory.get_logger()
        logger.info("properties.loaded", count=12)
    """

    _config: LoggingConfig | None = None
    _configured: bool = False

    @classmethod
    def configure(cls, config: LoggingConfig | None = None) -> None:
        """
        Configure the logging system.

        Should be called once at application startup before any logging occurs.

        Args:
            config: LoggingConfig instance. If None, uses default configuration.
        """
        if config is None:
            config = LoggingConfig()

        cls._config = config

        processors = cls._build_common_processors(config.timestamp_format)

        console_handler = logging.StreamHandler(stream=sys.stdout)
        console_handler.setLevel(getattr(logging, config.level))
        console_processor: Any
        if config.format == "console":
            console_processor = cls._custom_console_renderer()
        else:
            console_processor = structlog.processors.JSONRenderer()
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=console_processor,
                foreign_pre_chain=processors,
            )
        )

        handlers: list[logging.Handler] = [console_handler]
        root_level = getattr(logging, config.level)

        if config.enable_file:
            if config.file_path is None:
                config.file_path = Path("logs/procboot.log")

            file_handler = cls._configure_file_logging(config, processors)
            handlers.append(file_handler)
            root_level = min(root_level, getattr(logging, config.file_level))

        logging.basicConfig(level=root_level, handlers=handlers, force=True)

        configured_processors = list(processors)
        if config.format == "console":
            configured_processors.extend(
                [
                    structlog.dev.set_exc_info,
                    structlog.processors.ExceptionRenderer(
                        structlog.dev.plain_traceback,  # type: ignore[arg-type]
                    ),
                ]
            )
        else:
            configured_processors.append(structlog.processors.format_exc_info)
        configured_processors.append(structlog.stdlib.ProcessorFormatter.wrap_for_formatter)

        structlog.configure(
            processors=configured_processors,
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=False,
        )

        cls._configured = True

    @classmethod
    def _build_common_processors(cls, timestamp_format: str) -> list[Any]:
        """Processors shared by both structlog and stdlib handlers before rendering."""
        return [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            cls._get_timestamper(timestamp_format),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.CallsiteParameterAdder(
                [
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            ),
        ]

    @staticmethod
    def _get_timestamper(fmt: str) -> Any:
        """Get appropriate timestamper based on format with milliseconds.

        Uses 'log_timestamp' key so it never collides with a 'timestamp' field
        passed as log context.
        """

        def add_timestamp_processor(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
            """Add formatted timestamp with milliseconds."""
            now = datetime.now(timezone.utc)
            ms = now.microsecond // 10000  # 2-digit milliseconds

            if fmt == "iso":
                event_dict["log_timestamp"] = now.isoformat()
            elif fmt == "compact":
                event_dict["log_timestamp"] = now.strftime(f"%y%m%d-%H%M%S.{ms:02d}")
            elif fmt == "time":
                event_dict["log_timestamp"] = now.strftime(f"%H:%M:%S.{ms:02d}")
            elif fmt == "short":
                event_dict["log_timestamp"] = now.strftime("%m%dT%H%M%S")
            else:
                event_dict["log_timestamp"] = now.isoformat()

            return event_dict

        return add_timestamp_processor

    @staticmethod
    def _custom_console_renderer() -> Callable[[Any, str, dict[str, Any]], str]:
        """Console renderer: timestamp, colored level, event, context and file:line."""

        colors = {
            "DEBUG": "\033[36m",  # Cyan
            "INFO": "\033[32m",  # Green
            "WARNING": "\033[33m",  # Yellow
            "ERROR": "\033[31m",  # Red
            "CRITICAL": "\033[35m",  # Magenta
        }
        reset = "\033[0m"
        gray = "\033[90m"

        def renderer(logger: Any, name: str, event_dict: dict[str, Any]) -> str:
            """Render log with timestamp, level, message, and location."""
            timestamp = event_dict.pop("log_timestamp", "")
            level = event_dict.pop("level", "info").upper()
            event = event_dict.pop("event", "")
            filename = event_dict.pop("filename", "")
            lineno = event_dict.pop("lineno", "")
            logger_name = event_dict.pop("logger", "")
            exception = event_dict.pop("exception", None)

            level_color = colors.get(level, "")
            level_str = f"[{level_color}{level.lower()}{reset}]"

            # Multi-line values (deadlock reports, support data) go after the line
            context_parts = []
            blocks = []
            for key, value in sorted(event_dict.items()):
                if key.startswith("_"):
                    continue
                if isinstance(value, str) and "\n" in value:
                    blocks.append(value)
                    continue
                context_parts.append(f"{key}={value}")

            context_str = " ".join(context_parts) if context_parts else ""

            if filename and lineno:
                module_file = Path(filename).stem
                if logger_name and logger_name != "procboot":
                    location = f"{gray}({logger_name}:{lineno}){reset}"
                else:
                    location = f"{gray}({module_file}:{lineno}){reset}"
            else:
                location = ""

            parts = [timestamp, level_str, event]

            if context_str:
                parts.append(f"{gray}|{reset} {context_str}")

            if location:
                parts.append(location)

            line = " ".join(parts)
            for block in blocks:
                line += "\n" + block
            if exception:
                line += "\n" + str(exception)
            return line

        return renderer

    @classmethod
    def _configure_file_logging(cls, config: LoggingConfig, pre_chain: list[Any]) -> logging.Handler:
        """Configure file output for logging."""
        file_path = config.file_path
        assert file_path is not None  # Already defaulted in configure()

        file_path.parent.mkdir(parents=True, exist_ok=True)

        handler: logging.Handler
        if config.file_rotation:
            handler = RotatingFileHandler(
                filename=str(file_path),
                maxBytes=config.max_file_size_mb * 1024 * 1024,
                backupCount=config.backup_count,
                encoding="utf-8",
            )
        else:
            handler = logging.FileHandler(
                filename=str(file_path),
                encoding="utf-8",
            )

        handler.setLevel(getattr(logging, config.file_level))

        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
                foreign_pre_chain=pre_chain,
            )
        )

        return handler

    @classmethod
    def get_logger(cls, name: str | None = None):
        """
        Get a configured logger instance.

        Args:
            name: Optional logger name. If None, uses the calling module's __name__.

        Returns:
            Configured structlog BoundLogger instance.
        """
        if not cls._configured:
            # Auto-configure with defaults if not explicitly configured
            cls.configure()

        if name is None:
            import inspect

            frame = inspect.currentframe()
            if frame and frame.f_back:
                name = frame.f_back.f_globals.get("__name__", "procboot")
            else:
                name = "procboot"

        return structlog.get_logger(name)

    @classmethod
    def get_config(cls) -> LoggingConfig:
        """Get current logging configuration."""
        if cls._config is None:
            return LoggingConfig()
        return cls._config

    @classmethod
    def is_configured(cls) -> bool:
        """Check if logging has been configured."""
        return cls._configured

    @classmethod
    def reset(cls) -> None:
        """Reset logging configuration (mainly for testing)."""
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            try:
                handler.close()
            except Exception:
                pass
        root_logger.handlers.clear()
        root_logger.setLevel(logging.NOTSET)
        cls._config = None
        cls._configured = False
        structlog.reset_defaults()
