"""
System package.

Provides process-wide logging setup shared by every procboot component.

Exports:
    - LoggerFactory: Factory for creating configured loggers
    - LoggingConfig: Logging configuration model
"""

from procboot.system.log_system import LoggerFactory, LoggingConfig

__all__ = [
    "LoggerFactory",
    "LoggingConfig",
]
