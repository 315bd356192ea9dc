"""
Configuration package.

Resolves property sources, loads and validates them, and serves them through
a cascading, override-aware property store.

Exports:
    - PropertyStore / get_property_store: Validated property table
    - PropertyLoader: File, directory and packaged-resource loading
    - resolve_config_sources: Override > argument > default source selection
    - RedactedReporter: Sorted key=value report with masking
    - ConfigError and subclasses
"""

from procboot.config.args import get_arg_value
from procboot.config.errors import (
    ConfigError,
    DuplicatePropertyError,
    PropertyAlreadyDefinedError,
    PropertyFormatError,
    PropertySourceError,
    PropertyValueError,
)
from procboot.config.loader import PropertyLoader, parse_properties
from procboot.config.reporter import RedactedReporter, ReportSettings
from procboot.config.sources import CONFIG_KEY, DEFAULT_CONFIG_SOURCE, parse_sources, resolve_config_sources
from procboot.config.store import CascadingLookup, PropertyStore, get_property_store, reset_property_store

__all__ = [
    "CONFIG_KEY",
    "DEFAULT_CONFIG_SOURCE",
    "CascadingLookup",
    "ConfigError",
    "DuplicatePropertyError",
    "PropertyAlreadyDefinedError",
    "PropertyFormatError",
    "PropertyLoader",
    "PropertySourceError",
    "PropertyStore",
    "PropertyValueError",
    "RedactedReporter",
    "ReportSettings",
    "get_arg_value",
    "get_property_store",
    "parse_properties",
    "parse_sources",
    "reset_property_store",
    "resolve_config_sources",
]
