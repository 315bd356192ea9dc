"""Configuration error taxonomy.

Load-time errors abort the triggering load with nothing merged into the
store. ``PropertyValueError`` is raised at read time for a present but
malformed typed value.
"""


class ConfigError(Exception):
    """Base exception for configuration errors."""

    pass


class PropertySourceError(ConfigError, ValueError):
    """A configuration source is missing, of the wrong kind, or unreadable."""

    pass


class PropertyFormatError(ConfigError, ValueError):
    """A property stream or property key/value is malformed."""

    pass


class DuplicatePropertyError(PropertyFormatError):
    """A single property stream defines the same key more than once."""

    pass


class PropertyAlreadyDefinedError(ConfigError):
    """A loaded key is already present in the property store."""

    pass


class PropertyValueError(ConfigError, ValueError):
    """A property value cannot be converted to the requested type."""

    pass
