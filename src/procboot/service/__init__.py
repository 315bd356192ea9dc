"""
Lifecycle subsystems.

Exports:
    - AppContext: Name, arguments and property store shared by subsystems
    - Subsystem: Protocol with start(context)/stop(context)
    - PropSubsystem / bootstrap_properties: Property loading
    - SupportSubsystem: Support data and deadlock detection
"""

from procboot.service.interface import AppContext, Subsystem
from procboot.service.properties import PropSubsystem, bootstrap_properties
from procboot.service.support import SupportSubsystem

__all__ = ["AppContext", "PropSubsystem", "Subsystem", "SupportSubsystem", "bootstrap_properties"]
