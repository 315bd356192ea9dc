"""
Host, process and runtime facts for support diagnostics.
"""

import getpass
import os
import platform
import socket
import sys

from pydantic import BaseModel, ConfigDict, Field, field_validator

from procboot.system import LoggerFactory

logger = LoggerFactory.get_logger()

OS_NAME = "OS name"
OS_ARCHITECTURE = "OS architecture"
OS_VERSION = "OS version"
HOSTNAME = "Hostname"
IP_ADDRESS = "IP address"
AVAILABLE_PROCESSOR_COUNT = "Available processor count"
PID = "PID"
CL_ARGS = "CL args"
USER = "User"
WORKING_DIRECTORY = "Working directory"
PYTHON_IMPLEMENTATION = "Python implementation"
PYTHON_VERSION = "Python version"
PYTHON_EXECUTABLE = "Python executable"
PYTHON_PATH = "Python path"


class SupportData(BaseModel):
    """
    Immutable support facts in three sorted sections.

    Example:
        >>> data = SupportData(host={"OS name": "Linux"})
        >>> print(data)
        Host SupportData
        \tOS name: Linux
        Runtime SupportData
        Process SupportData
    """

    model_config = ConfigDict(frozen=True)

    host: dict[str, str] = Field(default_factory=dict)
    process: dict[str, str] = Field(default_factory=dict)
    runtime: dict[str, str] = Field(default_factory=dict)

    @field_validator("host", "process", "runtime")
    @classmethod
    def _sorted(cls, v: dict[str, str]) -> dict[str, str]:
        return dict(sorted(v.items()))

    def all(self) -> dict[str, str]:
        """Get every fact from all sections, sorted by key."""
        return dict(sorted({**self.host, **self.process, **self.runtime}.items()))

    def __str__(self) -> str:
        sections = (("Host", self.host), ("Runtime", self.runtime), ("Process", self.process))
        lines: list[str] = []
        for title, facts in sections:
            lines.append(f"{title} {type(self).__name__}")
            lines.extend(f"\t{key}: {value}" for key, value in facts.items())
        return "\n".join(lines)


def _host_address() -> tuple[str, str]:
    try:
        hostname = socket.gethostname()
        return hostname, socket.gethostbyname(hostname)
    except OSError as e:
        logger.error("support.host_unresolved", error=str(e))
        return "", ""


def _user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


def collect_support_data() -> SupportData:
    """Gather support facts for the current process."""
    hostname, ip_address = _host_address()
    host = {
        OS_NAME: platform.system(),
        OS_ARCHITECTURE: platform.machine(),
        OS_VERSION: platform.release(),
        HOSTNAME: hostname,
        IP_ADDRESS: ip_address,
        AVAILABLE_PROCESSOR_COUNT: str(os.cpu_count() or 0),
    }
    process = {
        PID: str(os.getpid()),
        CL_ARGS: str(sys.argv[1:]),
        USER: _user(),
        WORKING_DIRECTORY: os.getcwd(),
    }
    runtime = {
        PYTHON_IMPLEMENTATION: platform.python_implementation(),
        PYTHON_VERSION: platform.python_version(),
        PYTHON_EXECUTABLE: sys.executable,
        PYTHON_PATH: os.pathsep.join(sys.path),
    }
    return SupportData(host=host, process=process, runtime=runtime)
