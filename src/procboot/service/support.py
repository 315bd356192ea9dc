"""
Support subsystem: logs support data and runs the deadlock detector.
"""

from procboot.service.interface import AppContext
from procboot.support.data import collect_support_data
from procboot.support.deadlock import DeadlockDetector, DeadlockSettings
from procboot.system import LoggerFactory

logger = LoggerFactory.get_logger()

PROP_KEY_LOG_SUPPORT_DATA = "procboot.support.logSupportData"


class SupportSubsystem:
    """
    Subsystem for production support.

    On start, logs host/process/runtime facts and starts the deadlock
    detector according to the ``procboot.deadlock.*`` tunables. On stop, stops
    the detector within the configured shutdown timeout.
    """

    def __init__(self, detector: DeadlockDetector | None = None):
        self.detector = detector if detector is not None else DeadlockDetector()

    def start(self, context: AppContext) -> None:
        store = context.properties
        if store.get_bool(PROP_KEY_LOG_SUPPORT_DATA, True):
            logger.info("support.data", app=context.name, support=str(collect_support_data()))

        settings = DeadlockSettings.from_store(store)
        if settings.enabled:
            self.detector.start(settings.period)
        else:
            logger.info("deadlock.disabled", app=context.name)

    def stop(self, context: AppContext) -> None:
        if not self.detector.is_running:
            return
        settings = DeadlockSettings.from_store(context.properties)
        self.detector.stop(settings.shutdown_timeout)
