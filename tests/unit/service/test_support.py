"""Tests for the support subsystem."""

from datetime import timedelta

from structlog.testing import capture_logs

from procboot.config.store import PropertyStore
from procboot.service import AppContext, SupportSubsystem
from procboot.support.deadlock import DeadlockDetector


class RecordingDetector(DeadlockDetector):
    """Detector that records lifecycle calls instead of running a thread."""

    def __init__(self):
        super().__init__()
        self.calls: list[tuple[str, timedelta]] = []
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, period):
        self.calls.append(("start", period))
        self._running = True

    def stop(self, timeout=timedelta(seconds=5)):
        self.calls.append(("stop", timeout))
        self._running = False


def _context(**properties) -> AppContext:
    store = PropertyStore(override={})
    store.merge(properties)
    return AppContext("support-test", [], store)


class TestSupportSubsystem:
    """Test support data logging and detector lifecycle."""

    def test_start_logs_support_data_and_starts_detector(self):
        detector = RecordingDetector()
        context = _context(other="x")

        with capture_logs() as logs:
            SupportSubsystem(detector).start(context)

        support = [e for e in logs if e["event"] == "support.data"]
        assert len(support) == 1
        assert "Host SupportData" in support[0]["support"]
        assert detector.calls == [("start", timedelta(seconds=10))]

    def test_stop_uses_shutdown_timeout(self):
        detector = RecordingDetector()
        context = _context(**{"procboot.deadlock.shutdownTimeout": "PT2S"})
        subsystem = SupportSubsystem(detector)
        subsystem.start(context)

        subsystem.stop(context)

        assert detector.calls[-1] == ("stop", timedelta(seconds=2))

    def test_disabled_detector_not_started(self):
        detector = RecordingDetector()
        context = _context(**{"procboot.deadlock.enabled": "false"})
        subsystem = SupportSubsystem(detector)

        subsystem.start(context)
        subsystem.stop(context)

        assert detector.calls == []

    def test_support_data_logging_can_be_disabled(self):
        context = _context(**{"procboot.support.logSupportData": "false", "procboot.deadlock.enabled": "false"})

        with capture_logs() as logs:
            SupportSubsystem(RecordingDetector()).start(context)

        assert not any(e["event"] == "support.data" for e in logs)

    def test_custom_period(self):
        detector = RecordingDetector()

        SupportSubsystem(detector).start(_context(**{"procboot.deadlock.period": "PT1M"}))

        assert detector.calls == [("start", timedelta(minutes=1))]

    def test_real_detector_lifecycle(self):
        """Start and stop a real detector within the subsystem."""
        subsystem = SupportSubsystem()
        context = _context(**{"procboot.deadlock.period": "PT0.05S", "procboot.deadlock.shutdownTimeout": "PT2S"})

        with capture_logs() as logs:
            subsystem.start(context)
            assert subsystem.detector.is_running
            subsystem.stop(context)

        assert not subsystem.detector.is_running
        assert not any(e["event"] == "deadlock.shutdown_timeout" for e in logs)
