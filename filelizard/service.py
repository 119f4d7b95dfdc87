"""
Service host for the watch pipeline.

MonitorService plays the part of the platform service: it loads the
monitor settings when started, owns the pipeline's watch session, and
tears it down on stop or disposal.
"""

import signal
import threading

from filelizard.config import load_monitor_settings
from filelizard.errors import ServiceEventIds
from filelizard.monitor import DirectoryWatchPipeline


class MonitorService:
    """
    Start/stop host around a DirectoryWatchPipeline.

    Attributes:
        config: Loaded configuration dictionary
        sink: EventLogSink for service entries
        pipeline: The watch pipeline driven by this service
        session: The running WatchSession, or None
    """

    def __init__(self, config, sink, pipeline=None):
        self.config = config
        self.sink = sink
        self.pipeline = pipeline if pipeline is not None else DirectoryWatchPipeline(sink)
        self.session = None
        self._stop_requested = threading.Event()

    def on_start(self):
        """
        Load settings and begin watching.

        Configuration and start errors are logged, the service is stopped,
        and the error is re-raised for the host to handle.
        """
        self.sink.info("Monitor Service is starting.")
        self._stop_requested.clear()
        try:
            settings = load_monitor_settings(self.config, self.sink)
            self.session = self.pipeline.start(settings)
        except Exception as e:
            self.sink.error("Monitor Service failed to start.", ServiceEventIds.START_FAILURE, e)
            self.on_stop()
            raise

    def _release(self):
        if self.session is not None:
            self.pipeline.stop(self.session)
            self.session = None

    def on_stop(self):
        self._release()
        self.sink.info("Monitor Service is stopped.")
        self._stop_requested.set()

    def dispose(self):
        """Make sure nothing is left watching before the service is discarded."""
        self._release()

    def request_stop(self, *args):
        self._stop_requested.set()

    def run_forever(self, install_signal_handlers=True):
        """Start, then block until request_stop() or SIGTERM/SIGINT."""
        if install_signal_handlers and threading.current_thread() is threading.main_thread():
            signal.signal(signal.SIGTERM, self.request_stop)
            signal.signal(signal.SIGINT, self.request_stop)

        self.on_start()
        try:
            while not self._stop_requested.wait(1.0):
                pass
        finally:
            self.on_stop()
