import threading

import pytest

from filelizard.config import MonitorSettings


class RecordingSink:
    """Collects log entries as (level, message, event_id) tuples."""

    def __init__(self):
        self.entries = []

    def info(self, message):
        self.entries.append(("info", message, None))

    def error(self, message, event_id, exc=None):
        self.entries.append(("error", message, int(event_id)))

    def errors(self, event_id=None):
        return [
            e for e in self.entries
            if e[0] == "error" and (event_id is None or e[2] == int(event_id))
        ]

    def messages(self):
        return [e[1] for e in self.entries]


class FakeEmitter:
    def __init__(self):
        self.stopped_event = threading.Event()
        self.error = None

    def queue_events(self, timeout):
        if self.error is not None:
            raise self.error


class FakeObserver:
    """Stands in for a watchdog observer; records how it was driven."""

    def __init__(self):
        self.calls = []
        self.handler = None
        self.path = None
        self.recursive = None
        self._emitters = set()
        self.started = False
        self.stopped = False
        self.start_error = None

    @property
    def emitters(self):
        return self._emitters

    def schedule(self, handler, path, recursive=False):
        self.calls.append("schedule")
        self.handler = handler
        self.path = path
        self.recursive = recursive
        self._emitters.add(FakeEmitter())

    def start(self):
        self.calls.append("start")
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    def stop(self):
        self.calls.append("stop")
        self.stopped = True

    def is_alive(self):
        return self.started and not self.stopped

    def join(self, timeout=None):
        self.calls.append("join")

    def unschedule_all(self):
        self.calls.append("unschedule_all")


class RecordingSender:
    def __init__(self):
        self.sent = []

    def send(self, settings, message):
        self.sent.append(message)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def observers():
    """Observers created by observer_factory, in creation order."""
    return []


@pytest.fixture
def observer_factory(observers):
    def factory():
        observer = FakeObserver()
        observers.append(observer)
        return observer

    return factory


@pytest.fixture
def watch_dir(tmp_path):
    watch_dir = tmp_path / "watch"
    watch_dir.mkdir()
    return watch_dir


@pytest.fixture
def make_settings(watch_dir):
    def factory(**overrides):
        values = {
            "path_to_monitor": str(watch_dir),
            "include_subdirectories": False,
            "notify_on_new": True,
            "notify_on_delete": True,
            "notify_on_change": True,
            "notify_on_rename": True,
            "send_from": "lizard@example.com",
            "send_to": "ops@example.com",
            "smtp_server": "smtp.example.com",
        }
        values.update(overrides)
        return MonitorSettings(**values)

    return factory


@pytest.fixture
def failing_observer_factory(observers):
    """Observers whose start() fails the way an exhausted inotify would."""

    def factory():
        observer = FakeObserver()
        observer.start_error = OSError(24, "Too many open files")
        observers.append(observer)
        return observer

    return factory
