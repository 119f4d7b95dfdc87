"""
Directory watch pipeline for FileLizard.

This module connects a watchdog observer to the notification path:
- Subscribes only to the change kinds enabled in MonitorSettings
- Turns raw watchdog events into FileChangeEvent records
- Logs and emails each change through the classifier and sender
- Reports watcher I/O errors, including buffer overflows
"""

import enum
import errno
import os
import threading
from typing import Callable, Dict, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from filelizard.classifier import ChangeKind, FileChangeEvent, classify
from filelizard.config import MonitorSettings
from filelizard.errors import (DirectoryUnavailable, ServiceEventIds,
                               StartError, WatcherBufferOverflow)
from filelizard.notifier import NotificationSender

# Windows reports a ReadDirectoryChangesW buffer overflow with this code.
ERROR_NOTIFY_ENUM_DIR = 1022

WATCHDOG_KINDS = {
    "created": ChangeKind.CREATED,
    "deleted": ChangeKind.DELETED,
    "modified": ChangeKind.CHANGED,
    "moved": ChangeKind.RENAMED,
}

ChangeHandler = Callable[[FileChangeEvent], None]


class PipelineState(enum.Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


def is_buffer_overflow(error: BaseException) -> bool:
    """Return True if a watcher error means change events were dropped."""
    if isinstance(error, WatcherBufferOverflow):
        return True
    if getattr(error, "winerror", None) == ERROR_NOTIFY_ENUM_DIR:
        return True
    return isinstance(error, OSError) and error.errno in (errno.ENOBUFS, errno.EOVERFLOW)


def check_directory(path: str) -> None:
    """
    Make sure the directory to monitor exists and can be listed.

    Raises:
        DirectoryUnavailable: with the event id matching the cause.
    """
    if not os.path.exists(path):
        raise DirectoryUnavailable(
            path, "directory does not exist", ServiceEventIds.INITIALIZATION_DIR_NOT_EXIST
        )
    if not os.path.isdir(path):
        raise DirectoryUnavailable(
            path, "path is not a directory", ServiceEventIds.INITIALIZATION_DIR_OTHER_ERROR
        )
    try:
        with os.scandir(path):
            pass
    except PermissionError as e:
        raise DirectoryUnavailable(
            path, str(e), ServiceEventIds.INITIALIZATION_DIR_NO_ACCESS
        ) from e
    except OSError as e:
        raise DirectoryUnavailable(
            path, str(e), ServiceEventIds.INITIALIZATION_DIR_OTHER_ERROR
        ) from e


class DispatchingEventHandler(FileSystemEventHandler):
    """
    Watchdog handler that forwards changes to the handler registered for
    their kind. Kinds without a handler are dropped here.
    """

    def __init__(self, root: str, handlers: Dict[ChangeKind, ChangeHandler]):
        super().__init__()
        self.root = root
        self.handlers = dict(handlers)

    def _name(self, path: str) -> str:
        return os.path.relpath(path, self.root)

    def to_change_event(self, kind: ChangeKind, event: FileSystemEvent) -> FileChangeEvent:
        src_path = os.fsdecode(event.src_path)
        if kind is ChangeKind.RENAMED:
            dest_path = os.fsdecode(event.dest_path)
            return FileChangeEvent(
                kind=kind,
                name=self._name(dest_path),
                full_path=dest_path,
                old_name=self._name(src_path),
                old_full_path=src_path,
            )
        return FileChangeEvent(kind=kind, name=self._name(src_path), full_path=src_path)

    def dispatch(self, event: FileSystemEvent) -> None:
        kind = WATCHDOG_KINDS.get(event.event_type)
        if kind is None:
            return
        # The watched directory itself is never reported, only what is inside it.
        if os.path.normpath(os.fsdecode(event.src_path)) == self.root:
            return
        # Only file names are subscribed; directory changes still count as writes.
        if event.is_directory and kind is not ChangeKind.CHANGED:
            return
        handler = self.handlers.get(kind)
        if handler is None:
            return
        handler(self.to_change_event(kind, event))


class RepeatedErrorFilter:
    """
    Passes an error on once until the failing call succeeds again, so a
    persistent failure is not reported on every retry.
    """

    def __init__(self, on_error: Callable[[BaseException], None]):
        self.on_error = on_error
        self._last = None
        self._lock = threading.Lock()

    def report(self, error: BaseException) -> None:
        key = (type(error), getattr(error, "errno", None), str(error))
        with self._lock:
            repeated = key == self._last
            self._last = key
        if not repeated:
            self.on_error(error)

    def clear(self) -> None:
        with self._lock:
            self._last = None


def _wait(thread, timeout):
    stopped_event = getattr(thread, "stopped_event", None)
    if stopped_event is not None:
        stopped_event.wait(timeout)


def _report_reader_errors(buffer, reader, on_error, timeout):
    """
    Route errors from a background inotify reader to on_error.

    The reader runs on its own thread inside watchdog's InotifyBuffer; an
    OSError there would otherwise end that thread silently.
    """
    errors = RepeatedErrorFilter(on_error)

    def read_events_reporting(*args, **kwargs):
        try:
            events = type(reader).read_events(reader, *args, **kwargs)
        except OSError as e:
            errors.report(e)
            _wait(buffer, timeout)
            return []
        errors.clear()
        return events

    reader.read_events = read_events_reporting


def _report_emitter_errors(emitter, on_error):
    """Route I/O errors raised while an emitter reads events to on_error."""
    errors = RepeatedErrorFilter(on_error)
    queue_events = emitter.queue_events

    def queue_events_reporting(timeout):
        try:
            queue_events(timeout)
        except OSError as e:
            errors.report(e)
            _wait(emitter, timeout)
        else:
            errors.clear()

    emitter.queue_events = queue_events_reporting

    on_thread_start = getattr(emitter, "on_thread_start", None)
    if on_thread_start is None:
        return

    def on_thread_start_reporting():
        on_thread_start()
        # Linux emitters read through an InotifyBuffer thread of their own.
        buffer = getattr(emitter, "_inotify", None)
        reader = getattr(buffer, "_inotify", None)
        if reader is not None and hasattr(reader, "read_events"):
            _report_reader_errors(buffer, reader, on_error, getattr(emitter, "timeout", 1.0))

    emitter.on_thread_start = on_thread_start_reporting


def _release_observer(observer, timeout):
    observer.stop()
    if observer.is_alive():
        observer.join(timeout)


class WatchSession:
    """
    The live subscription to one directory. Owns its observer exclusively.
    """

    def __init__(self, path: str, observer):
        self.path = path
        self._observer = observer
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def close(self, timeout: float = 10.0) -> bool:
        """
        Stop raising events and release the observer.

        Returns:
            bool: True if this call stopped the session, False if it was
            already closed.
        """
        with self._lock:
            observer, self._observer = self._observer, None
        if observer is None:
            return False
        observer.unschedule_all()
        _release_observer(observer, timeout)
        return True


class DirectoryWatchPipeline:
    """
    Watches one directory and emails a notification for each change.

    Attributes:
        sink: EventLogSink receiving info and error entries
        sender: NotificationSender used for every notification
        state: Current PipelineState
        session: The active WatchSession, if any
    """

    def __init__(
        self,
        sink,
        sender: Optional[NotificationSender] = None,
        observer_factory=Observer,
        join_timeout: float = 10.0,
    ):
        self.sink = sink
        self.sender = sender if sender is not None else NotificationSender(sink)
        self.observer_factory = observer_factory
        self.join_timeout = join_timeout
        self.state = PipelineState.IDLE
        self.session: Optional[WatchSession] = None

    def build_dispatch_table(self, settings: MonitorSettings) -> Dict[ChangeKind, ChangeHandler]:
        """Map each enabled change kind to a handler bound to ``settings``."""
        enabled = {
            ChangeKind.CREATED: settings.notify_on_new,
            ChangeKind.DELETED: settings.notify_on_delete,
            ChangeKind.CHANGED: settings.notify_on_change,
            ChangeKind.RENAMED: settings.notify_on_rename,
        }

        def handle(event: FileChangeEvent) -> None:
            self.on_change(event, settings)

        return {kind: handle for kind, on in enabled.items() if on}

    def start(self, settings: MonitorSettings) -> WatchSession:
        """
        Subscribe to the directory named in ``settings``.

        Raises:
            StartError: if the pipeline is already running or the
                subscription cannot be established.
            DirectoryUnavailable: if the directory is missing or unreadable.
        """
        if self.state is not PipelineState.IDLE:
            raise StartError(f"Cannot start while {self.state.value}")

        self.state = PipelineState.STARTING
        path = os.path.abspath(settings.path_to_monitor)
        observer = None
        try:
            check_directory(path)
            handler = DispatchingEventHandler(path, self.build_dispatch_table(settings))
            observer = self.observer_factory()
            observer.schedule(handler, path, recursive=settings.include_subdirectories)
            for emitter in list(observer.emitters):
                _report_emitter_errors(emitter, self.on_watcher_error)
            # Events start flowing only once every handler is in place.
            observer.start()
        except Exception as e:
            if observer is not None:
                try:
                    _release_observer(observer, self.join_timeout)
                except Exception as cleanup_error:
                    self.sink.error(
                        f'Error releasing watcher for "{path}".',
                        ServiceEventIds.STOP_FAILURE,
                        cleanup_error,
                    )
            self.state = PipelineState.IDLE
            if isinstance(e, StartError):
                raise
            raise StartError(f'Unable to watch "{path}": {e}') from e

        self.session = WatchSession(path, observer)
        self.state = PipelineState.RUNNING
        self.sink.info(f'Began watching for changes to "{path}".')
        return self.session

    def on_change(self, event: FileChangeEvent, settings: MonitorSettings) -> None:
        """Log and send a notification for one change."""
        log_line, message = classify(event)
        self.sink.info(log_line)
        try:
            self.sender.send(settings, message)
        except Exception as e:
            self.sink.error(
                f'Error handling change to "{event.full_path}".',
                ServiceEventIds.WATCHER_ERROR,
                e,
            )

    def on_watcher_error(self, error: BaseException) -> None:
        """Report an error raised by the watcher. Watching is not restarted."""
        self.sink.error(
            "The Monitor Service has detected an error.", ServiceEventIds.WATCHER_ERROR
        )
        if is_buffer_overflow(error):
            self.sink.error(
                f"The file system watcher has experienced an internal buffer overflow: {error}",
                ServiceEventIds.WATCHER_BUFFER_OVERFLOW,
            )

    def stop(self, session: Optional[WatchSession] = None) -> None:
        """
        Stop watching. Safe to call repeatedly, and before or after a
        failed start.
        """
        if session is None:
            session = self.session
        if session is None:
            return

        current = session is self.session
        if current:
            self.state = PipelineState.STOPPING
        try:
            stopped = session.close(self.join_timeout)
        except Exception as e:
            self.sink.error(
                f'Error while stopping the watcher for "{session.path}".',
                ServiceEventIds.STOP_FAILURE,
                e,
            )
            stopped = True
        finally:
            if current:
                self.session = None
                self.state = PipelineState.IDLE

        if stopped:
            self.sink.info(f'Stopped watching for changes to "{session.path}".')
