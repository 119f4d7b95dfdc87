import threading
import time

import pytest

from filelizard.errors import (ConfigurationError, DirectoryUnavailable,
                               ServiceEventIds)
from filelizard.monitor import DirectoryWatchPipeline, PipelineState
from filelizard.service import MonitorService


def _config(path):
    return {
        "monitor": {
            "PathToMonitor": str(path),
            "SmtpServer": "smtp.example.com",
            "SentFrom": "lizard@example.com",
            "SendTo": "ops@example.com",
            "IncludeSubDirectories": "false",
            "NotifyOnChange": "true",
            "NotifyOnDelete": "true",
            "NotifyOnNew": "true",
            "NotifyOnRename": "true",
        }
    }


@pytest.fixture
def make_service(sink, sender, observer_factory):
    def factory(config):
        pipeline = DirectoryWatchPipeline(sink, sender=sender, observer_factory=observer_factory)
        return MonitorService(config, sink, pipeline=pipeline)

    return factory


def test_start_and_stop(make_service, watch_dir, sink, observers):
    service = make_service(_config(watch_dir))

    service.on_start()
    assert service.session is not None
    assert service.pipeline.state is PipelineState.RUNNING

    service.on_stop()
    assert service.session is None
    assert observers[0].stopped
    assert sink.messages() == [
        "Monitor Service is starting.",
        f'Began watching for changes to "{watch_dir}".',
        f'Stopped watching for changes to "{watch_dir}".',
        "Monitor Service is stopped.",
    ]


def test_configuration_error_fails_start(make_service, sink, observers):
    service = make_service({"monitor": {}})

    with pytest.raises(ConfigurationError):
        service.on_start()

    assert observers == []
    assert len(sink.errors(ServiceEventIds.CONFIGURATION_INVALID)) == 9
    assert len(sink.errors(ServiceEventIds.START_FAILURE)) == 1
    assert sink.messages()[-1] == "Monitor Service is stopped."


def test_missing_directory_fails_start(make_service, tmp_path, sink):
    service = make_service(_config(tmp_path / "gone"))

    with pytest.raises(DirectoryUnavailable):
        service.on_start()

    assert service.session is None
    assert len(sink.errors(ServiceEventIds.START_FAILURE)) == 1
    # Teardown after a failed start must be harmless.
    service.on_stop()
    service.dispose()


def test_dispose_releases_running_session(make_service, watch_dir, observers, sink):
    service = make_service(_config(watch_dir))
    service.on_start()

    service.dispose()
    service.dispose()

    assert observers[0].stopped
    assert "Monitor Service is stopped." not in sink.messages()
    assert len([m for m in sink.messages() if m.startswith("Stopped watching")]) == 1


def test_run_forever_until_stop_requested(make_service, watch_dir, sink):
    service = make_service(_config(watch_dir))
    runner = threading.Thread(target=service.run_forever, kwargs={"install_signal_handlers": False})
    runner.start()
    try:
        for _ in range(50):
            if service.session is not None:
                break
            time.sleep(0.05)
        assert service.session is not None
    finally:
        service.request_stop()
        runner.join(timeout=5)

    assert not runner.is_alive()
    assert sink.messages()[-1] == "Monitor Service is stopped."
