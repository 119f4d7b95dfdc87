import logging
import os
import signal
import time

import daemon
from daemon.pidfile import PIDLockFile

from filelizard import logger
from filelizard.config import get_log_dir
from filelizard.service import MonitorService

LOGGER_NAME = "FileLizardService"


def setup_service_logger(config, config_path, console=True):
    """
    Set up logging for the service with proper path resolution and error handling.

    Args:
        config (dict): The loaded configuration dictionary
        config_path (str): Path to the config file
        console (bool): Whether to also log to the console

    Returns:
        logging.Logger: Configured logger instance
    """
    try:
        log_dir = os.path.abspath(get_log_dir(config, config_path))
        os.makedirs(log_dir, exist_ok=True)

        log_level = config.get("logging", {}).get("level", "INFO").upper()
        numeric_level = getattr(logging, log_level, logging.INFO)

        service_logger = logger.setup_logger(
            LOGGER_NAME,
            log_dir,
            level=numeric_level,
            console=console,
        )
        service_logger.debug(f"Using config from: {config_path}")
        service_logger.debug(f"Log directory: {log_dir}")
        return service_logger

    except Exception as e:
        raise RuntimeError(f"Failed to set up service logger: {str(e)}") from e


def create_service(config, config_path, console=True):
    """Build a MonitorService logging through the service logger."""
    service_logger = setup_service_logger(config, config_path, console=console)
    return MonitorService(config, logger.EventLogSink(service_logger)), service_logger


def run_daemon(config, config_path, pid_file):
    """Run the monitor service detached from the terminal."""
    # Set up logging before daemonization so the log files are preserved.
    service, service_logger = create_service(config, config_path, console=False)

    context = daemon.DaemonContext(
        pidfile=PIDLockFile(pid_file),
        files_preserve=[
            handler.stream.fileno()
            for handler in service_logger.handlers
            if hasattr(handler, "stream") and hasattr(handler.stream, "fileno")
        ],
        signal_map={
            signal.SIGTERM: service.request_stop,
            signal.SIGINT: service.request_stop,
        },
    )

    with context:
        service_logger.info(f"Daemon started at {time.strftime('%Y-%m-%d %H:%M:%S')}")
        try:
            service.run_forever(install_signal_handlers=False)
        except Exception as e:
            service_logger.error(f"Fatal error in daemon: {str(e)}")
            raise
        finally:
            service.dispose()
