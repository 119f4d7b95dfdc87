import logging
import os
import traceback

SEPARATOR = "-" * 50
DEFAULT_LOG_FILENAME = "service.log"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(name, log_dir, log_filename=DEFAULT_LOG_FILENAME, level=logging.INFO, console=True):
    """
    Set up the service logger with a file handler and an optional console handler.

    Calling it again for the same name replaces the previous handlers and
    closes their files, so a restarted service does not keep stale log
    files open.

    Args:
        name (str): The logger name.
        log_dir (str): Directory where the log file will be stored.
        log_filename (str): Log file name, service.log by default.
        level (int): Logging level.
        console (bool): Whether to also log to stderr.

    Returns:
        logging.Logger: The configured logger.
    """
    os.makedirs(log_dir, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    handlers = [logging.FileHandler(os.path.join(log_dir, log_filename))]
    if console:
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def _type_name(exc):
    exc_type = type(exc)
    if exc_type.__module__ == "builtins":
        return exc_type.__qualname__
    return f"{exc_type.__module__}.{exc_type.__qualname__}"


def _iter_exception_chain(exc):
    seen = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        yield exc
        if exc.__cause__ is not None:
            exc = exc.__cause__
        elif not exc.__suppress_context__:
            exc = exc.__context__
        else:
            exc = None


def format_exception_chain(exc):
    """
    Render an exception and every exception it was raised from.

    Each link gets its own block with the type, message and stack trace;
    blocks after the first are headed "INNER EXCEPTION DETAILS".

    Args:
        exc (BaseException): The outermost exception.

    Returns:
        str: The formatted chain, starting with a newline.
    """
    if exc is None:
        raise ValueError("exc must not be None")

    lines = []
    for index, link in enumerate(_iter_exception_chain(exc)):
        lines.append("")
        lines.append(SEPARATOR)
        lines.append(("INNER " if index else "") + "EXCEPTION DETAILS")
        lines.append("")
        lines.append(f"EXCEPTION TYPE:\t{_type_name(link)}")
        lines.append("")
        lines.append(f"EXCEPTION MESSAGE:\t{link}")
        lines.append("")
        lines.append("STACK TRACE:")
        lines.append("".join(traceback.format_tb(link.__traceback__)).rstrip("\n"))
    return "\n".join(lines)


class EventLogSink:
    """
    Log boundary used by the watch pipeline and the service host.

    Informational entries are plain text. Error entries carry a numeric
    category from ServiceEventIds and, optionally, the details of an
    exception.
    """

    def __init__(self, logger):
        self.logger = logger

    def info(self, message):
        self.logger.info(message)

    def error(self, message, event_id, exc=None):
        if not message or not message.strip():
            raise ValueError("message is null or empty.")
        text = f"[{int(event_id)}] {message}"
        if exc is not None:
            text += format_exception_chain(exc)
        self.logger.error(text, extra={"event_id": int(event_id)})
