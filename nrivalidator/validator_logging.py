import contextvars
import logging
import os
from contextlib import contextmanager
from logging import Logger
from logging import config as logging_config
from typing import TYPE_CHECKING, Any, Callable, Dict, Generator, Optional, cast

import yaml

try:
    from yaml import CSafeLoader as SafeLoader
except ImportError:
    from yaml import SafeLoader  # type: ignore

if TYPE_CHECKING:
    from logging import LogRecord

# Default logging configuration
DEFAULT_LOGGING_CONFIG = {
    "version": 1,
    "root": {"level": "INFO", "handlers": ["consoleHandler"]},
    "loggers": {
        "nrivalidator": {
            "level": "INFO",
        },
    },
    "handlers": {
        "consoleHandler": {
            "class": "logging.StreamHandler",
            "level": "DEBUG",
            "formatter": "formatter_formatter",
            # stdout may carry command output, keep logs apart
            "stream": "ext://sys.stderr",
        }
    },
    "formatters": {
        "formatter_formatter": {
            "format": "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s %(reqidf)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
}

LOGGING_CONFIG_ENV = "NRI_VALIDATOR_LOGGING_CONFIG"

try:
    logging_config.dictConfig(DEFAULT_LOGGING_CONFIG)
except (KeyError, ValueError):
    logging.basicConfig(format="%(asctime)s %(name)-12s %(levelname)-8s %(message)s", level=logging.DEBUG)

_file_config_applied = False

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id")


def set_log_func(loglevel: int, logger: Logger) -> Callable[..., None]:
    """
    Returns the appropriate logging function (e.g., info, debug) based on the provided log level.

    Args:
        loglevel (int): The desired log level (e.g., logging.INFO).
        logger (Logger): The logger instance to use.

    Returns:
        Callable[..., None]: The logger function corresponding to the log level.
    """
    log_func = logger.info

    if loglevel == logging.CRITICAL:
        log_func = logger.critical
    elif loglevel == logging.ERROR:
        log_func = logger.error
    elif loglevel == logging.WARNING:
        log_func = logger.warning
    elif loglevel == logging.DEBUG:
        log_func = logger.debug

    return log_func


def annotate_logger(logger: Logger) -> None:
    """
    Adds a request ID filter to all handlers of the specified logger.

    Args:
        logger (Logger): The logger instance to annotate.
    """
    for handler in logger.handlers:
        if not any(isinstance(f, RequestIDFilter) for f in handler.filters):
            handler.addFilter(RequestIDFilter())


@contextmanager
def _safe_logging_configuration() -> Generator[None, None, None]:
    """
    Context manager to safely apply logging configuration. If an error occurs,
    the root and package loggers are restored to their original state.
    """
    backup: Dict[str, Dict[str, Any]] = {}
    for name in ("", "nrivalidator"):
        logger = logging.getLogger(name)
        backup[name] = {"handlers": list(logger.handlers), "level": logger.level, "propagate": logger.propagate}

    try:
        yield
    except Exception:
        for name, state in backup.items():
            logger = logging.getLogger(name)
            logger.handlers = cast(list, state["handlers"])
            logger.setLevel(cast(int, state["level"]))
            logger.propagate = cast(bool, state["propagate"])
        raise


def load_logging_config(path: str) -> None:
    """
    Applies a logging configuration read from a YAML (or JSON) file in
    logging.config.dictConfig format.

    Args:
        path (str): Location of the logging configuration file.

    Raises:
        OSError, yaml.YAMLError, ValueError: the file could not be read or applied.
            The previous configuration stays in place.
    """
    with open(path, encoding="utf-8") as f:
        log_config = yaml.load(f, Loader=SafeLoader)

    if not isinstance(log_config, dict):
        raise ValueError(f"Logging configuration {path} is not a mapping")

    with _safe_logging_configuration():
        logging_config.dictConfig(log_config)


def set_verbose(verbose: bool) -> None:
    """Switch the package loggers between INFO and DEBUG."""
    logging.getLogger("nrivalidator").setLevel(logging.DEBUG if verbose else logging.INFO)


def init_logging(loggername: str) -> Logger:
    """
    Initializes the logging system for a specific logger.

    A logging configuration file named by the NRI_VALIDATOR_LOGGING_CONFIG
    environment variable is applied the first time this is called.

    Args:
        loggername (str): The name of the logger to initialize.

    Returns:
        Logger: The initialized logger instance.
    """
    global _file_config_applied

    logger = logging.getLogger(f"nrivalidator.{loggername}")

    config_path: Optional[str] = os.environ.get(LOGGING_CONFIG_ENV)
    if config_path and not _file_config_applied:
        _file_config_applied = True
        try:
            load_logging_config(config_path)
        except Exception as e:
            logger.error("Logging configuration error in %s: %s", config_path, e)

    # Add metadata to root logger, so that it is inherited by all
    annotate_logger(logging.getLogger())

    return logger


class RequestIDFilter(logging.Filter):
    """
    A logging filter that adds a request ID to log records.

    This filter retrieves the request ID from the `request_id_var` context variable
    and attaches it to each log record as `reqid` and `reqidf`.

    Attributes:
        reqid (str): The raw request ID.
        reqidf (str): The formatted request ID for inclusion in log messages.
    """

    def filter(self, record: "LogRecord") -> bool:
        reqid = request_id_var.get("")

        record.reqid = reqid
        record.reqidf = f"(reqid={reqid})" if reqid else ""

        return True


# The default format refers to reqidf, so the filter must be in place before
# the first record is emitted
annotate_logger(logging.getLogger())
