"""Structured JSON logging configuration using loguru.

Two sinks are installed:
- a colourised console sink on stderr for interactive runs
- a rotating JSON-lines file sink, so a long batch refresh can be audited
  afterwards (which complex, which category, what failed)

Keyword arguments passed to a log call land in ``extra`` and are written as
the ``context`` object of the JSON line. Korean names are kept readable.
"""

import json
import sys
from pathlib import Path
from typing import Any

from loguru import logger

from config.settings import GlobalConfig, get_config
from landscout.exceptions import LoggingInitializationError

# Keys of ``extra`` that describe the record itself rather than the event
_RESERVED_EXTRA = frozenset({"module", "serialized"})

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan> | "
    "<level>{message}</level>"
)


def _to_json_line(record: dict[str, Any]) -> str:
    """Render a loguru record as one line of JSON."""
    line: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["extra"].get("module", record["name"]),
        "function": record["function"],
        "line": record["line"],
    }

    context = {k: v for k, v in record["extra"].items() if k not in _RESERVED_EXTRA}
    if context:
        line["context"] = context

    exception = record["exception"]
    if exception is not None and exception.type is not None:
        line["exception"] = {
            "type": exception.type.__name__,
            "value": str(exception.value),
        }

    return json.dumps(line, default=str, ensure_ascii=False)


def _serialize(record: dict[str, Any]) -> bool:
    """Sink filter that precomputes the JSON line for the file format."""
    record["extra"]["serialized"] = _to_json_line(record)
    return True


def _validate_log_directory(log_dir: Path) -> None:
    """Create the log directory and prove it accepts writes.

    Raises:
        LoggingInitializationError: If directory creation or write test fails.
    """
    probe = log_dir / ".write_test"
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        probe.write_text("ok", encoding="utf-8")
        probe.unlink()
    except PermissionError as exc:
        raise LoggingInitializationError(
            log_dir=str(log_dir),
            reason=f"Permission denied: {exc}",
        ) from exc
    except OSError as exc:
        raise LoggingInitializationError(
            log_dir=str(log_dir),
            reason=f"OS error during directory validation: {exc}",
        ) from exc


def configure_logging(config: GlobalConfig | None = None) -> None:
    """Install the console and JSON file sinks.

    Call once during bootstrap, before the session or any fetcher logs.

    Args:
        config: Optional GlobalConfig instance. If None, uses singleton.

    Raises:
        LoggingInitializationError: If log directory validation fails.
    """
    config = config or get_config()

    logger.remove()
    _validate_log_directory(config.log_dir)

    # Records logged through the bare loguru logger still need a module name
    logger.configure(extra={"module": "landscout"})

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=config.log_level,
        colorize=True,
        backtrace=config.debug,
        diagnose=config.debug,
    )

    logger.add(
        str(config.log_dir / "landscout_{time:YYYY-MM-DD}.json"),
        format="{extra[serialized]}",
        level=config.log_level,
        rotation=config.log_rotation,
        retention=config.log_retention,
        compression="gz",
        encoding="utf-8",
        filter=_serialize,
    )

    logger.info(
        "Logging infrastructure initialized",
        app_name=config.app_name,
        environment=config.environment,
        log_level=config.log_level,
        log_dir=str(config.log_dir),
    )


def get_logger(name: str) -> "logger":
    """Get a logger bound with the module name.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("Listings fetched", identifier="139917", count=12)
    """
    return logger.bind(module=name)
