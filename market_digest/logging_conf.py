"""Logging configuration built around structlog JSON logging.

Three files live under ``logs/``: ``digest.log`` with every INFO event,
``error.log`` with ERROR and above, and ``failures.log`` which only keeps the
terminal job events an operator has to act on. Each batch job additionally
writes to ``logs/jobs/<job>.log``.
"""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Iterable

import structlog
from pythonjsonlogger import jsonlogger

_LOGGING_INITIALISED = False

JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
TERMINAL_EVENTS = frozenset(
    {
        "job_final_failure",
        "deadline_exceeded",
        "terms_job_aborted",
        "failure_log_write_failed",
    }
)


class TerminalEventFilter(logging.Filter):
    """Pass only records whose structlog event is a terminal job outcome."""

    def filter(self, record: logging.LogRecord) -> bool:
        event = record.msg.get("event") if isinstance(record.msg, dict) else record.msg
        return event in TERMINAL_EVENTS


def log_dir() -> Path:
    env_root = os.environ.get("MARKET_DIGEST_HOME")
    if env_root:
        return Path(env_root).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Configure structlog + stdlib handlers and return application logger."""

    global _LOGGING_INITIALISED
    base = log_dir()
    (base / "jobs").mkdir(parents=True, exist_ok=True)

    if not _LOGGING_INITIALISED:
        level = "DEBUG" if verbose else "INFO"

        def file_handler(name: str, file_level: str, **extra: Any) -> dict[str, Any]:
            return {
                "class": "logging.FileHandler",
                "level": file_level,
                "filename": str(base / name),
                "encoding": "utf-8",
                "formatter": "json",
                **extra,
            }

        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "json": {"()": jsonlogger.JsonFormatter, "fmt": JSON_FORMAT},
                },
                "filters": {"terminal": {"()": TerminalEventFilter}},
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "level": level,
                        "formatter": "json",
                    },
                    "digest_file": file_handler("digest.log", "INFO"),
                    "error_file": file_handler("error.log", "ERROR"),
                    "failures_file": file_handler("failures.log", "WARNING", filters=["terminal"]),
                },
                "loggers": {
                    "market_digest": {
                        "handlers": ["console", "digest_file", "error_file", "failures_file"],
                        "level": level,
                        "propagate": False,
                    },
                },
            }
        )

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger("market_digest")


def job_log_path(job_name: str) -> Path:
    return log_dir() / "jobs" / f"{job_name}.log"


def job_logger(job_name: str, verbose: bool = False, **context: Any) -> structlog.BoundLogger:
    """Logger for one batch job, mirrored to ``logs/jobs/<job>.log``.

    Extra keyword arguments (run date, trigger) are bound to every event.
    Records still propagate to the application handlers.
    """

    configure_logging(verbose)
    path = job_log_path(job_name)
    py_logger = logging.getLogger(f"market_digest.job.{job_name}")
    if not any(getattr(handler, "baseFilename", None) == str(path) for handler in py_logger.handlers):
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(jsonlogger.JsonFormatter(JSON_FORMAT))
        handler.setLevel(logging.INFO)
        py_logger.addHandler(handler)
    return structlog.get_logger(py_logger.name).bind(job=job_name, **context)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def available_job_logs() -> Iterable[Path]:
    jobs_dir = log_dir() / "jobs"
    if not jobs_dir.exists():
        return []
    return sorted(jobs_dir.glob("*.log"))


__all__ = [
    "TERMINAL_EVENTS",
    "TerminalEventFilter",
    "available_job_logs",
    "configure_logging",
    "job_log_path",
    "job_logger",
    "log_dir",
    "tail_log",
]
