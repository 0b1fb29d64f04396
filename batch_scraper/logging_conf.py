"""structlog on top of stdlib logging, with JSON files per process and per job."""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Iterable

import structlog

from .config.loader import HOME_ENV_VAR

ROOT_LOGGER = "batch_scraper"
JOB_LOGGER_PREFIX = f"{ROOT_LOGGER}.job"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_LOGGING_INITIALISED = False


def log_dir() -> Path:
    """Directory holding ``scraper.log``, ``error.log`` and ``jobs/``."""

    env_root = os.environ.get(HOME_ENV_VAR)
    if env_root:
        return Path(env_root).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


def _file_handler(path: Path, level: str) -> dict[str, Any]:
    return {
        "class": "logging.FileHandler",
        "level": level,
        "filename": str(path),
        "encoding": "utf-8",
        "formatter": "json",
    }


def _dict_config(directory: Path, level: str) -> dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "fmt": JSON_FORMAT,
            }
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "level": level, "formatter": "json"},
            "scraper_file": _file_handler(directory / "scraper.log", "INFO"),
            "error_file": _file_handler(directory / "error.log", "ERROR"),
        },
        "loggers": {
            ROOT_LOGGER: {
                "handlers": ["console", "scraper_file", "error_file"],
                "level": level,
                "propagate": False,
            },
        },
    }


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Install handlers once per process and return the application logger."""

    global _LOGGING_INITIALISED
    directory = log_dir()
    (directory / "jobs").mkdir(parents=True, exist_ok=True)

    if not _LOGGING_INITIALISED:
        logging.config.dictConfig(_dict_config(directory, "DEBUG" if verbose else "INFO"))
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger(ROOT_LOGGER)


def _job_log_path(job_id: str) -> Path:
    return log_dir() / "jobs" / f"{job_id}.log"


def job_logger(job_id: str, verbose: bool = False) -> structlog.BoundLogger:
    """Logger bound to ``job_id`` that also writes to ``logs/jobs/<job_id>.log``.

    Records still reach the global handlers. Call :func:`release_job_logger`
    when the job settles to close the file.
    """

    configure_logging(verbose)
    path = _job_log_path(job_id)
    path.parent.mkdir(parents=True, exist_ok=True)

    py_logger = logging.getLogger(f"{JOB_LOGGER_PREFIX}.{job_id}")
    attached = {
        handler.baseFilename
        for handler in py_logger.handlers
        if isinstance(handler, logging.FileHandler)
    }
    if str(path) not in attached:
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setLevel(logging.INFO)
        root_handlers = logging.getLogger(ROOT_LOGGER).handlers
        if root_handlers:
            handler.setFormatter(root_handlers[0].formatter)
        py_logger.addHandler(handler)

    return structlog.get_logger(py_logger.name).bind(job_id=job_id)


def release_job_logger(job_id: str) -> None:
    py_logger = logging.getLogger(f"{JOB_LOGGER_PREFIX}.{job_id}")
    for handler in [h for h in py_logger.handlers if isinstance(h, logging.FileHandler)]:
        py_logger.removeHandler(handler)
        handler.close()


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Last ``line_count`` lines of ``path``; empty when the file is missing."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        return stream.readlines()[-line_count:]


def available_job_logs() -> Iterable[Path]:
    jobs_dir = log_dir() / "jobs"
    if not jobs_dir.exists():
        return []
    return sorted(jobs_dir.glob("*.log"))


__all__ = [
    "available_job_logs",
    "configure_logging",
    "job_logger",
    "log_dir",
    "release_job_logger",
    "tail_log",
]
