"""Configuración de logging estructurado para Urna.

Los eventos de structlog llevan el identificador de la elección activa,
ligado con `bind_election` en variables de contexto.

English:
    Structured logging setup for Urna.

    structlog events carry the active election id, bound with
    `bind_election` through context variables.
"""

from __future__ import annotations

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Hashable, Optional

import structlog

from urna import __version__


def _add_software_version(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("software_version", __version__)
    return event_dict


def setup_logging(
    log_level: str,
    storage_path: Path,
    election_id: Optional[str] = None,
) -> structlog.BoundLogger:
    """Configura structlog y handlers de consola/archivo.

    Args:
        log_level (str): Nivel mínimo (`DEBUG`, `INFO`, ...).
        storage_path (Path): Raíz bajo la que se crea `logs/urna.log`.
        election_id (Optional[str]): Elección ligada al contexto desde el inicio.

    English:
        Configure structlog and console/file handlers; optionally bind the
        election id for every later event.
    """
    log_dir = storage_path / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    file_handler = TimedRotatingFileHandler(
        log_dir / "urna.log",
        when="midnight",
        backupCount=30,
        encoding="utf-8",
    )
    console_handler = logging.StreamHandler()

    logging.basicConfig(
        level=log_level.upper(),
        handlers=[file_handler, console_handler],
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            _add_software_version,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level.upper()),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if election_id:
        bind_election(election_id)
    return structlog.get_logger()


def bind_election(election_id: Optional[str]) -> None:
    """Liga la elección activa a las variables de contexto de structlog.

    English: Bind the active election to structlog's context variables.
    """
    if election_id:
        structlog.contextvars.bind_contextvars(election=election_id)
    else:
        structlog.contextvars.unbind_contextvars("election")


def bind_context(
    logger: structlog.BoundLogger,
    election: Optional[str] = None,
    caller: Optional[Hashable] = None,
    event: Optional[str] = None,
) -> structlog.BoundLogger:
    """Adjunta contexto estándar al logger.

    English: Bind standard context to the logger.
    """
    context: dict[str, Any] = {}
    if election:
        context["election"] = election
    if caller is not None:
        context["caller"] = caller
    if event:
        context["event_type"] = event
    return logger.bind(**context)
