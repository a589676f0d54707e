# File: tablegen/web.py
"""
TableGen - HTTP Front End
==========================
FastAPI application exposing the same operations as the CLI.

Every request opens its own data-source connection from the body's
``dsn``/``driver`` (falling back to the settings) and closes it before the
response is sent. Errors are returned as ``{"detail": "<message>"}``:

    ===========================================  ======
    TableNotFoundError, RecordNotFoundError       404
    DriftDetectedError                            409
    ConnectionError, IntrospectionError           502
    IntrospectionTimeoutError                     504
    ConfigError, UnknownFeatureError              400
    anything else (render, template, journal)     500
    ===========================================  ======

Run with ``tablegen serve`` or ``uvicorn --factory tablegen.web:create_app``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from tablegen import errors
from tablegen.config import GeneratorSettings, default_settings
from tablegen.generator import CodeGenerator, TableResult, connection_for
from tablegen.history import HistoryJournal
from tablegen.models import GenerationRequest

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("tablegen.web")

# Checked in order, first isinstance match wins.
_STATUS_CODES: List[Tuple[type, int]] = [
    (errors.TableNotFoundError, 404),
    (errors.RecordNotFoundError, 404),
    (errors.DriftDetectedError, 409),
    (errors.IntrospectionTimeoutError, 504),
    (errors.ConnectionError, 502),
    (errors.IntrospectionError, 502),
    (errors.ConfigError, 400),
    (errors.UnknownFeatureError, 400),
]


def status_for(exc: errors.TablegenError) -> int:
    for exc_type, status in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return status
    return 500


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class DataSourceBody(BaseModel):
    model_config = ConfigDict(extra="forbid")

    dsn: Optional[str] = None
    driver: Optional[str] = None


class TableBody(DataSourceBody):
    table: str


class GenerateBody(GenerationRequest):
    """A ``GenerationRequest`` plus the data source to read it from."""

    dsn: Optional[str] = None
    driver: Optional[str] = None

    def to_request(self, **update: Any) -> GenerationRequest:
        data: Dict[str, Any] = self.model_dump(exclude={"dsn", "driver"})
        data.update(update)
        return GenerationRequest.model_validate(data)


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(settings: Optional[GeneratorSettings] = None) -> FastAPI:
    """Build the application around one settings object."""
    settings = settings or default_settings()
    app = FastAPI(title="TableGen", version=_version())
    app.state.settings = settings

    def generator_for(body: Union[DataSourceBody, GenerateBody]) -> CodeGenerator:
        return CodeGenerator.from_settings(
            settings, connection_for(settings, body.dsn, body.driver)
        )

    def journal() -> HistoryJournal:
        return HistoryJournal(settings.history_dir)

    @app.exception_handler(errors.TablegenError)
    async def _tablegen_error(request: Request, exc: errors.TablegenError) -> JSONResponse:
        status: int = status_for(exc)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status, content={"detail": str(exc)})

    @app.get("/healthz")
    def health() -> Dict[str, str]:
        return {"status": "OK"}

    # -- data source ----------------------------------------------------------

    @app.post("/api/db/test")
    def test_connection(body: DataSourceBody) -> Dict[str, Any]:
        with generator_for(body) as generator:
            generator.introspector.connect()
            driver: str = str(generator.introspector.connection.driver)
        return {"ok": True, "driver": driver}

    @app.post("/api/tables")
    def list_tables(body: DataSourceBody) -> List[Dict[str, Any]]:
        with generator_for(body) as generator:
            tables = generator.introspector.list_tables()
        return [t.model_dump(mode="json") for t in tables]

    @app.post("/api/tables/detail")
    def table_detail(body: TableBody) -> Dict[str, Any]:
        with generator_for(body) as generator:
            table = generator.introspector.introspect(body.table)
        return table.model_dump(mode="json")

    # -- generation -----------------------------------------------------------

    @app.post("/api/preview")
    def preview(body: GenerateBody) -> List[Dict[str, Any]]:
        with generator_for(body) as generator:
            artifacts = generator.preview(body.to_request(preview=True))
        return [a.model_dump(mode="json") for a in artifacts]

    @app.post("/api/generate")
    def generate(body: GenerateBody) -> Dict[str, Any]:
        with generator_for(body) as generator:
            result: TableResult = generator.generate(body.to_request(preview=False))
        return {
            "table": result.table,
            "files": [a.path for a in result.artifacts],
            "record": result.record.summary() if result.record is not None else None,
        }

    # -- history --------------------------------------------------------------

    @app.get("/api/history")
    def list_history(table: Optional[str] = None) -> List[Dict[str, Any]]:
        records = journal().records_for_table(table) if table else journal().list()
        return [r.summary() for r in records]

    @app.get("/api/history/{record_id}")
    def get_history(record_id: str) -> Dict[str, Any]:
        return journal().get(record_id).model_dump(mode="json")

    @app.post("/api/history/{record_id}/rollback")
    def rollback(record_id: str, check_drift: bool = False) -> Dict[str, Any]:
        restored: List[str] = journal().rollback(record_id, check_drift=check_drift)
        return {"id": record_id, "restored": restored}

    @app.delete("/api/history/{record_id}")
    def delete_history(record_id: str) -> Dict[str, Any]:
        removed = journal().delete(record_id)
        return {"id": removed.id, "deleted": True}

    logger.debug("HTTP front end created (history: %s)", settings.history_dir)
    return app


def _version() -> str:
    from tablegen import __version__

    return __version__


__all__: List[str] = [
    "status_for",
    "DataSourceBody",
    "TableBody",
    "GenerateBody",
    "create_app",
]
