"""FastAPI backend persisting the library to a single SQLite table."""

import re
import sqlite3
import time
import uuid
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger

from library_sanctum.config import DB_FILENAME, UPLOAD_DIRNAME
from library_sanctum.core.database.repository import (
    NodeNotFoundError,
    StaleWriteError,
    delete_file,
    insert_file,
    list_files,
    update_file,
)
from library_sanctum.core.database.schema import get_metadata, migrate_schema
from library_sanctum.server.schemas import FileCreate, FileUpdate

router = APIRouter(prefix="/api")


def get_db(request: Request) -> Iterator[sqlite3.Connection]:
    """Open a connection per request."""
    conn = sqlite3.connect(str(request.app.state.db_path))
    try:
        yield conn
    finally:
        conn.close()


def _safe_filename(name: str) -> str:
    base = re.sub(r"[^A-Za-z0-9()_. -]+", "_", Path(name).name).strip("_. -")
    return base or "upload"


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/files")
def get_files(conn: sqlite3.Connection = Depends(get_db)) -> dict[str, Any]:
    return {"message": "success", "data": list_files(conn)}


@router.post("/files")
def create_file(body: FileCreate, conn: sqlite3.Connection = Depends(get_db)) -> dict[str, Any]:
    record = body.model_dump(mode="json")
    try:
        insert_file(conn, record)
    except sqlite3.Error as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    logger.info("Created {} ({})", record["id"], record.get("name"))
    return {"message": "success", "data": record}


@router.put("/files/{node_id}")
def put_file(
    node_id: str, body: FileUpdate, conn: sqlite3.Connection = Depends(get_db)
) -> dict[str, Any]:
    fields = body.model_dump(mode="json", exclude_unset=True)
    try:
        changes = update_file(conn, node_id, fields)
    except NodeNotFoundError as e:
        raise HTTPException(status_code=404, detail=f"File '{node_id}' not found") from e
    except StaleWriteError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except sqlite3.Error as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {"message": "success", "changes": changes}


@router.delete("/files/{node_id}")
def remove_file(node_id: str, conn: sqlite3.Connection = Depends(get_db)) -> dict[str, Any]:
    try:
        changes = delete_file(conn, node_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except sqlite3.Error as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    logger.info("Deleted {} ({} rows)", node_id, changes)
    return {"message": "deleted", "changes": changes}


@router.post("/upload")
def upload(request: Request, file: UploadFile = File(...)) -> dict[str, str]:
    upload_dir: Path = request.app.state.upload_dir
    stored_name = f"{uuid.uuid4().hex[:8]}-{_safe_filename(file.filename or '')}"
    data = file.file.read()
    (upload_dir / stored_name).write_bytes(data)
    logger.info("Stored upload {} ({} bytes)", stored_name, len(data))
    return {"url": f"/{UPLOAD_DIRNAME}/{stored_name}"}


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


def create_app(data_dir: Path) -> FastAPI:
    """Build the backend application over a data directory.

    The database is created (and seeded with the root folder) on first use.
    """
    data_dir.mkdir(parents=True, exist_ok=True)
    db_path = data_dir / DB_FILENAME
    upload_dir = data_dir / UPLOAD_DIRNAME
    upload_dir.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path))
    try:
        migrate_schema(conn)
        schema_version = get_metadata(conn, "schema_version")
    finally:
        conn.close()

    app = FastAPI(title="Library Sanctum", description="Personal document library backend")
    app.state.db_path = db_path
    app.state.upload_dir = upload_dir

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next: Any) -> Any:
        start_time = time.time()
        response = await call_next(request)
        logger.debug(
            "{} {} -> {} ({:.1f} ms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.time() - start_time) * 1000,
        )
        return response

    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.include_router(router)
    app.mount(f"/{UPLOAD_DIRNAME}", StaticFiles(directory=str(upload_dir)), name="uploads")
    logger.info("Library backend ready: {} (schema v{})", db_path, schema_version)
    return app


def run_server(data_dir: Path, *, host: str, port: int) -> None:
    """Serve the backend with uvicorn until interrupted."""
    import uvicorn

    uvicorn.run(create_app(data_dir), host=host, port=port, log_level="info")
