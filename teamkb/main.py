from contextlib import asynccontextmanager

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from teamkb import config
from teamkb.api import articles as articles_api
from teamkb.api import auth as auth_api
from teamkb.api import teams as teams_api
from teamkb.core.errors import InternalError, KnowledgeBaseError
from teamkb.db import sa as db_sa
from teamkb.services.embeddings import Embedder
from teamkb.services.matchers import build_matcher


logger = logging.getLogger("teamkb")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await db_sa.init_sa_engine()
    try:
        await db_sa.create_tables()
    except SQLAlchemyError:
        # Schema may be managed externally (migrations); keep serving
        logger.warning("Schema creation skipped", extra={"event": "schema_create_failed"}, exc_info=True)

    embedder = None
    if config.SEARCH_MATCHER == "embedding":
        embedder = Embedder(config.EMBEDDING_MODEL, config.OPENAI_API_KEY)
    app.state.embedder = embedder
    app.state.matcher = build_matcher(config.SEARCH_MATCHER, embedder, threshold=config.SIMILARITY_THRESHOLD)
    logger.info("Search matcher ready", extra={"event": "matcher_ready", "matcher": app.state.matcher.name})
    try:
        yield
    finally:
        if embedder is not None:
            await embedder.close()
        await db_sa.close_sa_engine()


app = FastAPI(
    title="Team Knowledge Base",
    lifespan=lifespan,
    root_path=config.ROOT_PATH,
)
app.include_router(auth_api.router)
app.include_router(teams_api.router)
app.include_router(articles_api.router)


@app.exception_handler(KnowledgeBaseError)
async def handle_kb_error(request: Request, exc: KnowledgeBaseError) -> JSONResponse:
    logger.warning(
        exc.message,
        extra={"event": exc.event, "path": request.url.path, "status": exc.status_code},
    )
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = jsonable_encoder(exc.errors())
    fields = [".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")) for err in errors]
    message = "Invalid request: " + ", ".join(f for f in fields if f) if fields else "Invalid request"
    logger.warning(message, extra={"event": "invalid_argument", "path": request.url.path, "status": 400})
    return JSONResponse(status_code=400, content={"message": message, "errors": errors})


@app.exception_handler(SQLAlchemyError)
async def handle_storage_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Storage failure", extra={"event": "storage_error", "path": request.url.path})
    err = InternalError("Internal error")
    return JSONResponse(status_code=err.status_code, content={"message": err.message})


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)}, headers=exc.headers)


logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
# Suppress noisy bcrypt version warning from passlib when using bcrypt>=4
logging.getLogger("passlib.handlers.bcrypt").setLevel(logging.ERROR)
