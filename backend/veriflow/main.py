import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .db import build_engine, build_session_maker, create_tables, wait_for_db
from .errors import VerificationError
from .routers import verify
from .services.abstract_client import AbstractAPIClient
from .services.storage import RecordStore
from .services.verifier import VerificationOrchestrator

# Logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(message)s",
)
# httpx logs full request URLs at INFO, and those carry the api_key param
logging.getLogger("httpx").setLevel(logging.WARNING)
LOG = logging.getLogger(settings.APP_NAME)


# ---------------------------------------------------
# Startup / shutdown: one engine, one http client
# ---------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = build_engine()
    await wait_for_db(engine)
    if settings.CREATE_TABLES_ON_STARTUP:
        await create_tables(engine)

    http = httpx.AsyncClient(timeout=settings.EXTERNAL_TIMEOUT_SECONDS)
    client = AbstractAPIClient(http)
    for kind in client.missing_keys():
        LOG.warning("Abstract API key for %s validation not configured; %s checks will fail", kind, kind)

    store = RecordStore(build_session_maker(engine))
    app.state.store = store
    app.state.orchestrator = VerificationOrchestrator(store, client)
    LOG.info("%s ready (db=%s)", settings.APP_NAME, engine.url.render_as_string(hide_password=True))

    try:
        yield
    finally:
        await http.aclose()
        await engine.dispose()
        LOG.info("%s shutdown", settings.APP_NAME)


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# ---------------------------------------------------
# CORS (the marketing site calls these routes from the browser)
# ---------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------
# Error envelopes: {"error": "..."} with the mapped status
# ---------------------------------------------------
@app.exception_handler(VerificationError)
async def verification_error_handler(request: Request, exc: VerificationError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    path = request.url.path
    if path.endswith("/email"):
        msg = "Valid email address is required"
    elif path.endswith("/phone"):
        msg = "Valid phone number is required"
    else:
        msg = "Invalid request"
    return JSONResponse(status_code=400, content={"error": msg})


# ---------------------------------------------------
# Health check
# ---------------------------------------------------
@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}

# ---------------------------------------------------
# Routers
# ---------------------------------------------------
app.include_router(verify.router, prefix="/api/verify", tags=["verify"])
