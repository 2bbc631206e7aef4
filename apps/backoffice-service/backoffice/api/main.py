"""
FastAPI app assembly: logging, error mapping and router wiring.
"""
import logging
import os
from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

# Configure logging
LOG_LEVEL_NAME = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.INFO)
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)
logger.setLevel(LOG_LEVEL)
logger.info("app_startup: log_level=%s", LOG_LEVEL_NAME)


from backoffice.api.ownership import router as ownership_router
from backoffice.ownership.errors import NodeFetchFailed, StoreUnavailable, UnknownSession

# Database schema is managed by Alembic migrations.

app = FastAPI(
    title="Loan Origination Back Office Service",
    description="API for resolving and traversing legal-entity ownership structures.",
    version="1.0.0",
)

# Avoid implicit trailing-slash redirects for predictable URLs
app.router.redirect_slashes = False

origins = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost,http://localhost:3000").split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error("store_unavailable: path=%s operation=%s", request.url.path, exc.operation)
    return JSONResponse(
        {"detail": "Record store unavailable; ownership could not be resolved.", "error": "store_unavailable"},
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
    )


@app.exception_handler(NodeFetchFailed)
async def node_fetch_failed_handler(request: Request, exc: NodeFetchFailed):
    return JSONResponse(
        {
            "detail": str(exc),
            "error": "node_fetch_failed",
            "node_id": str(exc.node_id),
            "retryable": True,
        },
        status_code=status.HTTP_502_BAD_GATEWAY,
    )


@app.exception_handler(UnknownSession)
async def unknown_session_handler(request: Request, exc: UnknownSession):
    return JSONResponse({"detail": "Traversal session not found"}, status_code=status.HTTP_404_NOT_FOUND)


app.include_router(ownership_router)


@app.get("/health")
def health_check():
    return {"status": "ok", "service": "backoffice-service"}
