import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from filevault.core.config import settings
from filevault.core.database import connect_to_mongo, close_mongo_connection
from filevault.core.errors import FileVaultError
from filevault.core.responses import api_response
from filevault.api.routes_files import router as files_router
from filevault.api.routes_upload import router as upload_router
from filevault.media.workspace import ensure_dir

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="FileVault", description="File sharing with HLS video processing")

@app.on_event("startup")
async def startup_event():
    ensure_dir(settings.TEMP_DIR)
    await connect_to_mongo()

@app.on_event("shutdown")
async def shutdown_event():
    await close_mongo_connection()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response

@app.exception_handler(FileVaultError)
async def filevault_error_handler(request: Request, exc: FileVaultError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return api_response(exc.status_code, None, exc.message)

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    message = ", ".join(str(err.get("msg")) for err in exc.errors()) or "Invalid request"
    return api_response(400, None, message)

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return api_response(404, None, f"Route {request.url.path} not found")
    return api_response(exc.status_code, None, str(exc.detail))

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return api_response(500, None, "Internal Server Error")

app.include_router(files_router, prefix="/api/files", tags=["files"])
app.include_router(upload_router, prefix="/api/upload", tags=["upload"])


@app.get("/api/health")
async def health():
    return api_response(200, None, "Server is healthy")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=settings.PORT)
