import time
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

# Load environment variables from .env file before anything else
load_dotenv()

from labcrm.core.config import settings
from labcrm.core.logging import setup_logging, request_id_ctx
from labcrm.core.errors import CRMError, PersistenceError
from labcrm.api.router import api_router
from labcrm.core.db import init_models
from labcrm.modules.session import manager


setup_logging()
app = FastAPI(title=settings.APP_NAME)
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id", "-")
    request_id_ctx.set(rid)
    response = await call_next(request)
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    response = await call_next(request)

    process_time = (time.time() - start_time) * 1000
    formatted_process_time = f"{process_time:.2f}ms"

    logger.info(
        f"Request: {request.method} {request.url.path} - Response: {response.status_code} - Time: {formatted_process_time}"
    )

    return response

@app.exception_handler(CRMError)
async def crm_error_handler(request: Request, exc: CRMError):
    status_code = exc.status_code
    if isinstance(exc, PersistenceError) and exc.is_authorization:
        status_code = 403
    if status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: code={exc.code}")
    content = {"detail": exc.message}
    fields = getattr(exc, "fields", None)
    if fields:
        content["fields"] = fields
    return JSONResponse(status_code=status_code, content=content)

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.critical(f"Unhandled exception for request {request.method} {request.url.path}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"message": "An internal server error occurred."},
    )


@app.on_event("startup")
async def on_startup():
    if settings.PATIENT_STORE_PROVIDER == "database":
        await init_models()

@app.on_event("shutdown")
async def on_shutdown():
    await manager.workspace_manager.close_all()


app.include_router(api_router, prefix=settings.API_PREFIX)
