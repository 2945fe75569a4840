import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import db
from app.errors import EchoVaultError
from app.routes import api, functions, secure_message
from config import settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
_LOGGER = logging.getLogger(__name__)

app = FastAPI(title=f"{settings.APP_NAME} backend")

app.include_router(functions.router)
app.include_router(api.router)
app.include_router(secure_message.router)


@app.on_event("shutdown")
async def shutdown_event():
    await db.dispose_engine()

# --------------------------------------------
# Error bodies: {"success": false, "error": "..."}
# --------------------------------------------

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


@app.exception_handler(EchoVaultError)
async def echovault_error_handler(request: Request, exc: EchoVaultError):
    if exc.status_code >= 500:
        _LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc)
    return _error(exc.status_code, str(exc))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return _error(400, message.removeprefix("Value error, "))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    _LOGGER.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, str(exc) or "Internal server error")


@app.get("/health")
async def health():
    return {"status": "ok"}
