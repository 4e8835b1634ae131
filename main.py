import logging

from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse, JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError

from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette import status as starlette_status

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from config import settings
from db import database, models  # noqa: F401  (registra los modelos en Base.metadata)
from routers import game_state, health, maintenance, player_settings, stats
from utils.limiter import limiter

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

database.Base.metadata.create_all(bind=database.engine)

app = FastAPI(title="FrameGuessr game state")

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# === CORS estricto según entorno ===
# En dev añadimos orígenes locales comunes
_local_dev = [
    "http://127.0.0.1:5500", "http://localhost:5500",
    "http://localhost:5173", "http://localhost:3000"
]
allow_origins = (
    settings.ALLOWED_ORIGINS
    if settings.ENV == "production"
    else list({*settings.ALLOWED_ORIGINS, *_local_dev})
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Content-Length", "Content-Type"],
    max_age=600,
)

app.include_router(game_state.router)
app.include_router(stats.router)
app.include_router(maintenance.router)
app.include_router(player_settings.router)
app.include_router(health.router)


# === Handlers de error coherentes ===
@app.exception_handler(StarletteHTTPException)
async def http_exc_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.status_code,
            "message": exc.detail or "HTTP error",
            "path": str(request.url.path),
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exc_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "error": 422,
            "message": "Invalid parameters",
            "details": jsonable_errors(exc),
            "path": str(request.url.path),
        },
    )


@app.exception_handler(Exception)
async def unhandled_exc_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}")
    return JSONResponse(
        status_code=starlette_status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": 500,
            "message": "An unexpected error occurred",
            "path": str(request.url.path),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # exc.errors() puede traer objetos no serializables en "ctx"
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]


@app.get("/", include_in_schema=False)
def root():
    return RedirectResponse("/docs")
