from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .middleware import ExceptionLoggingMiddleware, setup_file_logging

from .config import Settings
from .dependencies import shutdown_browser
from .services.base import register_error_handlers
from .services.tabs_service import router as tabs_router
from .services.chat_service import router as chat_router
from .services.history_service import router as history_router
from .services.settings_service import router as settings_router
from .services.status_service import router as status_router


settings = Settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_file_logging(settings.log_file)
    yield
    # flush pending tab saves and stop the scheduler
    shutdown_browser()


app = FastAPI(title=settings.app_name, version=settings.version, debug=settings.debug, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ExceptionLoggingMiddleware)
register_error_handlers(app)

app.include_router(tabs_router, prefix="/api")
app.include_router(chat_router, prefix="/api")
app.include_router(history_router, prefix="/api")
app.include_router(settings_router, prefix="/api")
app.include_router(status_router)
