"""FastAPI application entry point for the chat backend."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.exceptions import HTTPException

from chatdesk.api.routes.chat import router as chat_router
from chatdesk.config import Settings, get_settings
from chatdesk.core.errors import ChatError
from chatdesk.database import ConversationStore
from chatdesk.services.chat_service import ChatService
from chatdesk.services.completion import CompletionGateway

logger = logging.getLogger(__name__)


def _envelope(status_code: int, text: str) -> JSONResponse:
    """Failure envelope: client errors carry ``message``, server errors ``error``."""
    key = "message" if status_code < 500 else "error"
    return JSONResponse(status_code=status_code, content={"success": False, key: text})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return _envelope(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        text = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return _envelope(400, text)

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return _envelope(exc.status_code, exc.message)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Hide internal error details from clients."""
        logger.exception("Unhandled exception: %s", exc)
        return _envelope(500, "Internal server error")


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ConversationStore] = None,
    gateway: Optional[CompletionGateway] = None,
) -> FastAPI:
    """
    Build the application with explicitly constructed collaborators.

    The store is created here and initialised in the lifespan; tests pass
    their own store and gateway.
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.store.init()
        if not app.state.store.health_check():
            logger.warning("Database health check failed at startup")
        logger.info("Database initialized")
        yield
        app.state.store.close()

    app = FastAPI(
        title=settings.API_TITLE,
        description="Authenticated chat conversations backed by a hosted completion API",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store or ConversationStore(settings.DATABASE_URL)
    app.state.gateway = gateway or CompletionGateway(settings)
    app.state.chat_service = ChatService(
        default_name=settings.DEFAULT_CHAT_NAME,
        strict_ownership=settings.STRICT_OWNERSHIP,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", response_class=HTMLResponse)
    def root():
        return f"""
        <html>
            <head>
                <title>{settings.API_TITLE}</title>
            </head>
            <body>
                <h1>{settings.API_TITLE} is running</h1>
                <a href="/docs">Open API Docs</a>
            </body>
        </html>
        """

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        database_ok = app.state.store.health_check()
        return {"status": "ok", "database": "ok" if database_ok else "unavailable"}

    app.include_router(chat_router)
    register_exception_handlers(app)
    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.HOST, port=settings.PORT)
