import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from assesscore import models  # noqa: F401  регистрирует таблицы в Base.metadata
from assesscore.config import Settings
from assesscore.database import Base, make_engine, make_session_factory
from assesscore.errors import AssessmentError
from assesscore.logging_config import configure_logging
from assesscore.routers import auth as auth_router
from assesscore.routers import invitations as invitations_router
from assesscore.routers import proctoring as proctoring_router
from assesscore.routers import results as results_router
from assesscore.routers import session as session_router
from assesscore.utils.notifications import Notifier

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def create_app(settings: Settings | None = None, engine: Engine | None = None, notifier=None) -> FastAPI:
    """
    Собирает приложение. Тесты передают свой engine и notifier;
    без них всё берётся из окружения.
    """
    settings = settings or Settings()
    configure_logging(settings.log_level)

    engine = engine or make_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)

    app = FastAPI(title="Assessment Core")
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.notifier = notifier or Notifier(settings)

    @app.exception_handler(AssessmentError)
    def assessment_error_handler(request: Request, exc: AssessmentError):
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = sorted({".".join(str(p) for p in err["loc"][1:]) for err in exc.errors()})
        return _error(400, f"Invalid request: {', '.join(fields) or 'malformed body'}")

    @app.exception_handler(HTTPException)
    def http_error_handler(request: Request, exc: HTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(SQLAlchemyError)
    def storage_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("Unhandled storage error on %s %s", request.method, request.url.path)
        return _error(503, "Storage unavailable")

    @app.exception_handler(Exception)
    def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Internal server error")

    app.include_router(auth_router.router)
    app.include_router(invitations_router.router)
    app.include_router(session_router.router)
    app.include_router(results_router.router)
    app.include_router(proctoring_router.router)

    @app.get("/api/health")
    def health():
        return {"status": "ok", "message": "Server is running"}

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("assesscore.main:create_app", factory=True, host="127.0.0.1", port=8000, reload=True)
