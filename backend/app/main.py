from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import AccessControlError
from app.core.logging import configure_logging
import app.models  # noqa: F401  # force model registration

from app.api.v1.auth import router as auth_router
from app.api.v1.clients import router as clients_router
from app.api.v1.users import router as users_router
from app.api.v1.reports import router as reports_router
from app.api.v1.tasks import router as tasks_router
from app.api.v1.settings import router as settings_router
from app.api.v1.services import router as services_router


async def access_control_error_handler(request: Request, exc: AccessControlError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()}, headers=headers)


def create_application() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Agency Portal API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AccessControlError, access_control_error_handler)

    @app.get("/")
    def root():
        return {"status": "ok", "service": "agency-portal"}

    # Routers
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(clients_router, prefix="/api/v1")
    app.include_router(users_router, prefix="/api/v1")
    app.include_router(reports_router, prefix="/api/v1")
    app.include_router(tasks_router, prefix="/api/v1")
    app.include_router(settings_router, prefix="/api/v1")
    app.include_router(services_router, prefix="/api/v1")

    return app


app = create_application()
