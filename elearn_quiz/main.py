from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from elearn_quiz.core.config import get_settings
from elearn_quiz.core.errors import install_error_handlers
from elearn_quiz.core.logging import setup_logging
from elearn_quiz.db.database import configure_engine, init_db
from elearn_quiz.routers import system, quiz, activity


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    configure_engine(settings.DATABASE_URL)
    init_db()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="API quiz : émission de quiz signés, scoring des tentatives, historique",
    )

    # Middleware CORS
    origins = []
    if settings.CORS_ORIGINS:
        origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],  # fallback si mal configuré
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_error_handlers(app)

    # Routers
    app.include_router(system.router)
    app.include_router(quiz.router)
    app.include_router(activity.router)

    # Redirect root → docs
    @app.get("/", include_in_schema=False)
    async def root():
        return RedirectResponse(url="/docs")

    return app
