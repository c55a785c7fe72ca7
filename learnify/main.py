from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from learnify.api.v1.auth.router import router as auth_router
from learnify.api.v1.classes.router import router as classes_router
from learnify.api.v1.enrollment.router import router as enrollment_router
from learnify.api.v1.members.router import router as members_router
from learnify.api.v1.onboarding.router import router as onboarding_router
from learnify.api.v1.schools.router import router as schools_router
from learnify.api.v1.subjects.router import router as subjects_router
from learnify.core.config import settings
from learnify.core.logging import get_logger, setup_logging


def create_app() -> FastAPI:
    setup_logging(settings)
    app = FastAPI(title="Learnify Admission Backend", debug=settings.debug)

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(auth_router)
    app.include_router(onboarding_router)
    app.include_router(schools_router)
    app.include_router(subjects_router)
    app.include_router(classes_router)
    app.include_router(enrollment_router)
    app.include_router(members_router)

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok"}

    get_logger(__name__).info("app_created", routes=len(app.routes))
    return app


app = create_app()
