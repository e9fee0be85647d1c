import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gradebook.api.v1.assessments.router import router as assessments_router
from gradebook.api.v1.grade_overrides.router import router as grade_overrides_router
from gradebook.api.v1.grade_scales.router import router as grade_scales_router
from gradebook.api.v1.gradebook.router import router as gradebook_router
from gradebook.api.v1.scores.router import router as scores_router
from gradebook.api.v1.subjects.router import router as subjects_router
from gradebook.core.config import settings


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="School Gradebook")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(subjects_router)
    app.include_router(assessments_router)
    app.include_router(scores_router)
    app.include_router(grade_scales_router)
    app.include_router(grade_overrides_router)
    app.include_router(gradebook_router)

    return app


app = create_app()
