"""
MathMates — E-learning platform backend
FastAPI entry point.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import AppError
from app.core.logging_config import configure_logging
from app.core.middleware import RequestLogMiddleware
from app.routers import admin, parent, student, teacher
from app.utils.response import error_response

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Lessons, quizzes and progress tracking for students, teachers and parents",
    version="1.0.0",
)

# CORS
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request id + access log
app.add_middleware(RequestLogMiddleware)

# Include routers
app.include_router(student.router)
app.include_router(teacher.router)
app.include_router(parent.router)
app.include_router(admin.router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(message=exc.message, data={"code": exc.code}),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content=error_response(
            message="Invalid request",
            data={"code": "validation_error", "errors": jsonable_encoder(exc.errors())},
        ),
    )


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "status": "running",
        "auth_mode": settings.AUTH_MODE,
    }


@app.get("/api/health")
async def health():
    return {"status": "healthy", "auth_mode": settings.AUTH_MODE}
