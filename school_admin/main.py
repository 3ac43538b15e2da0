import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from school_admin.api.v1.attendance.router import router as attendance_router
from school_admin.api.v1.auth.roles_router import router as roles_router
from school_admin.api.v1.auth.router import router as auth_router
from school_admin.api.v1.classes.router import router as classes_router
from school_admin.api.v1.dashboard.router import router as dashboard_router
from school_admin.api.v1.enrollments.router import router as enrollments_router
from school_admin.api.v1.exams.router import marks_router
from school_admin.api.v1.exams.router import router as exams_router
from school_admin.api.v1.fees.router import router as fees_router
from school_admin.api.v1.holidays.router import router as holidays_router
from school_admin.api.v1.invoices.parent_router import router as parent_router
from school_admin.api.v1.invoices.router import payments_router
from school_admin.api.v1.invoices.router import router as invoices_router
from school_admin.api.v1.notices.router import router as notices_router
from school_admin.api.v1.parents.router import router as parents_router
from school_admin.api.v1.students.router import router as students_router
from school_admin.api.v1.subjects.router import router as subjects_router
from school_admin.api.v1.teacher_assignments.router import router as teacher_assignments_router
from school_admin.api.v1.teachers.router import router as teachers_router
from school_admin.core.config import settings
from school_admin.core.logging import configure_logging

logger = logging.getLogger(__name__)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title="School Administration")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Routers
    app.include_router(auth_router)
    app.include_router(roles_router)
    app.include_router(students_router)
    app.include_router(teachers_router)
    app.include_router(parents_router)
    app.include_router(classes_router)
    app.include_router(subjects_router)
    app.include_router(enrollments_router)
    app.include_router(teacher_assignments_router)
    app.include_router(attendance_router)
    app.include_router(exams_router)
    app.include_router(marks_router)
    app.include_router(fees_router)
    app.include_router(invoices_router)
    app.include_router(payments_router)
    app.include_router(parent_router)
    app.include_router(notices_router)
    app.include_router(holidays_router)
    app.include_router(dashboard_router)

    return app


app = create_app()
