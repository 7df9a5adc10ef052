"""API router package."""

from fastapi import APIRouter

from taskhub.api.v1 import admin, project_members, reports, tasks

router = APIRouter()

# Include all API routers
router.include_router(reports.router, prefix="/reports", tags=["Reports"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])
router.include_router(
    project_members.router, prefix="/project-members", tags=["Project Members"]
)
