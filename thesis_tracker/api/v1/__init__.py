"""
API v1 routes.
"""

from fastapi import APIRouter

from thesis_tracker.api.v1 import bulk, progress, submissions

router = APIRouter()

router.include_router(submissions.router, tags=["Submissions"])
router.include_router(progress.router, tags=["Progress"])
router.include_router(bulk.router, tags=["Bulk"])
