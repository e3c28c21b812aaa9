"""API route modules for FastAPI endpoints."""

from issuable.database.models import Issue, MergeRequest
from issuable.routes.issuables import build_router

issues_router = build_router(Issue, "/api/v1/issues", "issues")
merge_requests_router = build_router(MergeRequest, "/api/v1/merge_requests", "merge_requests")

__all__ = ["issues_router", "merge_requests_router"]
