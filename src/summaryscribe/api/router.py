"""API router aggregator."""

from fastapi import APIRouter

from summaryscribe.api.routes.crm import router as crm_router
from summaryscribe.api.routes.dashboard import router as dashboard_router
from summaryscribe.api.routes.export import router as export_router
from summaryscribe.api.routes.notifications import router as notifications_router
from summaryscribe.api.routes.shares import router as shares_router
from summaryscribe.api.routes.slack import router as slack_router
from summaryscribe.api.routes.summaries import router as summaries_router
from summaryscribe.api.routes.summarize import router as summarize_router

router = APIRouter()
router.include_router(summarize_router)
router.include_router(summaries_router)
router.include_router(crm_router)
router.include_router(export_router)
router.include_router(slack_router)
router.include_router(shares_router)
router.include_router(dashboard_router)
router.include_router(notifications_router)
