"""
FastAPI route handlers for the City Insights service.

Routers:
    insights: Feature-bundle evaluation, raw-metric evaluation, and score computation
"""

from city_insights.api.insights import router as insights_router

__all__ = ["insights_router"]
