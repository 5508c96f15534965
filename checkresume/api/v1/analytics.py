from fastapi import APIRouter, Request

from checkresume.core.rate_limit import rate_limit
from checkresume.schemas.resume import error_responses

router = APIRouter()


@router.get("/analytics/{user_id}", responses=error_responses(503))
@rate_limit()
async def user_dashboard(request: Request, user_id: str):
    dashboard = await request.app.state.aggregator.get_dashboard(user_id)
    return dashboard.model_dump(mode="json")


@router.get("/analytics/{user_id}/insights", responses=error_responses(503))
@rate_limit()
async def user_insights(request: Request, user_id: str):
    insights = await request.app.state.aggregator.generate_insights(user_id)
    return {"user_id": user_id, "insights": [insight.model_dump() for insight in insights]}
