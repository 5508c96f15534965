from fastapi import APIRouter, Header, Request

from checkresume.core.rate_limit import rate_limit
from checkresume.recommendations.models import RecommendationRequest
from checkresume.schemas.resume import error_responses

router = APIRouter()


@router.post("/courses/recommendations", responses=error_responses(400))
@rate_limit()
async def course_recommendations(
    request: Request,
    payload: RecommendationRequest,
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
):
    if x_user_id and not payload.user_id:
        payload = payload.model_copy(update={"user_id": x_user_id})
    recommendations = request.app.state.recommender.recommend(payload)
    return {
        "count": len(recommendations),
        "recommendations": [item.model_dump(mode="json") for item in recommendations],
    }
