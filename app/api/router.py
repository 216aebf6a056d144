from fastapi import APIRouter
from app.api.challenges import router as challenges_router
from app.api.leaderboard import router as leaderboard_router

api_router = APIRouter(prefix="/api")

# Include all route modules
api_router.include_router(challenges_router, prefix="/challenges", tags=["challenges"])
api_router.include_router(leaderboard_router, prefix="/leaderboard", tags=["leaderboard"])
