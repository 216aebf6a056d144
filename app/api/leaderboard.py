from typing import Optional

from fastapi import APIRouter, Depends, Query
from arango.database import StandardDatabase

from app.api.responses import success_response
from app.crud.challenge import ChallengeCRUD
from app.crud.submission import SubmissionCRUD
from app.crud.user_stats import UserStatsCRUD
from app.db.database import get_db
from app.models.challenge import ChallengeCategory
from app.services.leaderboard import LeaderboardService

router = APIRouter(tags=["Leaderboard"])


def get_leaderboard_service(db: StandardDatabase = Depends(get_db)) -> LeaderboardService:
    """Get LeaderboardService instance."""
    return LeaderboardService(UserStatsCRUD(db), SubmissionCRUD(db), ChallengeCRUD(db))


@router.get("/")
async def get_leaderboard(
    timeframe: str = Query("all", pattern="^(all|week|month)$"),
    category: Optional[ChallengeCategory] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    service: LeaderboardService = Depends(get_leaderboard_service)
):
    """Global leaderboard, optionally restricted to recent solvers or a category."""
    result = service.get_leaderboard(timeframe=timeframe, category=category, page=page, limit=limit)
    return success_response(result)


@router.get("/user/{user_key}")
async def get_user_rank(
    user_key: str,
    service: LeaderboardService = Depends(get_leaderboard_service)
):
    return success_response(service.get_user_rank(user_key))


@router.get("/category/{category}")
async def get_category_leaderboard(
    category: ChallengeCategory,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    service: LeaderboardService = Depends(get_leaderboard_service)
):
    return success_response(service.get_category_leaderboard(category, page=page, limit=limit))


@router.get("/streaks")
async def get_streak_leaderboard(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    service: LeaderboardService = Depends(get_leaderboard_service)
):
    return success_response(service.get_streak_leaderboard(page=page, limit=limit))


@router.get("/stats")
async def get_global_stats(service: LeaderboardService = Depends(get_leaderboard_service)):
    """Platform-wide challenge statistics."""
    return success_response(service.get_global_stats())


@router.get("/achievements/{user_key}")
async def get_user_achievements(
    user_key: str,
    service: LeaderboardService = Depends(get_leaderboard_service)
):
    return success_response(service.get_user_achievements(user_key))
