"""
Challenges API - authoring, listing and solving coding challenges.
"""

from math import ceil
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from arango.database import StandardDatabase

from app.api.auth import get_current_user, require_roles
from app.api.responses import success_response
from app.core.exceptions import NotFoundError, PermissionDeniedError
from app.crud.challenge import ChallengeCRUD
from app.crud.submission import SubmissionCRUD
from app.crud.user_stats import UserStatsCRUD
from app.db.database import get_db
from app.models.challenge import (
    Challenge, ChallengeCategory, ChallengeCreate, ChallengeDifficulty, ChallengeInDB,
    ChallengeUpdate, TestCaseCreate
)
from app.models.submission import Submission, SubmissionCreate
from app.models.user import User, UserRole
from app.services.judge import Judge, get_judge
from app.services.rank_scheduler import request_rank_recompute
from app.services.submission_pipeline import SubmissionPipeline

router = APIRouter(tags=["Challenges"])


def get_challenge_crud(db: StandardDatabase = Depends(get_db)) -> ChallengeCRUD:
    """Get ChallengeCRUD instance."""
    return ChallengeCRUD(db)


def get_submission_crud(db: StandardDatabase = Depends(get_db)) -> SubmissionCRUD:
    """Get SubmissionCRUD instance."""
    return SubmissionCRUD(db)


def get_submission_pipeline(
    db: StandardDatabase = Depends(get_db),
    judge: Judge = Depends(get_judge)
) -> SubmissionPipeline:
    return SubmissionPipeline(
        ChallengeCRUD(db),
        SubmissionCRUD(db),
        UserStatsCRUD(db),
        judge,
        request_rank_recompute=request_rank_recompute
    )


def _visible_challenge(challenge_crud: ChallengeCRUD, challenge_key: str) -> ChallengeInDB:
    challenge = challenge_crud.get_challenge(challenge_key)
    if not challenge or not challenge.is_available:
        raise NotFoundError("Challenge not found")
    return challenge


def _editable_challenge(challenge_crud: ChallengeCRUD, challenge_key: str, user: User) -> ChallengeInDB:
    challenge = challenge_crud.get_challenge(challenge_key)
    if not challenge or not challenge.is_active:
        raise NotFoundError("Challenge not found")
    if challenge.created_by != user.key and user.role != UserRole.ADMIN:
        raise PermissionDeniedError("Not authorized to modify this challenge")
    return challenge


@router.get("/")
async def list_challenges(
    category: Optional[ChallengeCategory] = None,
    difficulty: Optional[ChallengeDifficulty] = None,
    search: Optional[str] = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    challenge_crud: ChallengeCRUD = Depends(get_challenge_crud)
):
    """List published challenges with filtering, search and pagination."""
    challenges, total = challenge_crud.get_challenges(
        category=category,
        difficulty=difficulty,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=(page - 1) * limit
    )
    return success_response(
        [Challenge.from_db(c) for c in challenges],
        pagination={"current": page, "pages": ceil(total / limit), "total": total}
    )


@router.get("/filters")
async def get_challenge_filters(challenge_crud: ChallengeCRUD = Depends(get_challenge_crud)):
    """Distinct categories, difficulties and tags for the filter bar."""
    return success_response(challenge_crud.get_filters())


@router.get("/{challenge_key}")
async def get_challenge(
    challenge_key: str,
    challenge_crud: ChallengeCRUD = Depends(get_challenge_crud)
):
    """Get one published challenge. Test cases and the solution stay hidden."""
    challenge = _visible_challenge(challenge_crud, challenge_key)
    return success_response(Challenge.from_db(challenge))


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_challenge(
    challenge: ChallengeCreate,
    current_user: User = Depends(require_roles(UserRole.FACULTY, UserRole.ADMIN)),
    challenge_crud: ChallengeCRUD = Depends(get_challenge_crud)
):
    """Create a challenge (faculty and admins)."""
    db_challenge = challenge_crud.create_challenge(challenge, created_by=current_user.key)
    return success_response(Challenge.from_db(db_challenge))


@router.put("/{challenge_key}")
async def update_challenge(
    challenge_key: str,
    challenge_update: ChallengeUpdate,
    current_user: User = Depends(get_current_user),
    challenge_crud: ChallengeCRUD = Depends(get_challenge_crud)
):
    """Update a challenge (its author or an admin)."""
    _editable_challenge(challenge_crud, challenge_key, current_user)
    updated = challenge_crud.update_challenge(challenge_key, challenge_update)
    return success_response(Challenge.from_db(updated))


@router.delete("/{challenge_key}")
async def delete_challenge(
    challenge_key: str,
    current_user: User = Depends(get_current_user),
    challenge_crud: ChallengeCRUD = Depends(get_challenge_crud)
):
    """Soft delete a challenge (its author or an admin)."""
    _editable_challenge(challenge_crud, challenge_key, current_user)
    challenge_crud.deactivate_challenge(challenge_key)
    return {"success": True, "message": "Challenge deleted successfully"}


@router.post("/{challenge_key}/submit", status_code=status.HTTP_201_CREATED)
async def submit_solution(
    challenge_key: str,
    submission: SubmissionCreate,
    current_user: User = Depends(get_current_user),
    pipeline: SubmissionPipeline = Depends(get_submission_pipeline)
):
    """Judge a solution and record the submission."""
    result = pipeline.submit_solution(
        current_user.key, challenge_key, submission.code, submission.language
    )
    return success_response(Submission.model_validate(result.model_dump()))


@router.get("/{challenge_key}/submissions")
async def get_my_submissions(
    challenge_key: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    submission_crud: SubmissionCRUD = Depends(get_submission_crud)
):
    """The caller's submissions for a challenge, newest first."""
    submissions, total = submission_crud.get_user_challenge_submissions(
        current_user.key, challenge_key, limit=limit, offset=(page - 1) * limit
    )
    return success_response(
        [Submission.model_validate(s.model_dump()) for s in submissions],
        pagination={"current": page, "pages": ceil(total / limit), "total": total}
    )


@router.get("/{challenge_key}/test-cases")
async def list_test_cases(
    challenge_key: str,
    current_user: User = Depends(get_current_user),
    challenge_crud: ChallengeCRUD = Depends(get_challenge_crud)
):
    """All test cases of a challenge, hidden ones included (its author or an admin)."""
    _editable_challenge(challenge_crud, challenge_key, current_user)
    return success_response(challenge_crud.get_test_cases(challenge_key))


@router.post("/{challenge_key}/test-cases", status_code=status.HTTP_201_CREATED)
async def add_test_case(
    challenge_key: str,
    test_case: TestCaseCreate,
    current_user: User = Depends(get_current_user),
    challenge_crud: ChallengeCRUD = Depends(get_challenge_crud)
):
    """Append a test case after the existing ones (its author or an admin)."""
    _editable_challenge(challenge_crud, challenge_key, current_user)
    return success_response(challenge_crud.add_test_case(challenge_key, test_case))
