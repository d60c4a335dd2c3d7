"""Admin routes: account moderation, listing and platform statistics."""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from api.dependencies import get_job_stats, get_user_repo
from api.errors import envelope
from api.models import (
    AccountStatsResponse,
    AdminActionRequest,
    AdminBulkActionRequest,
    AdminUserListItem,
    AdminUserView,
    NotificationResponse,
    PaginationResponse,
    PlatformStatsResponse,
    UserProfile,
    dump,
)
from api.rate_limit import rate_limit
from api.security import get_admin_user
from domain.model.user import User
from domain.model.user_query import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from port.job_stats import JobStatsPort
from port.user_repository import UserRepository
from services import admin_service
from services.admin_service import AccountStats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _admin_view(user: User, stats: AccountStats) -> AdminUserView:
    return AdminUserView(
        **UserProfile.from_user(user).model_dump(),
        banned_reason=user.banned_reason,
        banned_at=user.banned_at,
        banned_by=user.banned_by,
        verified_at=user.verified_at,
        verified_by=user.verified_by,
        last_activity_at=user.last_activity_at,
        notifications=[NotificationResponse.from_domain(n) for n in user.notifications],
        stats=AccountStatsResponse(
            jobs_posted=stats.jobs_posted,
            jobs_completed=stats.jobs_completed,
            total_earnings=stats.total_earnings,
            member_since=stats.member_since,
            last_active=stats.last_active,
            notification_count=stats.notification_count,
        ),
    )


@router.post("/users/{user_id}/{action}", dependencies=[Depends(rate_limit("admin_user_action"))])
def user_action(
    user_id: str,
    action: str,
    request: Optional[AdminActionRequest] = Body(None),
    actor: User = Depends(get_admin_user),
    repo: UserRepository = Depends(get_user_repo),
    job_stats: JobStatsPort = Depends(get_job_stats),
):
    """Apply ban, unban, verify, unverify or view to a non-admin account."""
    admin_action = admin_service.parse_action(action)
    result = admin_service.perform_action(
        actor,
        user_id,
        admin_action,
        repo=repo,
        job_stats=job_stats,
        reason=request.reason if request else None,
    )
    if result.stats is not None:
        return envelope(result.message, success=True, user=dump(_admin_view(result.user, result.stats)))
    return envelope(result.message, success=True, changed=result.changed)


@router.get("/users", dependencies=[Depends(rate_limit("admin_users"))])
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    search: str = Query("", max_length=100),
    role: str = Query(""),
    status: str = Query(""),
    sort_by: str = Query("newest", alias="sortBy"),
    actor: User = Depends(get_admin_user),
    repo: UserRepository = Depends(get_user_repo),
):
    """Paginated account listing with search, role/status filters and sort."""
    result = admin_service.list_users(
        repo, search=search, role=role, status=status, sort=sort_by, page=page, limit=limit,
    )
    query = result.query
    return envelope(
        "Users retrieved",
        success=True,
        users=[dump(AdminUserListItem.from_user(u)) for u in result.users],
        pagination=dump(PaginationResponse(
            page=query.page,
            limit=query.limit,
            total=result.total,
            total_pages=result.total_pages,
            has_more=result.has_more,
        )),
        filters={
            "search": query.search,
            "role": query.role.value if query.role else "",
            "status": query.status.value if query.status else "",
            "sortBy": query.sort.value,
        },
    )


@router.put("/users", dependencies=[Depends(rate_limit("admin_user_action"))])
def bulk_user_action(
    request: AdminBulkActionRequest,
    actor: User = Depends(get_admin_user),
    repo: UserRepository = Depends(get_user_repo),
):
    """Apply ban, unban, verify or unverify to several non-admin accounts."""
    result = admin_service.bulk_action(
        actor,
        request.user_ids,
        admin_service.parse_action(request.action),
        repo=repo,
        reason=request.reason,
    )
    return envelope(result.message, success=True, affectedUsers=result.affected)


@router.get("/stats", dependencies=[Depends(rate_limit("admin_users"))])
def platform_stats(
    actor: User = Depends(get_admin_user),
    repo: UserRepository = Depends(get_user_repo),
    job_stats: JobStatsPort = Depends(get_job_stats),
):
    """Aggregate account and job figures."""
    stats = admin_service.platform_stats(repo, job_stats)
    return envelope(
        "Stats retrieved",
        success=True,
        stats=dump(PlatformStatsResponse(**asdict(stats))),
    )
