"""Admin moderation of user accounts.

Actions come from the closed AdminAction enum; mutating actions delegate to
the pure transitions in domain.model.admin_action and are applied as one
atomic update per account. Admin accounts are never targets.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from domain.model.admin_action import TRANSITIONS, AdminAction
from domain.model.errors import NotFoundError, PermissionDeniedError, ValidationError
from domain.model.user import Role, User, is_valid_user_id
from domain.model.user_query import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    StatusFilter,
    UserCountFilter,
    UserPage,
    UserQuery,
    UserSort,
)
from port.job_stats import JobStatsPort
from port.user_repository import UserRepository

logger = logging.getLogger(__name__)

INVALID_ACTION_MESSAGE = "Invalid action. Allowed: " + ", ".join(a.value for a in AdminAction)
INVALID_BULK_TARGETS_MESSAGE = "Cannot perform action on admin accounts or invalid user IDs"
MAX_BULK_TARGETS = 100
SEARCH_MAX_LENGTH = 100

BULK_MESSAGES = {
    AdminAction.BAN: "Users banned successfully",
    AdminAction.UNBAN: "Users unbanned successfully",
    AdminAction.VERIFY: "Users verified successfully",
    AdminAction.UNVERIFY: "Users unverified successfully",
}


@dataclass(frozen=True)
class AccountStats:
    member_since: datetime
    last_active: datetime
    notification_count: int
    jobs_posted: int | None = None
    jobs_completed: int | None = None
    total_earnings: float | None = None


@dataclass(frozen=True)
class AdminActionResult:
    action: AdminAction
    message: str
    user: User
    changed: bool = False
    stats: AccountStats | None = None


@dataclass(frozen=True)
class BulkActionResult:
    action: AdminAction
    message: str
    affected: int


@dataclass(frozen=True)
class PlatformStats:
    total_users: int
    new_users_this_month: int
    banned_users: int
    verified_users: int
    active_jobs: int
    completed_jobs_this_month: int
    open_disputes: int


def parse_action(raw: str) -> AdminAction:
    try:
        return AdminAction(raw)
    except ValueError:
        raise ValidationError(INVALID_ACTION_MESSAGE) from None


def compute_stats(target: User, job_stats: JobStatsPort) -> AccountStats:
    """Role-specific job figures plus account age and activity."""
    jobs_posted = jobs_completed = total_earnings = None
    if target.role == Role.HIRER:
        jobs_posted = job_stats.count_posted(target.id)
    elif target.role == Role.FIXER:
        jobs_completed = job_stats.count_completed(target.id)
        total_earnings = job_stats.sum_earnings(target.id)

    return AccountStats(
        member_since=target.created_at,
        last_active=target.last_login_at or target.created_at,
        notification_count=len(target.notifications),
        jobs_posted=jobs_posted,
        jobs_completed=jobs_completed,
        total_earnings=total_earnings,
    )


def _apply_transition(
    actor: User,
    target: User,
    action: AdminAction,
    repo: UserRepository,
    reason: str | None,
    now: datetime,
) -> tuple[User, bool]:
    """Return (user after the action, whether anything changed)."""
    transition, _ = TRANSITIONS[action]
    update = transition(target, actor.id, now, reason)
    if update.is_empty:
        return target, False

    updated = repo.update_by_id(target.id, update, expected={'role': {'$ne': Role.ADMIN.value}})
    if updated is None:
        raise NotFoundError("User not found")
    return updated, True


def perform_action(
    actor: User,
    target_id: str,
    action: AdminAction,
    *,
    repo: UserRepository,
    job_stats: JobStatsPort,
    reason: str | None = None,
    now: datetime | None = None,
) -> AdminActionResult:
    """Apply `action` to the target account.

    Raises:
        ValidationError: malformed target id
        NotFoundError: target does not exist
        PermissionDeniedError: target is an admin
    """
    if not is_valid_user_id(target_id):
        raise ValidationError("Invalid user ID")

    target = repo.get_by_id(target_id)
    if target is None:
        raise NotFoundError("User not found")
    if target.is_admin:
        logger.warning("Admin action on admin account refused", extra={
            "actorId": actor.id, "action": action.value, "targetId": target_id,
        })
        raise PermissionDeniedError("Cannot perform actions on admin users")

    if action == AdminAction.VIEW:
        return AdminActionResult(
            action=action,
            message="User details retrieved",
            user=target,
            stats=compute_stats(target, job_stats),
        )

    updated, changed = _apply_transition(
        actor, target, action, repo, reason, now or datetime.now(timezone.utc),
    )

    logger.info("Admin action", extra={
        "actorId": actor.id,
        "action": action.value,
        "targetId": target.id,
        "changed": changed,
    })
    return AdminActionResult(action=action, message=TRANSITIONS[action][1], user=updated, changed=changed)


def bulk_action(
    actor: User,
    user_ids: list[str],
    action: AdminAction,
    *,
    repo: UserRepository,
    reason: str | None = None,
    now: datetime | None = None,
) -> BulkActionResult:
    """Apply one mutating action to several accounts.

    Every target is checked before anything is written: one malformed,
    missing or admin id rejects the whole batch.

    Raises:
        ValidationError: view action, empty or oversized batch, bad target
    """
    if not action.is_mutating:
        raise ValidationError("Invalid action. Allowed: " + ", ".join(a.value for a in BULK_MESSAGES))
    ids = list(dict.fromkeys(user_ids))
    if not ids:
        raise ValidationError("Action and user IDs are required")
    if len(ids) > MAX_BULK_TARGETS:
        raise ValidationError(f"At most {MAX_BULK_TARGETS} users can be updated at once")
    if not all(is_valid_user_id(i) for i in ids):
        raise ValidationError(INVALID_BULK_TARGETS_MESSAGE)

    targets = [repo.get_by_id(i) for i in ids]
    if any(t is None or t.is_admin for t in targets):
        logger.warning("Bulk admin action refused", extra={"actorId": actor.id, "action": action.value})
        raise ValidationError(INVALID_BULK_TARGETS_MESSAGE)

    now = now or datetime.now(timezone.utc)
    affected = 0
    for target in targets:
        _, changed = _apply_transition(actor, target, action, repo, reason, now)
        if changed:
            affected += 1

    logger.info("Bulk admin action", extra={
        "actorId": actor.id,
        "action": action.value,
        "targetIds": ids,
        "affected": affected,
    })
    return BulkActionResult(action=action, message=BULK_MESSAGES[action], affected=affected)


def _enum_or_none(enum_type, raw: str | None):
    try:
        return enum_type(raw) if raw else None
    except ValueError:
        return None


def list_users(
    repo: UserRepository,
    *,
    search: str | None = None,
    role: str | None = None,
    status: str | None = None,
    sort: str | None = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> UserPage:
    """Paginated account listing. Unknown filter values are ignored."""
    query = UserQuery(
        search=(search or '').strip()[:SEARCH_MAX_LENGTH],
        role=_enum_or_none(Role, role),
        status=_enum_or_none(StatusFilter, status),
        sort=_enum_or_none(UserSort, sort) or UserSort.NEWEST,
        page=max(page, 1),
        limit=min(max(limit, 1), MAX_PAGE_SIZE),
    )
    return repo.search_users(query)


def month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def platform_stats(
    repo: UserRepository,
    job_stats: JobStatsPort,
    now: datetime | None = None,
) -> PlatformStats:
    """Aggregate account and job figures for the admin dashboard."""
    since = month_start(now or datetime.now(timezone.utc))
    return PlatformStats(
        total_users=repo.count_users(UserCountFilter()),
        new_users_this_month=repo.count_users(UserCountFilter(created_since=since)),
        banned_users=repo.count_users(UserCountFilter(banned=True)),
        verified_users=repo.count_users(UserCountFilter(verified=True)),
        active_jobs=job_stats.count_active(),
        completed_jobs_this_month=job_stats.count_completed_since(since),
        open_disputes=job_stats.count_open_disputes(),
    )
