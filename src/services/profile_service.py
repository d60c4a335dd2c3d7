"""Profile service: read and update the signed-in user's own profile."""

import logging

from domain.model.errors import ValidationError
from domain.model.user import Role, User
from domain.model.user_update import UserUpdate
from port.user_repository import UserRepository
from services.validation import check_location, check_name, check_skills

logger = logging.getLogger(__name__)

BIO_MAX_LENGTH = 500
WORK_RADIUS_RANGE = (1, 50)

# Ignored for anyone who is not a fixer
FIXER_ONLY_FIELDS = ('skills', 'available_now', 'work_radius')


def update_profile(user: User, changes: dict, repo: UserRepository) -> User:
    """Apply allowed profile changes.

    Args:
        user: the reconciled, active session user
        changes: snake_case subset of name, bio, location, skills,
            available_now, work_radius, preferences

    Raises:
        ValidationError: a supplied field is invalid
    """
    if user.role != Role.FIXER:
        changes = {k: v for k, v in changes.items() if k not in FIXER_ONLY_FIELDS}

    to_set = {}
    errors = {}

    if 'name' in changes:
        name, error = check_name(changes['name'])
        if error:
            errors['name'] = error
        else:
            to_set['name'] = name

    if 'bio' in changes:
        bio = (changes['bio'] or '').strip()
        if len(bio) > BIO_MAX_LENGTH:
            errors['bio'] = f"Bio cannot exceed {BIO_MAX_LENGTH} characters"
        else:
            to_set['bio'] = bio

    if changes.get('location') is not None:
        location, error = check_location(changes['location'])
        if error:
            errors['location'] = error
        else:
            to_set['location'] = location

    if 'skills' in changes:
        skills, error = check_skills(changes['skills'], user.role)
        if error:
            errors['skills'] = error
        else:
            to_set['skills'] = skills

    if changes.get('available_now') is not None:
        to_set['available_now'] = bool(changes['available_now'])

    if changes.get('work_radius') is not None:
        radius = changes['work_radius']
        low, high = WORK_RADIUS_RANGE
        if isinstance(radius, bool) or not isinstance(radius, int) or not low <= radius <= high:
            errors['work_radius'] = f"Work radius must be between {low} and {high} kilometers"
        else:
            to_set['work_radius'] = radius

    if changes.get('preferences') is not None:
        to_set['preferences'] = {**user.preferences, **changes['preferences']}

    if errors:
        raise ValidationError(next(iter(errors.values())), errors=errors)

    if not to_set:
        return user

    updated = repo.update_by_id(user.id, UserUpdate(set=to_set))
    logger.info("Profile updated", extra={"userId": user.id, "fields": sorted(to_set)})
    return updated or user
