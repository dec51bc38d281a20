"""Role and facility-assignment checks for document access."""

import logging

from facility_docs.errors import PermissionDeniedError
from facility_docs.models import User

logger = logging.getLogger(__name__)

ADMIN = "admin"
EDITOR = "editor"
PRIMARY_RESPONDER = "primary_responder"
APPROVER = "approver"
VIEWER = "viewer"

ROLES = (ADMIN, EDITOR, PRIMARY_RESPONDER, APPROVER, VIEWER)

_VIEW_ANY = {ADMIN, EDITOR, PRIMARY_RESPONDER, APPROVER}
_EDIT_ANY = {ADMIN, EDITOR}


def can_view_facility(user: User, facility_id: int) -> bool:
    if user.role in _VIEW_ANY:
        return True
    if user.role == VIEWER:
        return facility_id in user.facility_ids
    return False


def can_edit_facility(user: User, facility_id: int) -> bool:
    if user.role in _EDIT_ANY:
        return True
    if user.role == PRIMARY_RESPONDER:
        return facility_id in user.facility_ids
    return False


def ensure_can_view(user: User, facility_id: int) -> None:
    if not can_view_facility(user, facility_id):
        logger.warning("Document view denied", extra={"user_id": user.id, "facility_id": facility_id})
        raise PermissionDeniedError(
            "You do not have permission to view this facility's documents",
            context={"facility_id": facility_id, "user_id": user.id},
        )


def ensure_can_edit(user: User, facility_id: int) -> None:
    if not can_edit_facility(user, facility_id):
        logger.warning("Document edit denied", extra={"user_id": user.id, "facility_id": facility_id})
        raise PermissionDeniedError(
            "You do not have permission to change this facility's documents",
            context={"facility_id": facility_id, "user_id": user.id},
        )
