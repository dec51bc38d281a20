"""Per-user, per-facility listing preferences."""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from facility_docs.models import DocumentPreference, User
from facility_docs.schemas.listing import ListingOptions
from facility_docs.schemas.preference import PreferenceResponse, PreferenceUpdate

logger = logging.getLogger(__name__)

PREFERENCE_FIELDS = ("sort_by", "sort_direction", "view_mode", "per_page")


async def _find(db: AsyncSession, user_id: int, facility_id: int) -> DocumentPreference | None:
    result = await db.execute(
        select(DocumentPreference).where(
            DocumentPreference.user_id == user_id,
            DocumentPreference.facility_id == facility_id,
        )
    )
    return result.scalar_one_or_none()


def _response(facility_id: int, pref: DocumentPreference | None) -> PreferenceResponse:
    if pref is None:
        return PreferenceResponse(facility_id=facility_id)
    return PreferenceResponse(
        facility_id=facility_id,
        sort_by=pref.sort_by,
        sort_direction=pref.sort_direction,
        view_mode=pref.view_mode,
        per_page=pref.per_page,
        updated_at=pref.updated_at,
    )


async def get_preferences(db: AsyncSession, user: User, facility_id: int) -> PreferenceResponse:
    return _response(facility_id, await _find(db, user.id, facility_id))


async def update_preferences(
    db: AsyncSession, user: User, facility_id: int, data: PreferenceUpdate
) -> PreferenceResponse:
    """Only fields present in the request are changed."""
    pref = await _find(db, user.id, facility_id)
    if pref is None:
        pref = DocumentPreference(user_id=user.id, facility_id=facility_id)
        db.add(pref)
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(pref, key, value)
    await db.commit()
    await db.refresh(pref)
    logger.info("Document preferences saved", extra={"user_id": user.id, "facility_id": facility_id})
    return _response(facility_id, pref)


async def reset_preferences(db: AsyncSession, user: User, facility_id: int) -> bool:
    pref = await _find(db, user.id, facility_id)
    if pref is None:
        return False
    await db.delete(pref)
    await db.commit()
    logger.info("Document preferences reset", extra={"user_id": user.id, "facility_id": facility_id})
    return True


def resolve_listing_options(stored: PreferenceResponse | None, explicit: dict[str, Any]) -> ListingOptions:
    """Explicit query values win, then stored preferences, then defaults."""
    values: dict[str, Any] = {}
    if stored is not None:
        for key in PREFERENCE_FIELDS:
            value = getattr(stored, key)
            if value is not None:
                values[key] = value
    values.update({k: v for k, v in explicit.items() if v is not None})
    return ListingOptions(**values)
