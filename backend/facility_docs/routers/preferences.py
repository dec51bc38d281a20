from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from facility_docs.database import get_db
from facility_docs.dependencies import get_current_user, get_facility
from facility_docs.models import Facility, User
from facility_docs.schemas.preference import PreferenceResponse, PreferenceUpdate
from facility_docs.services import policy, preferences

router = APIRouter(prefix="/facilities/{facility_id}/document-preferences", tags=["document-preferences"])


@router.get("", response_model=PreferenceResponse)
async def get_preferences(
    user: User = Depends(get_current_user),
    facility: Facility = Depends(get_facility),
    db: AsyncSession = Depends(get_db),
) -> PreferenceResponse:
    policy.ensure_can_view(user, facility.id)
    return await preferences.get_preferences(db, user, facility.id)


@router.put("", response_model=PreferenceResponse)
async def update_preferences(
    data: PreferenceUpdate,
    user: User = Depends(get_current_user),
    facility: Facility = Depends(get_facility),
    db: AsyncSession = Depends(get_db),
) -> PreferenceResponse:
    policy.ensure_can_view(user, facility.id)
    return await preferences.update_preferences(db, user, facility.id, data)


@router.delete("", status_code=204)
async def reset_preferences(
    user: User = Depends(get_current_user),
    facility: Facility = Depends(get_facility),
    db: AsyncSession = Depends(get_db),
) -> None:
    policy.ensure_can_view(user, facility.id)
    await preferences.reset_preferences(db, user, facility.id)
