import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from facility_docs.categories import Category
from facility_docs.database import get_db
from facility_docs.errors import NotFoundError
from facility_docs.models import Facility, User
from facility_docs.services.auth import decode_token
from facility_docs.services.categories import CategoryDocuments, MainDocuments, adapter_for

logger = logging.getLogger(__name__)

security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    token = credentials.credentials
    try:
        token_data = decode_token(token)
    except Exception as e:
        logger.warning("Invalid token", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    if token_data.user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )
    result = await db.execute(select(User).where(User.id == token_data.user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


async def get_facility(facility_id: int, db: AsyncSession = Depends(get_db)) -> Facility:
    facility = await db.get(Facility, facility_id)
    if facility is None:
        raise NotFoundError.facility(facility_id)
    return facility


def get_main_documents() -> MainDocuments:
    return MainDocuments()


def get_category_documents(category: Category) -> CategoryDocuments:
    return adapter_for(category)
