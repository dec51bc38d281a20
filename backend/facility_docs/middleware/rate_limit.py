"""Rate limiting middleware using slowapi."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from facility_docs.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

upload_limiter = limiter.limit("20/minute")
download_limiter = limiter.limit("100/minute")
folder_limiter = limiter.limit("30/minute")
