from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

# Keyed on client address; disabled in test runs via RATE_LIMIT_ENABLED=false
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
