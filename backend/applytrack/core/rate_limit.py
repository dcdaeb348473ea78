from slowapi import Limiter
from slowapi.util import get_remote_address

from applytrack.core.config import settings

# Decorators bind to this instance at import time; reload the routes after
# toggling settings.ENABLE_RATE_LIMITING.
limiter = Limiter(key_func=get_remote_address, enabled=settings.ENABLE_RATE_LIMITING)
