from slowapi import Limiter
from slowapi.util import get_remote_address

from loan_wizard.core.settings import settings

# Sessions are process-local, so an in-memory limit store is enough.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    storage_uri=settings.rate_limit_storage_uri,
)

__all__ = ["limiter"]
