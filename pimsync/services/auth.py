import hmac

from fastapi import HTTPException, Security
from fastapi.security.api_key import APIKeyHeader

from pimsync.core.config import settings

internal_admin_header = APIKeyHeader(name="X-Internal-Admin-Key", auto_error=False)
webhook_secret_header = APIKeyHeader(name="X-Webhook-Secret", auto_error=False)


async def require_internal_admin(key: str | None = Security(internal_admin_header)) -> None:
    if not key or not hmac.compare_digest(key, settings.internal_admin_key):
        raise HTTPException(status_code=403, detail="Internal admin key required")


async def require_webhook_secret(secret: str | None = Security(webhook_secret_header)) -> None:
    # No secret configured: inriver posts unauthenticated (channel-restricted network)
    if settings.webhook_secret is None or not settings.webhook_secret.get_secret_value():
        return
    if not secret or not hmac.compare_digest(secret, settings.webhook_secret.get_secret_value()):
        raise HTTPException(status_code=403, detail="Invalid webhook secret")
