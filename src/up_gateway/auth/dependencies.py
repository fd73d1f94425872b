"""FastAPI dependencies: get_current_merchant, require_cron_secret.

Usage in any merchant router:
    from src.up_gateway.auth.dependencies import get_current_merchant

    @router.get("/protected")
    async def protected(merchant: Annotated[Merchant, Depends(get_current_merchant)]):
        ...
"""

import hmac
from typing import Annotated

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.up_common.database import get_db_session
from src.up_common.errors import (
    InvalidCredentialsError,
    InvalidCronSecretError,
    MerchantDisabledError,
)
from src.up_gateway.auth.jwt_handler import decode_token
from src.up_merchant.domain.models import Merchant
from src.up_merchant.domain.repository import MerchantRepositoryProtocol
from src.up_merchant.infrastructure.persistence import MerchantRepository

# auto_error=False: a missing header maps to our 1003 envelope, not FastAPI's 403
_bearer = HTTPBearer(auto_error=False)

_merchant_repo: MerchantRepositoryProtocol = MerchantRepository()


def get_merchant_repository() -> MerchantRepositoryProtocol:
    return _merchant_repo


async def get_current_merchant(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    repo: Annotated[MerchantRepositoryProtocol, Depends(get_merchant_repository)],
) -> Merchant:
    """Validate the Bearer token and return the Merchant it names.

    Raises InvalidCredentialsError (401) on a missing, invalid or expired token
    or an unknown merchant, MerchantDisabledError (403) if deactivated.
    """
    if credentials is None:
        raise InvalidCredentialsError()
    payload = decode_token(credentials.credentials)

    merchant_id = payload.get("sub")
    if not merchant_id:
        raise InvalidCredentialsError()

    merchant = await repo.get_by_id(merchant_id, db)
    if merchant is None:
        raise InvalidCredentialsError()
    if not merchant.is_active:
        raise MerchantDisabledError()
    return merchant


async def require_cron_secret(
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Check `Authorization: Bearer <CRON_SECRET>` for scheduler endpoints.

    An empty CRON_SECRET disables the check (local dev only).
    """
    if not settings.CRON_SECRET:
        return
    expected = f"Bearer {settings.CRON_SECRET}"
    if authorization is None or not hmac.compare_digest(authorization, expected):
        raise InvalidCronSecretError()
