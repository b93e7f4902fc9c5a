import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from auth.jwt_utils import ACCOUNT_NUMBER_CLAIM, decode_access_token
from config import Settings
from database import Storage
from exceptions import AccountNotFoundError, AuthenticationError

logger = logging.getLogger(__name__)

PERMISSION_DENIED = "permission denied"


def get_store(request: Request) -> Storage:
    return request.app.state.store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def parse_account_id(raw: str) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"invalid id given {raw}")


def permission_denied(reason: str) -> HTTPException:
    # The cause stays in the server log; clients always see the same answer
    logger.warning("Permission denied: %s", reason)
    return HTTPException(status_code=403, detail=PERMISSION_DENIED)


def require_account_owner(
    request: Request,
    x_jwt_token: Optional[str] = Header(default=None),
    store: Storage = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Allow the request only if the token's account number owns the account in the path."""
    if not settings.auth_enabled:
        return

    try:
        claims = decode_access_token(x_jwt_token, settings.jwt_secret)
    except AuthenticationError as exc:
        raise permission_denied(f"invalid token: {exc}")

    try:
        account_id = parse_account_id(request.path_params.get("id"))
    except HTTPException as exc:
        raise permission_denied(exc.detail)

    try:
        account = store.get_account_by_id(account_id)
    except AccountNotFoundError:
        raise permission_denied(f"account {account_id} not found")

    if account.number != claims.get(ACCOUNT_NUMBER_CLAIM):
        raise permission_denied(f"token does not belong to account {account_id}")
