from typing import Annotated

from fastapi import APIRouter, Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from authcore.application.contracts import AccountView, ErrorCode
from authcore.domain.errors import InvalidToken
from authcore.domain.ports.unit_of_work import UnitOfWorkPort
from authcore.infrastructure.security.tokens import CLAIM_USER_ID, JwtTokenIssuer
from authcore.presentation.dependencies import get_token_issuer, get_uow
from authcore.presentation.errors import raise_http_error
from authcore.schemas.responses import AccountOut

router = APIRouter(prefix="/accounts", tags=["Accounts"])
bearer_scheme = HTTPBearer()


@router.get("/me", response_model=AccountOut)
async def get_me(
    auth: Annotated[HTTPAuthorizationCredentials, Security(bearer_scheme)],
    uow: Annotated[UnitOfWorkPort, Depends(get_uow)],
    token_issuer: Annotated[JwtTokenIssuer, Depends(get_token_issuer)],
):
    try:
        claims = token_issuer.decode_access_token(auth.credentials)
        account_id = int(claims.get(CLAIM_USER_ID) or claims["sub"])
    except (InvalidToken, KeyError, ValueError):
        raise_http_error(ErrorCode.INVALID_TOKEN, "Invalid or expired access token.")

    async with uow as tx:
        account = await tx.accounts.find_by_id(account_id)
        # read only; nothing to commit

    if account is None:
        raise_http_error(ErrorCode.INVALID_TOKEN, "Unknown account.")
    return AccountOut.model_validate(AccountView.from_account(account))
