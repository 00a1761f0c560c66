from typing import Annotated, Callable

from fastapi import APIRouter, Depends, status

from authcore.application.contracts import (
    AccountView,
    LoginRequest,
    RegistrationRequest,
)
from authcore.application.login import login
from authcore.application.refresh_token import refresh_token
from authcore.application.register_account import register_account
from authcore.application.request_login_otp import request_login_otp
from authcore.domain.ports.otp_store import OtpStorePort
from authcore.domain.ports.token_issuer import TokenIssuerPort
from authcore.domain.ports.unit_of_work import UnitOfWorkPort
from authcore.presentation.dependencies import (
    get_hash_password,
    get_otp_store,
    get_otp_ttl_seconds,
    get_token_issuer,
    get_uow,
    get_verify_password,
)
from authcore.presentation.errors import raise_for_failure
from authcore.schemas.requests import LoginIn, OtpRequestIn, RefreshTokenIn, RegisterIn
from authcore.schemas.responses import AcceptedOut, AccountOut, LoginOut

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=AccountOut,
)
async def post_register(
    body: RegisterIn,
    uow: Annotated[UnitOfWorkPort, Depends(get_uow)],
    hash_password: Annotated[Callable[..., tuple[str, str | None]], Depends(get_hash_password)],
):
    result = await register_account(
        uow,
        RegistrationRequest(
            phone_number=body.phone_number,
            password=body.password,
            email=body.email,
            first_name=body.first_name,
            last_name=body.last_name,
            display_name=body.display_name,
        ),
        hash_password,
    )
    raise_for_failure(result)
    return AccountOut.model_validate(AccountView.from_account(result.data))


@router.post("/login", response_model=LoginOut)
async def post_login(
    body: LoginIn,
    uow: Annotated[UnitOfWorkPort, Depends(get_uow)],
    verify_password: Annotated[Callable[[str, str, str | None], bool], Depends(get_verify_password)],
    token_issuer: Annotated[TokenIssuerPort, Depends(get_token_issuer)],
    otp_store: Annotated[OtpStorePort, Depends(get_otp_store)],
):
    result = await login(
        uow,
        LoginRequest(
            phone_number=body.phone_number,
            password=body.password,
            otp_code=body.otp_code,
        ),
        verify_password,
        token_issuer,
        otp_store,
    )
    raise_for_failure(result)
    return LoginOut.model_validate(result.data)


@router.post(
    "/login/otp",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=AcceptedOut,
)
async def post_login_otp(
    body: OtpRequestIn,
    uow: Annotated[UnitOfWorkPort, Depends(get_uow)],
    otp_store: Annotated[OtpStorePort, Depends(get_otp_store)],
    code_ttl_seconds: Annotated[int, Depends(get_otp_ttl_seconds)],
):
    result = await request_login_otp(
        uow, otp_store, body.phone_number, code_ttl_seconds=code_ttl_seconds
    )
    raise_for_failure(result)
    return AcceptedOut()


@router.post("/token/refresh", response_model=LoginOut)
async def post_refresh_token(
    body: RefreshTokenIn,
    uow: Annotated[UnitOfWorkPort, Depends(get_uow)],
    token_issuer: Annotated[TokenIssuerPort, Depends(get_token_issuer)],
):
    result = await refresh_token(uow, body.refresh_token, token_issuer)
    raise_for_failure(result)
    return LoginOut.model_validate(result.data)
