from typing import Annotated, Callable, Optional, Union

from fastapi import APIRouter, Depends, Request, Response, status

from authcore.application import login as login_uc
from authcore.application.brute_force import BruteForceGuard
from authcore.application.mfa import MultiFactorManager
from authcore.application.revocation import RevocationRegistry
from authcore.application.rotation import RotationProtocol
from authcore.application.tokens import TokenIssuer
from authcore.domain.entities import TokenClaims
from authcore.domain.errors import AuthenticationError
from authcore.presentation.cookies import (
    REFRESH_COOKIE,
    clear_token_cookies,
    set_token_cookies,
)
from authcore.presentation.dependencies import (
    UowFactory,
    get_current_claims,
    get_hash_password,
    get_login_guard,
    get_mfa_manager,
    get_registry,
    get_rotation,
    get_token_issuer,
    get_uow_factory,
    get_verify_password,
)
from authcore.schemas.requests import (
    LoginIn,
    LogoutIn,
    PasswordChangeIn,
    PhoneOtpIn,
    PhoneOtpVerifyIn,
    RefreshIn,
)
from authcore.schemas.responses import (
    MfaChallengeOut,
    OkOut,
    OtpSentOut,
    PrincipalOut,
    TokensOut,
)
from authcore.settings import get_settings

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=Union[TokensOut, MfaChallengeOut])
async def post_login(
    body: LoginIn,
    response: Response,
    uow_factory: Annotated[UowFactory, Depends(get_uow_factory)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    login_guard: Annotated[BruteForceGuard, Depends(get_login_guard)],
    mfa: Annotated[MultiFactorManager, Depends(get_mfa_manager)],
    verify_password: Annotated[
        Callable[[str, Optional[str]], bool], Depends(get_verify_password)
    ],
):
    result = await login_uc.login(
        uow_factory=uow_factory,
        issuer=issuer,
        login_guard=login_guard,
        mfa=mfa,
        email=body.email,
        password=body.password,
        verify_password=verify_password,
        otp_code=body.otp_code,
        remember_me=body.remember_me,
    )
    if result.mfa_required:
        return MfaChallengeOut(
            method=result.mfa_method,
            dispatch_id=result.dispatch.dispatch_id if result.dispatch else None,
            expires_in=result.dispatch.expires_in if result.dispatch else None,
        )

    set_token_cookies(response, result.tokens, get_settings())
    return TokensOut.from_pair(result.tokens)


@router.post(
    "/otp/send", response_model=OtpSentOut, status_code=status.HTTP_202_ACCEPTED
)
async def post_send_login_otp(
    body: PhoneOtpIn,
    uow_factory: Annotated[UowFactory, Depends(get_uow_factory)],
    mfa: Annotated[MultiFactorManager, Depends(get_mfa_manager)],
):
    expires_in = await login_uc.login_with_sms_code(
        uow_factory=uow_factory, mfa=mfa, phone=body.phone
    )
    return OtpSentOut(expires_in=expires_in)


@router.post("/otp/verify", response_model=TokensOut)
async def post_verify_login_otp(
    body: PhoneOtpVerifyIn,
    response: Response,
    uow_factory: Annotated[UowFactory, Depends(get_uow_factory)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    mfa: Annotated[MultiFactorManager, Depends(get_mfa_manager)],
):
    pair = await login_uc.verify_sms_login(
        uow_factory=uow_factory,
        issuer=issuer,
        mfa=mfa,
        phone=body.phone,
        code=body.code,
        remember_me=body.remember_me,
    )
    set_token_cookies(response, pair, get_settings())
    return TokensOut.from_pair(pair)


@router.post("/refresh", response_model=TokensOut)
async def post_refresh(
    request: Request,
    response: Response,
    rotation: Annotated[RotationProtocol, Depends(get_rotation)],
    body: Optional[RefreshIn] = None,
):
    token = (body.refresh_token if body else None) or request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise AuthenticationError()

    pair = await rotation.rotate(token)
    set_token_cookies(response, pair, get_settings())
    return TokensOut.from_pair(pair)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def post_logout(
    request: Request,
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    registry: Annotated[RevocationRegistry, Depends(get_registry)],
    body: Optional[LogoutIn] = None,
):
    refresh_token = (body.refresh_token if body else None) or request.cookies.get(
        REFRESH_COOKIE
    )
    await login_uc.logout(
        issuer=issuer,
        registry=registry,
        access_claims=claims,
        refresh_token=refresh_token,
    )
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    clear_token_cookies(response, get_settings())
    return response


@router.post("/logout-all", response_model=OkOut)
async def post_logout_all(
    response: Response,
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    uow_factory: Annotated[UowFactory, Depends(get_uow_factory)],
):
    await login_uc.logout_everywhere(uow_factory, claims.sub)
    clear_token_cookies(response, get_settings())
    return OkOut()


@router.post("/password", response_model=OkOut)
async def post_change_password(
    body: PasswordChangeIn,
    response: Response,
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    uow_factory: Annotated[UowFactory, Depends(get_uow_factory)],
    verify_password: Annotated[
        Callable[[str, Optional[str]], bool], Depends(get_verify_password)
    ],
    hash_password: Annotated[Callable[..., str], Depends(get_hash_password)],
):
    await login_uc.change_password(
        uow_factory,
        claims.sub,
        body.current_password,
        body.new_password,
        verify_password=verify_password,
        hash_password=hash_password,
    )
    clear_token_cookies(response, get_settings())
    return OkOut()


@router.get("/me", response_model=PrincipalOut)
async def get_me(
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
):
    principal = await issuer.current_principal(claims.sub)
    if principal is None:
        raise AuthenticationError()
    return PrincipalOut(
        id=principal.id,
        email=principal.email,
        role=principal.role,
        mfa_method=principal.mfa_method,
        mfa_enabled=principal.mfa_enabled,
    )
