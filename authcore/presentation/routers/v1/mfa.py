from typing import Annotated

from fastapi import APIRouter, Depends, Response

from authcore.application.mfa import MultiFactorManager
from authcore.domain.entities import TokenClaims
from authcore.presentation.cookies import clear_token_cookies
from authcore.presentation.dependencies import get_current_claims, get_mfa_manager
from authcore.schemas.requests import MfaCodeIn, MfaEnrollIn
from authcore.schemas.responses import EnrollmentOut, MfaStatusOut
from authcore.settings import get_settings

router = APIRouter(prefix="/mfa", tags=["MFA"])


@router.post("/enroll", response_model=EnrollmentOut)
async def post_enroll(
    body: MfaEnrollIn,
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    mfa: Annotated[MultiFactorManager, Depends(get_mfa_manager)],
):
    enrollment = await mfa.begin_enrollment(claims.sub, body.method)
    return EnrollmentOut(
        method=enrollment.method,
        provisioning_uri=enrollment.provisioning_uri,
        secret=enrollment.secret,
        dispatch_id=enrollment.dispatch_id,
        expires_in=enrollment.expires_in,
    )


@router.post("/activate", response_model=MfaStatusOut)
async def post_activate(
    body: MfaCodeIn,
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    mfa: Annotated[MultiFactorManager, Depends(get_mfa_manager)],
):
    principal = await mfa.activate(claims.sub, body.code)
    return MfaStatusOut(method=principal.mfa_method, status=principal.mfa_status)


@router.post("/disable", response_model=MfaStatusOut)
async def post_disable(
    body: MfaCodeIn,
    response: Response,
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    mfa: Annotated[MultiFactorManager, Depends(get_mfa_manager)],
):
    await mfa.disable(claims.sub, body.code)
    # every session, this one included, was invalidated
    clear_token_cookies(response, get_settings())
    return MfaStatusOut(method="none", status="inactive")
