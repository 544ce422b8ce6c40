from fastapi import Response

from authcore.domain.entities import TokenPair
from authcore.settings import Settings

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


def set_token_cookies(response: Response, pair: TokenPair, settings: Settings) -> None:
    for name, issued in ((ACCESS_COOKIE, pair.access), (REFRESH_COOKIE, pair.refresh)):
        response.set_cookie(
            name,
            issued.token,
            max_age=issued.claims.lifetime_seconds,
            httponly=True,
            secure=settings.secure_cookies,
            samesite="strict",
        )


def clear_token_cookies(response: Response, settings: Settings) -> None:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name, httponly=True, secure=settings.secure_cookies, samesite="strict"
        )
