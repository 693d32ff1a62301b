"""
Visitor-id cookie.

The browser normally mints this itself; the server only sets it when a
request arrives without one, with the same attributes:
  Max-Age=1 year; Path=/; SameSite=Lax; Secure over HTTPS.
"""

from fastapi import Request, Response

VISITOR_ID_COOKIE_NAME = "visitor_id"
VISITOR_ID_COOKIE_MAX_AGE = 60 * 60 * 24 * 365


def read_visitor_id(request: Request) -> str:
    """The visitor id cookie value, or "" when absent or blank."""
    return request.cookies.get(VISITOR_ID_COOKIE_NAME, "").strip()


def set_visitor_id_cookie(response: Response, visitor_id: str, *, secure: bool) -> None:
    response.set_cookie(
        key=VISITOR_ID_COOKIE_NAME,
        value=visitor_id,
        max_age=VISITOR_ID_COOKIE_MAX_AGE,
        path="/",
        samesite="lax",
        secure=secure,
        httponly=False,  # the client script reads it into localStorage
    )
