"""Request-scoped dependencies shared by the routers."""

from fastapi import Header, Request


class Unauthorized(Exception):
    code = "UNAUTHORIZED"

    def __init__(self, message="Authentication required"):
        self.message = message
        super().__init__(message)


def current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """The caller's user id, resolved upstream by the authentication layer."""
    if not x_user_id or not x_user_id.strip():
        raise Unauthorized()
    return x_user_id.strip()


def services(request: Request):
    return request.app.state
