import hmac

from fastapi import Header, HTTPException, Request, status


def require_maintenance_token(
    request: Request,
    x_maintenance_token: str | None = Header(default=None),
) -> None:
    expected = request.app.state.settings.maintenance_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Maintenance actions are disabled",
        )

    provided = (x_maintenance_token or "").encode("utf-8")
    if not hmac.compare_digest(provided, expected.encode("utf-8")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid maintenance token")
