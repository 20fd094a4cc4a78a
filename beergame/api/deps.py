from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from beergame.core.exceptions import ErrorCode
from beergame.services.coordinator import GameCoordinator
from beergame.services.game_session import CommandResult

admin_bearer = HTTPBearer(auto_error=False, description="Admin credential returned when the game was created")

ERROR_STATUS = {
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorCode.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_ARGUMENT: 422,
}


def get_coordinator(request: Request) -> GameCoordinator:
    return request.app.state.coordinator


def get_admin_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(admin_bearer),
) -> Optional[str]:
    """The admin token is optional here; the coordinator decides whether it is required."""
    return credentials.credentials if credentials else None


def unwrap(result: CommandResult):
    """Return the result data or raise the HTTP error matching its error code."""
    if result.ok:
        return result.data
    raise HTTPException(
        status_code=ERROR_STATUS.get(result.error, status.HTTP_400_BAD_REQUEST),
        detail={"code": result.error.value if result.error else None, "message": result.message},
    )
