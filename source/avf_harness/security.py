import hmac

from fastapi import HTTPException, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

import settings

bearer_scheme = HTTPBearer(auto_error=False)


def _token_matches(presented: str) -> bool:
    expected = settings.AUTH_TOKEN
    if not expected:
        # An unset token locks the harness instead of opening it.
        return False
    return hmac.compare_digest(presented.encode(), expected.encode())


async def verify_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
) -> None:
    """Guards every harness route: device control needs the shared AUTH_TOKEN."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=401,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not _token_matches(credentials.credentials):
        print("Rejected request with an invalid harness token")
        raise HTTPException(status_code=403, detail="Invalid harness token")
