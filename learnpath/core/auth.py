"""Owner identity.

Authentication happens upstream; by the time a request reaches the engine
the learner has already been identified. The identity arrives as an opaque
``X-Owner-Id`` header and is threaded explicitly through every store call.
The engine never validates or issues it.
"""

from typing import Annotated

from fastapi import Header, HTTPException, status

OWNER_HEADER = "X-Owner-Id"


def get_owner_id(
    x_owner_id: Annotated[str | None, Header(alias=OWNER_HEADER)] = None,
) -> str:
    """Return the owner id of the current request.

    Raises:
        HTTPException: 401 when the header is missing or blank
    """
    if not x_owner_id or not x_owner_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {OWNER_HEADER} header",
        )
    return x_owner_id.strip()
