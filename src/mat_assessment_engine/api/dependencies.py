"""Request-scoped dependencies shared by the API routes.

Authentication happens upstream: the gateway forwards the caller's identity
in the ``X-User-Id`` and ``X-User-Name`` headers.
"""

from typing import Annotated

from fastapi import Header, HTTPException, status
from pydantic import BaseModel

from mat_assessment_engine.core.catalog import PillarRegistry

_pillar_registry = PillarRegistry()


class UserContext(BaseModel):
    """Identity of the caller as forwarded by the gateway."""

    user_id: str
    display_name: str | None = None

    @property
    def actor(self) -> str:
        """Value recorded in created_by / updated_by."""
        return self.display_name or self.user_id


def get_current_user(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_name: Annotated[str | None, Header()] = None,
) -> UserContext:
    """Read the caller identity from the gateway headers.

    Raises:
        HTTPException: 401 if the X-User-Id header is missing.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header.",
        )
    return UserContext(user_id=x_user_id, display_name=x_user_name or None)


def get_pillar_registry() -> PillarRegistry:
    """Return the process-wide pillar cache."""
    return _pillar_registry
