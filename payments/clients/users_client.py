"""
User lookups for the Payments service.

Users are owned by the Users service. ``SqlUserDirectory`` reads the users
table mirrored into the service database; ``HttpUserDirectory`` asks the
Users service directly.
"""
import os
import logging
from typing import Optional, Protocol

import httpx
from sqlalchemy.orm import Session

from .. import models
from ..exceptions import BusinessException

logger = logging.getLogger(__name__)

# Use internal Docker network hostname
USERS_SERVICE_URL = os.getenv("USERS_SERVICE_URL", "http://users:8000")
TIMEOUT = float(os.getenv("SERVICE_TIMEOUT", "5.0"))  # seconds


class UserDirectory(Protocol):
    def resolve_user(self, db: Session, user_id: str) -> Optional[object]:
        """Return the user, or None if it does not exist."""
        ...


class SqlUserDirectory:
    """User directory backed by the users table."""

    def resolve_user(self, db: Session, user_id: str) -> Optional[models.User]:
        return db.query(models.User).filter(models.User.id == user_id).first()


class HttpUserDirectory:
    """User directory backed by the Users service."""

    def __init__(self, base_url: str = USERS_SERVICE_URL, token: Optional[str] = None,
                 client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.client = client

    def resolve_user(self, db: Session, user_id: str) -> Optional[dict]:
        """
        Retrieve user data from the Users service.

        Returns:
            User data as a dictionary if found, None otherwise

        Raises:
            BusinessException: 503 if the service cannot be reached or answers with an error
        """
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else None
        try:
            if self.client is not None:
                response = self.client.get(f"{self.base_url}/{user_id}", headers=headers)
            else:
                with httpx.Client(timeout=TIMEOUT) as client:
                    response = client.get(f"{self.base_url}/{user_id}", headers=headers)
            if response.status_code == 404:
                return None
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Users service error: {e}")
            raise BusinessException(
                "user", f"Users service error: {str(e)}", "Service communication error", status_code=503
            ) from e

        return response.json()
