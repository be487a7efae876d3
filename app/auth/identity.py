"""
Identity lookup against the user service.

Every service other than the user service authenticates a request by
forwarding the browser's Cookie header, unmodified, to
``GET {USER_SERVICE_URL}/api/users/me``. Anything except a 200 carrying
``{"data": {"id": ...}}`` means the caller is unauthenticated: explicit
rejections, network errors, timeouts and garbage payloads are all treated the
same way so nothing about the upstream leaks to the client.
"""
import logging
from functools import lru_cache
from typing import Optional

import requests
from fastapi import Depends, Request
from pydantic import ValidationError

from app.config import get_settings
from app.errors import Unauthenticated
from app.auth.schemas import CallerIdentity

log = logging.getLogger(__name__)

_ME_PATH = "/api/users/me"


class IdentityClient:
    def __init__(self, base_url: str, timeout: float, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})

    def resolve_caller(self, cookie_header: Optional[str]) -> Optional[CallerIdentity]:
        """Return who the cookie belongs to, or None. Never raises for upstream failures."""
        if not cookie_header:
            return None

        try:
            resp = self._session.get(
                self.base_url + _ME_PATH,
                headers={"Cookie": cookie_header},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            log.warning(f"Identity lookup failed: {exc}")
            return None

        if resp.status_code != 200:
            log.info(f"Identity lookup rejected with status {resp.status_code}")
            return None

        try:
            payload = resp.json()
        except ValueError:
            log.warning("Identity lookup returned a non-JSON body")
            return None

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict) or data.get("id") is None:
            log.warning("Identity lookup returned a payload without a user id")
            return None

        try:
            return CallerIdentity.model_validate(data)
        except ValidationError:
            log.warning("Identity lookup returned a malformed user")
            return None


@lru_cache()
def get_identity_client() -> IdentityClient:
    settings = get_settings()
    return IdentityClient(settings.USER_SERVICE_URL, timeout=settings.IDENTITY_TIMEOUT_SECONDS)


def require_caller(
    request: Request,
    client: IdentityClient = Depends(get_identity_client),
) -> CallerIdentity:
    """FastAPI dependency shared by the deck, study and sharing services."""
    caller = client.resolve_caller(request.headers.get("cookie"))
    if caller is None:
        raise Unauthenticated()
    return caller
