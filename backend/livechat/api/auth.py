# backend/livechat/api/auth.py
import logging
import re
from typing import Dict, Iterable, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from ..core.domain import AGENT_ROLES, Identity, Role
from ..errors import Unauthenticated

logger = logging.getLogger(__name__)

GUEST_ID_RE = re.compile(r"^[A-Za-z0-9_-]{8,64}$")

api_key_header = APIKeyHeader(name="X-API-Key")


def parse_keys(entries: Iterable[str], role: Role) -> Dict[str, Identity]:
    """Parse "key=participant_id[:display name]" entries."""
    keys = {}
    for entry in entries:
        key, sep, rest = entry.partition("=")
        key = key.strip()
        if not sep or not key or not rest.strip():
            logger.warning("Ignoring malformed %s API key entry", role.value)
            continue
        participant_id, _, display_name = rest.partition(":")
        keys[key] = Identity(
            participant_id=participant_id.strip(),
            role=role,
            display_name=display_name.strip(),
        )
    return keys


class ApiKeyAuthenticator:
    """Resolves connection credentials to a verified identity.

    Bearer tokens are looked up in a static key table; guests bring their own
    client-generated id. Anything else is Unauthenticated.
    """

    def __init__(self, keys: Dict[str, Identity], allow_guests: bool = True):
        self._keys = dict(keys)
        self.allow_guests = allow_guests

    @classmethod
    def from_settings(cls, settings) -> "ApiKeyAuthenticator":
        keys: Dict[str, Identity] = {}
        keys.update(parse_keys(settings.customer_api_keys, Role.customer))
        keys.update(parse_keys(settings.operator_api_keys, Role.agent))
        keys.update(parse_keys(settings.admin_api_keys, Role.admin))
        return cls(keys, allow_guests=settings.allow_guests)

    def authenticate(
        self,
        token: Optional[str] = None,
        guest_id: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Identity:
        if token:
            identity = self._keys.get(token)
            if identity is None:
                raise Unauthenticated("Invalid API key")
            return identity
        if guest_id:
            if not self.allow_guests:
                raise Unauthenticated("Guest chats are disabled")
            if not GUEST_ID_RE.match(guest_id):
                raise Unauthenticated("Malformed guest id")
            return Identity(
                participant_id=f"guest:{guest_id}",
                role=Role.customer,
                display_name=(name or "").strip()[:100] or "Guest",
                is_guest=True,
            )
        raise Unauthenticated("Credentials required")


def verify_operator(request: Request, api_key: str = Depends(api_key_header)) -> Identity:
    authenticator = request.app.state.hub.authenticator
    try:
        identity = authenticator.authenticate(token=api_key)
    except Unauthenticated:
        identity = None
    if identity is None or identity.role not in AGENT_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key"
        )
    return identity
