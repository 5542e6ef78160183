"""Session gate checked before any import is committed."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from supabase import Client

from core.settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionUser:
    id: str
    email: Optional[str] = None


class SessionGate(ABC):
    @abstractmethod
    def current_user(self) -> Optional[SessionUser]:
        ...


class StaticSessionGate(SessionGate):
    def __init__(self, user: Optional[SessionUser]) -> None:
        self._user = user

    def current_user(self) -> Optional[SessionUser]:
        return self._user


class SupabaseSessionGate(SessionGate):
    """Validates a Supabase access token; an invalid token means no user."""

    def __init__(self, client: Client, access_token: Optional[str]) -> None:
        self._client = client
        self._access_token = access_token

    def current_user(self) -> Optional[SessionUser]:
        if not self._access_token:
            return None
        try:
            resp = self._client.auth.get_user(self._access_token)
        except Exception as exc:
            logger.debug("Token validation failed, treating as signed out: %s", exc)
            return None
        if not resp or not resp.user:
            return None
        return SessionUser(id=resp.user.id, email=getattr(resp.user, "email", None))


def is_authenticated(gate: SessionGate) -> bool:
    return gate.current_user() is not None


def bearer_token(header: Optional[str]) -> Optional[str]:
    if header and header.startswith("Bearer "):
        return header[7:].strip() or None
    return None


def dev_gate(settings: Settings) -> StaticSessionGate:
    return StaticSessionGate(SessionUser(id="dev-user", email=settings.dev_user_email))
