"""Authorization service: bearer tokens resolved to principals with scopes"""
import hashlib
import json
import secrets
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, FrozenSet, Optional

from app.config import get_settings
from app.exceptions import ScopeDeniedError
from app.utils.logger import log

SCOPE_ESCROW_READ = "escrow:read"
SCOPE_ESCROW_WRITE = "escrow:write"


@dataclass(frozen=True)
class Principal:
    subject: str
    scopes: FrozenSet[str] = field(default_factory=frozenset)

    def has_scope(self, scope: str) -> bool:
        return scope in self.scopes or "*" in self.scopes

    def require(self, scope: str) -> None:
        if not self.has_scope(scope):
            raise ScopeDeniedError(scope)


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class TokenRegistry:
    """
    Maps bearer tokens to principals. Only token digests are kept in memory
    and lookups compare digests in constant time.
    """

    def __init__(self, tokens: Optional[Dict[str, Dict]] = None):
        self._entries: list[tuple[str, Principal]] = []
        for token, claims in (tokens or {}).items():
            self.register(token, claims.get("subject", "unknown"), claims.get("scopes", []))

    @classmethod
    def from_json(cls, raw: str) -> "TokenRegistry":
        if not raw:
            return cls()
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("API_TOKENS must be a JSON object of token -> claims")
        return cls(data)

    def register(self, token: str, subject: str, scopes) -> None:
        if not token:
            raise ValueError("Empty token")
        self._entries.append((_digest(token), Principal(subject, frozenset(scopes))))

    def resolve(self, token: Optional[str]) -> Optional[Principal]:
        if not token:
            return None
        candidate = _digest(token)
        match = None
        for digest, principal in self._entries:
            # Check every entry so timing doesn't depend on position
            if secrets.compare_digest(candidate, digest):
                match = principal
        return match

    def __len__(self) -> int:
        return len(self._entries)


def parse_bearer(header_value: Optional[str]) -> Optional[str]:
    if not header_value:
        return None
    scheme, _, token = header_value.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@lru_cache()
def get_token_registry() -> TokenRegistry:
    registry = TokenRegistry.from_json(get_settings().api_tokens)
    if not len(registry):
        log.warning("No API tokens configured; enterprise routes will reject all requests")
    return registry
