"""
Bearer token registry and scope checks.
"""
import json

import pytest

from app.exceptions import ScopeDeniedError
from app.services.auth_service import (
    SCOPE_ESCROW_READ,
    SCOPE_ESCROW_WRITE,
    Principal,
    TokenRegistry,
    parse_bearer,
)


def test_resolve_known_token():
    registry = TokenRegistry({"abc": {"subject": "ops", "scopes": [SCOPE_ESCROW_READ]}})

    principal = registry.resolve("abc")

    assert principal.subject == "ops"
    assert principal.has_scope(SCOPE_ESCROW_READ)
    assert not principal.has_scope(SCOPE_ESCROW_WRITE)


def test_unknown_or_empty_token_resolves_to_none():
    registry = TokenRegistry({"abc": {"subject": "ops", "scopes": []}})
    assert registry.resolve("abd") is None
    assert registry.resolve("") is None
    assert registry.resolve(None) is None


def test_wildcard_scope():
    assert Principal("root", frozenset({"*"})).has_scope(SCOPE_ESCROW_WRITE)


def test_require_raises_scope_denied():
    with pytest.raises(ScopeDeniedError) as exc:
        Principal("auditor", frozenset({SCOPE_ESCROW_READ})).require(SCOPE_ESCROW_WRITE)
    assert exc.value.scope == SCOPE_ESCROW_WRITE


def test_from_json():
    raw = json.dumps({"t1": {"subject": "a", "scopes": ["x"]}, "t2": {"subject": "b"}})
    registry = TokenRegistry.from_json(raw)
    assert len(registry) == 2
    assert registry.resolve("t2").scopes == frozenset()


def test_from_json_rejects_non_object():
    with pytest.raises(ValueError):
        TokenRegistry.from_json('["t1"]')


def test_empty_config_means_no_tokens():
    assert len(TokenRegistry.from_json("")) == 0


@pytest.mark.parametrize("header, token", [
    ("Bearer abc", "abc"),
    ("bearer   abc ", "abc"),
    ("Basic abc", None),
    ("Bearer", None),
    (None, None),
])
def test_parse_bearer(header, token):
    assert parse_bearer(header) == token
