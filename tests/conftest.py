"""Test fixtures."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from ldap_crud import LDAPConfig, LDAPCrud

from tests.support.ldap import MockLDAP, patch_ldap

BASE_DN = "OU=Users,DC=example,DC=com"
SERVICE_DN = "CN=svc-ldap,OU=Service,DC=example,DC=com"
SERVICE_PASSWORD = "svc-secret"


@pytest.fixture
def config() -> LDAPConfig:
    return LDAPConfig(
        host="ldap.example.com",
        base_dn=BASE_DN,
        user_dn=SERVICE_DN,
        password=SERVICE_PASSWORD,
        default_filter="(objectClass=user)",
        attributes=("cn", "sn", "givenName", "displayName", "sAMAccountName", "mail"),
        suffix="@example.com",
        model={"sn": "lastName", "givenName": "firstName", "mail": "email"},
    )


@pytest.fixture
def mock_ldap() -> Iterator[MockLDAP]:
    with patch_ldap() as mock:
        yield mock


@pytest.fixture
def crud(config: LDAPConfig, mock_ldap: MockLDAP) -> LDAPCrud:
    return LDAPCrud(config)
