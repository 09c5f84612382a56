"""Tests for the LDAPCrud operations."""

from __future__ import annotations

import pytest
from ldap3 import MODIFY_REPLACE

from ldap_crud import (
    AuthError,
    BatchError,
    DirectoryError,
    InvalidCredentialsError,
    LDAPCrud,
    NotFoundError,
    ValidationError,
    encode_password,
)

from tests.conftest import BASE_DN, SERVICE_DN
from tests.support.ldap import MockLDAP, user_filter

USER_DN = f"CN=Test User,{BASE_DN}"


def test_create(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    entry = crud.create({"sn": "User", "givenName": "Test", "sAMAccountName": "tuser", "dn": "OU=Staff"})

    dn = f"CN=Test User,OU=Staff,{BASE_DN}"
    assert entry["dn"] == entry["distinguishedName"] == dn
    assert entry["userPrincipalName"] == "tuser@example.com"
    ((op, add_dn, attrs),) = mock_ldap.mutations
    assert (op, add_dn) == ("add", dn)
    assert attrs["cn"] == attrs["name"] == attrs["displayName"] == "Test User"
    assert attrs["objectClass"] == ["top", "person", "organizationalPerson", "user"]
    assert "dn" not in attrs
    assert mock_ldap.open_connections == []


@pytest.mark.parametrize("entry", [{}, {"sn": "User"}, {"givenName": "Test", "sAMAccountName": "tuser"}])
def test_create_requires_names(crud: LDAPCrud, mock_ldap: MockLDAP, entry: dict) -> None:
    with pytest.raises(ValidationError):
        crud.create(entry)
    assert mock_ldap.calls == []


def test_create_failure(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    mock_ldap.fail("add", USER_DN, "entryAlreadyExists", 68)

    with pytest.raises(DirectoryError) as excinfo:
        crud.create({"sn": "User", "givenName": "Test", "sAMAccountName": "tuser"})

    assert excinfo.value.dn == USER_DN
    assert excinfo.value.description == "entryAlreadyExists"
    assert mock_ldap.open_connections == []


def test_read(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    mock_ldap.add_entries_for_test(
        user_filter("(sAMAccountName=tuser)"),
        [(USER_DN, {"sn": ["User"], "givenName": ["Test"], "sAMAccountName": ["tuser"]})],
    )

    users = crud.read("(sAMAccountName=tuser)")

    assert users == [{"sn": "User", "givenName": "Test", "sAMAccountName": "tuser", "dn": USER_DN}]
    assert crud.find_users("(sAMAccountName=nobody)") == []
    assert len(mock_ldap.connections) == 2
    assert mock_ldap.open_connections == []


def test_find_user(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    mock_ldap.add_entries_for_test(user_filter("(sAMAccountName=tuser)"), [(USER_DN, {"sn": ["User"]})])
    mock_ldap.add_entries_for_test(
        user_filter("(userPrincipalName=tuser@example.com)"), [(USER_DN, {"sn": ["User"]})]
    )

    assert crud.find_user("tuser") == {"sn": "User", "dn": USER_DN}
    assert crud.find_user("tuser@example.com") == {"sn": "User", "dn": USER_DN}
    assert crud.find_user("") is None
    assert crud.find_user("t*") is None
    assert mock_ldap.calls_of("search")[-1][2] == "(&(objectClass=user)(sAMAccountName=t\\2a))"


def test_update_rename(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    mock_ldap.add_entries_for_test(
        user_filter("(sAMAccountName=tuser)"), [(USER_DN, {"sn": ["User"], "givenName": ["Test"]})]
    )

    assert crud.update("(sAMAccountName=tuser)", [{"type": "replace", "attr": "sn", "value": "Smith"}])

    modify, modify_dn = mock_ldap.mutations
    assert modify == (
        "modify",
        USER_DN,
        {"sn": [(MODIFY_REPLACE, ["Smith"])], "displayName": [(MODIFY_REPLACE, ["Test Smith"])]},
    )
    assert modify_dn == ("modify_dn", USER_DN, "CN=Test Smith", None)
    assert mock_ldap.open_connections == []


def test_update_password(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    mock_ldap.add_entries_for_test(user_filter("(sAMAccountName=tuser)"), [(USER_DN, {})])

    crud.update(
        "(sAMAccountName=tuser)",
        [
            {"type": "replace", "attr": "unicodePwd", "value": encode_password("secret")},
            {"type": "replace", "attr": "userAccountControl", "value": "66048"},
        ],
    )

    ((op, dn, changes),) = mock_ldap.mutations
    assert changes == {
        "unicodePwd": [(MODIFY_REPLACE, ['"secret"'.encode("utf-16-le")])],
        "userAccountControl": [(MODIFY_REPLACE, ["66048"])],
    }


def test_update_with_nothing_to_change(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    mock_ldap.add_entries_for_test(user_filter("(sAMAccountName=tuser)"), [(USER_DN, {"cn": ["Test User"]})])

    assert crud.update("(sAMAccountName=tuser)", [{"type": "delete", "attr": "mail"}])
    assert mock_ldap.mutations == []
    assert mock_ldap.open_connections == []


@pytest.mark.parametrize(
    "change",
    [{"type": "delete", "attr": "sn"}, {"type": "replace", "attr": "givenName"}],
)
def test_update_with_undefined_name_change(crud: LDAPCrud, mock_ldap: MockLDAP, change: dict) -> None:
    mock_ldap.add_entries_for_test(user_filter("(sAMAccountName=tuser)"), [(USER_DN, {"givenName": ["Test"]})])

    assert crud.update("(sAMAccountName=tuser)", [change])
    assert mock_ldap.mutations == []
    assert mock_ldap.open_connections == []


def test_update_first_of_many(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    other_dn = f"CN=Other User,{BASE_DN}"
    mock_ldap.add_entries_for_test(user_filter("(mail=*)"), [(USER_DN, {}), (other_dn, {})])

    crud.update("(mail=*)", [{"type": "replace", "attr": "title", "value": "Engineer"}])

    assert [c[1] for c in mock_ldap.mutations] == [USER_DN]


def test_update_validation(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    with pytest.raises(ValidationError):
        crud.update("", [{"type": "replace", "attr": "mail", "value": "x"}])
    with pytest.raises(ValidationError):
        crud.update("(sAMAccountName=tuser)", [])
    with pytest.raises(ValidationError):
        crud.update("(sAMAccountName=tuser)", [{"type": "upsert", "attr": "mail", "value": "x"}])
    assert mock_ldap.calls == []


def test_update_not_found_releases_connection(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    with pytest.raises(NotFoundError):
        crud.update("(sAMAccountName=nobody)", [{"type": "replace", "attr": "mail", "value": "x"}])
    assert len(mock_ldap.connections) == 1
    assert mock_ldap.open_connections == []


def test_delete(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    mock_ldap.add_entries_for_test(user_filter("(sAMAccountName=tuser)"), [(USER_DN, {"cn": ["Test User"]})])

    assert crud.delete("(sAMAccountName=tuser)") == [USER_DN]
    assert mock_ldap.mutations == [("delete", USER_DN)]


def test_delete_partial_failure(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    other_dn = f"CN=Other User,{BASE_DN}"
    third_dn = f"CN=Third User,{BASE_DN}"
    mock_ldap.add_entries_for_test(
        user_filter("(department=Temp)"),
        [(USER_DN, {"cn": ["Test User"]}), (other_dn, {"cn": ["Other User"]}), (third_dn, {"cn": ["Third User"]})],
    )
    mock_ldap.fail("delete", other_dn, "insufficientAccessRights", 50)

    with pytest.raises(BatchError) as excinfo:
        crud.delete("(department=Temp)")

    err = excinfo.value
    assert err.dn == other_dn
    assert list(err.failures) == [other_dn]
    assert err.failures[other_dn].code == 50
    assert err.succeeded == [USER_DN, third_dn]
    assert [c[1] for c in mock_ldap.calls_of("delete")] == [USER_DN, other_dn, third_dn]
    assert mock_ldap.open_connections == []


def test_delete_not_found(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    with pytest.raises(NotFoundError):
        crud.delete("(sAMAccountName=nobody)")
    with pytest.raises(ValidationError):
        crud.delete("  ")
    assert mock_ldap.mutations == []


def test_move(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    mock_ldap.add_entries_for_test(user_filter("(sAMAccountName=tuser)"), [(USER_DN, {"cn": ["Test User"]})])

    result = crud.move("(sAMAccountName=tuser)", "OU=Disabled,DC=example,DC=com")

    assert result.succeeded == [USER_DN]
    assert mock_ldap.mutations == [("modify_dn", USER_DN, "cn=Test User", "OU=Disabled,DC=example,DC=com")]


def test_move_to_current_location(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    mock_ldap.add_entries_for_test(user_filter("(sAMAccountName=tuser)"), [(USER_DN, {"cn": ["Test User"]})])

    assert crud.move("(sAMAccountName=tuser)", BASE_DN.lower()).skipped == [USER_DN]
    assert crud.move("(sAMAccountName=tuser)").skipped == [USER_DN]
    assert mock_ldap.mutations == []


def test_move_partial_failure(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    other_dn = f"CN=Other User,{BASE_DN}"
    mock_ldap.add_entries_for_test(
        user_filter("(department=Temp)"), [(USER_DN, {"cn": ["Test User"]}), (other_dn, {"cn": ["Other User"]})]
    )
    mock_ldap.fail("modify_dn", USER_DN)

    with pytest.raises(BatchError) as excinfo:
        crud.move("(department=Temp)", "OU=Disabled,DC=example,DC=com")

    assert excinfo.value.dn == USER_DN
    assert excinfo.value.succeeded == [other_dn]
    assert len(mock_ldap.calls_of("modify_dn")) == 2


def test_authenticate(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    mock_ldap.reject_bind("CN=Other User,OU=Users,DC=example,DC=com")

    assert crud.authenticate(USER_DN, "secret") is True
    assert crud.authenticate("CN=Other User,OU=Users,DC=example,DC=com", "wrong") is False
    assert mock_ldap.open_connections == []
    assert [c[1] for c in mock_ldap.calls_of("bind")] == [USER_DN, "CN=Other User,OU=Users,DC=example,DC=com"]


@pytest.mark.parametrize(("principal", "credential"), [("", "anything"), (USER_DN, ""), (None, None)])
def test_authenticate_empty(crud: LDAPCrud, mock_ldap: MockLDAP, principal: str, credential: str) -> None:
    with pytest.raises(InvalidCredentialsError):
        crud.authenticate(principal, credential)
    assert mock_ldap.calls == []


def test_authenticate_other_failure(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    mock_ldap.reject_bind(USER_DN, "unwillingToPerform", 53)

    with pytest.raises(AuthError) as excinfo:
        crud.authenticate(USER_DN, "secret")
    assert excinfo.value.code == 53


def test_service_bind_failure(crud: LDAPCrud, mock_ldap: MockLDAP) -> None:
    mock_ldap.reject_bind(SERVICE_DN)

    with pytest.raises(InvalidCredentialsError):
        crud.read("(sAMAccountName=tuser)")
    assert mock_ldap.calls_of("search") == []
    assert mock_ldap.open_connections == []
