from __future__ import annotations

from typing import Any


class LDAPCrudError(Exception):
    """Base class for every error raised by ldap_crud."""


class ValidationError(LDAPCrudError):
    """Caller input is incomplete. Raised before the directory is contacted."""


class ConfigurationError(LDAPCrudError):
    pass


class NotFoundError(LDAPCrudError):
    def __init__(self, filter_: str) -> None:
        super().__init__(f"No entry matches filter {filter_}")
        self.filter = filter_


class DirectoryError(LDAPCrudError):
    """Failure reported by the directory server or the ldap3 transport."""

    def __init__(
        self,
        message: str,
        *,
        result: dict[str, Any] | None = None,
        dn: str = "",
    ) -> None:
        super().__init__(message)
        self.result = dict(result or {})
        self.dn = dn

    @property
    def code(self) -> int | None:
        return self.result.get("result")

    @property
    def description(self) -> str:
        return str(self.result.get("description") or "")


class AuthError(DirectoryError):
    pass


class InvalidCredentialsError(AuthError):
    pass


class BatchError(DirectoryError):
    """Some targets of a bulk delete/move failed.

    ``failures`` maps each failing DN to its error, ``succeeded`` lists the DNs
    that were mutated.
    """

    def __init__(self, operation: str, failures: dict[str, DirectoryError], succeeded: list[str]) -> None:
        first_dn = next(iter(failures))
        super().__init__(
            f"{operation} failed for {len(failures)} of {len(failures) + len(succeeded)} entries "
            f"(first: {first_dn}: {failures[first_dn]})",
            result=failures[first_dn].result,
            dn=first_dn,
        )
        self.operation = operation
        self.failures = failures
        self.succeeded = succeeded
