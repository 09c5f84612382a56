"""User entry management on top of an LDAP / Active Directory server.

Public API:
    - LDAPConfig, Change
    - LDAPCrud
    - error classes from ``ldap_crud.errors``
"""

from .crud import LDAPCrud
from .errors import (
    AuthError,
    BatchError,
    ConfigurationError,
    DirectoryError,
    InvalidCredentialsError,
    LDAPCrudError,
    NotFoundError,
    ValidationError,
)
from .models import BatchResult, Change, LDAPConfig
from .utils import encode_password

__all__ = [
    "AuthError",
    "BatchError",
    "BatchResult",
    "Change",
    "ConfigurationError",
    "DirectoryError",
    "InvalidCredentialsError",
    "LDAPConfig",
    "LDAPCrud",
    "LDAPCrudError",
    "NotFoundError",
    "ValidationError",
    "encode_password",
]
