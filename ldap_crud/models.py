from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal, Mapping

from .errors import ConfigurationError, ValidationError

Entry = dict[str, Any]
ChangeOperation = Literal["replace", "add", "delete"]

CHANGE_OPERATIONS = ("replace", "add", "delete")
DEFAULT_OBJECT_CLASSES = ("top", "person", "organizationalPerson", "user")


@dataclass(frozen=True)
class LDAPConfig:
    host: str
    base_dn: str
    user_dn: str = ""
    password: str = field(default="", repr=False)
    default_filter: str = "(objectClass=user)"
    attributes: tuple[str, ...] = ()
    suffix: str = ""
    model: Mapping[str, str] | None = None
    port: int = 636
    use_ssl: bool = True
    starttls: bool = False
    tls_validate: bool = False
    ca_pem: str = field(default="", repr=False)
    connect_timeout: float | None = None
    object_classes: tuple[str, ...] = DEFAULT_OBJECT_CLASSES

    def __post_init__(self) -> None:
        if not (self.host or "").strip():
            raise ConfigurationError("LDAP host is not configured")
        if not (self.base_dn or "").strip():
            raise ConfigurationError("Base DN is not configured")
        # Lists and the model mapping coming from settings are stored read-only.
        object.__setattr__(self, "attributes", tuple(self.attributes or ()))
        object.__setattr__(self, "object_classes", tuple(self.object_classes or ()))
        if self.model is not None:
            object.__setattr__(self, "model", MappingProxyType(dict(self.model)))

    @property
    def search_attributes(self) -> list[str]:
        """Projection used when the caller does not pass one (ldap3 ALL_ATTRIBUTES if empty)."""
        return list(self.attributes) if self.attributes else ["*"]


@dataclass(frozen=True)
class Change:
    """One requested attribute change of an update."""

    operation: ChangeOperation
    attr: str
    value: Any = None

    def __post_init__(self) -> None:
        if self.operation not in CHANGE_OPERATIONS:
            raise ValidationError(f"Unknown change operation {self.operation!r} for {self.attr!r}")
        if not self.attr:
            raise ValidationError("Change attribute name is empty")

    @classmethod
    def coerce(cls, item: Change | Mapping[str, Any]) -> Change:
        """Accept ``Change`` instances or ``{"type", "attr", "value"}`` dicts."""
        if isinstance(item, Change):
            return item
        operation = item.get("type", item.get("operation"))
        attr = item.get("attr", item.get("attribute"))
        return cls(operation=operation, attr=attr, value=item.get("value"))


@dataclass
class BatchResult:
    succeeded: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
