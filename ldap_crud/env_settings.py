from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from .crypto import decrypt_str
from .errors import ConfigurationError
from .models import DEFAULT_OBJECT_CLASSES, LDAPConfig


class EnvSettings(BaseSettings):
    # Connection
    host: str = Field(..., alias="LDAP_HOST")
    port: int = Field(636, alias="LDAP_PORT")
    use_ssl: bool = Field(True, alias="LDAP_USE_SSL")
    starttls: bool = Field(False, alias="LDAP_STARTTLS")
    tls_validate: bool = Field(False, alias="LDAP_TLS_VALIDATE")
    ca_pem: str = Field("", alias="LDAP_CA_PEM")
    connect_timeout: Optional[float] = Field(None, alias="LDAP_CONNECT_TIMEOUT")

    # Service identity
    user_dn: str = Field("", alias="LDAP_USER_DN")
    password: str = Field("", alias="LDAP_PASSWORD")
    password_enc: str = Field("", alias="LDAP_PASSWORD_ENC")  # Fernet token, see crypto.py
    secret_key: str = Field("", alias="LDAP_SECRET_KEY")

    # Directory layout
    base_dn: str = Field(..., alias="LDAP_BASE_DN")
    default_filter: str = Field("(objectClass=user)", alias="LDAP_DEFAULT_FILTER")
    attributes: list[str] = Field(default_factory=list, alias="LDAP_ATTRIBUTES")  # JSON list
    suffix: str = Field("", alias="LDAP_SUFFIX")
    model: Optional[dict[str, str]] = Field(None, alias="LDAP_MODEL")  # JSON object
    object_classes: list[str] = Field(default_factory=lambda: list(DEFAULT_OBJECT_CLASSES), alias="LDAP_OBJECT_CLASSES")

    # Used by LDAPCrud.from_env(configure_logging=True)
    log_level: str = Field("INFO", alias="LDAP_LOG_LEVEL")
    log_dir: str = Field("", alias="LDAP_LOG_DIR")

    class Config:
        populate_by_name = True
        env_file = ".env"
        extra = "ignore"

    def service_password(self) -> str:
        if self.password:
            return self.password
        if not self.password_enc:
            return ""
        if not self.secret_key:
            raise ConfigurationError("LDAP_PASSWORD_ENC is set but LDAP_SECRET_KEY is empty")
        pwd = decrypt_str(self.password_enc, self.secret_key)
        if not pwd:
            raise ConfigurationError("LDAP_PASSWORD_ENC cannot be decrypted with LDAP_SECRET_KEY")
        return pwd

    def to_config(self) -> LDAPConfig:
        return LDAPConfig(
            host=self.host,
            port=self.port,
            use_ssl=self.use_ssl,
            starttls=self.starttls,
            tls_validate=self.tls_validate,
            ca_pem=self.ca_pem,
            connect_timeout=self.connect_timeout,
            user_dn=self.user_dn,
            password=self.service_password(),
            base_dn=self.base_dn,
            default_filter=self.default_filter,
            attributes=tuple(self.attributes),
            suffix=self.suffix,
            model=self.model,
            object_classes=tuple(self.object_classes),
        )


@lru_cache(maxsize=1)
def get_env() -> EnvSettings:
    return EnvSettings()


def load_config() -> LDAPConfig:
    """Build the process-wide configuration from the environment."""
    return get_env().to_config()
