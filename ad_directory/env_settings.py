from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field


class EnvSettings(BaseSettings):
    ad_domain: str = Field("", alias="AD_DOMAIN")
    ad_dc_short: str = Field("", alias="AD_DC")
    ad_port: int = Field(636, alias="AD_PORT")
    ad_use_ssl: bool = Field(True, alias="AD_USE_SSL")
    ad_starttls: bool = Field(False, alias="AD_STARTTLS")
    ad_bind_username: str = Field("", alias="AD_BIND_USERNAME")
    ad_bind_password: str = Field("", alias="AD_BIND_PASSWORD")
    ad_tls_validate: bool = Field(False, alias="AD_TLS_VALIDATE")
    ad_ca_pem: str = Field("", alias="AD_CA_PEM")

    ad_connect_timeout: Optional[float] = Field(5.0, alias="AD_CONNECT_TIMEOUT")
    ad_receive_timeout: Optional[float] = Field(30.0, alias="AD_RECEIVE_TIMEOUT")
    ad_traversal_timeout: Optional[float] = Field(None, alias="AD_TRAVERSAL_TIMEOUT")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_dir: str = Field("", alias="LOG_DIR")

    class Config:
        populate_by_name = True


@lru_cache(maxsize=1)
def get_env() -> EnvSettings:
    return EnvSettings()
