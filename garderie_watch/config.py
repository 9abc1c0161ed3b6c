# === FILE: garderie_watch/config.py ===
"""
Loading and validation of the GarderieWatch configuration.
Pydantic describes the schema and checks the data read from YAML or JSON.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    field_validator,
    model_validator,
)

__all__ = [
    "QueryConfig",
    "UrlConfig",
    "HttpConfig",
    "DatabaseConfig",
    "MailConfig",
    "AppConfig",
    "load_config",
]


class QueryConfig(BaseModel):
    """Search criteria attached to every index request plus the distance cutoff."""
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    max_distance_in_km: float = Field(..., gt=0, alias="maxDistanceInKM")
    number_of_spaces: Optional[int] = Field(None, ge=1, alias="numberOfSpaces")
    postal_code: Optional[str] = Field(None, alias="postalCode")
    max_price: Optional[float] = Field(None, gt=0, alias="maxPrice")
    age_in_months: Optional[int] = Field(None, ge=0, alias="ageInMonths")

    @field_validator("postal_code", mode="before")
    def _normalize_postal_code(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.replace(" ", "").upper()
            return v or None
        return v


class UrlConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    base_url: HttpUrl = Field("http://www.magarderie.com", alias="baseUrl", validate_default=True)
    index_url: HttpUrl = Field(
        "http://www.magarderie.com/recherche-garderie.html",
        alias="indexUrl",
        validate_default=True,
    )

    @property
    def base(self) -> str:
        return str(self.base_url).rstrip("/")

    @property
    def index(self) -> str:
        return str(self.index_url)


class HttpConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    timeout: float = Field(10.0, gt=0, description="Timeout of a single request (seconds).")
    user_agent: str = Field("GarderieWatch/1.0", min_length=1)
    max_concurrency: Optional[int] = Field(
        None, ge=1, description="Cap on in-flight detail fetches; unbounded when absent."
    )


class DatabaseConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    url: str = Field("sqlite+aiosqlite:///garderies.db", alias="connectionString")


class MailConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = True
    host: str = "localhost"
    port: int = Field(25, ge=1, le=65535)
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = False
    sender: str = "garderie-watch@localhost"
    recipients: List[str] = Field(default_factory=list)
    subject: str = "New garderie openings"
    template_dir: Path = Path("templates")

    @model_validator(mode="after")
    def _check_recipients(self) -> MailConfig:
        if self.enabled and not self.recipients:
            raise ValueError("mail.recipients must not be empty when mail is enabled")
        return self


class AppConfig(BaseModel):
    """Configuration of one crawl cycle."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    query: QueryConfig
    urls: UrlConfig = Field(default_factory=UrlConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    mail: MailConfig = Field(default_factory=lambda: MailConfig(enabled=False))


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of YAML must be a mapping, got {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of JSON must be a mapping, got {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> AppConfig:
    """
    Read YAML or JSON and return a validated AppConfig.
    Raises FileNotFoundError when the config file is missing.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(_DEFAULT_CFG))
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Unsupported config format: {suffix}")

    return AppConfig(**data)
