"""Configuration loading utilities for the Pulsar admin gateway."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator

from .models import Cluster

TOKEN_ENV_VAR = "PULSAR_GATEWAY_TOKEN"


def _normalize_url(value: Optional[str], field_name: str) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    if not stripped:
        return None
    parsed = urlparse(stripped)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"{field_name} must be an http(s) URL, got '{value}'")
    return stripped.rstrip("/")


class ClusterConfig(BaseModel):
    name: str = Field(min_length=1, description="Display name of the cluster")
    admin_url: str = Field(description="Base URL of the broker admin REST API")
    function_url: Optional[str] = Field(
        default=None,
        description="Base URL of the function worker; defaults to the admin URL",
    )
    presto_url: Optional[str] = Field(
        default=None,
        description="Base URL of the Pulsar SQL (Presto) worker, if deployed",
    )

    @field_validator("admin_url")
    @classmethod
    def validate_admin_url(cls, value: str) -> str:
        normalized = _normalize_url(value, "admin_url")
        if normalized is None:
            raise ValueError("admin_url is required")
        return normalized

    @field_validator("function_url", "presto_url")
    @classmethod
    def validate_optional_url(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        return _normalize_url(value, info.field_name)

    @model_validator(mode="after")
    def _default_function_url(self) -> "ClusterConfig":
        if not self.function_url:
            self.function_url = self.admin_url
        return self

    def to_cluster(self) -> Cluster:
        return Cluster(
            name=self.name,
            admin_url=self.admin_url,
            function_url=self.function_url or self.admin_url,
            presto_url=self.presto_url or "",
        )


class TransportConfig(BaseModel):
    token: Optional[str] = Field(default=None, description="Bearer token sent with every call")
    verify_tls: bool = Field(
        default=False,
        description="Verify certificates of https endpoints (admin endpoints are often self-signed)",
    )
    tls_version: Literal["TLSv1_2", "TLSv1_3"] = Field(
        default="TLSv1_3",
        description="TLS protocol version pinned for https endpoints",
    )
    timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")
    max_redirects: int = Field(default=5, ge=0, le=20, description="Cap on 307 redirect chains")
    presto_user: str = Field(default="test-user", description="Value of the X-Presto-User header")

    @field_validator("token")
    @classmethod
    def _strip_placeholder(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        stripped = value.strip()
        if not stripped or (stripped.startswith("<") and stripped.endswith(">")):
            return None
        return stripped


class GatewayConfig(BaseModel):
    clusters: list[ClusterConfig] = Field(default_factory=list)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    paths: Dict[str, str] = Field(
        default_factory=dict,
        description="Per-operation overrides of the packaged REST path templates",
    )
    registry_path: Optional[Path] = Field(
        default=None,
        description="Directory holding clusters.json and tokens.json",
    )

    @model_validator(mode="after")
    def _unique_cluster_names(self) -> "GatewayConfig":
        seen: set[str] = set()
        for cluster in self.clusters:
            if cluster.name in seen:
                raise ValueError(f"Duplicate cluster name '{cluster.name}'")
            seen.add(cluster.name)
        return self

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "GatewayConfig":
        return cls.model_validate(raw or {})

    @classmethod
    def from_yaml(cls, path: Path) -> "GatewayConfig":
        data = yaml.safe_load(path.read_text())
        return cls.from_dict(data)

    def cluster_names(self) -> list[str]:
        return [cluster.name for cluster in self.clusters]

    def with_env_token(self) -> "GatewayConfig":
        """Fill the transport token from the environment when the file does not set one."""
        if self.transport.token:
            return self
        token = os.getenv(TOKEN_ENV_VAR)
        if not token:
            return self
        transport = self.transport.model_copy(update={"token": token.strip()})
        return self.model_copy(update={"transport": transport})


def load_config(path: str | Path) -> GatewayConfig:
    """Load a GatewayConfig from a YAML file."""
    config_path = Path(path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    return GatewayConfig.from_yaml(config_path).with_env_token()
