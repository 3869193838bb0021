"""Blocking REST gateway for administering Apache Pulsar clusters."""

from .config import GatewayConfig, load_config
from .gateway import Gateway
from .status import HttpStatusCode, StatusKind

__all__ = ["Gateway", "GatewayConfig", "HttpStatusCode", "StatusKind", "load_config"]
