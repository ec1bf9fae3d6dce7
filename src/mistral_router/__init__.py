from .broker import RequestBroker
from .classifier import classify
from .config import RouterConfig
from .contracts import Endpoint, Intent, Provider, ProviderChoice, RequestConfig, Result, Usage
from .errors import (
    BothProvidersFailed,
    InvalidInput,
    MalformedResponse,
    ProviderUnavailable,
    RequestTimeoutError,
    RouterError,
)
from .transport import HttpTransport, Transport

__all__ = [
    "BothProvidersFailed",
    "Endpoint",
    "HttpTransport",
    "Intent",
    "InvalidInput",
    "MalformedResponse",
    "Provider",
    "ProviderChoice",
    "ProviderUnavailable",
    "RequestBroker",
    "RequestConfig",
    "RequestTimeoutError",
    "Result",
    "RouterConfig",
    "RouterError",
    "Transport",
    "Usage",
    "classify",
]
