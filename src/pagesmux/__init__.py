from importlib.metadata import version

from .context import EventContext, Handler, Params
from .dispatch import http_route, path_params
from .errors import BodyConsumedError, DoubleInvocationError, RouterError
from .http import Headers, Request, Response
from .registry import Method
from .router import Router

__all__ = [
    "BodyConsumedError",
    "DoubleInvocationError",
    "EventContext",
    "Handler",
    "Headers",
    "Method",
    "Params",
    "Request",
    "Response",
    "Router",
    "RouterError",
    "__version__",
    "http_route",
    "path_params",
]

__version__ = version("pagesmux")
