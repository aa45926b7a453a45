"""Middleware package for request/response processing"""

from flowtemplates.middleware.request_id import (
    RequestIDMiddleware,
    get_request_id,
    REQUEST_ID_HEADER,
)
from flowtemplates.middleware.error_handler import register_exception_handlers

__all__ = [
    "RequestIDMiddleware",
    "get_request_id",
    "REQUEST_ID_HEADER",
    "register_exception_handlers",
]
