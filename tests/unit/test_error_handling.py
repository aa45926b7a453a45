"""
Unit Tests for Error Handling

Tests for custom exceptions, error handlers, and error response formats.
"""

import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from flowtemplates.exceptions import (
    AppException,
    ConflictError,
    CycleDetectedError,
    ErrorCode,
    ExportWriteError,
    NodeParameterInvalidError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from flowtemplates.middleware.error_handler import (
    app_exception_handler,
    http_exception_handler,
    register_exception_handlers,
)
from flowtemplates.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware
from flowtemplates.schemas.error import ErrorResponse

pytestmark = pytest.mark.unit


class TestCustomExceptions:
    """Test custom exception classes"""

    def test_app_exception_defaults(self):
        exc = AppException("Simple error")

        assert exc.status_code == 500
        assert exc.error_code == ErrorCode.INTERNAL_ERROR
        assert exc.details == {}
        assert str(exc) == "Simple error"

    def test_not_found_error(self):
        exc = NotFoundError("ProcessTemplate", 42)

        assert exc.message == "ProcessTemplate with id 42 not found"
        assert exc.status_code == 404
        assert exc.details == {"resource": "ProcessTemplate", "identifier": "42"}

    def test_cycle_is_validation_error(self):
        exc = CycleDetectedError()

        assert isinstance(exc, ValidationError)
        assert exc.status_code == 400
        assert exc.error_code == ErrorCode.PROCESS_NODE_HAS_CYCLE
        assert exc.message == "Process DAG has cycle"

    def test_node_parameter_invalid(self):
        exc = NodeParameterInvalidError("extract", "SHELL")

        assert isinstance(exc, ValidationError)
        assert exc.node_name == "extract"
        assert exc.details == {"node": "extract", "task_type": "SHELL"}
        assert exc.error_code == ErrorCode.PROCESS_NODE_PARAMETER_INVALID

    def test_conflict_and_permission_status(self):
        assert ConflictError("taken").status_code == 409
        assert PermissionDeniedError().status_code == 403
        assert ExportWriteError().status_code == 500

    def test_to_dict(self):
        exc = ConflictError("online", error_code=ErrorCode.TEMPLATE_ONLINE, details={"template_id": 1})

        assert exc.to_dict() == {
            "error_code": ErrorCode.TEMPLATE_ONLINE.value,
            "message": "online",
            "details": {"template_id": 1},
        }


class TestErrorHandlers:
    """Test error handler functions"""

    @pytest.fixture
    def mock_request(self):
        """Create a mock request"""
        class MockURL:
            path = "/api/v1/projects/1/templates"

        class MockRequest:
            url = MockURL()
            method = "POST"

        return MockRequest()

    async def test_app_exception_handler(self, mock_request):
        exc = CycleDetectedError()
        response = await app_exception_handler(mock_request, exc)

        assert response.status_code == 400
        body = json.loads(response.body)
        assert body["status"] == "error"
        assert body["error_code"] == ErrorCode.PROCESS_NODE_HAS_CYCLE.value
        assert body["path"] == "/api/v1/projects/1/templates"
        ErrorResponse.model_validate(body)

    async def test_http_exception_handler(self, mock_request):
        from starlette.exceptions import HTTPException

        response = await http_exception_handler(mock_request, HTTPException(status_code=404, detail="Not Found"))

        assert response.status_code == 404
        body = json.loads(response.body)
        assert body["error_code"] == ErrorCode.RESOURCE_NOT_FOUND.value
        assert body["message"] == "Not Found"


class TestErrorHandlerIntegration:
    """Test handlers registered on an application"""

    @pytest.fixture
    def client(self):
        app = FastAPI()
        register_exception_handlers(app)

        @app.get("/conflict")
        async def conflict():
            raise ConflictError("Process template name T already exists", details={"name": "T"})

        @app.get("/items/{item_id}")
        async def item(item_id: int):
            return {"item_id": item_id}

        return TestClient(app)

    def test_conflict(self, client):
        response = client.get("/conflict")

        assert response.status_code == 409
        assert response.json()["details"] == {"name": "T"}

    def test_unhandled_error_carries_request_id(self):
        app = FastAPI()
        app.add_middleware(RequestIDMiddleware)
        register_exception_handlers(app)

        @app.get("/boom")
        async def boom():
            raise RuntimeError("boom")

        client = TestClient(app, raise_server_exceptions=False)
        response = client.get("/boom", headers={REQUEST_ID_HEADER: "req-42"})

        assert response.status_code == 500
        body = response.json()
        assert body["error_code"] == ErrorCode.INTERNAL_ERROR.value
        assert body["request_id"] == "req-42"

    def test_request_validation(self, client):
        response = client.get("/items/not-a-number")

        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == ErrorCode.VALIDATION_FAILED.value
        assert body["details"]["validation_errors"][0]["field"] == "path.item_id"
