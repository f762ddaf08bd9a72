"""
Tests for faults and the ErrorMapper.
"""

import json
from unittest.mock import MagicMock

import pytest

from declarest.faults import (
    BadRequestFault,
    DecoratorDeclarationError,
    ErrorMapper,
    Fault,
    FaultDomain,
    ForbiddenFault,
    InternalServerErrorFault,
    InvalidMetadataError,
    MethodNotAllowedFault,
    NotFoundFault,
    Severity,
)
from declarest.response import Response


# ============================================================================
# Fault types
# ============================================================================


class TestFaults:

    @pytest.mark.parametrize("fault_cls,status", [
        (BadRequestFault, 400),
        (ForbiddenFault, 403),
        (NotFoundFault, 404),
        (InternalServerErrorFault, 500),
    ])
    def test_http_status(self, fault_cls, status):
        assert fault_cls().status == status

    def test_default_and_custom_message(self):
        assert BadRequestFault().message == "Bad Request"
        fault = BadRequestFault("Missing name", field="name")
        assert fault.message == "Missing name"
        assert fault.metadata == {"field": "name"}
        assert str(fault) == "[BAD_REQUEST] Missing name"

    def test_internal_error_is_not_public(self):
        assert InternalServerErrorFault().public is False
        assert NotFoundFault().public is True

    def test_registry_faults(self):
        error = DecoratorDeclarationError("Security")
        assert error.message == "Invalid @Security Decorator declaration."
        assert error.decorator == "Security"
        assert error.domain == FaultDomain.REGISTRY
        assert InvalidMetadataError("bad").severity == Severity.FATAL

    def test_custom_fault(self):
        fault = Fault(code="QUOTA", message="Quota exceeded", domain=FaultDomain.FLOW, status=429, public=True)
        assert fault.to_dict()["status"] == 429
        assert fault.to_dict()["domain"] == "flow"


# ============================================================================
# ErrorMapper
# ============================================================================


class TestErrorMapper:

    def test_fault_maps_to_its_status(self):
        payload = ErrorMapper().map(ForbiddenFault())
        assert (payload.status, payload.code, payload.message) == (403, "FORBIDDEN", "Forbidden")

    def test_unknown_exception_is_generic_500(self):
        payload = ErrorMapper().map(RuntimeError("database password is hunter2"))
        assert payload.status == 500
        assert payload.message == "Internal Server Error"

    def test_expose_errors(self):
        payload = ErrorMapper(expose_errors=True).map(RuntimeError("boom"))
        assert payload.status == 500
        assert payload.message == "boom"

    def test_registered_fault_class(self):
        mapper = ErrorMapper()
        mapper.register(LookupError, NotFoundFault)
        payload = mapper.map(KeyError("user 7"))
        assert payload.status == 404

    def test_registered_factory_latest_wins(self):
        mapper = ErrorMapper()
        mapper.register(ValueError, BadRequestFault)
        mapper.register(ValueError, lambda exc: ForbiddenFault(f"no: {exc}"))
        payload = mapper.map(ValueError("x"))
        assert (payload.status, payload.message) == (403, "no: x")

    def test_write_text(self):
        response = Response()
        response.set_header("x-partial", "1")
        response.write("half written")
        ErrorMapper().write(BadRequestFault("Invalid id"), response)

        assert response.status == 400
        assert response.body == b"Invalid id"
        assert response.get_header("content-type") == "text/plain; charset=utf-8"
        assert response.get_header("x-partial") is None
        assert response.finished

    def test_write_json(self):
        response = Response()
        ErrorMapper(error_format="json").write(NotFoundFault(), response)
        assert response.status == 404
        assert json.loads(response.body) == {"error": {"code": "NOT_FOUND", "message": "Not Found"}}

    def test_write_allow_header(self):
        response = Response()
        payload = ErrorMapper().write(MethodNotAllowedFault(allowed=["GET", "HEAD"]), response)
        assert response.status == 405
        assert response.get_header("allow") == "GET, HEAD"
        assert payload.headers == (("allow", "GET, HEAD"),)

    def test_write_without_extra_headers(self):
        payload = ErrorMapper().write(RuntimeError("boom"), Response())
        assert payload.headers == ()

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            ErrorMapper(error_format="xml")

    def test_listener_called_once(self):
        mapper = ErrorMapper()
        listener = MagicMock()
        mapper.on_error(listener)
        exc = BadRequestFault()
        payload = mapper.write(exc, Response())
        listener.assert_called_once_with(exc, payload)
