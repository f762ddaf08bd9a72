"""
Tests for ServiceDispatcher and return value serialization.
"""

import json
from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest

from declarest import NewResource, NoResponse, Response
from declarest.faults import BadRequestFault, ErrorMapper, NotFoundFault
from declarest.services.context import DispatchStage
from declarest.services.dispatcher import ServiceDispatcher, serialize
from declarest.services.metadata import (
    HttpVerb, ParamKind, ParameterDescriptor, ResolvedMethod, ServiceProperty,
)

from tests.conftest import make_context, make_request


def resolved(name="handle", **kwargs) -> ResolvedMethod:
    values = dict(
        name=name, verb=HttpVerb.GET, path=None, parameters=(), roles=(),
        languages=(), accepts=(), preprocessors=(), raw_response=False,
    )
    values.update(kwargs)
    return ResolvedMethod(**values)


@dataclass
class Point:
    x: int
    y: int


# ============================================================================
# serialize
# ============================================================================


class TestSerialize:

    def test_none_is_no_content(self):
        response = Response()
        serialize(None, response)
        assert response.status == 204
        assert response.body == b""
        assert response.finished

    def test_none_keeps_explicit_status(self):
        response = Response()
        response.status = 202
        serialize(None, response)
        assert response.status == 202

    def test_bool_is_json(self):
        response = Response()
        serialize(True, response)
        assert response.body == b"true"
        assert response.get_header("content-type") == "application/json"

    def test_number_is_json(self):
        response = Response()
        serialize(42, response)
        assert response.body == b"42"

    def test_string_is_html(self):
        response = Response()
        serialize("OK", response)
        assert response.body == b"OK"
        assert response.get_header("content-type") == "text/html; charset=utf-8"

    def test_bytes_are_binary(self):
        response = Response()
        serialize(b"\x00\x01", response)
        assert response.get_header("content-type") == "application/octet-stream"

    def test_dict_and_dataclass(self):
        response = Response()
        serialize({"a": [1, 2]}, response)
        assert json.loads(response.body) == {"a": [1, 2]}

        response = Response()
        serialize(Point(1, 2), response)
        assert json.loads(response.body) == {"x": 1, "y": 2}

    def test_generator_is_streamed(self):
        def chunks():
            yield b"a"
            yield b"b"

        response = Response()
        serialize(chunks(), response)
        assert response.is_streaming
        assert response.get_header("content-type") == "application/octet-stream"

    def test_response_object_copied(self):
        response = Response()
        serialize(Response.text("created", status=201), response)
        assert response.status == 201
        assert response.body == b"created"

    def test_return_value_applied(self):
        response = Response()
        serialize(NewResource("/users/1", {"id": 1}), response)
        assert response.status == 201
        assert response.get_header("location") == "/users/1"

    def test_finished_response_untouched(self):
        response = Response()
        response.end("already")
        serialize({"ignored": True}, response)
        assert response.body == b"already"

    def test_no_response_leaves_sink(self):
        response = Response()
        serialize(NoResponse, response)
        assert not response.finished


# ============================================================================
# Pipeline
# ============================================================================


class EchoService:

    def handle(self, value):
        return {"value": value}

    async def handle_async(self, value):
        return {"value": value}

    def fail(self):
        raise KeyError("missing")

    def write_raw(self, response):
        response.set_header("content-type", "text/csv")
        response.end("a,b")


class TestServiceDispatcher:

    @pytest.mark.asyncio
    async def test_full_pipeline(self):
        context = make_context(make_request(query_string="value=7"))
        method = resolved(parameters=(ParameterDescriptor(0, ParamKind.QUERY, "value", int),))

        await ServiceDispatcher().dispatch(EchoService, method, context)

        assert context.stage is DispatchStage.RESPONDED
        assert json.loads(context.response.body) == {"value": 7}

    @pytest.mark.asyncio
    async def test_async_method(self):
        context = make_context(make_request(query_string="value=x"))
        method = resolved(
            name="handle_async",
            parameters=(ParameterDescriptor(0, ParamKind.QUERY, "value", str),),
        )
        await ServiceDispatcher().dispatch(EchoService, method, context)
        assert json.loads(context.response.body) == {"value": "x"}

    @pytest.mark.asyncio
    async def test_preprocessor_failure_skips_binding(self):
        binder = MagicMock()

        def reject(request):
            raise BadRequestFault("invalid")

        context = make_context()
        dispatcher = ServiceDispatcher(binder=binder)
        await dispatcher.handle(EchoService(), resolved(preprocessors=(reject,)), context)

        binder.bind.assert_not_called()
        assert context.stage is DispatchStage.FAILED
        assert isinstance(context.error, BadRequestFault)
        assert context.response.status == 400
        assert context.response.body == b"invalid"

    @pytest.mark.asyncio
    async def test_unauthorized_before_binding(self):
        context = make_context()
        await ServiceDispatcher().dispatch(EchoService, resolved(roles=("admin",)), context)
        assert context.response.status == 401

    @pytest.mark.asyncio
    async def test_unmapped_exception_is_500(self):
        context = make_context()
        await ServiceDispatcher().dispatch(EchoService, resolved(name="fail"), context)
        assert context.response.status == 500
        assert context.response.body == b"Internal Server Error"

    @pytest.mark.asyncio
    async def test_mapped_exception(self):
        mapper = ErrorMapper()
        mapper.register(KeyError, NotFoundFault)
        context = make_context()
        await ServiceDispatcher(error_mapper=mapper).dispatch(EchoService, resolved(name="fail"), context)
        assert context.response.status == 404

    @pytest.mark.asyncio
    async def test_raw_response(self):
        context = make_context()
        method = resolved(
            name="write_raw",
            raw_response=True,
            parameters=(ParameterDescriptor(0, ParamKind.RESPONSE),),
        )
        await ServiceDispatcher().dispatch(EchoService, method, context)
        assert context.response.body == b"a,b"
        assert context.response.get_header("content-type") == "text/csv"

    @pytest.mark.asyncio
    async def test_context_properties_assigned(self):
        seen = {}

        class Reporter:
            def handle(self):
                seen["ctx"] = self.ctx
                seen["request"] = self.req

        context = make_context()
        method = resolved(properties=(
            ServiceProperty("ctx", ParamKind.CONTEXT),
            ServiceProperty("req", ParamKind.REQUEST),
        ))
        await ServiceDispatcher().dispatch(Reporter, method, context)
        assert seen == {"ctx": context, "request": context.request}
        assert context.response.status == 204

    @pytest.mark.asyncio
    async def test_factory_failure_is_mapped(self):
        class BrokenFactory:
            def create(self, cls, context=None):
                raise RuntimeError("cannot build")

            def resolve(self, token, *, tag=None, optional=False):
                return None

        context = make_context(factory=BrokenFactory())
        await ServiceDispatcher().dispatch(EchoService, resolved(), context)
        assert context.stage is DispatchStage.FAILED
        assert context.response.status == 500

    @pytest.mark.asyncio
    async def test_anonymous_method(self):
        def ping():
            return "pong"

        context = make_context()
        await ServiceDispatcher().dispatch(None, resolved(name="ping", func=ping), context)
        assert context.response.body == b"pong"
