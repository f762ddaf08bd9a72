"""
Tests for the bundled PathRouter.
"""

import pytest

from declarest.faults import MethodNotAllowedFault, NotFoundFault
from declarest.router import PathRouter, compile_template


async def handler_a(request, response):
    pass


async def handler_b(request, response):
    pass


class TestCompileTemplate:

    def test_static_path(self):
        assert compile_template("/users") is None

    def test_brace_and_colon_params(self):
        pattern = compile_template("/users/{user_id}/orders/:order_id")
        assert pattern.match("/users/7/orders/9").groupdict() == {"user_id": "7", "order_id": "9"}
        assert pattern.match("/users/7/orders") is None


class TestPathRouter:

    def test_static_match(self):
        router = PathRouter()
        router.add_route("GET", "/users", handler_a)
        match = router.match("GET", "/users/")
        assert match.handler is handler_a
        assert match.params == {}

    def test_param_match(self):
        router = PathRouter()
        router.add_route("GET", "/users/{id}", handler_a)
        match = router.match("GET", "/users/42")
        assert match.params == {"id": "42"}
        assert match.template == "/users/{id}"

    def test_not_found(self):
        router = PathRouter()
        router.add_route("GET", "/users", handler_a)
        with pytest.raises(NotFoundFault):
            router.match("GET", "/orders")

    def test_method_not_allowed(self):
        router = PathRouter()
        router.add_route("GET", "/users/{id}", handler_a)
        router.add_route("DELETE", "/users/{id}", handler_b)
        with pytest.raises(MethodNotAllowedFault) as exc_info:
            router.match("POST", "/users/1")
        assert exc_info.value.status == 405
        assert exc_info.value.metadata["allowed"] == ["DELETE", "GET", "HEAD"]

    def test_head_falls_back_to_get(self):
        router = PathRouter()
        router.add_route("GET", "/users", handler_a)
        router.add_route("GET", "/users/{id}", handler_b)
        assert router.match("HEAD", "/users").handler is handler_a
        assert router.match("HEAD", "/users/3").handler is handler_b

    def test_last_registration_wins(self):
        router = PathRouter()
        router.add_route("GET", "/users", handler_a)
        router.add_route("get", "users", handler_b)
        assert router.match("GET", "/users").handler is handler_b
        assert router.routes() == [("GET", "/users")]

    def test_allowed_methods(self):
        router = PathRouter()
        router.add_route("GET", "/users/{id}", handler_a)
        router.add_route("PUT", "/users/{id}", handler_b)
        assert router.allowed_methods("/users/{id}") == ["GET", "PUT"]
        assert router.allowed_methods("/users/5") == ["GET", "PUT"]

    def test_clear(self):
        router = PathRouter()
        router.add_route("GET", "/users", handler_a)
        router.clear()
        assert router.routes() == []
        with pytest.raises(NotFoundFault):
            router.match("GET", "/users")
