"""
Tests for service decorators and parameter markers.
"""

from typing import Annotated, Optional

import pytest

from declarest import (
    GET, POST, PUT, Path, Security, AcceptLanguage, Accept, Preprocessor, RawResponse,
    PathParam, QueryParam, HeaderParam, CookieParam, FileParam, Body, ContextLanguage,
    Request, Response, ServiceContext, UploadFile, Inject,
)
from declarest.faults import DecoratorDeclarationError, InvalidMetadataError
from declarest.services.decorators import ContextProperty, context_property, declaration_of
from declarest.services.metadata import HttpVerb, ParamKind
from declarest.services.params import describe_parameters


# ============================================================================
# Path and verbs
# ============================================================================


class TestPathDecorator:

    def test_path_on_class(self):
        @Path("users")
        class Users:
            pass

        assert declaration_of(Users).path == "users"

    def test_path_on_method(self):
        class Users:
            @Path("{id}")
            def get(self):
                pass

        assert declaration_of(Users.get).path == "{id}"

    def test_path_on_non_callable_target(self):
        with pytest.raises(DecoratorDeclarationError) as exc_info:
            Path("x")(42)
        assert exc_info.value.message == "Invalid @Path Decorator declaration."

    def test_path_must_be_string(self):
        with pytest.raises(DecoratorDeclarationError):
            Path(None)

    def test_class_declaration_not_inherited(self):
        @Path("base")
        class Base:
            pass

        class Child(Base):
            pass

        assert declaration_of(Child) is None


class TestVerbDecorators:

    def test_verb_recorded(self):
        @POST
        def create():
            pass

        assert declaration_of(create).verb is HttpVerb.POST

    def test_same_verb_twice_is_fine(self):
        @GET
        @GET
        def read():
            pass

        assert declaration_of(read).verb is HttpVerb.GET

    def test_conflicting_verbs(self):
        with pytest.raises(InvalidMetadataError) as exc_info:
            @GET
            @PUT
            def update():
                pass

        assert "is already annotated with @PUT" in exc_info.value.message
        assert "You can only map a method to one HTTP verb." in exc_info.value.message

    def test_verb_on_class_rejected(self):
        with pytest.raises(DecoratorDeclarationError) as exc_info:
            @GET
            class Nope:
                pass

        assert exc_info.value.message == "Invalid @GET Decorator declaration."

    def test_raw_response(self):
        @RawResponse
        def raw():
            pass

        assert declaration_of(raw).raw_response is True


# ============================================================================
# Security and negotiation
# ============================================================================


class TestSecurityDecorator:

    @pytest.mark.parametrize("args", [(), ("",), (None,), ([],)])
    def test_empty_roles_mean_any_principal(self, args):
        @Security(*args)
        def secured():
            pass

        assert declaration_of(secured).roles == ["*"]

    def test_roles_flattened(self):
        @Security(["admin", "user"], "auditor")
        def secured():
            pass

        assert declaration_of(secured).roles == ["admin", "user", "auditor"]

    def test_stacked_in_reading_order(self):
        @Security("first")
        @Security("second")
        class Svc:
            pass

        assert declaration_of(Svc).roles == ["first", "second"]


class TestAcceptDecorators:

    def test_falsy_languages_ignored(self):
        @AcceptLanguage("en", None, "", "pt-BR")
        def negotiated():
            pass

        assert declaration_of(negotiated).languages == ["en", "pt-BR"]

    @pytest.mark.parametrize("args", [(), (None,), ("",)])
    def test_no_languages(self, args):
        with pytest.raises(DecoratorDeclarationError) as exc_info:
            AcceptLanguage(*args)
        assert exc_info.value.message == "Invalid @AcceptLanguage Decorator declaration."

    def test_accept_types(self):
        @Accept("application/json", None)
        class Svc:
            pass

        assert declaration_of(Svc).accepts == ["application/json"]

    def test_no_accept_types(self):
        with pytest.raises(DecoratorDeclarationError) as exc_info:
            Accept(None)
        assert exc_info.value.message == "Invalid @Accept Decorator declaration."


class TestPreprocessorDecorator:

    def test_preprocessors_recorded_in_order(self):
        def a(request):
            pass

        def b(request):
            pass

        @Preprocessor(a)
        @Preprocessor(b)
        def handler():
            pass

        assert declaration_of(handler).preprocessors == [a, b]

    def test_none_rejected(self):
        with pytest.raises(DecoratorDeclarationError) as exc_info:
            Preprocessor(None)
        assert exc_info.value.message == "Invalid @Preprocessor Decorator declaration."

    def test_empty_rejected(self):
        with pytest.raises(DecoratorDeclarationError):
            Preprocessor()

    def test_non_callable_rejected(self):
        with pytest.raises(DecoratorDeclarationError):
            Preprocessor("validate")


# ============================================================================
# Context properties
# ============================================================================


class TestContextProperty:

    def test_descriptor_records_name_and_kind(self):
        class Svc:
            ctx = context_property(ParamKind.CONTEXT)

        prop = Svc.__dict__["ctx"]
        assert isinstance(prop, ContextProperty)
        assert prop.name == "ctx"
        assert prop.kind is ParamKind.CONTEXT
        assert Svc().ctx is None

    def test_named_kind_rejected(self):
        with pytest.raises(DecoratorDeclarationError):
            context_property(ParamKind.QUERY)


# ============================================================================
# Parameter markers
# ============================================================================


class Thing:
    pass


class TestDescribeParameters:

    def test_markers(self):
        class Svc:
            def method(
                self,
                id: Annotated[int, PathParam()],
                q: Annotated[Optional[str], QueryParam("search")] = None,
                token: Annotated[str, HeaderParam("x-token")] = "",
                session: Annotated[str, CookieParam()] = "",
                avatar: Annotated[UploadFile, FileParam()] = None,
                lang: Annotated[str, ContextLanguage()] = None,
            ):
                pass

        params = describe_parameters(Svc.method)
        assert [(p.index, p.kind, p.name) for p in params] == [
            (0, ParamKind.PATH, "id"),
            (1, ParamKind.QUERY, "search"),
            (2, ParamKind.HEADER, "x-token"),
            (3, ParamKind.COOKIE, "session"),
            (4, ParamKind.FILE, "avatar"),
            (5, ParamKind.LANGUAGE, None),
        ]
        assert params[0].type is int
        assert params[1].default is None

    def test_unmarked_parameters_bind_by_annotation(self):
        def endpoint(request: Request, response: Response, context: ServiceContext,
                     upload: UploadFile, payload: dict, anything):
            pass

        params = describe_parameters(endpoint, bound=False)
        assert [p.kind for p in params] == [
            ParamKind.REQUEST, ParamKind.RESPONSE, ParamKind.CONTEXT,
            ParamKind.FILE, ParamKind.BODY, ParamKind.BODY,
        ]
        assert params[3].name == "upload"

    def test_body_marker(self):
        def endpoint(payload: Annotated[dict, Body()]):
            pass

        (param,) = describe_parameters(endpoint, bound=False)
        assert param.kind is ParamKind.BODY
        assert param.type is dict

    def test_inject_marker(self):
        def endpoint(thing: Annotated[Thing, Inject()], other: Annotated[object, Inject("other")]):
            pass

        first, second = describe_parameters(endpoint, bound=False)
        assert first.kind is ParamKind.INJECT
        assert first.token is Thing
        assert second.token == "other"
        assert first.tag is None and not first.optional

    def test_inject_tag_and_optional(self):
        def endpoint(
            fast: Annotated[Thing, Inject(tag="fast")],
            maybe: Annotated[Thing, Inject(optional=True)],
        ):
            pass

        fast, maybe = describe_parameters(endpoint, bound=False)
        assert (fast.tag, fast.optional) == ("fast", False)
        assert (maybe.tag, maybe.optional) == (None, True)

    def test_variadic_rejected(self):
        def endpoint(*args):
            pass

        with pytest.raises(InvalidMetadataError, match="variadic"):
            describe_parameters(endpoint, bound=False)

    def test_keyword_only_rejected(self):
        def endpoint(*, name: str):
            pass

        with pytest.raises(InvalidMetadataError, match="keyword-only"):
            describe_parameters(endpoint, bound=False)
