"""
Tests for the service metadata model.
"""

import inspect

import pytest

from declarest.faults import InvalidMetadataError
from declarest.services.metadata import (
    HttpVerb,
    ParamKind,
    ParameterDescriptor,
    ServiceClass,
    ServiceMethod,
    ServiceProperty,
    effective_method,
)


# ============================================================================
# ParameterDescriptor
# ============================================================================


class TestParameterDescriptor:

    def test_named_kind_requires_name(self):
        with pytest.raises(InvalidMetadataError):
            ParameterDescriptor(0, ParamKind.QUERY)

    def test_unnamed_kinds_need_no_name(self):
        for kind in (ParamKind.BODY, ParamKind.REQUEST, ParamKind.RESPONSE, ParamKind.CONTEXT,
                     ParamKind.LANGUAGE, ParamKind.ACCEPT, ParamKind.INJECT):
            assert ParameterDescriptor(0, kind).name is None

    def test_negative_index_rejected(self):
        with pytest.raises(InvalidMetadataError):
            ParameterDescriptor(-1, ParamKind.BODY)

    def test_kind_coerced_from_string(self):
        descriptor = ParameterDescriptor(0, "path", "id")
        assert descriptor.kind is ParamKind.PATH

    def test_has_default(self):
        assert not ParameterDescriptor(0, ParamKind.BODY).has_default
        assert ParameterDescriptor(0, ParamKind.QUERY, "q", default=None).has_default
        assert ParameterDescriptor(0, ParamKind.BODY).default is inspect.Parameter.empty


# ============================================================================
# ServiceMethod
# ============================================================================


class TestServiceMethod:

    def test_verb_defaults_to_get(self):
        method = ServiceMethod(name="list")
        assert method.verb is None
        assert method.http_verb is HttpVerb.GET

    def test_set_parameter_keeps_position_order(self):
        method = ServiceMethod(name="m")
        method.set_parameter(ParameterDescriptor(1, ParamKind.QUERY, "b"))
        method.set_parameter(ParameterDescriptor(0, ParamKind.QUERY, "a"))
        assert [p.name for p in method.parameters] == ["a", "b"]

    def test_set_parameter_replaces_same_index(self):
        method = ServiceMethod(name="m")
        method.set_parameter(ParameterDescriptor(0, ParamKind.QUERY, "a"))
        method.set_parameter(ParameterDescriptor(0, ParamKind.HEADER, "a"))
        assert len(method.parameters) == 1
        assert method.parameters[0].kind is ParamKind.HEADER

    def test_validate_dense_positions(self):
        method = ServiceMethod(name="m")
        method.set_parameter(ParameterDescriptor(0, ParamKind.BODY))
        method.set_parameter(ParameterDescriptor(1, ParamKind.REQUEST))
        method.validate("Svc")

    def test_validate_rejects_gaps(self):
        method = ServiceMethod(name="m")
        method.set_parameter(ParameterDescriptor(0, ParamKind.BODY))
        method.set_parameter(ParameterDescriptor(2, ParamKind.REQUEST))
        with pytest.raises(InvalidMetadataError, match="not contiguous"):
            method.validate("Svc")


# ============================================================================
# effective_method
# ============================================================================


def pre_class(request):
    pass


def pre_method(request):
    pass


class TestEffectiveMethod:

    def test_class_lists_come_first(self):
        service = ServiceClass(
            target=object,
            roles=["admin"],
            languages=["en"],
            accepts=["application/json"],
            preprocessors=[pre_class],
        )
        method = ServiceMethod(
            name="m",
            roles=["user"],
            languages=["pt-BR"],
            accepts=["text/plain"],
            preprocessors=[pre_method],
        )
        resolved = effective_method(method, service)
        assert resolved.roles == ("admin", "user")
        assert resolved.languages == ("en", "pt-BR")
        assert resolved.accepts == ("application/json", "text/plain")
        assert resolved.preprocessors == (pre_class, pre_method)
        assert not resolved.is_anonymous

    def test_anonymous_method_has_method_level_only(self):
        def endpoint():
            pass

        method = ServiceMethod(name="endpoint", roles=["user"], func=endpoint)
        resolved = effective_method(method)
        assert resolved.roles == ("user",)
        assert resolved.is_anonymous
        assert resolved.verb is HttpVerb.GET

    def test_properties_carried(self):
        prop = ServiceProperty("ctx", "context")
        resolved = effective_method(ServiceMethod(name="m"), ServiceClass(target=object), (prop,))
        assert resolved.properties == (prop,)
        assert prop.kind is ParamKind.CONTEXT
