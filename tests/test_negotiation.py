"""
Tests for role checks and content negotiation.
"""

import pytest

from declarest.faults import (
    ForbiddenFault, NotAcceptableFault, UnauthorizedFault, UnsupportedMediaTypeFault,
)
from declarest.services.metadata import HttpVerb, ResolvedMethod
from declarest.services.negotiation import (
    NegotiationGuard, authorize, negotiate_content_type, negotiate_language,
)

from tests.conftest import make_context, make_request


def resolved(**kwargs) -> ResolvedMethod:
    values = dict(
        name="m", verb=HttpVerb.GET, path=None, parameters=(), roles=(),
        languages=(), accepts=(), preprocessors=(), raw_response=False,
    )
    values.update(kwargs)
    return ResolvedMethod(**values)


# ============================================================================
# Roles
# ============================================================================


class TestAuthorize:

    def test_no_roles_declared(self):
        assert authorize([], None)

    def test_wildcard(self):
        assert authorize(["*"], [])

    def test_intersection(self):
        assert authorize(["admin", "user"], ["user"])
        assert not authorize(["admin"], ["user"])
        assert not authorize(["admin"], None)


class TestCheckRoles:

    def test_no_principal_is_unauthorized(self):
        with pytest.raises(UnauthorizedFault):
            NegotiationGuard().check_roles(["admin"], make_request())

    def test_wrong_role_is_forbidden(self):
        request = make_request()
        request.principal = {"name": "ada", "roles": ["user"]}
        with pytest.raises(ForbiddenFault):
            NegotiationGuard().check_roles(["admin"], request)

    def test_matching_role(self):
        request = make_request()
        request.principal = {"name": "ada", "roles": ["admin"]}
        NegotiationGuard().check_roles(["admin"], request)

    def test_any_principal(self):
        class User:
            roles = ()

        request = make_request()
        request.principal = User()
        NegotiationGuard().check_roles(["*"], request)

    def test_wildcard_still_needs_a_principal(self):
        with pytest.raises(UnauthorizedFault):
            NegotiationGuard().check_roles(["*"], make_request())

    def test_roles_from_state(self):
        request = make_request()
        request.state["roles"] = ["admin"]
        NegotiationGuard().check_roles(["admin"], request)


# ============================================================================
# Languages
# ============================================================================


class TestNegotiateLanguage:

    def test_unrestricted(self):
        assert negotiate_language([], make_request()) is None

    def test_no_header_picks_first(self):
        assert negotiate_language(["en", "pt-BR"], make_request()) == "en"

    def test_quality_order(self):
        request = make_request(headers=[("accept-language", "en;q=0.5, pt-BR")])
        assert negotiate_language(["en", "pt-BR"], request) == "pt-BR"

    def test_prefix_match(self):
        request = make_request(headers=[("accept-language", "en-US")])
        assert negotiate_language(["fr", "en"], request) == "en"

    def test_mismatch(self):
        request = make_request(headers=[("accept-language", "de")])
        with pytest.raises(NotAcceptableFault) as exc_info:
            negotiate_language(["en", "pt-BR"], request)
        assert exc_info.value.status == 406


# ============================================================================
# Content types
# ============================================================================


class TestNegotiateContentType:

    def test_unrestricted(self):
        request = make_request(headers=[("content-type", "text/xml")])
        assert negotiate_content_type([], request) is None

    def test_no_content_type(self):
        assert negotiate_content_type(["application/json"], make_request()) is None

    def test_match_ignores_parameters(self):
        request = make_request(headers=[("content-type", "application/json; charset=utf-8")])
        assert negotiate_content_type(["application/json"], request) == "application/json"

    def test_wildcard_subtype(self):
        request = make_request(headers=[("content-type", "text/csv")])
        assert negotiate_content_type(["application/json", "text/*"], request) == "text/*"

    def test_mismatch(self):
        request = make_request(headers=[("content-type", "text/xml")])
        with pytest.raises(UnsupportedMediaTypeFault) as exc_info:
            negotiate_content_type(["application/json"], request)
        assert exc_info.value.status == 415


# ============================================================================
# Guard
# ============================================================================


class TestNegotiationGuard:

    def test_stores_negotiated_values(self):
        request = make_request(headers=[
            ("accept-language", "pt-BR"),
            ("content-type", "application/json"),
        ])
        context = make_context(request)
        NegotiationGuard().check(resolved(languages=("en", "pt-BR"), accepts=("application/json",)), context)
        assert context.language == "pt-BR"
        assert context.accept == "application/json"

    def test_roles_checked_before_languages(self):
        request = make_request(headers=[("accept-language", "de")])
        with pytest.raises(UnauthorizedFault):
            NegotiationGuard().check(resolved(roles=("admin",), languages=("en",)), make_context(request))
