"""Tests for canonical resource identity."""

import pytest

from navcrawl.identity import (
    canonicalize,
    identity_keys,
    is_volatile_param,
    resolve_resource,
    same_origin,
    split_route_fragment,
)


class TestVolatileParams:
    """Tests for volatile query parameter detection."""

    @pytest.mark.parametrize("name", ["ts", "_", "utm_source", "UTM_Campaign", "gclid", "fbclid", "cb"])
    def test_volatile(self, name):
        """Test that cache busters and tracking params are volatile."""
        assert is_volatile_param(name)

    @pytest.mark.parametrize("name", ["id", "page", "tab", "q", "t", "v"])
    def test_not_volatile(self, name):
        """Test that params selecting content are kept."""
        assert not is_volatile_param(name)

    def test_extra_volatile(self):
        """Test configured extra params."""
        assert is_volatile_param("session", extra=["Session"])


class TestCanonicalize:
    """Tests for canonicalize / resolve_resource."""

    def test_route_fragment_with_volatile_param(self):
        """Test fragment routes differing only by a volatile param are identical."""
        a = canonicalize("https://x/y#/clients")
        b = canonicalize("https://x/y#/clients?ts=123")

        assert a == b
        assert a == "https://x/y#/clients"

    def test_sibling_routes_are_distinct(self):
        """Test different routes on the same document stay distinct."""
        assert canonicalize("https://x/y#/clients") != canonicalize("https://x/y#/tasks")

    def test_hashbang_route(self):
        """Test #! routes are treated like #/ routes."""
        resource = resolve_resource("https://x/y#!/clients")

        assert resource.route_fragment == "/clients"
        assert resource.canonical_id == "https://x/y#/clients"

    def test_in_page_anchor_dropped(self):
        """Test plain anchors do not create a new identity."""
        assert canonicalize("https://x/docs#section-2") == canonicalize("https://x/docs")

    def test_main_query_volatile_dropped_and_sorted(self):
        """Test main query volatile params are removed and the rest sorted."""
        a = canonicalize("https://x/list?b=2&utm_source=mail&a=1")
        b = canonicalize("https://x/list?a=1&b=2&_=99")

        assert a == b == "https://x/list?a=1&b=2"

    def test_meaningful_params_kept(self):
        """Test that non-volatile params change identity."""
        assert canonicalize("https://x/list?page=1") != canonicalize("https://x/list?page=2")

    def test_scheme_host_case_and_default_port(self):
        """Test scheme/host lowercase and default port removal."""
        assert canonicalize("HTTPS://App.Example.com:443/Clients/") == "https://app.example.com/Clients"

    def test_trailing_slash(self):
        """Test trailing slash is not significant."""
        assert canonicalize("https://x/clients/") == canonicalize("https://x/clients")

    def test_relative_location_uses_prior_anchor(self):
        """Test relative locations resolve against the prior anchor."""
        assert canonicalize("/tasks", prior_anchor="https://x/home") == "https://x/tasks"

    def test_extra_volatile_in_fragment(self):
        """Test configured volatile params are dropped from route queries too."""
        a = canonicalize("https://x/y#/clients?nonce=1", extra_volatile=["nonce"])

        assert a == "https://x/y#/clients"

    @pytest.mark.parametrize("raw", ["", "   ", "not a url", "javascript:void(0)", "http://[::1"])
    def test_malformed_falls_back_to_hash(self, raw):
        """Test malformed input never raises and yields a stable hashed id."""
        first = canonicalize(raw)

        assert first.startswith("raw:")
        assert canonicalize(raw) == first

    def test_raw_location_preserved(self):
        """Test the observed location is kept on the resource."""
        resource = resolve_resource("https://x/y?ts=1")

        assert resource.raw_location == "https://x/y?ts=1"
        assert resource.stripped_id == "https://x/y"


class TestRouteFragments:
    """Tests for route fragment detection."""

    def test_split(self):
        """Test route and non-route fragments."""
        assert split_route_fragment("/clients") == "/clients"
        assert split_route_fragment("!/clients") == "/clients"
        assert split_route_fragment("top") is None
        assert split_route_fragment("") is None

    def test_identity_keys(self):
        """Test fragment ids are also keyed by the stripped form."""
        assert identity_keys("https://x/y#/clients") == ("https://x/y#/clients", "https://x/y")
        assert identity_keys("https://x/y") == ("https://x/y",)
        assert identity_keys("raw:abc#def") == ("raw:abc#def",)


class TestSameOrigin:
    """Tests for same_origin."""

    def test_same_origin(self):
        """Test scheme and host comparison."""
        assert same_origin("https://app.test/a", "https://APP.test/b")
        assert not same_origin("https://app.test/a", "http://app.test/a")
        assert not same_origin("https://app.test/a", "https://other.test/a")
