"""Tests for path/query parameter sync."""

from tapi.params import (
    Param,
    URLParams,
    build_target_url,
    derive_path_params,
    derive_query_params,
    recompose_url,
)
from tapi.templating import substitute


# ── Derivation ───────────────────────────────────────────────────────────


class TestDerive:
    def test_path_params_in_order(self):
        params = derive_path_params("/users/:id/posts/:postId")
        assert [p.key for p in params] == ["id", "postId"]
        assert all(p.value == "" for p in params)

    def test_path_params_ignore_query(self):
        params = derive_path_params("/users/:id?sort=:name")
        assert [p.key for p in params] == ["id"]

    def test_bare_colon_is_not_a_param(self):
        assert derive_path_params("/a/:/b") == []

    def test_previous_values_carry_over(self):
        previous = [Param("id", "42"), Param("gone", "x")]
        params = derive_path_params("/users/:id/:new", previous)
        assert params == [Param("id", "42"), Param("new", "")]

    def test_query_params_decoded(self):
        params = derive_query_params("/search?q=hello%20world&tag=a&tag=b&empty=")
        assert params == [
            Param("q", "hello world"),
            Param("tag", "a"),
            Param("tag", "b"),
            Param("empty", ""),
        ]

    def test_no_query(self):
        assert derive_query_params("/users") == []


# ── Recompose / target ───────────────────────────────────────────────────


class TestRecompose:
    def test_encodes_rows(self):
        url = recompose_url("/search?old=1", [Param("q", "a b"), Param("x", "1&2")])
        assert url == "/search?q=a+b&x=1%262"

    def test_skips_empty_keys(self):
        assert recompose_url("/s", [Param("", "v"), Param("k", "v")]) == "/s?k=v"

    def test_no_rows_drops_question_mark(self):
        assert recompose_url("/s?a=1", []) == "/s"

    def test_path_tokens_untouched(self):
        assert recompose_url("/users/:id", [Param("a", "1")]) == "/users/:id?a=1"

    def test_spaced_template_tokens_stay_literal(self):
        url = recompose_url("/s", [Param("host", "{{ host }}"), Param("q", "a {{x}} b")])
        assert url == "/s?host={{ host }}&q=a+{{x}}+b"

    def test_template_tokens_stay_literal(self):
        assert recompose_url("/s", [Param("token", "{{token}}")]) == "/s?token={{token}}"

    def test_recompose_of_derived_rows_is_identity(self):
        url = "/users/:id?page=2&tag=a&tag=b&q=x+y"
        assert recompose_url(url, derive_query_params(url)) == url

    def test_fragment_preserved(self):
        assert recompose_url("/s?a=1#top", [Param("b", "2")]) == "/s?b=2#top"

    def test_target_url_fills_values(self):
        url = build_target_url("/users/:id/posts?x=:id", [Param("id", "7")])
        assert url == "/users/7/posts?x=:id"

    def test_target_url_skips_empty_values(self):
        assert build_target_url("/users/:id", [Param("id", "")]) == "/users/:id"


# ── URLParams edit session ───────────────────────────────────────────────


class TestURLParams:
    def test_edit_url_derives_rows(self):
        p = URLParams()
        p.set_text("/users/:id?page=2")
        assert [r.key for r in p.path_params] == ["id"]
        assert p.query_params == [Param("page", "2")]

    def test_edit_row_recomposes_text(self):
        p = URLParams("/users?page=2")
        p.set_query_param(0, value="3")
        assert p.text == "/users?page=3"
        p.set_query_param(0, key="offset")
        assert p.text == "/users?offset=3"

    def test_spaced_token_resolves_after_row_edit(self):
        p = URLParams("/search?host={{ host }}")
        p.add_query_param("page", "2")
        assert p.text == "/search?host={{ host }}&page=2"
        assert substitute(p.text, {"host": "example.com"}) == "/search?host=example.com&page=2"

    def test_recompose_then_derive_is_stable(self):
        p = URLParams("/search?q=a%20b&tag=x")
        p.add_query_param("n", "1")
        rows = [Param(r.key, r.value) for r in p.query_params]
        p.set_text(p.text)
        assert p.query_params == rows

    def test_add_and_remove_rows(self):
        p = URLParams("/s")
        p.add_query_param("a", "1")
        p.add_query_param("b", "2")
        assert p.text == "/s?a=1&b=2"
        p.remove_query_param(0)
        assert p.text == "/s?b=2"
        p.remove_query_param(0)
        assert p.text == "/s"

    def test_blank_row_does_not_change_text(self):
        p = URLParams("/s?a=1")
        p.add_query_param()
        assert p.text == "/s?a=1"
        assert len(p.query_params) == 2

    def test_path_value_kept_across_edits(self):
        p = URLParams("/users/:id")
        assert p.set_path_value("id", "42")
        p.set_text("/users/:id/posts")
        assert p.path_values() == {"id": "42"}
        assert p.target_url() == "/users/42/posts"
        assert p.text == "/users/:id/posts"

    def test_unknown_path_value(self):
        p = URLParams("/users/:id")
        assert p.set_path_value("nope", "1") is False

    def test_initial_path_values(self):
        p = URLParams("/status/:code", {"code": "418"})
        assert p.target_url() == "/status/418"
