"""Balanced-brace injection scanning."""

from __future__ import annotations

from hypothesis import given, settings

from trellis.directives.injection import InjectionKind, guard, scan, substitute, unguard

from ..strategies import balanced_code, injection_opener, plain_text


class TestScan:
    def test_expression_kind(self):
        (injection,) = scan("Hello #{name}!")
        assert injection.kind is InjectionKind.EXPRESSION
        assert injection.code == "name"
        assert (injection.start, injection.end) == (6, 13)

    def test_script_kind(self):
        (injection,) = scan("@{ total = 1 }")
        assert injection.kind is InjectionKind.SCRIPT
        assert injection.code == " total = 1 "

    def test_nested_braces_preserved(self):
        (injection,) = scan("<p>@{ fn({a:1}) }</p>")
        assert injection.code.strip() == "fn({a:1})"

    def test_deep_nesting(self):
        (injection,) = scan("#{ {'a': {'b': {}}} }")
        assert injection.code == " {'a': {'b': {}}} "

    def test_multiple_in_order(self):
        codes = [i.code for i in scan("#{a}-@{b}-#{c}")]
        assert codes == ["a", "b", "c"]

    def test_unterminated_is_ignored(self):
        assert list(scan("#{a} then @{ never closed")) == [
            next(scan("#{a}")),
        ]

    def test_lone_markers_ignored(self):
        assert list(scan("a # b @ c {d} e")) == []


class TestSubstitute:
    def test_replaces_whole_span(self):
        result = substitute("x=#{a}; y=@{b}", lambda i: i.code.upper())
        assert result == "x=A; y=B"

    def test_no_injections_returns_same_object(self):
        source = "<p>plain</p>"
        assert substitute(source, lambda i: "") is source

    def test_repeated_code_replaced_positionally(self):
        values = iter(["1", "2"])
        assert substitute("#{i}#{i}", lambda i: next(values)) == "12"


class TestGuard:
    def test_guarded_value_has_no_injections(self):
        assert list(scan(guard("#{secret} @{ x = 1 }"))) == []

    def test_trailing_marker_cannot_join_following_brace(self):
        assert list(scan(guard("#") + "{x}")) == []
        assert list(scan("#" + guard("{x}"))) == []

    def test_unguard_restores_text(self):
        assert unguard(guard("a #{b} @")) == "a #{b} @"

    def test_plain_text_unchanged(self):
        assert guard("no braces") == "no braces"


class TestScanProperties:
    @given(text=plain_text)
    @settings(max_examples=200)
    def test_plain_text_has_no_injections(self, text: str) -> None:
        assert list(scan(text)) == []

    @given(before=plain_text, opener=injection_opener, code=balanced_code, after=plain_text)
    @settings(max_examples=200)
    def test_balanced_code_extracted_verbatim(
        self, before: str, opener: str, code: str, after: str
    ) -> None:
        source = f"{before}{opener}{code}}}{after}"
        (injection,) = scan(source)
        assert injection.code == code
        assert source[injection.start : injection.end] == f"{opener}{code}}}"

    @given(before=plain_text, opener=injection_opener, code=balanced_code, after=plain_text)
    @settings(max_examples=100)
    def test_substitute_keeps_surrounding_text(
        self, before: str, opener: str, code: str, after: str
    ) -> None:
        source = f"{before}{opener}{code}}}{after}"
        assert substitute(source, lambda i: "X") == f"{before}X{after}"

    @given(before=plain_text, opener=injection_opener, code=balanced_code)
    @settings(max_examples=100)
    def test_guard_roundtrip_is_inert(self, before: str, opener: str, code: str) -> None:
        value = f"{before}{opener}{code}}}"
        assert list(scan(guard(value))) == []
        assert unguard(guard(value)) == value
