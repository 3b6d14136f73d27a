"""
Tests for the Lark-based parser.

These tests verify that the grammar-driven parser produces the same AST as
the hand-written recursive descent parser.
"""

import pytest

from flowkey.catalog import DEFAULT_CATALOG
from flowkey.errors import (
    ArityMismatch, EmptyDefinition, KeySyntaxError, ParseError,
    UnknownKeyFunction, UnknownKeyName,
)
from flowkey.key_ast import KeyNameToken
from flowkey.parser import MAX_NESTING_DEPTH
from flowkey.parser import parse as handwritten_parse
from flowkey.peg_parser import get_parser
from flowkey.peg_parser import parse as peg_parse
from flowkey.registry import DEFAULT_REGISTRY, ArgKind, Arity, FunctionShape


# Use PEG parser as the default for these tests
parse = peg_parse


VALID_INPUTS = [
    "ip6destination",
    "ipsource,ipdestination,ip6ttl",
    "country:ipsource",
    "asn:ip6source",
    "group:ip6source:trusted:bad",
    "group:ipsource:gro_up1:group2:_GROUP_THr33_",
    "ip6destination,group:[country:ip6source]:trusted:bad:unknown",
    "or:ipsource:ip6source:[country:ipsource]",
    "null:[country:ipsource]:unknown",
    "group:[null:[country:ipsource]:XX]:eu:us",
    "  ip6_offset,ip6fragm  ",
]


class TestPEGAgreement:
    """Both parsers build identical trees."""

    @pytest.mark.parametrize("text", VALID_INPUTS)
    def test_same_ast(self, text):
        assert parse(text) == handwritten_parse(text)

    def test_parser_is_cached(self):
        assert get_parser() is get_parser()

    def test_custom_tables(self):
        catalog = DEFAULT_CATALOG.extended([KeyNameToken("tcpsourceport")])
        registry = DEFAULT_REGISTRY.extended([
            FunctionShape("mask", Arity.exact(2), (ArgKind.KEY, ArgKind.LITERAL)),
        ])
        text = "mask:tcpsourceport:16"
        assert parse(text, catalog, registry) == handwritten_parse(text, catalog, registry)


class TestPEGErrors:
    """Typed diagnostics from the Lark parser."""

    @pytest.mark.parametrize("text,error", [
        ("", EmptyDefinition),
        ("   ", EmptyDefinition),
        ("ip5source", UnknownKeyName),
        ("foo:bar", UnknownKeyFunction),
        ("group:[foo:ipsource]:a", UnknownKeyFunction),
        ("group:unknownkey:a", UnknownKeyName),
        ("country:ipsource:ipdestination", ArityMismatch),
        ("group:ip6source", ArityMismatch),
        ("country:[asn:ipsource]", KeySyntaxError),
        ("group:[ip6source]:a", KeySyntaxError),
        ("ip6destination,", KeySyntaxError),
        ("group:ip6source:", KeySyntaxError),
        ("ip6source ip6ttl", KeySyntaxError),
        ("group:[country:ip6source", KeySyntaxError),
        ("ip6source]", KeySyntaxError),
    ])
    def test_error_kind(self, text, error):
        with pytest.raises(error):
            parse(text)

    @pytest.mark.parametrize("text", [
        "foo:bar",
        "ip6source ip6ttl",
        "  foo",
        "country:[asn:ipsource]",
        "ipsource,group:ip6source",
        ",ip6source",
    ])
    def test_same_offset_as_handwritten(self, text):
        with pytest.raises(ParseError) as peg_exc:
            parse(text)
        with pytest.raises(ParseError) as hw_exc:
            handwritten_parse(text)
        assert peg_exc.value.kind == hw_exc.value.kind
        assert peg_exc.value.offset == hw_exc.value.offset

    def test_lark_errors_are_converted(self):
        with pytest.raises(KeySyntaxError) as exc:
            parse("ipsource;")
        assert exc.value.offset == 8
        assert exc.value.found == ";"

    def test_excess_nesting_rejected(self):
        text = "country:ipsource"
        for _ in range(MAX_NESTING_DEPTH + 1):
            text = f"null:[{text}]:d"
        with pytest.raises(KeySyntaxError):
            parse(text)

    def test_very_deep_nesting_is_a_syntax_error(self):
        text = "null:[" * 2000 + "country:ipsource" + "]:d" * 2000
        with pytest.raises(KeySyntaxError) as peg_exc:
            parse(text)
        with pytest.raises(KeySyntaxError) as hw_exc:
            handwritten_parse(text)
        # the first '[' past the limit
        assert peg_exc.value.offset == hw_exc.value.offset == 6 * (MAX_NESTING_DEPTH + 1) - 1

    def test_deepest_allowed_nesting_parses(self):
        text = "null:[" * MAX_NESTING_DEPTH + "country:ipsource" + "]:d" * MAX_NESTING_DEPTH
        assert parse(text) == handwritten_parse(text)


class TestPEGErrorOrder:
    """Errors come out in source order, exactly as from the hand-written parser."""

    @pytest.mark.parametrize("text,kind,offset", [
        ("country:[foo:x]", "KeySyntaxError", 8),
        ("ip5source,ipsource,", "UnknownKeyName", 0),
        ("foo:bar,", "UnknownKeyFunction", 0),
        ("foo:[bar:x]", "UnknownKeyFunction", 0),
        ("group:[foo:ipsource]:a", "UnknownKeyFunction", 7),
        ("null:[country:x:y]:d,", "ArityMismatch", 6),
        ("null:[country:x]],ipsource", "ArityMismatch", 0),
        ("group:ip6source:", "KeySyntaxError", 15),
        ("ip6destination,", "KeySyntaxError", 14),
        ("ip5source[", "UnknownKeyName", 0),
        ("ip5source,ipsource;", "KeySyntaxError", 18),
        ("null:[foo", "KeySyntaxError", 9),
        ("  ip5source", "UnknownKeyName", 2),
    ])
    def test_matches_handwritten(self, text, kind, offset):
        with pytest.raises(ParseError) as peg_exc:
            parse(text)
        with pytest.raises(ParseError) as hw_exc:
            handwritten_parse(text)
        assert (peg_exc.value.kind, peg_exc.value.offset) == (kind, offset)
        assert (hw_exc.value.kind, hw_exc.value.offset) == (kind, offset)
