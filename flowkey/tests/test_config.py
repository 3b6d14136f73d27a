"""Tests for YAML extension files."""

from textwrap import dedent

import pytest

from flowkey.catalog import DEFAULT_CATALOG
from flowkey.config import apply_extensions, load_all_extensions, load_extensions
from flowkey.errors import ConfigError
from flowkey.key_ast import FunctionCall, KeyFunction, KeyName, KeyNameToken, Literal
from flowkey.parser import parse
from flowkey.registry import DEFAULT_REGISTRY, ArgKind, Arity


EXTENSION = dedent("""\
    key_names:
      - name: tcpsourceport
        description: TCP source port
      - udpsourceport
    functions:
      - name: prefix
        arity: {exact: 2}
        args: [key, literal]
        description: leading part of a key
      - name: range
        arity: {at_least: 2}
        args: [key]
        trailing_labels: true
""")


@pytest.fixture
def extension_file(tmp_path):
    path = tmp_path / "extra.yaml"
    path.write_text(EXTENSION)
    return path


def write(tmp_path, text, name="ext.yaml"):
    path = tmp_path / name
    path.write_text(dedent(text))
    return path


class TestLoadExtensions:
    """Loading valid extension files."""

    def test_adds_key_names(self, extension_file):
        catalog, _ = load_extensions(extension_file)
        assert catalog.lookup("tcpsourceport").description == "TCP source port"
        assert "udpsourceport" in catalog
        assert len(catalog) == len(DEFAULT_CATALOG) + 2

    def test_adds_functions(self, extension_file):
        _, registry = load_extensions(extension_file)
        prefix = registry.lookup("prefix")
        assert prefix.arity == Arity.exact(2)
        assert prefix.arg_kinds == (ArgKind.KEY, ArgKind.LITERAL)
        assert registry.lookup("range").trailing_labels

    def test_defaults_untouched(self, extension_file):
        load_extensions(extension_file)
        assert "tcpsourceport" not in DEFAULT_CATALOG
        assert "prefix" not in DEFAULT_REGISTRY

    def test_parse_with_extensions(self, extension_file):
        catalog, registry = load_extensions(extension_file)
        definition = parse("prefix:tcpsourceport:8,udpsourceport", catalog, registry)
        assert definition[0] == KeyFunction(FunctionCall(
            "prefix", (KeyName(KeyNameToken("tcpsourceport")), Literal("8")),
        ))
        assert definition[1].name == "udpsourceport"

    def test_empty_file(self, tmp_path):
        catalog, registry = load_extensions(write(tmp_path, ""))
        assert len(catalog) == len(DEFAULT_CATALOG)
        assert len(registry) == len(DEFAULT_REGISTRY)

    def test_several_files_in_order(self, tmp_path, extension_file):
        second = write(tmp_path, """\
            key_names:
              - name: vlan
        """, name="second.yaml")
        catalog, registry = load_all_extensions([extension_file, second])
        assert "tcpsourceport" in catalog
        assert "vlan" in catalog
        assert "prefix" in registry

    def test_apply_extensions_from_data(self):
        catalog, registry = apply_extensions({'key_names': ['vlan']})
        assert "vlan" in catalog
        assert registry is DEFAULT_REGISTRY

    def test_trailing_labels_false(self, tmp_path):
        _, registry = load_extensions(write(tmp_path, """\
            functions:
              - name: pair
                arity: {at_least: 2}
                args: [key]
                trailing_labels: false
        """))
        assert not registry.lookup("pair").trailing_labels


class TestBadExtensions:
    """Malformed extension files raise ConfigError."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_extensions(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigError):
            load_extensions(write(tmp_path, "key_names: [unclosed\n"))

    @pytest.mark.parametrize("text", [
        "- just a list\n",
        "colours: [red]\n",
        "key_names: ipsource\n",
        "key_names:\n  - name: ipsource\n",
        "key_names:\n  - name: 'bad name'\n",
        "key_names:\n  - 42\n",
        "functions:\n  - name: group\n    arity: {exact: 1}\n    args: [key]\n",
        "functions:\n  - name: f\n    arity: {exactly: 1}\n    args: [key]\n",
        "functions:\n  - name: f\n    arity: {exact: 0}\n    args: [key]\n",
        "functions:\n  - name: f\n    arity: {exact: 1}\n    args: [number]\n",
        "functions:\n  - name: f\n    arity: {exact: 1}\n    args: []\n",
        "functions:\n  - name: f\n    arity: {exact: 2}\n    args: [key]\n    trailing_labels: true\n",
        "functions:\n  - name: f\n    arity: {at_least: 2}\n    args: [key]\n    trailing_labels: 'false'\n",
        "functions:\n  - name: f\n    arity: {at_least: 2}\n    args: [key]\n    trailing_labels: 1\n",
    ])
    def test_rejected(self, tmp_path, text):
        with pytest.raises(ConfigError):
            load_extensions(write(tmp_path, text))

    def test_error_names_file(self, tmp_path):
        path = write(tmp_path, "colours: [red]\n")
        with pytest.raises(ConfigError) as exc:
            load_extensions(path)
        assert str(path) in str(exc.value)
