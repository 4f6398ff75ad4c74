"""Tests for address parsing and the path resolver."""
import pytest

from chartbumper.document.address import Address, Field, Index
from chartbumper.document.parser import DocumentParser
from chartbumper.document.renderer import DocumentRenderer
from chartbumper.document.resolver import PathResolver, get_value, set_value
from chartbumper.errors import InvalidAddressError, PathNotFoundError, TypeMismatchError


@pytest.fixture
def doc(values_text):
    return DocumentParser.parse(values_text)


def test_address_parse():
    """Test parsing addresses into steps."""
    address = Address.parse("$.dependencies[0].version")
    assert address.steps == (Field("dependencies"), Index(0), Field("version"))
    assert str(address) == "$.dependencies[0].version"
    assert address.position == ("dependencies", 0, "version")
    assert Address.parse("$").is_root
    assert address.parent() == Address.parse("$.dependencies[0]")
    assert address.parent().child(Field("name")) == Address.parse("$.dependencies[0].name")


@pytest.mark.parametrize("text", ["", "image.tag", "$.", "$.image..tag", "$[x]", "$.image tag", "$.a[-1]"])
def test_address_parse_invalid(text):
    """Test that off-grammar addresses are rejected."""
    with pytest.raises(InvalidAddressError):
        Address.parse(text)


def test_address_from_position_rejects_unaddressable_keys():
    """Test that keys outside the field grammar have no address."""
    assert str(Address.from_position(("image", "tag"))) == "$.image.tag"
    with pytest.raises(InvalidAddressError):
        Address.from_position(("labels", "app.kubernetes.io/name"))


def test_get(doc):
    """Test reading values by address."""
    assert PathResolver.get(doc, "$.image.tag") == ("2.3.1", True)
    assert PathResolver.get(doc, "$.containers[0].ports[1]") == (443, True)
    assert PathResolver.get(doc, "$.containers[1].env[0].value") == ("fast", True)
    assert PathResolver.get(doc, "$.empty") == (None, True)
    assert get_value(doc, Address.parse("$.replicaCount")) == (1, True)


def test_get_missing(doc):
    """Test that missing keys and indexes at any depth are not found."""
    assert PathResolver.get(doc, "$.nope") == (None, False)
    assert PathResolver.get(doc, "$.image.nope.deeper") == (None, False)
    assert PathResolver.get(doc, "$.containers[9].name") == (None, False)


def test_get_text(doc):
    """Test the textual form of scalars."""
    assert PathResolver.get_text(doc, "$.replicaCount") == ("1", True)
    assert PathResolver.get_text(doc, "$.enabled") == ("true", True)
    assert PathResolver.get_text(doc, "$.missing") == (None, False)


@pytest.mark.parametrize("address", ["$.replicaCount.foo", "$.containers.name", "$.image[0]"])
def test_get_type_mismatch(doc, address):
    """Test that steps into the wrong shape raise."""
    with pytest.raises(TypeMismatchError):
        PathResolver.get(doc, address)


@pytest.mark.parametrize("address", ["$", "image.tag", Address()])
def test_root_is_not_a_target(doc, address):
    """Test that the root and malformed addresses are rejected."""
    with pytest.raises(InvalidAddressError):
        PathResolver.get(doc, address)
    with pytest.raises(InvalidAddressError):
        PathResolver.set(doc, address, "x")


def test_set_keeps_quotes_and_comments(doc):
    """Test replacing a quoted scalar under a comment."""
    assert PathResolver.set(doc, "$.image.tag", "2.4.0") is True
    text = DocumentRenderer.render_text(doc)
    assert '  # bump: image=ghcr.io/example/app strategy=semver\n  tag: "2.4.0"\n' in text
    assert "pullPolicy: IfNotPresent   # keep\n" in text


def test_set_only_changes_target_line(doc, values_text):
    """Test that a replacement touches exactly one line."""
    PathResolver.set(doc, "$.containers[0].image.tag", "v1.1.0")
    before = values_text.splitlines()
    after = DocumentRenderer.render_text(doc).splitlines()
    assert len(before) == len(after)
    changed = [(b, a) for b, a in zip(before, after) if b != a]
    assert changed == [("      tag: v1.0.0", "      tag: v1.1.0")]


def test_set_sequence_item(doc):
    """Test replacing a scalar sequence item; new values are always strings."""
    assert set_value(doc, "$.containers[0].ports[0]", "8080") is True
    assert '      - "8080"\n      - 443\n' in DocumentRenderer.render_text(doc)
    assert PathResolver.get(doc, "$.containers[0].ports[0]") == ("8080", True)


def test_set_is_idempotent(doc, values_text):
    """Test that setting the current text reports no change."""
    assert PathResolver.set(doc, "$.image.tag", "2.3.1") is False
    assert PathResolver.set(doc, "$.replicaCount", "1") is False
    assert PathResolver.set(doc, "$.enabled", "true") is False
    assert DocumentRenderer.render_text(doc) == values_text


def test_set_creates_missing_final_key(doc):
    """Test that a missing leaf key is appended to its map."""
    assert PathResolver.set(doc, "$.image.digest", "sha256:abc") is True
    text = DocumentRenderer.render_text(doc)
    assert "  pullPolicy: IfNotPresent   # keep\n  digest: sha256:abc\n\npodAnnotations: {}\n" in text
    assert PathResolver.get(doc, "$.image.digest") == ("sha256:abc", True)


def test_set_quotes_ambiguous_plain_values(doc):
    """Test that values that would not read back as strings get quoted."""
    PathResolver.set(doc, "$.image.pullPolicy", "true")
    assert 'pullPolicy: "true"   # keep\n' in DocumentRenderer.render_text(doc)


@pytest.mark.parametrize("address", [
    "$.missing.key",
    "$.containers[5].name",
    "$.containers[0].ports[2]",
])
def test_set_path_not_found(doc, address):
    """Test that missing intermediates and indexes raise."""
    with pytest.raises(PathNotFoundError):
        PathResolver.set(doc, address, "x")


@pytest.mark.parametrize("address", ["$.replicaCount.foo", "$.containers.name", "$.image[0]"])
def test_set_type_mismatch(doc, address):
    """Test that mutations through the wrong shape raise."""
    with pytest.raises(TypeMismatchError):
        PathResolver.set(doc, address, "x")


def test_replaced_subtree_drops_stale_comments():
    """Test that sidecar entries of removed nodes are not rendered."""
    doc = DocumentParser.parse("image:\n  # old\n  tag: 1.0.0\nname: x\n")
    doc.root["image"] = "flat"
    assert DocumentRenderer.render_text(doc) == "image: flat\nname: x\n"


@pytest.mark.parametrize("text,address,value", [
    ("appVersion: 1.10\n", "$.appVersion", "1.10"),
    ("appVersion: 1.10 # pinned\n", "$.appVersion", "1.10"),
    ("flag: yes\n", "$.flag", "yes"),
    ("modes:\n  - 010\n", "$.modes[0]", "010"),
])
def test_set_matches_plain_text_as_written(text, address, value):
    """Test that a plain scalar already written as the new text is left alone."""
    doc = DocumentParser.parse(text)
    assert PathResolver.set(doc, address, value) is False
    assert DocumentRenderer.render_text(doc) == text


def test_set_decoded_match_differs_from_quoted_text():
    """Test that quoted tokens compare by decoded value only."""
    doc = DocumentParser.parse('appVersion: "1.10"\nversion: 1.10\n')
    assert PathResolver.set(doc, "$.appVersion", "1.10") is False
    assert PathResolver.set(doc, "$.version", "1.1") is False
    assert PathResolver.set(doc, "$.version", "1.2") is True
    assert DocumentRenderer.render_text(doc) == 'appVersion: "1.10"\nversion: "1.2"\n'
