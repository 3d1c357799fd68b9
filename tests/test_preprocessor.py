"""Tests for the preprocessor."""

import pytest
from json_relational.preprocessor import Preprocessor, decode_unicode_escapes, rewrite_bson


class TestUnicodeDecoding:
    """Tests for unicode escape decoding."""

    def test_decodes_basic_escape(self):
        """Test that a BMP escape becomes its character."""
        assert decode_unicode_escapes('{"a":"caf\\u00e9"}') == '{"a":"café"}'

    def test_combines_surrogate_pairs(self):
        """Test that surrogate pairs decode to one astral character."""
        assert decode_unicode_escapes('"\\ud83d\\ude00"') == '"\U0001F600"'

    def test_leaves_lone_surrogate(self):
        """Test that an unpaired surrogate escape is kept verbatim."""
        assert decode_unicode_escapes('"\\ud83d"') == '"\\ud83d"'

    def test_reescapes_decoded_quote(self):
        """Test that a decoded quote cannot terminate the string."""
        assert decode_unicode_escapes('{"a":"x\\u0022y"}') == '{"a":"x\\"y"}'


class TestBsonRewrite:
    """Tests for BSON extended JSON rewriting."""

    def test_object_id(self):
        """Test ObjectId("X") becomes "X"."""
        text, count = rewrite_bson('{"_id": ObjectId("5f1a2b"), "n": 1}')
        assert text == '{"_id": "5f1a2b", "n": 1}'
        assert count == 1

    def test_oid_object(self):
        """Test { "$oid": "X" } becomes "X"."""
        text, count = rewrite_bson('{"_id": { "$oid": "5f1a2b" }}')
        assert text == '{"_id": "5f1a2b"}'
        assert count == 1


class TestPreprocessor:
    """Tests for the Preprocessor class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.preprocessor = Preprocessor()

    def test_valid_object(self):
        """Test a plain object passes both boundary tests."""
        document = self.preprocessor.process('  {"a": 1}\n')

        assert document.is_valid
        assert document.text == '{"a": 1}'
        assert document.prefix == ""

    def test_invalid_text(self):
        """Test that free text fails the boundary tests."""
        document = self.preprocessor.process("not json at all")

        assert not document.is_valid
        assert not document.starts_valid
        assert not document.ends_valid

    def test_missing_closer(self):
        """Test that a truncated document fails the end test."""
        document = self.preprocessor.process('{"a": 1')

        assert document.starts_valid
        assert not document.ends_valid
        assert not document.is_valid

    def test_assignment_prefix(self):
        """Test that a JavaScript assignment is stripped and remembered."""
        document = self.preprocessor.process('window.YTD.tweets.part0 = [{"id": 1}]')

        assert document.is_valid
        assert document.prefix == "window.YTD.tweets.part0"
        assert document.text == '[{"id": 1}]'

    def test_declaration_and_semicolon(self):
        """Test that var/let/const and a trailing semicolon are stripped."""
        document = self.preprocessor.process('var config = {"debug": true};')

        assert document.is_valid
        assert document.prefix == "config"
        assert document.text == '{"debug": true}'

    def test_bson_disabled_by_default(self):
        """Test that BSON constructs are left alone unless enabled."""
        raw = '{"_id": ObjectId("abc123")}'
        assert self.preprocessor.process(raw).text == raw

    def test_bson_enabled(self):
        """Test that BSON mode rewrites constructs before scanning."""
        document = Preprocessor(bson=True).process('{"_id": ObjectId("abc123")}')

        assert document.text == '{"_id": "abc123"}'
        assert document.bson_rewrites == 1

    @pytest.mark.parametrize("raw", ["[]", "{}", '[{"a": [1, 2]}]'])
    def test_minimal_documents(self, raw):
        """Test that minimal documents are valid."""
        assert self.preprocessor.process(raw).is_valid
