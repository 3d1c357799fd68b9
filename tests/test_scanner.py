"""Tests for the structural scanner."""

import pytest
from json_relational.cancellation import CancellationToken
from json_relational.scanner import StructuralScanner, resolve_node_name
from json_relational.types import Cancelled, Completed


class TestResolveNodeName:
    """Tests for node name resolution."""

    def test_name_before_object(self):
        """Test the key right before an opener is its name."""
        text = '{"a": {"b": 1}}'
        assert resolve_node_name(text, text.index('{"b"')) == "a"

    def test_root_has_no_name(self):
        """Test the document root resolves to empty text."""
        assert resolve_node_name('{"a": 1}', 0) == ""

    def test_closer_bounds_search(self):
        """Test a preceding closer hides older keys."""
        text = '{"items": [{"n": 1}, {"n": 2}]}'
        second = text.index('{"n": 2}')
        assert resolve_node_name(text, second) == ""

    def test_lookback_window(self):
        """Test keys outside the lookback window are ignored."""
        text = '{"a": ' + " " * 60 + '{"b": 1}}'
        start = text.index('{"b"')

        assert resolve_node_name(text, start) == ""
        assert resolve_node_name(text, start, lookback=100) == "a"


class TestStructuralScanner:
    """Tests for StructuralScanner class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.scanner = StructuralScanner()

    def _scan(self, text):
        outcome = self.scanner.scan(text)
        assert isinstance(outcome, Completed)
        return outcome.value

    def test_flat_object(self):
        """Test a flat object yields one root pattern."""
        result = self._scan('{"a":1,"b":"x"}')

        assert len(result.patterns) == 1
        pattern = result.patterns[0]
        assert pattern.depth == 0
        assert pattern.parent_element == 1
        assert pattern.element_index == 1
        assert pattern.raw_span == '{"a":1,"b":"x"}'
        assert result.max_depth == 0

    def test_array_of_objects_is_transparent(self):
        """Test elements of a container array link to the enclosing object."""
        result = self._scan('{"items":[{"n":1},{"n":2}]}')

        items = result.at_depth(1)
        assert [p.raw_span for p in items] == ['{"n":1}', '{"n":2}']
        assert [p.element_index for p in items] == [1, 2]
        assert all(p.parent_element == 1 for p in items)
        assert not any(p.is_array for p in result.patterns)

    def test_unnamed_sibling_inherits_name(self):
        """Test unnamed array elements reuse the last name seen at their depth.

        The heuristic is deliberately loose: any earlier node at the same depth
        lends its name, not only the first element of the same array.
        """
        result = self._scan('{"items":[{"n":1},{"n":2}]}')

        assert [p.node_name for p in result.at_depth(1)] == ["items", "items"]

    def test_literal_array_pattern(self):
        """Test an array without nested structures becomes an array pattern."""
        result = self._scan('{"name":"x","tags":["a","b"]}')

        arrays = [p for p in result.patterns if p.is_array]
        assert len(arrays) == 1
        assert arrays[0].node_name == "tags"
        assert arrays[0].depth == 1
        assert arrays[0].parent_element == 1
        assert arrays[0].element_index == 0

    def test_parent_elements(self):
        """Test children point at the ordinal of their own parent."""
        text = '{"o":[{"l":[{"s":1},{"s":2}]},{"l":[{"s":3}]}]}'
        result = self._scan(text)

        assert result.level_counts() == {0: 1, 1: 2, 2: 3}
        assert [p.parent_element for p in result.at_depth(2)] == [1, 1, 2]
        assert [p.element_index for p in result.at_depth(1)] == [1, 2]

    def test_patterns_sorted_by_depth(self):
        """Test patterns come out grouped by depth in encounter order."""
        result = self._scan('{"a":{"b":{"c":1}},"d":{"e":2}}')

        assert [p.depth for p in result.patterns] == [0, 1, 1, 2]
        assert [p.node_name for p in result.at_depth(1)] == ["a", "d"]

    def test_delimiters_inside_strings(self):
        """Test braces inside quoted values are not structure."""
        result = self._scan('{"a":"x\\"}{y","b":"]"}')

        assert len(result.patterns) == 1

    def test_escaped_backslash_before_quote(self):
        """Test a doubled backslash does not escape the closing quote."""
        result = self._scan('{"a":"x\\\\","b":{"c":1}}')

        assert len(result.patterns) == 2
        assert result.at_depth(1)[0].node_name == "b"

    def test_mismatched_pair_rejected(self):
        """Test a mismatched closer is rejected instead of producing a pattern."""
        result = self._scan('{"a":[1}')

        assert result.patterns == []
        assert result.rejected == 1

    def test_root_array(self):
        """Test objects inside a root array are all root patterns."""
        result = self._scan('[{"a":1},{"a":2}]')

        assert [p.depth for p in result.patterns] == [0, 0]
        assert [p.element_index for p in result.patterns] == [1, 2]
        assert all(p.node_name == "" for p in result.patterns)

    def test_cancelled(self):
        """Test a cancelled token stops the scan."""
        token = CancellationToken()
        token.cancel()

        outcome = self.scanner.scan('{"a":1}', token)

        assert isinstance(outcome, Cancelled)

    @pytest.mark.parametrize("text", [
        '{"a":{"b":[1,2]},"c":[{"d":null}]}',
        '[[1,2],[3,[4]]]',
        '{"s":"{[}]","t":{"u":"\\\\"}}',
    ])
    def test_every_span_is_balanced(self, text):
        """Test every emitted span starts and ends with a matching pair."""
        for pattern in self._scan(text).patterns:
            assert (pattern.raw_span[0], pattern.raw_span[-1]) in (("{", "}"), ("[", "]"))
