"""Tests for data models and naming helpers."""

import pytest
from json_relational.models import ConverterOptions, Pattern, Table, TableSet
from json_relational.types import DuplicateTableError, MergeIncompatibleError
from json_relational.utils import (
    indexed_table_name,
    mask_nested_spans,
    natural_table_key,
    partition,
    root_name,
    sanitize_name,
)


class TestPattern:
    """Tests for Pattern model."""

    def test_valid_pattern(self):
        """Test creating a valid pattern."""
        pattern = Pattern("items", '{"n":1}', False, 1, 1, 1)

        assert not pattern.is_root()
        assert pattern.to_dict()["nodeName"] == "items"

    def test_unbalanced_span(self):
        """Test that a span without a matching pair is rejected."""
        with pytest.raises(ValueError, match="matching delimiter"):
            Pattern("a", '{"n":1]', False, 0, 1)

    def test_array_flag_mismatch(self):
        """Test that is_array must agree with the opener."""
        with pytest.raises(ValueError, match="is_array"):
            Pattern("a", "[1]", False, 0, 1)

    def test_invalid_ordinals(self):
        """Test depth and parent ordinal validation."""
        with pytest.raises(ValueError):
            Pattern("a", "{}", False, -1, 1)
        with pytest.raises(ValueError):
            Pattern("a", "{}", False, 0, 0)


class TestTable:
    """Tests for Table model."""

    def setup_method(self):
        """Set up test fixtures."""
        self.table = Table("person", ["name"])
        self.table.add_row({"name": "Ann"})

    def test_add_column_backfills(self):
        """Test new columns read as empty text in existing rows."""
        assert self.table.add_column("age")
        assert not self.table.add_column("age")
        assert self.table.rows[0]["age"] == ""

    def test_add_row_registers_columns(self):
        """Test rows may introduce columns."""
        self.table.add_row({"name": "Bob", "city": "Lyon"})

        assert self.table.columns == ["name", "city"]
        assert self.table.rows[0]["city"] == ""

    def test_find_row(self):
        """Test row lookup returns None when nothing matches."""
        assert self.table.find_row("name", "Ann") is self.table.rows[0]
        assert self.table.find_row("name", "Zoe") is None
        assert self.table.find_row("missing", "Ann") is None

    def test_find_by_key(self):
        """Test primary-key lookup."""
        assert self.table.find_by_key("1") is None

        self.table.set_primary_key("person_id")
        self.table.rows[0]["person_id"] = "1"
        assert self.table.find_by_key("1")["name"] == "Ann"

    def test_rename_column(self):
        """Test renaming keeps key declarations in sync."""
        self.table.set_primary_key("id")
        self.table.add_foreign_key("parent")

        assert self.table.rename_column("id", "person_id")
        assert self.table.rename_column("parent", "parent_id")
        assert not self.table.rename_column("name", "person_id")
        assert self.table.primary_key == "person_id"
        assert self.table.foreign_keys == ["parent_id"]

    def test_merge_adds_missing_columns(self):
        """Test merge is a schema-compatible union."""
        other = Table("person", ["name", "age"])
        other.add_row({"name": "Bob", "age": "40"})

        self.table.merge(other)

        assert self.table.columns == ["name", "age"]
        assert [r["age"] for r in self.table.rows] == ["", "40"]

    def test_merge_primary_key_mismatch(self):
        """Test tables declaring different primary keys do not merge."""
        other = Table("person")
        other.set_primary_key("person_id")
        other.add_row({"person_id": "2"})

        with pytest.raises(MergeIncompatibleError):
            self.table.merge(other)
        assert len(self.table) == 1

    def test_merge_duplicate_key(self):
        """Test duplicate primary-key values do not merge."""
        self.table.set_primary_key("person_id")
        self.table.rows[0]["person_id"] = "1"
        other = Table("person{[2]}", ["name"])
        other.set_primary_key("person_id")
        other.add_row({"name": "Bob", "person_id": "1"})

        with pytest.raises(MergeIncompatibleError, match="Duplicate"):
            self.table.merge(other)

    def test_check_merge_against_taken_keys(self):
        """Test compatibility checks against an explicit key set."""
        self.table.set_primary_key("person_id")
        self.table.rows[0]["person_id"] = "1"
        other = Table("person{[2]}", ["name"])
        other.set_primary_key("person_id")
        other.add_row({"name": "Bob", "person_id": "2"})

        assert self.table.check_merge(other) == {"2"}
        with pytest.raises(MergeIncompatibleError, match="Duplicate"):
            self.table.check_merge(other, taken={"1", "2"})

    def test_empty_name(self):
        """Test tables need a name."""
        with pytest.raises(ValueError):
            Table("")


class TestTableSet:
    """Tests for TableSet model."""

    def setup_method(self):
        """Set up test fixtures."""
        self.tables = TableSet("json")
        self.tables.add(Table("a"))
        self.tables.add(Table("b"))
        self.tables.add(Table("c"))

    def test_get_unknown(self):
        """Test unknown names resolve to None."""
        assert self.tables.get("zzz") is None
        assert "zzz" not in self.tables

    def test_duplicate(self):
        """Test duplicate names are rejected."""
        with pytest.raises(DuplicateTableError):
            self.tables.add(Table("a"))

    def test_remove_rebuilds_registry(self):
        """Test lookups stay correct after a removal."""
        removed = self.tables.remove("a")

        assert removed.name == "a"
        assert self.tables.remove("a") is None
        assert self.tables.get("c").name == "c"
        assert self.tables.names() == ["b", "c"]

    def test_rename(self):
        """Test renaming tables."""
        assert self.tables.rename("a", "z")
        assert not self.tables.rename("b", "c")
        assert not self.tables.rename("missing", "x")
        assert self.tables.names() == ["z", "b", "c"]
        assert self.tables.get("z") is self.tables.first()

    def test_total_rows(self):
        """Test row counting across tables."""
        self.tables.get("b").add_row({"x": "1"})
        assert self.tables.total_rows() == 1


class TestConverterOptions:
    """Tests for ConverterOptions model."""

    def test_defaults(self):
        """Test default option values."""
        options = ConverterOptions()

        assert options.output_name == "json"
        assert options.sanitize_names
        assert options.remove_primary_key
        assert not options.arrays_as_tables
        assert options.effective_workers() >= 1

    def test_empty_name_falls_back(self):
        """Test an empty output name falls back to json."""
        assert ConverterOptions(output_name="").output_name == "json"

    def test_sequential(self):
        """Test disabling parallelism forces a single worker."""
        assert ConverterOptions(parallel=False, max_workers=8).effective_workers() == 1
        assert ConverterOptions(max_workers=3).effective_workers() == 3

    @pytest.mark.parametrize("kwargs", [
        {"max_depth": -1},
        {"max_workers": 0},
        {"name_lookback": 0},
        {"locale": ""},
    ])
    def test_invalid(self, kwargs):
        """Test invalid option values."""
        with pytest.raises(ValueError):
            ConverterOptions(**kwargs)

    def test_dict_conversion(self):
        """Test camelCase dictionary conversion."""
        options = ConverterOptions(output_name="tweets", arrays_as_tables=True, max_workers=2)
        data = options.to_dict()

        assert data["outputName"] == "tweets"
        assert ConverterOptions.from_dict(data) == options
        assert ConverterOptions.from_dict({"bson": True, "unknown": 1}).bson


class TestNamingHelpers:
    """Tests for table naming, partitioning and masking helpers."""

    def test_indexed_names(self):
        """Test the {[n]} suffix helpers."""
        name = indexed_table_name("person", 12)

        assert name == "person{[12]}"
        assert root_name(name) == "person"
        assert root_name("person") == "person"

    def test_natural_order(self):
        """Test index suffixes sort numerically."""
        names = ["x{[10]}", "x{[2]}", "x{[1]}"]
        assert sorted(names, key=natural_table_key) == ["x{[1]}", "x{[2]}", "x{[10]}"]

    @pytest.mark.parametrize("raw, expected", [
        ("Prénom", "Prenom"),
        ("e-mail address", "e_mail_address"),
        ("a{[3]}_error", "a_3_error"),
        ("plain", "plain"),
    ])
    def test_sanitize(self, raw, expected):
        """Test name sanitation and its idempotence."""
        assert sanitize_name(raw) == expected
        assert sanitize_name(sanitize_name(raw)) == expected

    def test_partition(self):
        """Test contiguous partitioning with the remainder in the last chunk."""
        assert partition(list(range(7)), 3) == [(0, [0, 1]), (2, [2, 3]), (4, [4, 5, 6])]
        assert partition([1, 2], 4) == [(0, [1, 2])]
        assert partition([], 2) == []

    def test_mask_nested_spans(self):
        """Test nested structures are blanked, strings are not."""
        assert mask_nested_spans('{"a":{"b":1},"c":"{x}"}') == '{"a":' + " " * 7 + ',"c":"{x}"}'
