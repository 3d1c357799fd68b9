"""Tests for consolidation and merge."""

import pytest
from json_relational.cancellation import CancellationToken
from json_relational.models import ConverterOptions, Table, TableSet
from json_relational.processors import Consolidator
from json_relational.types import Cancelled, Completed, Failed


def _person(index, *names, key=None):
    table = Table(f"person{{[{index}]}}", ["name"])
    if key:
        table.set_primary_key(key)
    for offset, name in enumerate(names):
        row = {"name": name}
        if key:
            row[key] = f"{index}{offset}"
        table.add_row(row)
    return table


def _tables(*tables):
    table_set = TableSet("json")
    for table in tables:
        table_set.add(table)
    return table_set


class TestConsolidator:
    """Tests for Consolidator class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.options = ConverterOptions(parallel=False, sanitize_names=False,
                                        remove_primary_key=False)
        self.consolidator = Consolidator(self.options)

    def _consolidate(self, tables, consolidator=None):
        outcome = (consolidator or self.consolidator).consolidate(tables)
        assert isinstance(outcome, Completed)
        return outcome.value

    def test_compatible_fragments_merge(self):
        """Test fragments with identical columns merge into one table."""
        result = self._consolidate(_tables(_person(0, "Ann", "Bob"), _person(1, "Cy")))

        assert result.names() == ["person"]
        assert [r["name"] for r in result.get("person").rows] == ["Ann", "Bob", "Cy"]

    def test_incompatible_fragment_kept_apart(self):
        """Test an incompatible fragment survives with an _error suffix."""
        result = self._consolidate(_tables(
            _person(0, "Ann", key="person_id"),
            _person(1, "Cy")
        ))

        assert result.names() == ["person", "person{[1]}_error"]
        assert [r["name"] for r in result.get("person").rows] == ["Ann"]

    def test_duplicate_primary_key_kept_apart(self):
        """Test duplicate key values prevent a merge."""
        first = _person(0, "Ann", key="person_id")
        second = _person(1, "Bob", key="person_id")
        second.rows[0]["person_id"] = first.rows[0]["person_id"]

        result = self._consolidate(_tables(first, second))

        assert "person{[1]}_error" in result

    def test_missing_columns_added(self):
        """Test merged tables gain the columns of every fragment."""
        other = _person(1, "Cy")
        other.add_column("age")
        other.rows[0]["age"] = "40"

        person = self._consolidate(_tables(_person(0, "Ann"), other)).get("person")

        assert person.columns == ["name", "age"]
        assert person.rows[0]["age"] == ""

    def test_natural_index_order(self):
        """Test fragments are merged by numeric index, not text order."""
        tables = _tables(*[_person(i, f"p{i}") for i in (10, 2, 1)])

        person = self._consolidate(tables).get("person")

        assert [r["name"] for r in person.rows] == ["p1", "p2", "p10"]

    def test_parallel_partitions_same_result(self):
        """Test partitioned merging matches the sequential result."""
        def build():
            return _tables(*[_person(i, f"p{i}", key="person_id") for i in range(11)])

        sequential = self._consolidate(build())
        parallel = self._consolidate(build(), Consolidator(self.options.replace(parallel=True, max_workers=3)))

        assert parallel.names() == sequential.names()
        assert parallel.get("person").rows == sequential.get("person").rows

    @pytest.mark.parametrize("workers", [2, 3, 4])
    def test_mixed_keys_same_result_for_any_worker_count(self, workers):
        """Test rejected fragments are kept apart one by one under any partitioning."""
        def build():
            return _tables(
                _person(0, "p0", key="person_id"), _person(1, "p1"), _person(2, "p2"),
                _person(3, "p3", key="person_id"), _person(4, "p4"),
                _person(5, "p5", key="person_id")
            )

        def snapshot(tables):
            return [(t.name, list(t.columns), t.to_records()) for t in tables]

        sequential = self._consolidate(build())
        parallel = self._consolidate(
            build(), Consolidator(self.options.replace(parallel=True, max_workers=workers))
        )

        assert sequential.names() == [
            "person", "person{[1]}_error", "person{[2]}_error", "person{[4]}_error"
        ]
        assert [r["name"] for r in sequential.get("person").rows] == ["p0", "p3", "p5"]
        assert snapshot(parallel) == snapshot(sequential)

    def test_namespace(self):
        """Test namespaces derive from the first table."""
        address = Table("address{[1]}", ["city"])
        address.add_row({"city": "Lyon"})

        result = self._consolidate(_tables(_person(0, "Ann"), address))

        assert result.get("person").namespace == "person_person"
        assert result.get("address").namespace == "person_address"

    def test_sanitize_and_key_removal(self):
        """Test name sanitation and primary key removal."""
        table = Table("Société{[0]}", ["e-mail"])
        table.set_primary_key("Société_id")
        table.add_row({"e-mail": "a@b.c", "Société_id": "1"})

        result = self._consolidate(_tables(table), Consolidator(ConverterOptions(parallel=False)))

        cleaned = result.get("Societe")
        assert cleaned is not None
        assert cleaned.columns == ["e_mail", "Societe_id"]
        assert cleaned.primary_key is None

    def test_cancelled(self):
        """Test a cancelled token stops merging."""
        token = CancellationToken()
        token.cancel()

        outcome = self.consolidator.consolidate(_tables(_person(0, "Ann"), _person(1, "Bob")), token)

        assert isinstance(outcome, Cancelled)

    @pytest.mark.parametrize("workers", [1, 2, 4])
    def test_group_by_root(self, workers):
        """Test grouping is independent of the worker count."""
        tables = _tables(_person(3, "a"), _person(1, "b"), Table("x{[2]}"))

        groups = Consolidator(ConverterOptions(max_workers=workers)).group_by_root(tables)

        assert groups == {"person": ["person{[1]}", "person{[3]}"], "x": ["x{[2]}"]}

    def test_unexpected_merge_error(self, monkeypatch):
        """Test an unexpected worker error resolves to Failed."""
        def broken_merge(self, other):
            raise RuntimeError("disk full")

        monkeypatch.setattr(Table, "merge", broken_merge)

        outcome = self.consolidator.consolidate(_tables(_person(0, "Ann"), _person(1, "Bob")))

        assert isinstance(outcome, Failed)
        assert str(outcome.error) == "disk full"
