#!/usr/bin/env python3
"""
Example usage of the JSON relational converter.

Converts a small nested document into related tables and writes them
as CSV files next to an index.
"""

import asyncio
import json
import tempfile
from pathlib import Path

from json_relational import ConverterOptions, JsonTableConverter
from json_relational.io import TableWriter


async def main():
    """Main example function."""
    print("JSON Relational Example")
    print("=" * 50)

    sample_data = {
        "store": "Corner Shop",
        "city": "Lyon",
        "customers": [
            {
                "name": "Alice Johnson",
                "email": "alice@example.com",
                "interests": ["reading", "hiking"],
                "orders": [
                    {"number": 1001, "total": 25.5},
                    {"number": 1002, "total": 12.0}
                ]
            },
            {
                "name": "Bob Smith",
                "email": "bob@example.com",
                "interests": ["coding"],
                "orders": [
                    {"number": 1003, "total": 99.9}
                ]
            }
        ]
    }

    json_string = json.dumps(sample_data, indent=2)
    print(f"Original JSON size: {len(json_string)} characters\n")

    converter = JsonTableConverter(
        ConverterOptions(output_name="shop", remove_primary_key=False),
        progress=lambda message: print(f"   … {message}")
    )

    report = converter.inspect(json_string)
    print(f"Patterns found: {report['patterns']}")
    for level, count in report["levels"].items():
        print(f"   Level {level}: {count} pattern(s)")
    print()

    result = await converter.convert_async(json_string)

    if not result.success:
        print(f"❌ Conversion {result.status.value}")
        for error in result.errors or []:
            print(f"   Error: {error}")
        return

    print(f"\n✅ Success! {len(result.tables)} table(s)")
    for table in result.tables:
        keys = f"pk={table.primary_key}, fk={table.foreign_keys}"
        print(f"   {table.name}: {len(table)} row(s), {keys}")

    with tempfile.TemporaryDirectory() as temp_dir:
        written = TableWriter().write_tables(result.tables, temp_dir)
        print(f"\nCreated files in {temp_dir}:")
        for entry in written["files_written"]:
            print(f"   {entry['filename']} ({entry['size']} bytes)")

        customers = Path(temp_dir) / "customers.csv"
        if customers.exists():
            print(f"\nContent of {customers.name}:")
            print(customers.read_text(encoding="utf-8"))

    if result.metrics:
        print(f"Duration: {result.metrics.duration:.3f}s, "
              f"memory peak: {result.metrics.memory_peak_mb:.1f} MB")


if __name__ == "__main__":
    asyncio.run(main())
