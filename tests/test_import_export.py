"""Tests for SKU import and allocation export."""

import io
import logging
from decimal import Decimal

import pytest
from openpyxl import Workbook, load_workbook

from skualloc.engine.allocations import apply_percentage, auto_allocate
from skualloc.engine.errors import ValidationError
from skualloc.engine.periods import create_period, find_period_budget
from skualloc.engine.store import AllocationStore, AllocationValue
from skualloc.etl.allocation_export import (
    build_export_rows,
    export_csv,
    export_session,
    export_workbook,
    format_percentage,
    read_export,
)
from skualloc.etl.sku_import import (
    import_skus,
    parse_import_rows,
    read_csv_rows,
    read_excel_rows,
    read_upload,
)
from skualloc.models import Allocation, HierarchyDefinition, SkuData

from conftest import SAMPLE_ROWS, make_sku


def allocation_store(entries):
    store = AllocationStore()
    for (path, period), pct in entries.items():
        store.set(path, period, AllocationValue(percentage=Decimal(pct)))
    return store


class TestParseImportRows:
    """Tests for turning raw rows into SKUs."""

    def test_columns_in_first_row_order(self):
        data = parse_import_rows(SAMPLE_ROWS)

        assert data.hierarchy_columns == ["category", "color"]
        assert [s.sku_code for s in data.skus] == ["SKU001", "SKU002"]
        assert data.skus[0].unit_price == 1000
        assert data.skus[0].hierarchy_values == {"category": "A", "color": "Red"}

    def test_incomplete_rows_are_dropped(self):
        rows = SAMPLE_ROWS + [
            {"category": "B", "color": "Red", "sku_code": "", "unitprice": "10"},
            {"category": "B", "color": "Red", "sku_code": "SKU004", "unitprice": ""},
        ]
        data = parse_import_rows(rows)

        assert len(data.skus) == 2
        assert data.dropped == 2

    def test_empty_values_are_left_out(self):
        data = parse_import_rows([{"category": "A", "color": "", "sku_code": "S1", "unitprice": "5"}])
        assert data.skus[0].hierarchy_values == {"category": "A"}

    def test_thousands_separator(self):
        data = parse_import_rows([{"category": "A", "sku_code": "S1", "unitprice": "1,200"}])
        assert data.skus[0].unit_price == 1200

    @pytest.mark.parametrize("rows", [
        [],
        [{"category": "A", "sku_code": "S1"}],
        [{"category": "A", "sku_code": "S1", "unitprice": "12.5"}],
        [{"category": "A", "sku_code": "S1", "unitprice": "-3"}],
        [
            {"category": "A", "sku_code": "S1", "unitprice": "1"},
            {"category": "B", "sku_code": "S1", "unitprice": "2"},
        ],
    ])
    def test_invalid_input(self, rows):
        with pytest.raises(ValidationError):
            parse_import_rows(rows)

    def test_separator_in_value_is_logged(self, caplog):
        with caplog.at_level(logging.WARNING):
            parse_import_rows([{"category": "TV/Audio", "sku_code": "S1", "unitprice": "1"}])
        assert "path separator" in caplog.text


class TestReaders:
    """Tests for CSV and Excel readers."""

    def test_csv_with_bom(self):
        content = "\ufeffcategory,color,sku_code,unitprice\nA,Red,SKU001,1000\n".encode("utf-8")
        rows = read_csv_rows(content)

        assert rows == [{"category": "A", "color": "Red", "sku_code": "SKU001", "unitprice": "1000"}]

    def test_csv_from_path(self, tmp_path):
        path = tmp_path / "skus.csv"
        path.write_text("category,sku_code,unitprice\nA,S1,10\n", encoding="utf-8")

        assert read_csv_rows(path)[0]["sku_code"] == "S1"

    def test_excel(self):
        wb = Workbook()
        ws = wb.active
        ws.append(["category", "color", "sku_code", "unitprice"])
        ws.append(["A", "Red", "SKU001", 1000])
        buffer = io.BytesIO()
        wb.save(buffer)

        rows = read_excel_rows(buffer.getvalue())
        data = parse_import_rows(rows)

        assert data.hierarchy_columns == ["category", "color"]
        assert data.skus[0].unit_price == 1000

    def test_upload_dispatch_rejects_bad_encoding(self):
        with pytest.raises(ValidationError):
            read_upload("skus.csv", b"\xff\xfe\x00bad")


class TestImportSkus:
    """Tests for the destructive import."""

    def test_import_replaces_everything(self, db, budget_session):
        apply_percentage(db, budget_session, "A", "Q1", 100)

        stats = import_skus(db, budget_session, parse_import_rows([
            {"brand": "Acme", "sku_code": "N1", "unitprice": "50"},
        ]))

        assert stats["imported"] == 1
        assert stats["removed_allocations"] == 1
        assert stats["removed_skus"] == 2
        assert [s.sku_code for s in db.query(SkuData).all()] == ["N1"]
        columns = db.query(HierarchyDefinition).order_by(HierarchyDefinition.level).all()
        assert [d.column_name for d in columns] == ["brand"]
        assert db.query(Allocation).count() == 0
        assert find_period_budget(db, budget_session, "Q1").budget == 10_000_000

    def test_import_removes_every_period(self, db, budget_session):
        create_period(db, budget_session, "Q2", 1_000)

        import_skus(db, budget_session, parse_import_rows(SAMPLE_ROWS))

        assert db.query(Allocation).count() == 0


class TestExport:
    """Tests for the cumulative allocation export."""

    @pytest.fixture
    def table(self, skus, definitions):
        store = allocation_store({
            ("A", None): "100",
            ("A/Red", None): "40",
            ("A/Blue", None): "60",
            ("A/Red/SKU001", None): "100",
            ("A/Blue/SKU002", None): "50",
            ("A", "Q2"): "100",
        })
        return build_export_rows(skus, definitions, store, {None: 10_000_000, "Q2": 1_000_000})

    def test_headers(self, table):
        assert table.headers == [
            "category", "color", "sku_code",
            "default(%)", "Q2(%)",
            "unitprice", "total_amount", "total_quantity",
        ]

    def test_cumulative_values(self, table):
        red, blue = table.rows

        assert format_percentage(red.percentages[0]) == "40.0000"
        assert format_percentage(blue.percentages[0]) == "30.0000"
        assert red.total_amount == 4_000_000
        assert red.total_quantity == 4000
        assert blue.total_amount == 3_000_000
        assert blue.total_quantity == 1500

    def test_missing_level_is_blank(self, table):
        """Q2 only allocates the top level, so every SKU is blank there."""
        assert [row.percentages[1] for row in table.rows] == [None, None]

    def test_sku_rows_are_optional(self, skus, definitions):
        """Allocating every hierarchy level is enough; SKUs inherit their parent's share."""
        store = allocation_store({
            ("A", None): "100",
            ("A/Red", None): "40",
            ("A/Blue", None): "60",
        })
        table = build_export_rows(skus, definitions, store, {None: 10_000_000})
        red, blue = table.rows

        assert format_percentage(red.percentages[0]) == "40.0000"
        assert format_percentage(blue.percentages[0]) == "60.0000"
        assert (red.total_amount, red.total_quantity) == (4_000_000, 4000)
        assert (blue.total_amount, blue.total_quantity) == (6_000_000, 3000)

    def test_zero_sku_row_is_ignored(self, skus, definitions):
        store = allocation_store({
            ("A", None): "100",
            ("A/Red", None): "40",
            ("A/Red/SKU001", None): "0",
        })
        table = build_export_rows(skus, definitions, store, {None: 10_000_000})

        assert format_percentage(table.rows[0].percentages[0]) == "40.0000"

    def test_zero_percent_is_blank(self, skus, definitions):
        store = allocation_store({
            ("A", None): "100",
            ("A/Red", None): "0",
            ("A/Red/SKU001", None): "100",
        })
        table = build_export_rows(skus, definitions, store, {None: 1_000})
        assert table.rows[0].percentages == [None]
        assert table.rows[0].total_amount == 0

    def test_totals_sum_over_periods(self, skus, definitions):
        entries = {}
        for period in (None, "Q2"):
            entries[("A", period)] = "100"
            entries[("A/Red", period)] = "50"
            entries[("A/Red/SKU001", period)] = "100"
        table = build_export_rows(skus, definitions, allocation_store(entries), {None: 1_000, "Q2": 3_000})

        assert table.rows[0].total_amount == 500 + 1_500
        assert table.rows[0].total_quantity == 0 + 1

    def test_half_up_rounding(self, skus, definitions):
        """0.50% of 0.01% of 100% is 0.00005%, shown as 0.0001."""
        store = allocation_store({
            ("A", None): "0.5",
            ("A/Red", None): "0.01",
            ("A/Red/SKU001", None): "100",
        })
        table = build_export_rows(skus, definitions, store, {None: 1_000})
        assert format_percentage(table.rows[0].percentages[0]) == "0.0001"

    def test_csv_format(self, table):
        text = export_csv(table)

        assert text.startswith("\ufeff")
        lines = text[1:].split("\n")
        assert lines[0] == "category,color,sku_code,default(%),Q2(%),unitprice,total_amount,total_quantity"
        assert lines[1] == "A,Red,SKU001,40.0000,,1000,4000000,4000"
        assert lines[2] == "A,Blue,SKU002,30.0000,,2000,3000000,1500"
        assert "\r" not in text

    def test_csv_quoting(self, definitions):
        skus = [make_sku("S1", 10, category='Big, "Bold"', color="Line\nBreak")]
        table = build_export_rows(skus, definitions, AllocationStore(), {None: 1_000})

        text = export_csv(table)
        assert '"Big, ""Bold""","Line\nBreak",S1,,10,,' in text

    def test_round_trip(self, table):
        """Parsing the CSV back yields the same cumulative percentages."""
        parsed = read_export(export_csv(table))

        for row in table.rows:
            expected = {
                period: None if pct is None else Decimal(format_percentage(pct))
                for period, pct in zip(table.periods, row.percentages)
            }
            assert parsed[row.sku_code] == expected

    def test_workbook(self, table):
        wb = load_workbook(io.BytesIO(export_workbook(table)))
        ws = wb.active

        assert ws.title == "Allocation"
        assert [c.value for c in ws[1]] == table.headers
        assert ws["A1"].font.bold
        assert [c.value for c in ws[2]] == ["A", "Red", "SKU001", 40.0, None, 1000, 4000000, 4000]

    def test_export_session(self, db, budget_session):
        apply_percentage(db, budget_session, "A", "Q1", 100)
        apply_percentage(db, budget_session, "A/Red", "Q1", 40)
        apply_percentage(db, budget_session, "A/Red/SKU001", "Q1", 100)

        table = export_session(db, budget_session)

        assert table.periods == ["Q1"]
        assert format_percentage(table.rows[0].percentages[0]) == "40.0000"
        assert table.rows[1].percentages == [None]

    def test_export_session_after_auto_allocate(self, db, budget_session):
        auto_allocate(db, budget_session, 1, "Q1")
        auto_allocate(db, budget_session, 2, "Q1")

        text = export_csv(export_session(db, budget_session))

        assert "A,Red,SKU001,50.0000,1000,5000000,5000" in text
        assert "A,Blue,SKU002,50.0000,2000,5000000,2500" in text
