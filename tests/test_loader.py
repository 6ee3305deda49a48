import pytest

from polar4_api.errors import LoadError
from polar4_api.loader import (
    LoadStats, detect_encoding, iter_records, iter_rows, load_table, parse_quintile, resolve_columns,
)


def test_load_sample(sample_csv):
    table = load_table(sample_csv)
    assert len(table) == 4

    record = table.get("AB101AA")
    assert record.canonical_key == "AB101AA"
    assert record.display_form == "AB10 1AA"
    assert record.quintile == 2


def test_quoted_values_are_unquoted(sample_csv):
    record = load_table(sample_csv).get("EH11YZ")
    assert record.display_form == "EH1 1YZ"
    assert record.quintile == 1


def test_missing_file_raises_load_error(tmp_path):
    with pytest.raises(LoadError, match="not found"):
        load_table(tmp_path / "nope.csv")


def test_empty_file_raises_load_error(write_csv):
    with pytest.raises(LoadError):
        load_table(write_csv(""))


def test_missing_columns_raise_load_error(write_csv):
    path = write_csv("Postcode,Region\nAB10 1AA,Scotland\n")
    with pytest.raises(LoadError, match="required columns"):
        load_table(path)


def test_duplicate_key_last_row_wins(write_csv):
    path = write_csv("Postcode,POLAR4_quintile\nAB10 1AA,2\nab101aa,4\n")
    table = load_table(path)
    assert len(table) == 1
    assert table.get("AB101AA").display_form == "ab101aa"
    assert table.get("AB101AA").quintile == 4


def test_out_of_range_quintile_is_dropped(write_csv):
    path = write_csv("Postcode,POLAR4_quintile\nAB10 1AA,9\nAB10 1AB,3\n")
    table = load_table(path)
    assert table.get("AB101AA") is None
    assert table.get("AB101AB").quintile == 3


def test_bad_rows_are_skipped_silently(write_csv):
    path = write_csv(
        "Postcode,POLAR4_quintile\n"
        ",3\n"
        "AB10 1AA,n/a\n"
        "AB10-1AB,3\n"
        "AB10 1AD\n"
        "AB10 1AE,0\n"
        "AB10 1AF,5\n"
    )
    stats = LoadStats()
    records = list(iter_records(path, stats))
    assert [r.canonical_key for r in records] == ["AB101AF"]
    assert stats.rows == 6
    assert stats.skipped == 5
    assert stats.accepted == 1


@pytest.mark.parametrize("headers", [
    ["Postcode", "POLAR4_quintile"],
    ["POSTCODE", "polar4"],
    ["postcode", "POLAR4 quintile (2018)"],
    ["LSOA", "  Postcode ", "\"Polar4\""],
])
def test_column_aliases(headers):
    postcode_index, polar4_index = resolve_columns(headers)
    assert "postcode" in headers[postcode_index].lower()
    assert "polar4" in headers[polar4_index].lower()


def test_postcode_column_must_match_exactly():
    with pytest.raises(LoadError):
        resolve_columns(["Postcode district", "POLAR4"])


def test_extra_columns_and_order(write_csv):
    path = write_csv("polar4,Region,postcode\n5,North,NE1 4ST\n")
    assert load_table(path).get("NE14ST").quintile == 5


@pytest.mark.parametrize("value,expected", [
    ("1", 1), (" 5 ", 5), ("\"3\"", 3), ("0", None), ("6", None), ("2.5", None), ("", None), ("x", None),
])
def test_parse_quintile(value, expected):
    assert parse_quintile(value) == expected


def test_utf8_bom_header(write_csv):
    path = write_csv("\ufeffPostcode,POLAR4_quintile\nAB10 1AA,2\n")
    assert load_table(path).get("AB101AA").quintile == 2


def test_iter_rows_is_lazy_and_single_use(sample_csv):
    rows = iter_rows(sample_csv)
    assert next(rows) == ["Postcode", "POLAR4_quintile"]
    assert len(list(rows)) == 4
    assert list(rows) == []


def test_latin1_source(write_csv):
    path = write_csv("Postcode,Région,POLAR4\nAB10 1AA,Montréal,3\n", encoding="latin-1")
    assert load_table(path).get("AB101AA").quintile == 3


def test_non_ascii_after_long_ascii_prefix(write_csv):
    rows = "".join(f"AB{i:04d}AA,2,Aberdeen\n" for i in range(5000))
    path = write_csv("Postcode,POLAR4,Area\n" + rows + "LL77 7AA,2,Ynys Môn\n")
    assert path.stat().st_size > 64 * 1024

    table = load_table(path)
    assert len(table) == 5001
    assert table.get("LL777AA").display_form == "LL77 7AA"


def test_ascii_is_read_as_utf8(sample_csv):
    assert detect_encoding(sample_csv) == "utf-8"
