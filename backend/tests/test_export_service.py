"""
CSV export tests.
"""

import pytest

from duka.services.export_service import ExportError, to_csv, csv_response, safe_filename


def test_header_from_first_row_keys():
    text = to_csv([
        {"Name": "Sugar", "Qty": 3},
        {"Name": "Rice", "Qty": 1},
    ])
    assert text == "Name,Qty\nSugar,3\nRice,1\n"


def test_n_rows_give_n_plus_one_lines():
    rows = [{"a": i, "b": i * 2} for i in range(7)]
    assert len(to_csv(rows).splitlines()) == 8


def test_cells_are_quoted_when_needed():
    text = to_csv([{"Name": 'Maize, "white"', "Note": "line1\nline2"}])
    assert '"Maize, ""white"""' in text
    assert '"line1\nline2"' in text


def test_none_and_bool_cells():
    text = to_csv([{"a": None, "b": True, "c": False}])
    assert text.splitlines()[1] == ",true,false"


def test_missing_keys_become_empty_cells():
    text = to_csv([{"a": 1, "b": 2}, {"a": 3}])
    assert text.splitlines()[2] == "3,"


def test_empty_rows_rejected():
    with pytest.raises(ExportError, match="No data"):
        to_csv([])


def test_nested_values_rejected():
    with pytest.raises(ExportError):
        to_csv([{"a": {"nested": 1}}])


def test_non_dict_rows_rejected():
    with pytest.raises(ExportError, match="Rows must be dicts"):
        to_csv(["a", "b"])
    with pytest.raises(ExportError, match="Rows must be dicts"):
        to_csv([{"a": 1}, ("a", 2)])


def test_unexpected_columns_rejected():
    with pytest.raises(ExportError, match="Unexpected columns"):
        to_csv([{"a": 1}, {"a": 2, "z": 3}])


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Payroll Register March 2026", "Payroll_Register_March_2026"),
        ("../etc/passwd", "etc_passwd"),
        ("   ", "export"),
    ],
)
def test_safe_filename(raw, expected):
    assert safe_filename(raw) == expected


def test_csv_response_headers(app):
    response = csv_response([{"a": 1}], "NSSF_Report_March_2026")

    assert response.mimetype == "text/csv"
    assert response.headers["Content-Disposition"] == 'attachment; filename="NSSF_Report_March_2026.csv"'
    assert response.get_data(as_text=True) == "a\n1\n"


def test_csv_response_keeps_existing_suffix(app):
    response = csv_response([{"a": 1}], "products.csv")
    assert response.headers["Content-Disposition"].endswith('filename="products.csv"')
