import pytest

from deeptransfer.core.transfer.columns import csv_header, csv_line, escape_csv, flat_columns
from deeptransfer.core.transfer.errors import UnknownEntity

from helpers import make_catalog


def test_only_plain_scalars_are_projected():
    cat = make_catalog(
        {
            "s.Books": {
                "elements": [
                    {"name": "ID", "key": True},
                    {"name": "title"},
                    {"name": "author", "kind": "association", "target": "s.Authors"},
                    {"name": "texts", "kind": "composition", "target": "s.Texts"},
                ]
            },
            "s.Texts": {"elements": [{"name": "locale", "key": True}]},
        }
    )
    assert flat_columns(cat, "s.Books") == ["ID", "title"]


def test_builtin_books_columns(catalog):
    # virtual, structured and audit fields are left out
    assert flat_columns(catalog, "my.bookshop.Books") == ["ID", "title", "descr", "stock", "price", "currency_code"]


def test_technical_names_are_excluded_even_when_not_flagged():
    cat = make_catalog({"X": {"elements": [{"name": "ID", "key": True}, {"name": "_createdAt"}, {"name": "v"}]}})
    assert flat_columns(cat, "X") == ["ID", "v"]


def test_entity_without_scalars_yields_empty_list():
    cat = make_catalog(
        {
            "X": {"elements": [{"name": "kids", "kind": "composition", "target": "Y"}]},
            "Y": {"elements": [{"name": "ID", "key": True}]},
        }
    )
    assert flat_columns(cat, "X") == []


def test_unknown_entity():
    with pytest.raises(UnknownEntity):
        flat_columns(make_catalog({}), "Nope")


@pytest.mark.parametrize(
    "value, expected",
    [
        ('He said "hi"; bye', '"He said ""hi""; bye"'),
        ('say "hi"', 'say ""hi""'),
        (42, "42"),
        (None, ""),
        ("", ""),
        ("a;b", '"a;b"'),
        ("line1\nline2", '"line1\nline2"'),
        ("cr\r", '"cr\r"'),
        (True, "true"),
        (False, "false"),
        (1.5, "1.5"),
        ({"a": 1}, '{""a"":1}'),
    ],
)
def test_escape_csv(value, expected):
    assert escape_csv(value) == expected


def test_csv_line_and_header():
    assert csv_header(["ID", "title"]) == "ID;title\n"
    assert csv_line(["b-1", 'A "quoted"; title', None, 3]) == 'b-1;"A ""quoted""; title";;3\n'
