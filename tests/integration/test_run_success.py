from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from attr_import.cli import main as cli_main
from attr_import.db.memory import DEFAULT_SET_ID, InMemoryCatalog
from attr_import.logging.init import reset_logging

"""Integration: end-to-end CLI runs against a shared in-memory catalog.

DISABLE_DB_CONNECT=1 selects the in-memory catalog; the class is patched to
return one shared instance so consecutive runs see each other's changes.
"""


@pytest.fixture
def shared_catalog(temp_workdir: Path, write_config, mock_mode) -> InMemoryCatalog:
    catalog = InMemoryCatalog({"de": 1, "fr": 2})
    with patch("attr_import.cli.__main__.InMemoryCatalog", return_value=catalog):
        yield catalog


def _run(write_csv, content: str, *args: str) -> int:
    reset_logging()
    write_csv(content)
    return cli_main(["attributes.csv", *args])


def _options(catalog: InMemoryCatalog, code: str) -> list[tuple[str, int]]:
    return [(o.label, o.sort_order) for o in catalog.list_options(code)]


def test_add_then_update_without_duplicates(shared_catalog, write_csv, capsys):
    code = _run(
        write_csv,
        "attribute_code,label,input,option,default\ncolor,Color,select,Red;Green;Blue,Green\n",
        "--behavior", "add",
    )
    out = capsys.readouterr().out
    assert code == 0
    assert "added=1" in out
    assert [label for label, _ in _options(shared_catalog, "color")] == ["Red", "Green", "Blue"]
    green = next(o for o in shared_catalog.list_options("color") if o.label == "Green")
    attribute = shared_catalog.get_attribute("color")
    assert attribute.frontend_input == "select"
    assert attribute.default_value == str(green.option_id)
    assert DEFAULT_SET_ID in shared_catalog.assignments["color"]

    code = _run(
        write_csv,
        "attribute_code,label,input,option,default\ncolor,Color,select,Red;Green;Blue;Yellow,Green\n",
        "--behavior", "update",
    )
    out = capsys.readouterr().out
    assert code == 0
    assert "updated=1" in out
    labels = [label for label, _ in _options(shared_catalog, "color")]
    assert sorted(labels) == ["Blue", "Green", "Red", "Yellow"]
    added = [c[2].label for c in shared_catalog.calls if c[0] == "add_option"]
    assert added == ["Yellow"]


def test_option_order_column(shared_catalog, write_csv, capsys):
    code = _run(
        write_csv,
        "attribute_code,input,option,option_order\ncolor,select,Red;Green;Blue,20;10;30\n",
    )
    assert code == 0
    assert _options(shared_catalog, "color") == [("Green", 10), ("Red", 20), ("Blue", 30)]


def test_replace_strategy(shared_catalog, write_csv, capsys):
    assert _run(write_csv, "attribute_code,input,option\nmaterial,select,Red\n") == 0
    code = _run(
        write_csv,
        "attribute_code,input,option,option_strategy\nmaterial,select,Cotton;Linen,replace\n",
        "-b", "update",
    )
    assert code == 0
    assert {label for label, _ in _options(shared_catalog, "material")} == {"Cotton", "Linen"}


def test_empty_option_cell_causes_no_option_mutation(shared_catalog, write_csv, capsys):
    assert _run(write_csv, "attribute_code,input,option\nshape,select,Round\n") == 0
    shared_catalog.calls.clear()
    assert _run(write_csv, "attribute_code,input,option\nshape,select,\n", "-b", "update") == 0
    assert not any(c[0] in ("add_option", "delete_option") for c in shared_catalog.calls)
    assert _options(shared_catalog, "shape") == [("Round", 0)]


def test_store_labels_and_attribute_sets(shared_catalog, write_csv, capsys):
    code = _run(
        write_csv,
        "attribute_code,label,label_de,label_fr,input,option,option_de,attribute_set,group,sort_order\n"
        "color,Color,Farbe,Couleur,select,Red;Green,Rot;Grün,Clothing;Default,Details,40\n",
    )
    assert code == 0
    attribute = shared_catalog.get_attribute("color")
    assert {(sl.store_id, sl.label) for sl in attribute.store_labels} == {(1, "Farbe"), (2, "Couleur")}
    red = shared_catalog.list_options("color")[0]
    assert [(sl.store_id, sl.label) for sl in red.store_labels] == [(1, "Rot")]
    clothing = shared_catalog.get_attribute_set("Clothing")
    assignments = shared_catalog.assignments["color"]
    assert set(assignments) == {clothing.attribute_set_id, DEFAULT_SET_ID}
    group_id, sort_order = assignments[clothing.attribute_set_id]
    assert shared_catalog.group_name(group_id) == "Details"
    assert sort_order == 40


def test_delete_attributes(shared_catalog, write_csv, capsys):
    assert _run(write_csv, "attribute_code,label\ncolor,Color\nsize,Size\n") == 0
    code = _run(write_csv, "attribute_code\ncolor\nmissing\n", "-b", "delete")
    out = capsys.readouterr().out
    assert code == 0
    assert "deleted=1 skipped=1 errors=0" in out
    assert set(shared_catalog.attributes) == {"size"}


def test_input_type_change_does_not_duplicate_options(shared_catalog, write_csv, capsys):
    assert _run(write_csv, "attribute_code,input,option\ncolor,multiselect,Red\n") == 0
    red_id = shared_catalog.list_options("color")[0].option_id

    code = _run(
        write_csv,
        "attribute_code,input,option,default\ncolor,select,Red;Green,Red\n",
        "--behavior", "update",
    )

    out = capsys.readouterr().out
    assert code == 0
    assert "WARN The frontend input type for attribute 'color' is changing from 'multiselect' to 'select'" in out
    labels = [label for label, _ in _options(shared_catalog, "color")]
    assert labels.count("Red") == 1
    assert sorted(labels) == ["Green", "Red"]
    assert shared_catalog.get_attribute("color").default_value == str(red_id)
