from __future__ import annotations

import pytest

from attr_import.csvio.reader import HeaderMap
from attr_import.models.columns import ColumnKind, classify_column


@pytest.mark.parametrize(
    "name,kind,store_code",
    [
        ("label", ColumnKind.SCALAR, None),
        ("input", ColumnKind.SCALAR, None),
        ("attribute_code", ColumnKind.RESERVED, None),
        ("option", ColumnKind.RESERVED, None),
        ("option_order", ColumnKind.RESERVED, None),
        ("option_strategy", ColumnKind.RESERVED, None),
        ("group_order", ColumnKind.RESERVED, None),
        ("label_de", ColumnKind.STORE_LABEL, "de"),
        ("option_fr", ColumnKind.STORE_OPTION, "fr"),
        ("label_", ColumnKind.RESERVED, None),
        ("option_", ColumnKind.RESERVED, None),
    ],
)
def test_classify_column(name, kind, store_code):
    column = classify_column(name, 3)
    assert column.kind is kind
    assert column.store_code == store_code
    assert column.index == 3


def test_header_map_of_kind_uses_normalized_names():
    header_map = HeaderMap(["Attribute_Code", "Label_DE", "Option_FR", "Is_Required"])
    assert [c.store_code for c in header_map.of_kind(ColumnKind.STORE_LABEL)] == ["de"]
    assert [c.store_code for c in header_map.of_kind(ColumnKind.STORE_OPTION)] == ["fr"]
    assert [c.name for c in header_map.of_kind(ColumnKind.SCALAR)] == ["is_required"]
