import json
from datetime import datetime, timedelta, timezone

import pytest

from gigsync.errors import SchemaError
from gigsync.models import (
    SaleWindow,
    dump_name_list,
    dump_sale_windows,
    load_name_list,
    load_sale_windows,
)

PRESALE = SaleWindow("Citi Cardmember Presale", datetime(2026, 6, 3, 14, 0, tzinfo=timezone.utc),
                     datetime(2026, 6, 5, 3, 0, tzinfo=timezone.utc), "https://presale.example.com")
ONSALE = SaleWindow("Public Onsale", datetime(2026, 6, 6, 15, 0, tzinfo=timezone.utc))


def test_sale_windows_document_is_versioned_and_ordered():
    text = dump_sale_windows([ONSALE, PRESALE])

    doc = json.loads(text)
    assert doc["version"] == 1
    assert [item["name"] for item in doc["items"]] == ["Citi Cardmember Presale", "Public Onsale"]
    assert load_sale_windows(text) == [PRESALE, ONSALE]


def test_sale_windows_ordered_by_instant_across_offsets():
    central = SaleWindow("Fan Club Presale", datetime(2026, 6, 3, 10, 0, tzinfo=timezone(timedelta(hours=-5))))
    utc = SaleWindow("Citi Cardmember Presale", datetime(2026, 6, 3, 14, 0, tzinfo=timezone.utc))

    doc = json.loads(dump_sale_windows([central, utc]))

    assert [item["name"] for item in doc["items"]] == ["Citi Cardmember Presale", "Fan Club Presale"]
    assert doc["items"][1]["start"] == "2026-06-03T10:00:00-05:00"


@pytest.mark.parametrize("window", [
    SaleWindow("", datetime(2026, 6, 3, tzinfo=timezone.utc)),
    SaleWindow("Presale", datetime(2026, 6, 3)),
    SaleWindow("Presale", datetime(2026, 6, 3, tzinfo=timezone.utc), datetime(2026, 6, 2, tzinfo=timezone.utc)),
])
def test_malformed_sale_window_is_never_written(window):
    with pytest.raises(SchemaError):
        dump_sale_windows([window])


def test_sale_windows_reject_foreign_items():
    with pytest.raises(SchemaError, match="expected SaleWindow"):
        dump_sale_windows([{"name": "Presale", "start": "2026-06-03T14:00:00+00:00"}])


def test_loading_rejects_bad_documents():
    assert load_sale_windows(None) == []
    with pytest.raises(SchemaError, match="invalid JSON"):
        load_sale_windows("{not json")
    with pytest.raises(SchemaError, match="version"):
        load_sale_windows(json.dumps({"version": 2, "items": []}))
    with pytest.raises(SchemaError, match="items"):
        load_sale_windows(json.dumps({"version": 1, "items": {}}))


def test_name_lists():
    assert load_name_list(dump_name_list([" Abraham Alexander ", "Jackie Venson"])) == ["Abraham Alexander", "Jackie Venson"]
    with pytest.raises(SchemaError):
        dump_name_list(["Abraham Alexander", "  "])
    with pytest.raises(SchemaError):
        load_name_list(json.dumps({"version": 1, "items": ["ok", 3]}))
