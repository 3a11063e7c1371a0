# Overview: Pytest coverage for the stock adjustment routes.

"""
Stock adjustment route tests.

Malformed adjustment bodies answer 400 with an error and details, and
write nothing.
"""

import pytest

from duka.extensions import db
from duka.models import StockAdjustment


class TestCreateAdjustmentRoute:

    def test_damage_created(self, client, owner_headers, product_a):
        resp = client.post("/api/stock/adjustments", json={
            "product_id": product_a.id,
            "adjustment_type": "damage",
            "quantity": 2,
            "reason": "Wet sacks",
            "warehouse_location": "Back store",
        }, headers=owner_headers)

        assert resp.status_code == 201, resp.get_json()
        data = resp.get_json()
        assert data["adjustment"]["warehouse_location"] == "Back store"
        assert data["stock"]["damaged"] == 2

    @pytest.mark.parametrize(
        "extra,field",
        [
            ({"adjustment_type": "damage", "reason": 123}, "reason"),
            ({"adjustment_type": "receive", "notes": {"x": 1}}, "notes"),
            ({"adjustment_type": "receive", "warehouse_location": 7}, "warehouse_location"),
        ],
    )
    def test_non_string_text_fields_rejected(self, client, owner_headers, product_a, extra, field):
        before = db.session.query(StockAdjustment).count()

        resp = client.post("/api/stock/adjustments", json={
            "product_id": product_a.id,
            "quantity": 1,
            **extra,
        }, headers=owner_headers)

        assert resp.status_code == 400
        body = resp.get_json()
        assert body["error"] == f"{field} must be a string"
        assert body["details"] == {"field": field}
        assert db.session.query(StockAdjustment).count() == before
