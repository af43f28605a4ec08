"""
Item catalog tests: creation rules, code normalization, updates, deletes,
listing filters.
"""

import pytest

from toolcrib.errors import DuplicateCodeError, NotFoundError, ValidationError
from toolcrib.models import Item, Transaction
from toolcrib.services import catalog_service, transition_service


class TestCreateItem:

    def test_new_item_starts_inside(self, client, admin_headers):
        resp = client.post(
            "/api/items",
            json={"code": " drl-01 ", "name": "Drill", "category": "Power Tools", "imageRef": "drill.png"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        item = resp.json["item"]
        assert item["code"] == "DRL-01"
        assert item["status"] == "Inside"
        assert item["checkout_person"] is None
        assert item["image_ref"] == "drill.png"

    def test_duplicate_code_is_case_insensitive(self, drill):
        with pytest.raises(DuplicateCodeError):
            catalog_service.create_item({"code": "drl-01", "name": "Other drill", "category": "Power Tools"})

    def test_duplicate_code_http(self, client, admin_headers, drill):
        resp = client.post(
            "/api/items",
            json={"code": "DRL-01", "name": "Drill 2", "category": "Power Tools"},
            headers=admin_headers,
        )
        assert resp.status_code == 409
        assert resp.json["kind"] == "DuplicateCode"

    def test_missing_required_fields_reported_together(self, app):
        with pytest.raises(ValidationError) as exc:
            catalog_service.create_item({"code": "X-1"})
        assert set(exc.value.fields) == {"name", "category"}

    def test_blank_name_rejected(self, app):
        with pytest.raises(ValidationError) as exc:
            catalog_service.create_item({"code": "X-1", "name": "   ", "category": "Misc"})
        assert "name" in exc.value.fields

    def test_blank_code_rejected(self, app):
        with pytest.raises(ValidationError) as exc:
            catalog_service.create_item({"code": "  ", "name": "Thing", "category": "Misc"})
        assert "code" in exc.value.fields

    def test_status_not_writable(self, app):
        with pytest.raises(ValidationError) as exc:
            catalog_service.create_item({"code": "X-1", "name": "Thing", "category": "Misc", "status": "Outside"})
        assert "status" in exc.value.fields

    def test_overlong_code_rejected(self, app):
        with pytest.raises(ValidationError):
            catalog_service.create_item({"code": "X" * 65, "name": "Thing", "category": "Misc"})


class TestUpdateItem:

    def test_update_descriptive_fields(self, client, admin_headers, drill):
        resp = client.put(
            f"/api/items/{drill.id}",
            json={"name": "Cordless Drill", "description": "18V"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json["item"]["name"] == "Cordless Drill"
        assert resp.json["item"]["description"] == "18V"
        assert resp.json["item"]["status"] == "Inside"

    def test_same_code_in_other_case_accepted(self, drill):
        item = catalog_service.update_item(drill.id, {"code": "drl-01", "name": "Drill v2"})
        assert item.code == "DRL-01"
        assert item.name == "Drill v2"

    def test_code_change_rejected(self, client, admin_headers, drill):
        resp = client.put(f"/api/items/{drill.id}", json={"code": "DRL-02"}, headers=admin_headers)
        assert resp.status_code == 400
        assert "code" in resp.json["fields"]

    def test_status_fields_rejected(self, drill):
        with pytest.raises(ValidationError) as exc:
            catalog_service.update_item(drill.id, {"status": "Outside", "checkout_person": "Eve"})
        assert set(exc.value.fields) == {"status", "checkout_person"}

    def test_update_keeps_loan_fields(self, drill, admin_user):
        transition_service.check_out("DRL-01", user=admin_user, checkout_person="John", project_name="Shelf")
        item = catalog_service.update_item(drill.id, {"category": "Drills"})
        assert item.status == "Outside"
        assert item.checkout_person == "John"

    def test_update_missing_item(self, app):
        with pytest.raises(NotFoundError):
            catalog_service.update_item(9999, {"name": "Ghost"})

    def test_blank_description_clears_it(self, make_item):
        item = make_item("HAM-01", description="Claw hammer")
        item = catalog_service.update_item(item.id, {"description": ""})
        assert item.description is None


class TestDeleteItem:

    def test_delete_keeps_history(self, client, admin_headers, drill, admin_user, db_session):
        transition_service.check_out("DRL-01", user=admin_user, checkout_person="John", project_name="Shelf")
        item_id = drill.id

        resp = client.delete(f"/api/items/{item_id}", headers=admin_headers)
        assert resp.status_code == 200

        db_session.expire_all()
        assert db_session.get(Item, item_id) is None
        history = db_session.query(Transaction).filter_by(item_id=item_id).all()
        assert len(history) == 1
        assert history[0].item_code == "DRL-01"
        assert history[0].item_name == "Drill"

        resp = client.get(f"/api/transactions/item/{item_id}", headers=admin_headers)
        assert len(resp.json["transactions"]) == 1

    def test_delete_missing(self, client, admin_headers):
        assert client.delete("/api/items/424242", headers=admin_headers).status_code == 404

    def test_code_reusable_after_delete(self, drill):
        catalog_service.delete_item(drill.id)
        again = catalog_service.create_item({"code": "DRL-01", "name": "New drill", "category": "Power Tools"})
        assert again.status == "Inside"


class TestLookupAndListing:

    def test_get_by_code_normalizes(self, client, staff_headers, drill):
        resp = client.get("/api/items/code/%20drl-01", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["item"]["id"] == drill.id

    def test_get_by_code_unknown(self, client, staff_headers):
        resp = client.get("/api/items/code/NOPE", headers=staff_headers)
        assert resp.status_code == 404
        assert resp.json["kind"] == "NotFound"

    def test_filters(self, make_item, admin_user):
        make_item("SAW-01", name="Hand saw", category="Hand Tools")
        make_item("SAW-02", name="Jigsaw", category="Power Tools")
        make_item("HAM-01", name="Hammer", category="Hand Tools")
        transition_service.check_out("SAW-02", user=admin_user, checkout_person="Mia", project_name="Deck")

        assert [i.code for i in catalog_service.list_items()] == ["HAM-01", "SAW-01", "SAW-02"]
        assert [i.code for i in catalog_service.list_items(status="Outside")] == ["SAW-02"]
        assert [i.code for i in catalog_service.list_items(category="Hand Tools")] == ["HAM-01", "SAW-01"]
        assert [i.code for i in catalog_service.list_items(search="SAW")] == ["SAW-01", "SAW-02"]
        assert [i.code for i in catalog_service.list_items(search="deck")] == ["SAW-02"]
        assert [i.code for i in catalog_service.list_items(sort="-name")] == ["SAW-02", "SAW-01", "HAM-01"]

    def test_search_wildcards_match_literally(self, make_item, admin_user):
        make_item("DRL-01", name="Drill")
        make_item("BOX_02", name="Parts box 50%")
        make_item("SAW-01", name="Saw")
        transition_service.check_out("SAW-01", user=admin_user, checkout_person="J_Smith", project_name="Deck")

        assert [i.code for i in catalog_service.list_items(search="_")] == ["BOX_02", "SAW-01"]
        assert [i.code for i in catalog_service.list_items(search="%")] == ["BOX_02"]
        assert [i.code for i in catalog_service.list_items(search="\\")] == []
        assert catalog_service.list_items(search="d_ill") == []

    def test_bad_status_filter(self, client, staff_headers):
        resp = client.get("/api/items?status=Lost", headers=staff_headers)
        assert resp.status_code == 400

    def test_bad_sort(self, app):
        with pytest.raises(ValidationError):
            catalog_service.list_items(sort="password")

    def test_categories(self, client, staff_headers, make_item):
        make_item("A-1", category="Clamps")
        make_item("A-2", category="Clamps")
        make_item("B-1", category="Saws")
        resp = client.get("/api/items/categories", headers=staff_headers)
        assert resp.json["categories"] == ["Clamps", "Saws"]
