# Overview: Pytest coverage for the sale coordinator and its stock bookkeeping.

import pytest
from sqlalchemy.exc import SQLAlchemyError

from shopdesk.errors import (
    AuthError,
    InsufficientStockError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from shopdesk.models import Sale, SaleItem
from shopdesk.services import catalog_service, sale_ledger, sales_service, sale_query_service
from shopdesk.services.store_context import CallerContext

from conftest import available, _make_user


def _payload(*lines, client_name="Walk-in", client_phone=None):
    return {
        "client_name": client_name,
        "client_phone": client_phone,
        "items": [
            {"product_id": product_id, "quantity": quantity, "sell_price": price}
            for product_id, quantity, price in lines
        ],
    }


def _sale_count(db_session):
    db_session.expire_all()
    return db_session.query(Sale).count()


class TestCreateSale:
    def test_create_takes_stock_and_returns_snapshot(self, db_session, caller_a, store_a, product_a):
        sale = sales_service.create_sale(caller_a, _payload((product_a.id, 2, "7.00")))

        assert available(db_session, product_a.id) == 8
        assert sale["store_id"] == store_a.id
        assert sale["client_name"] == "Walk-in"
        assert sale["items"][0]["quantity"] == 2
        assert sale["items"][0]["sell_price"] == 7.0
        assert sale["items"][0]["product"] == {
            "id": product_a.id, "name": "Coffee", "price": 4.0, "category": "Drinks",
        }
        assert sale["total"] == 14.0
        assert sale["item_count"] == 2

    def test_duplicate_lines_are_checked_against_their_sum(self, db_session, caller_a, product_a):
        with pytest.raises(InsufficientStockError) as exc:
            sales_service.create_sale(caller_a, _payload((product_a.id, 6, 1), (product_a.id, 5, 1)))

        assert exc.value.details["requested_quantity"] == 11
        assert available(db_session, product_a.id) == 10
        assert _sale_count(db_session) == 0

    def test_duplicate_lines_are_stored_separately(self, db_session, caller_a, product_a):
        sale = sales_service.create_sale(caller_a, _payload((product_a.id, 2, 1), (product_a.id, 3, 2)))

        assert [item["quantity"] for item in sale["items"]] == [2, 3]
        assert available(db_session, product_a.id) == 5

    def test_insufficient_stock_reports_product(self, db_session, caller_a, product_a, product_a2):
        with pytest.raises(InsufficientStockError) as exc:
            sales_service.create_sale(caller_a, _payload((product_a.id, 1, 1), (product_a2.id, 6, 1)))

        assert exc.value.status_code == 400
        assert exc.value.details == {
            "product_id": product_a2.id,
            "product_name": "Tea",
            "available_quantity": 5,
            "requested_quantity": 6,
        }
        assert "Available: 5, Requested: 6" in exc.value.message
        assert available(db_session, product_a.id) == 10
        assert _sale_count(db_session) == 0

    def test_selling_exactly_the_available_stock(self, db_session, caller_a, product_a):
        sales_service.create_sale(caller_a, _payload((product_a.id, 10, 1)))
        assert available(db_session, product_a.id) == 0

        with pytest.raises(InsufficientStockError):
            sales_service.create_sale(caller_a, _payload((product_a.id, 1, 1)))
        assert available(db_session, product_a.id) == 0

    def test_product_of_another_store_is_rejected(self, db_session, caller_a, product_a, product_b):
        with pytest.raises(ValidationError) as exc:
            sales_service.create_sale(caller_a, _payload((product_a.id, 1, 1), (product_b.id, 1, 1)))

        assert exc.value.details == {"product_ids": [product_b.id]}
        assert available(db_session, product_a.id) == 10
        assert available(db_session, product_b.id) == 10
        assert _sale_count(db_session) == 0

    def test_unknown_product_is_rejected(self, db_session, caller_a, product_a):
        with pytest.raises(ValidationError, match="Some products not found"):
            sales_service.create_sale(caller_a, _payload((999999, 1, 1)))

    def test_missing_caller_is_auth_error(self, db_session, product_a):
        with pytest.raises(AuthError):
            sales_service.create_sale(None, _payload((product_a.id, 1, 1)))

    def test_caller_without_store_is_not_found(self, db_session):
        user = _make_user(db_session, "nostore@shop.test")
        with pytest.raises(NotFoundError, match="User or store not found"):
            sales_service.create_sale(CallerContext(user_id=user.id), _payload((1, 1, 1)))

    def test_invalid_payload_fails_before_store_lookup(self, db_session):
        # No caller at all, yet the shape error wins
        with pytest.raises(ValidationError):
            sales_service.create_sale(None, {"items": []})

    def test_custom_store_resolver_is_used(self, db_session, caller_a, store_b, product_b):
        sale = sales_service.create_sale(
            caller_a, _payload((product_b.id, 1, 1)), store_resolver=lambda caller: store_b,
        )

        assert sale["store_id"] == store_b.id
        assert available(db_session, product_b.id) == 9

    def test_item_insert_failure_leaves_nothing_behind(self, db_session, caller_a, product_a, monkeypatch):
        def broken(sale, items):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(sale_ledger, "insert_items", broken)

        with pytest.raises(InternalError):
            sales_service.create_sale(caller_a, _payload((product_a.id, 2, 1)))

        assert available(db_session, product_a.id) == 10
        assert _sale_count(db_session) == 0

    def test_conditional_decrement_guards_a_stale_check(self, db_session, caller_a, product_a, monkeypatch):
        monkeypatch.setattr(catalog_service, "ensure_sufficient_stock", lambda products, quantities: None)

        with pytest.raises(InsufficientStockError) as exc:
            sales_service.create_sale(caller_a, _payload((product_a.id, 11, 1)))

        assert exc.value.details["available_quantity"] == 10
        assert available(db_session, product_a.id) == 10
        assert _sale_count(db_session) == 0


class TestUpdateSale:
    def test_round_trip_restores_stock(self, db_session, caller_a, product_a):
        sale = sales_service.create_sale(caller_a, _payload((product_a.id, 2, 1)))
        assert available(db_session, product_a.id) == 8

        sales_service.delete_sale(caller_a, sale["id"])
        assert available(db_session, product_a.id) == 10

    def test_growing_a_line_rebalances(self, db_session, caller_a, product_a):
        sale = sales_service.create_sale(caller_a, _payload((product_a.id, 2, 1)))

        updated = sales_service.update_sale(
            caller_a, sale["id"], _payload((product_a.id, 5, "2.50"), client_name="Regular"),
        )

        assert available(db_session, product_a.id) == 5
        assert updated["client_name"] == "Regular"
        assert [item["quantity"] for item in updated["items"]] == [5]
        assert updated["total"] == 12.5
        assert updated["version_id"] > sale["version_id"]

    def test_update_may_use_the_stock_it_already_holds(self, db_session, caller_a, product_a):
        sale = sales_service.create_sale(caller_a, _payload((product_a.id, 8, 1)))
        assert available(db_session, product_a.id) == 2

        sales_service.update_sale(caller_a, sale["id"], _payload((product_a.id, 10, 1)))
        assert available(db_session, product_a.id) == 0

    def test_switching_products(self, db_session, caller_a, product_a, product_a2):
        sale = sales_service.create_sale(caller_a, _payload((product_a.id, 3, 1)))

        updated = sales_service.update_sale(caller_a, sale["id"], _payload((product_a2.id, 4, 1)))

        assert available(db_session, product_a.id) == 10
        assert available(db_session, product_a2.id) == 1
        assert [item["product_id"] for item in updated["items"]] == [product_a2.id]

    def test_update_beyond_restored_stock_changes_nothing(self, db_session, caller_a, product_a, product_a2):
        sale = sales_service.create_sale(
            caller_a, _payload((product_a.id, 2, 1), (product_a2.id, 1, 1), client_name="Before"),
        )

        with pytest.raises(InsufficientStockError) as exc:
            sales_service.update_sale(
                caller_a, sale["id"], _payload((product_a.id, 11, 1), client_name="After"),
            )

        assert exc.value.details["available_quantity"] == 10
        assert available(db_session, product_a.id) == 8
        assert available(db_session, product_a2.id) == 4
        stored = sale_query_service.get_sale(caller_a, sale["id"])
        assert stored["client_name"] == "Before"
        assert [(i["product_id"], i["quantity"]) for i in stored["items"]] == [
            (product_a.id, 2), (product_a2.id, 1),
        ]

    def test_decrement_failure_rolls_back_restore(self, db_session, caller_a, product_a, monkeypatch):
        sale = sales_service.create_sale(caller_a, _payload((product_a.id, 4, 1)))

        def broken(store_id, product_id, quantity):
            raise SQLAlchemyError("connection lost")

        monkeypatch.setattr(catalog_service, "decrement_available", broken)

        with pytest.raises(InternalError):
            sales_service.update_sale(caller_a, sale["id"], _payload((product_a.id, 1, 1)))

        assert available(db_session, product_a.id) == 6
        db_session.expire_all()
        assert [i.quantity for i in db_session.query(SaleItem).filter_by(sale_id=sale["id"])] == [4]

    def test_omitted_client_fields_are_kept(self, db_session, caller_a, product_a):
        sale = sales_service.create_sale(
            caller_a, _payload((product_a.id, 1, 1), client_name="Ann", client_phone="555"),
        )

        updated = sales_service.update_sale(caller_a, sale["id"], {
            "items": [{"product_id": product_a.id, "quantity": 2, "sell_price": 1}],
        })

        assert updated["client_name"] == "Ann"
        assert updated["client_phone"] == "555"
        assert updated["items"][0]["quantity"] == 2

    def test_explicit_null_clears_client_field(self, db_session, caller_a, product_a):
        sale = sales_service.create_sale(
            caller_a, _payload((product_a.id, 1, 1), client_name="Ann", client_phone="555"),
        )

        updated = sales_service.update_sale(caller_a, sale["id"], {
            "clientPhone": None,
            "items": [{"product_id": product_a.id, "quantity": 1, "sell_price": 1}],
        })

        assert updated["client_name"] == "Ann"
        assert updated["client_phone"] is None

    def test_foreign_product_on_update_is_rejected(self, db_session, caller_a, product_a, product_b):
        sale = sales_service.create_sale(caller_a, _payload((product_a.id, 2, 1)))

        with pytest.raises(ValidationError):
            sales_service.update_sale(caller_a, sale["id"], _payload((product_b.id, 1, 1)))

        assert available(db_session, product_a.id) == 8
        assert available(db_session, product_b.id) == 10

    def test_unknown_sale_is_not_found(self, db_session, caller_a, product_a):
        with pytest.raises(NotFoundError, match="Sale not found"):
            sales_service.update_sale(caller_a, 424242, _payload((product_a.id, 1, 1)))
        assert available(db_session, product_a.id) == 10


class TestDeleteSale:
    def test_delete_returns_message_and_removes_items(self, db_session, caller_a, product_a, product_a2):
        sale = sales_service.create_sale(caller_a, _payload((product_a.id, 3, 1), (product_a2.id, 2, 1)))

        result = sales_service.delete_sale(caller_a, sale["id"])

        assert result == {"message": "Sale deleted successfully"}
        assert available(db_session, product_a.id) == 10
        assert available(db_session, product_a2.id) == 5
        assert _sale_count(db_session) == 0
        assert db_session.query(SaleItem).count() == 0

    def test_deleting_twice_is_not_found(self, db_session, caller_a, product_a):
        sale = sales_service.create_sale(caller_a, _payload((product_a.id, 1, 1)))
        sales_service.delete_sale(caller_a, sale["id"])

        with pytest.raises(NotFoundError):
            sales_service.delete_sale(caller_a, sale["id"])
        assert available(db_session, product_a.id) == 10

    def test_delete_failure_keeps_sale_and_stock(self, db_session, caller_a, product_a, monkeypatch):
        sale = sales_service.create_sale(caller_a, _payload((product_a.id, 3, 1)))

        def broken(sale):
            raise SQLAlchemyError("constraint")

        monkeypatch.setattr(sale_ledger, "delete_sale", broken)

        with pytest.raises(InternalError):
            sales_service.delete_sale(caller_a, sale["id"])

        assert available(db_session, product_a.id) == 7
        assert _sale_count(db_session) == 1


def _fail(*args, **kwargs):
    raise SQLAlchemyError("write failed")


def _sale_state(db_session, sale_id):
    db_session.expire_all()
    sale = db_session.get(Sale, sale_id)
    if sale is None:
        return None
    return sale.client_name, [(item.product_id, item.quantity) for item in sale.items]


class TestSubStepFailures:
    """A persistence failure at any step leaves stock and sale rows as they were."""

    @pytest.mark.parametrize("module,step", [
        (catalog_service, "load_store_products"),
        (sale_ledger, "insert_sale"),
        (sale_ledger, "insert_items"),
        (catalog_service, "decrement_available"),
    ])
    def test_create(self, db_session, caller_a, product_a, product_a2, monkeypatch, module, step):
        monkeypatch.setattr(module, step, _fail)

        with pytest.raises(InternalError):
            sales_service.create_sale(caller_a, _payload((product_a.id, 2, 1), (product_a2.id, 1, 1)))

        assert available(db_session, product_a.id) == 10
        assert available(db_session, product_a2.id) == 5
        assert _sale_count(db_session) == 0

    @pytest.mark.parametrize("module,step", [
        (sale_ledger, "find_store_sale"),
        (catalog_service, "restore_available"),
        (sale_ledger, "clear_items"),
        (sale_ledger, "update_client"),
        (catalog_service, "load_store_products"),
        (sale_ledger, "insert_items"),
        (catalog_service, "decrement_available"),
    ])
    def test_update(self, db_session, caller_a, product_a, product_a2, monkeypatch, module, step):
        sale = sales_service.create_sale(caller_a, _payload((product_a.id, 4, 1), client_name="Before"))
        monkeypatch.setattr(module, step, _fail)

        with pytest.raises(InternalError):
            sales_service.update_sale(
                caller_a, sale["id"], _payload((product_a2.id, 3, 1), client_name="After"),
            )

        assert available(db_session, product_a.id) == 6
        assert available(db_session, product_a2.id) == 5
        assert _sale_state(db_session, sale["id"]) == ("Before", [(product_a.id, 4)])

    @pytest.mark.parametrize("module,step", [
        (sale_ledger, "find_store_sale"),
        (catalog_service, "restore_available"),
        (sale_ledger, "clear_items"),
        (sale_ledger, "delete_sale"),
    ])
    def test_delete(self, db_session, caller_a, product_a, monkeypatch, module, step):
        sale = sales_service.create_sale(caller_a, _payload((product_a.id, 3, 1), client_name="Kept"))
        monkeypatch.setattr(module, step, _fail)

        with pytest.raises(InternalError):
            sales_service.delete_sale(caller_a, sale["id"])

        assert available(db_session, product_a.id) == 7
        assert _sale_state(db_session, sale["id"]) == ("Kept", [(product_a.id, 3)])


class TestStoreScoping:
    def test_other_store_cannot_touch_sale(self, db_session, caller_a, caller_b, product_a, product_b):
        sale = sales_service.create_sale(caller_a, _payload((product_a.id, 2, 1)))

        with pytest.raises(NotFoundError):
            sale_query_service.get_sale(caller_b, sale["id"])
        with pytest.raises(NotFoundError):
            sales_service.update_sale(caller_b, sale["id"], _payload((product_b.id, 1, 1)))
        with pytest.raises(NotFoundError):
            sales_service.delete_sale(caller_b, sale["id"])

        assert available(db_session, product_a.id) == 8
        assert available(db_session, product_b.id) == 10
        assert sale_query_service.get_sale(caller_a, sale["id"])["items"][0]["quantity"] == 2


class TestStockInvariant:
    def test_invariant_holds_across_operations(self, db_session, caller_a, store_a, product_a, product_a2):
        first = sales_service.create_sale(caller_a, _payload((product_a.id, 3, 1), (product_a2.id, 2, 1)))
        second = sales_service.create_sale(caller_a, _payload((product_a.id, 4, 1)))
        sales_service.update_sale(caller_a, first["id"], _payload((product_a.id, 1, 1), (product_a2.id, 5, 1)))
        with pytest.raises(InsufficientStockError):
            sales_service.update_sale(caller_a, second["id"], _payload((product_a.id, 10, 1)))
        sales_service.delete_sale(caller_a, second["id"])

        db_session.expire_all()
        assert catalog_service.audit_stock(store_a.id) == []
        assert available(db_session, product_a.id) == 9
        assert available(db_session, product_a2.id) == 0

    def test_audit_reports_drift(self, db_session, caller_a, store_a, product_a):
        sales_service.create_sale(caller_a, _payload((product_a.id, 3, 1)))
        product_a.available_quantity = 10
        db_session.commit()

        drift = catalog_service.audit_stock(store_a.id)

        assert drift == [{
            "product_id": product_a.id,
            "name": "Coffee",
            "quantity": 10,
            "available_quantity": 10,
            "sold_quantity": 3,
            "expected_available_quantity": 7,
        }]
