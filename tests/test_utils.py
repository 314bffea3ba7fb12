import pytest

import store
import utils
from models import Client


def test_add_minutes_to_time():
    assert utils.add_minutes_to_time("10:30", 90) == "12:00"
    assert utils.add_minutes_to_time("23:30", 45) == "00:15"


def test_paginate_clamps_page():
    items = list(range(25))
    assert utils.paginate(items, 1, 10) == (list(range(10)), 3)
    assert utils.paginate(items, 3, 10) == ([20, 21, 22, 23, 24], 3)
    assert utils.paginate(items, 9, 10)[0] == [20, 21, 22, 23, 24]
    assert utils.paginate([], 1, 10) == ([], 1)


def test_validate_client_inputs():
    assert utils.validate_client_inputs("Priya", "98000") == []
    assert utils.validate_client_inputs(" ", "", "nope") == [
        "Name is required.", "Phone is required.", "Email looks invalid."]


def test_validate_service_inputs():
    assert utils.validate_service_inputs("Head", "499", "30") == []
    assert utils.validate_service_inputs("", "-1", "0") == [
        "Title is required.", "Price cannot be negative.", "Duration must be > 0 minutes."]
    assert "Price must be numeric." in utils.validate_service_inputs("Head", "abc", "30")


def test_validate_plan_inputs():
    assert utils.validate_plan_inputs("Silver", "4999", {"spa": 3, "jacuzzi": 0}) == []
    errors = utils.validate_plan_inputs("Silver", "4999", {"spa": -1, "hamam": "x"})
    assert errors == ["spa sessions cannot be negative.", "hamam sessions must be a whole number."]


@pytest.mark.parametrize("start, end, ok", [("10:00", "11:00", True), ("11:00", "10:00", False), ("ten", "11:00", False)])
def test_validate_time_range(start, end, ok):
    assert (utils.validate_time_range(start, end) == []) is ok


def test_csv_exports_have_headers():
    data = utils.clients_to_csv_bytes([Client(id=1, name="Priya", phone="1")]).decode("utf-8")
    assert data.splitlines()[0] == "id,name,phone,email,address,notes"


def test_sample_data_builds_a_consistent_ledger(tmp_db):
    utils.insert_sample_data()
    bills = store.list_bills()
    assert len(bills) == 3
    assert len(store.list_usages()) == 1
    purchase = next(b for b in bills if b.is_membership_purchase)
    assert store.list_usages()[0].membership_purchase_bill_id == purchase.id
