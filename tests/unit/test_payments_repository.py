from unittest.mock import MagicMock

import pytest

from payment_service.payments import repository
from payment_service.payments.errors import InvoiceNotFound, PersistenceFailure
from payment_service.payments.models import InvoiceStatus

INVOICE_ROW = {
    "id": 7,
    "company_id": 42,
    "currency": "£",
    "amount": 8.0,
    "order_batch_id": "b-1",
    "payment_intent_id": "pi_123",
    "status": "pending",
    "success_url": None,
    "cancel_url": None,
    "lines": None,
}

def _result(data):
    res = MagicMock()
    res.data = data
    return res

def test_get_invoice_validates_row(mock_supabase):
    chain = mock_supabase.table.return_value.select.return_value.eq.return_value.limit.return_value
    chain.execute.return_value = _result([INVOICE_ROW])

    invoice = repository.get_invoice("7")

    mock_supabase.table.assert_called_with("invoices")
    assert invoice.id == "7"
    assert invoice.tenant_id == "42"
    assert invoice.intent_reference == "pi_123"
    assert invoice.status == InvoiceStatus.pending
    assert invoice.lines == []

def test_get_invoice_absent(mock_supabase):
    chain = mock_supabase.table.return_value.select.return_value.eq.return_value.limit.return_value
    chain.execute.return_value = _result([])
    assert repository.get_invoice("404") is None

def test_get_invoice_store_error(mock_supabase):
    chain = mock_supabase.table.return_value.select.return_value.eq.return_value.limit.return_value
    chain.execute.side_effect = RuntimeError("connection refused")
    with pytest.raises(PersistenceFailure):
        repository.get_invoice("7")

def test_set_status_if_pending_is_conditional(mock_supabase):
    update = mock_supabase.table.return_value.update
    first_eq = update.return_value.eq
    second_eq = first_eq.return_value.eq
    second_eq.return_value.execute.return_value = _result([{"id": 7, "status": "paid"}])

    assert repository.set_status_if_pending("7", InvoiceStatus.paid) == 1
    update.assert_called_once_with({"status": "paid"})
    first_eq.assert_called_once_with("id", "7")
    second_eq.assert_called_once_with("status", "pending")

def test_set_status_if_pending_already_reconciled(mock_supabase):
    chain = mock_supabase.table.return_value.update.return_value.eq.return_value.eq.return_value
    chain.execute.return_value = _result([])
    assert repository.set_status_if_pending("7", "failed") == 0

def test_set_intent_reference_mirrors_urls(mock_supabase):
    update = mock_supabase.table.return_value.update
    update.return_value.eq.return_value.execute.return_value = _result([{"id": 7}])
    repository.set_intent_reference("7", "pi_9", success_url="https://ok", cancel_url="https://ko")
    update.assert_called_once_with({"payment_intent_id": "pi_9", "success_url": "https://ok", "cancel_url": "https://ko"})

def test_set_intent_reference_unknown_invoice(mock_supabase):
    mock_supabase.table.return_value.update.return_value.eq.return_value.execute.return_value = _result([])
    with pytest.raises(InvoiceNotFound):
        repository.set_intent_reference("404", "pi_9")

def test_get_credential(mock_supabase):
    chain = mock_supabase.table.return_value.select.return_value.eq.return_value.eq.return_value.limit.return_value
    chain.execute.return_value = _result([{"password": "sk_test_1"}])
    assert repository.get_credential("42", "stripe") == "sk_test_1"
    mock_supabase.table.assert_called_with("credentials")

def test_list_product_ids_for_batch_is_distinct(mock_supabase):
    chain = mock_supabase.table.return_value.select.return_value.eq.return_value
    chain.execute.return_value = _result([{"product_id": 3}, {"product_id": 1}, {"product_id": 3}, {"product_id": None}])
    assert repository.list_product_ids_for_batch("b-1") == ["3", "1"]

def test_list_products_keeps_requested_order(mock_supabase):
    chain = mock_supabase.table.return_value.select.return_value.in_.return_value
    chain.execute.return_value = _result([
        {"id": 1, "name": "A", "description": None, "price": 1.1},
        {"id": 3, "name": "C", "description": "c", "price": "-2.00"},
    ])
    products = repository.list_products(["3", "1"])
    assert [p.id for p in products] == ["3", "1"]
    assert str(products[1].price) == "1.1"

def test_list_products_empty_ids_skips_store(mock_supabase):
    assert repository.list_products([]) == []
    mock_supabase.table.assert_not_called()
