# tests/unit/services/test_availability.py
from datetime import timedelta

import pytest

from conftest import NOW, status_doc
from stockwatch.core.enums import ChangeEventType, HistoryEventType
from stockwatch.services.availability import (
    compute_duration_in_stock_ms,
    diff_availability,
    is_available,
)


# --- is_available ---

def test_never_checked_counts_as_unavailable():
    assert is_available(None) is False


def test_online_only_is_available():
    assert is_available(status_doc(online=True)) is True


def test_any_store_makes_product_available():
    """Offline online but one store with pickup is still a buyable product."""
    assert is_available(status_doc(online=False, stores={"281": False, "1118": True})) is True


def test_stored_json_document_is_accepted():
    stored = status_doc(online=False, stores={"281": True}).to_payload()
    assert is_available(stored) is True


# --- diff_availability ---

@pytest.mark.parametrize(
    "previous, observed, changed, event_type",
    [
        (None, status_doc(online=True), True, ChangeEventType.AVAILABLE),
        (None, status_doc(online=False), False, ChangeEventType.UNAVAILABLE),
        (status_doc(online=True), status_doc(online=False), True, ChangeEventType.UNAVAILABLE),
        (status_doc(stores={"281": True}), status_doc(online=True), False, ChangeEventType.AVAILABLE),
    ],
)
def test_diff_availability(previous, observed, changed, event_type):
    transition = diff_availability(previous, observed)

    assert transition.changed is changed
    assert transition.change_event_type == event_type


def test_transition_history_event_type_follows_new_state():
    assert diff_availability(None, status_doc(online=True)).history_event_type == HistoryEventType.IN_STOCK
    assert diff_availability(status_doc(online=True), None).history_event_type == HistoryEventType.OUT_OF_STOCK


# --- compute_duration_in_stock_ms ---

def test_duration_set_when_going_out_of_stock_after_in_stock():
    prior = NOW - timedelta(minutes=7, milliseconds=250)

    duration = compute_duration_in_stock_ms(HistoryEventType.OUT_OF_STOCK, NOW, "in_stock", prior)

    assert duration == 7 * 60 * 1000 + 250


def test_duration_handles_naive_prior_timestamp():
    """SQLite hands timestamps back without an offset."""
    prior = (NOW - timedelta(seconds=3)).replace(tzinfo=None)

    assert compute_duration_in_stock_ms(HistoryEventType.OUT_OF_STOCK, NOW, "in_stock", prior) == 3000


def test_no_duration_for_in_stock_entry():
    assert compute_duration_in_stock_ms(HistoryEventType.IN_STOCK, NOW, "out_of_stock", NOW) is None


def test_no_duration_without_prior_in_stock_entry():
    assert compute_duration_in_stock_ms(HistoryEventType.OUT_OF_STOCK, NOW, None, None) is None
    assert compute_duration_in_stock_ms(HistoryEventType.OUT_OF_STOCK, NOW, "out_of_stock", NOW) is None
