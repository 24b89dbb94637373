"""Tests for logging context propagation."""

import threading

import pytest

from expiry_notifier.logging.context import (
    clear_log_context,
    get_log_context,
    log_context,
    pop_log_context,
    push_log_context,
)


@pytest.fixture(autouse=True)
def clean_context():
    """Clear logging context before and after each test."""
    clear_log_context()
    yield
    clear_log_context()


def test_empty_context():
    """Test that context starts empty."""
    assert get_log_context() == {}


def test_push_single_field():
    """Test pushing a single field to context."""
    token = push_log_context(run_id="abc123")
    assert get_log_context() == {"run_id": "abc123"}
    pop_log_context(token)
    assert get_log_context() == {}


def test_push_multiple_fields():
    """Test pushing multiple fields at once."""
    token = push_log_context(run_id="abc123", item_id="c1", days_remaining=30)
    context = get_log_context()
    assert context == {
        "run_id": "abc123",
        "item_id": "c1",
        "days_remaining": 30,
    }
    pop_log_context(token)
    assert get_log_context() == {}


def test_nested_context():
    """Test nested context pushes and pops."""
    # Push first layer
    token1 = push_log_context(run_id="abc123")
    assert get_log_context() == {"run_id": "abc123"}

    # Push second layer
    token2 = push_log_context(item_id="c1")
    assert get_log_context() == {"run_id": "abc123", "item_id": "c1"}

    # Push third layer
    token3 = push_log_context(days_remaining=30)
    assert get_log_context() == {
        "run_id": "abc123",
        "item_id": "c1",
        "days_remaining": 30,
    }

    # Pop layers in reverse order
    pop_log_context(token3)
    assert get_log_context() == {"run_id": "abc123", "item_id": "c1"}

    pop_log_context(token2)
    assert get_log_context() == {"run_id": "abc123"}

    pop_log_context(token1)
    assert get_log_context() == {}


def test_context_override():
    """Test that pushing the same key overwrites previous value."""
    token1 = push_log_context(run_id="abc123")
    assert get_log_context() == {"run_id": "abc123"}

    token2 = push_log_context(run_id="xyz789")
    assert get_log_context() == {"run_id": "xyz789"}

    pop_log_context(token2)
    assert get_log_context() == {"run_id": "abc123"}

    pop_log_context(token1)
    assert get_log_context() == {}


def test_context_manager_basic():
    """Test basic context manager usage."""
    assert get_log_context() == {}

    with log_context(run_id="abc123"):
        assert get_log_context() == {"run_id": "abc123"}

    assert get_log_context() == {}


def test_context_manager_nested():
    """Test nested context managers."""
    with log_context(run_id="abc123"):
        assert get_log_context() == {"run_id": "abc123"}

        with log_context(item_id="c1"):
            assert get_log_context() == {"run_id": "abc123", "item_id": "c1"}

            with log_context(days_remaining=30):
                assert get_log_context() == {
                    "run_id": "abc123",
                    "item_id": "c1",
                    "days_remaining": 30,
                }

            assert get_log_context() == {"run_id": "abc123", "item_id": "c1"}

        assert get_log_context() == {"run_id": "abc123"}

    assert get_log_context() == {}


def test_context_manager_exception():
    """Test that context is restored even when exception occurs."""
    assert get_log_context() == {}

    try:
        with log_context(run_id="abc123"):
            assert get_log_context() == {"run_id": "abc123"}
            raise ValueError("Test exception")
    except ValueError:
        pass

    # Context should be restored even after exception
    assert get_log_context() == {}


def test_context_manager_multiple_fields():
    """Test context manager with multiple fields."""
    with log_context(run_id="abc123", item_id="c1", days_remaining=30):
        assert get_log_context() == {
            "run_id": "abc123",
            "item_id": "c1",
            "days_remaining": 30,
        }

    assert get_log_context() == {}


def test_clear_context():
    """Test clearing all context."""
    push_log_context(run_id="abc123", item_id="c1")
    assert get_log_context() != {}

    clear_log_context()
    assert get_log_context() == {}


def test_context_isolation():
    """Test that get_log_context returns a copy, not the actual dict."""
    token = push_log_context(run_id="abc123")

    # Get context and try to modify it
    context = get_log_context()
    context["item_id"] = "modified"

    # Original context should be unchanged
    assert get_log_context() == {"run_id": "abc123"}

    pop_log_context(token)


def test_context_not_shared_with_other_threads():
    """The scheduler thread must not inherit fields from an HTTP request, or vice versa."""
    seen = {}

    def worker():
        seen["context"] = get_log_context()

    with log_context(run_id="abc123"):
        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()

    assert seen["context"] == {}


def test_context_manager_yields_current_fields():
    with log_context(run_id="abc123") as fields:
        assert fields == {"run_id": "abc123"}
