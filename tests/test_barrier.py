"""Tests for the batch barrier."""

import itertools

import pytest

from agent_knowledge_core.errors import DuplicateIdError
from agent_knowledge_core.tracking import BatchBarrier


class TestBatchBarrier:
    """Test BatchBarrier functionality."""

    @pytest.mark.parametrize("order", list(itertools.permutations(["a", "b", "c"])))
    def test_completes_exactly_once_in_any_order(self, order):
        completed = []
        barrier = BatchBarrier(on_complete=completed.append)
        batch = barrier.open_batch(["a", "b", "c"])

        results = [barrier.on_item_terminal(item_id) for item_id in order]

        assert results[:2] == [None, None]
        assert results[2].batch_id == batch.batch_id
        assert set(results[2].item_ids) == {"a", "b", "c"}
        assert completed == [results[2]]
        assert not barrier.is_open(batch.batch_id)

    def test_repeated_terminal_does_not_refire(self):
        completed = []
        barrier = BatchBarrier(on_complete=completed.append)
        barrier.open_batch(["a"])

        barrier.on_item_terminal("a")
        assert barrier.on_item_terminal("a") is None
        assert len(completed) == 1

    def test_second_submission_is_an_independent_batch(self):
        barrier = BatchBarrier()
        first = barrier.open_batch(["a", "b"])
        second = barrier.open_batch(["c"])

        assert first.batch_id != second.batch_id
        assert barrier.on_item_terminal("c").batch_id == second.batch_id
        assert barrier.is_open(first.batch_id)
        assert barrier.get(first.batch_id).remaining == 2

    def test_item_belongs_to_one_open_batch(self):
        barrier = BatchBarrier()
        barrier.open_batch(["a", "b"])

        with pytest.raises(DuplicateIdError):
            barrier.open_batch(["b", "c"])
        assert barrier.batch_for("c") is None

    def test_empty_batch_rejected(self):
        with pytest.raises(ValueError):
            BatchBarrier().open_batch([])

    def test_discard_item_closes_silently(self):
        completed = []
        barrier = BatchBarrier(on_complete=completed.append)
        batch = barrier.open_batch(["a", "b"])

        barrier.on_item_terminal("a")
        barrier.discard_item("b")

        assert completed == []
        assert not barrier.is_open(batch.batch_id)
        assert barrier.open_batches() == []

    def test_discard_item_keeps_waiting_for_others(self):
        barrier = BatchBarrier()
        batch = barrier.open_batch(["a", "b"])

        barrier.discard_item("a")
        event = barrier.on_item_terminal("b")

        assert event is not None
        assert event.batch_id == batch.batch_id

    def test_unknown_item_is_ignored(self):
        barrier = BatchBarrier()
        assert barrier.on_item_terminal("nope") is None
        barrier.discard_item("nope")
