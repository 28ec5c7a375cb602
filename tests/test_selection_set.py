"""Tests for the global character selection set."""

from kyara.services.selection_set import SelectionSet


class TestSelectionSet:
    def test_add_is_idempotent(self) -> None:
        """Adding an id twice leaves a single member and notifies once."""
        calls: list[int] = []
        selection = SelectionSet()
        selection.subscribe(lambda: calls.append(1))

        assert selection.add(7) is True
        assert selection.add(7) is False

        assert selection.snapshot() == frozenset({7})
        assert len(calls) == 1

    def test_remove_missing_is_noop(self) -> None:
        """Removing an absent id changes nothing."""
        calls: list[int] = []
        selection = SelectionSet([1, 2])
        selection.subscribe(lambda: calls.append(1))

        assert selection.remove(9) is False
        assert calls == []
        assert set(selection) == {1, 2}

    def test_bulk_operations(self) -> None:
        """add_many and remove_many only count ids that actually change."""
        selection = SelectionSet([1])

        assert selection.add_many([1, 2, 3]) is True
        assert selection.remove_many([3, 4]) is True
        assert selection.remove_many([4]) is False
        assert selection.snapshot() == frozenset({1, 2})

    def test_snapshot_is_stable(self) -> None:
        """A snapshot does not follow later mutations."""
        selection = SelectionSet([1])
        snap = selection.snapshot()

        selection.add(2)

        assert snap == frozenset({1})
        assert selection.is_selected(2)

    def test_replace_and_clear(self) -> None:
        """replace swaps the whole content; clear on an empty set is silent."""
        calls: list[int] = []
        selection = SelectionSet([1, 2])
        selection.subscribe(lambda: calls.append(1))

        assert selection.replace([2, 1]) is False
        assert selection.replace([5]) is True
        assert selection.clear() is True
        assert selection.clear() is False
        assert len(calls) == 2

    def test_unsubscribe(self) -> None:
        """Unsubscribed listeners are no longer called."""
        calls: list[int] = []
        selection = SelectionSet()
        unsubscribe = selection.subscribe(lambda: calls.append(1))
        unsubscribe()

        selection.add(1)

        assert calls == []
