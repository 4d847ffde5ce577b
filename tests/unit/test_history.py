import pytest

from mindtree.history import HistoryManager


def filled(*snapshots, capacity=50):
    history = HistoryManager(capacity)
    history.reset(snapshots[0])
    for snapshot in snapshots[1:]:
        history.save_snapshot(snapshot)
    return history


def test_empty_history():
    history = HistoryManager()

    assert len(history) == 0
    assert history.current is None
    assert history.can_undo is False
    assert history.can_redo is False
    assert history.undo() is None
    assert history.redo() is None


def test_undo_and_redo_walk_the_snapshots():
    history = filled("s0", "s1", "s2")

    assert history.undo() == "s1"
    assert history.undo() == "s0"
    assert history.undo() is None
    assert history.redo() == "s1"
    assert history.redo() == "s2"
    assert history.redo() is None
    assert history.current == "s2"


def test_undo_redo_do_not_record_snapshots():
    history = filled("s0", "s1")

    for _ in range(5):
        history.undo()
        history.redo()

    assert len(history) == 2


def test_new_snapshot_discards_the_redo_branch():
    history = filled("s0", "s1", "s2")
    history.undo()
    history.undo()

    history.save_snapshot("t1")

    assert history.can_redo is False
    assert len(history) == 2
    assert history.undo() == "s0"


def test_capacity_evicts_the_oldest_snapshot():
    history = filled("s0", "s1", "s2", "s3", "s4", capacity=3)

    assert len(history) == 3
    assert history.current == "s4"
    assert history.undo() == "s3"
    assert history.undo() == "s2"
    assert history.can_undo is False


def test_index_tracks_the_pointer():
    history = filled("s0", "s1", "s2")
    assert history.index == 2
    history.undo()
    assert history.index == 1


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        HistoryManager(0)
