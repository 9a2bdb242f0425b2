from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from praiseplan.domain.errors import (
    InvalidReorderError,
    NetworkOrTimeoutError,
    NotFoundError,
    PersistenceError,
    ReorderInProgressError,
    ReorderRolledBackError,
    UniqueConstraintError,
)
from praiseplan.domain.model import is_contiguous
from praiseplan.domain.setlist import (
    ChangeKind,
    ListChange,
    ListState,
    OptimisticListStore,
    PositionReconciler,
)
from tests.helpers.fakes import (
    InMemorySetlistCollection,
    TransactionalSetlistCollection,
    make_setlist,
)

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

    from praiseplan.domain.model import SetlistEntry


def _ids(entries: list[SetlistEntry]) -> list[UUID]:
    return [entry.id for entry in entries]


def _fail_positive_writes(
    _op: str,
    _entity_id: UUID,
    changes: Mapping[str, object],
) -> Exception | None:
    position = changes.get("position")
    if isinstance(position, int) and position > 0:
        return NetworkOrTimeoutError("connection dropped")
    return None


def _loaded_store(
    collection: InMemorySetlistCollection,
    service_id: UUID,
    **kwargs: float,
) -> OptimisticListStore:
    store = OptimisticListStore(collection, **kwargs)
    asyncio.run(store.load(service_id))
    return store


def test_load_reads_canonical_order(service_id: UUID) -> None:
    a, b, c = make_setlist(service_id, 3)
    collection = InMemorySetlistCollection([c, a, b])
    store = OptimisticListStore(collection)

    entries = asyncio.run(store.load(service_id))

    assert _ids(entries) == [a.id, b.id, c.id]
    assert store.is_loaded(service_id)
    assert store.state(service_id) is ListState.IDLE


def test_move_first_entry_to_end(service_id: UUID) -> None:
    a, b, c = make_setlist(service_id, 3)
    collection = InMemorySetlistCollection([a, b, c])
    store = _loaded_store(collection, service_id)

    optimistic = store.apply_reorder(service_id, 0, 2)

    assert _ids(optimistic) == [b.id, c.id, a.id]
    assert [entry.position for entry in optimistic] == [1, 2, 3]
    assert store.state(service_id) is ListState.REORDERING
    assert collection.writes == []

    committed = asyncio.run(store.commit_reorder(service_id))

    assert _ids(committed) == [b.id, c.id, a.id]
    assert collection.order(service_id) == [b.id, c.id, a.id]
    assert len(collection.writes) == 6
    assert store.state(service_id) is ListState.IDLE
    assert not store.reload_recommended(service_id)


def test_same_index_move_changes_nothing(service_id: UUID) -> None:
    entries = make_setlist(service_id, 3)
    collection = InMemorySetlistCollection(entries)
    store = _loaded_store(collection, service_id)

    assert _ids(store.apply_reorder(service_id, 1, 1)) == _ids(entries)
    assert store.state(service_id) is ListState.IDLE
    assert _ids(asyncio.run(store.commit_reorder(service_id))) == _ids(entries)
    assert collection.writes == []


def test_commit_of_unchanged_order_writes_nothing(service_id: UUID) -> None:
    a, b, c = make_setlist(service_id, 3)
    collection = InMemorySetlistCollection([a, b, c])
    store = _loaded_store(collection, service_id)

    store.apply_reorder(service_id, 0, 1)
    store.apply_reorder(service_id, 1, 0)
    asyncio.run(store.commit_reorder(service_id))

    assert collection.writes == []
    assert store.state(service_id) is ListState.IDLE


@pytest.mark.parametrize(("from_index", "to_index"), [(0, 3), (-1, 0), (3, 0), (0, -1)])
def test_out_of_range_move_is_rejected(service_id: UUID, from_index: int, to_index: int) -> None:
    entries = make_setlist(service_id, 3)
    collection = InMemorySetlistCollection(entries)
    store = _loaded_store(collection, service_id)

    with pytest.raises(InvalidReorderError):
        store.apply_reorder(service_id, from_index, to_index)

    assert _ids(store.entries(service_id)) == _ids(entries)
    assert store.state(service_id) is ListState.IDLE
    assert collection.writes == []


def test_unloaded_service_is_rejected() -> None:
    store = OptimisticListStore(InMemorySetlistCollection())

    with pytest.raises(InvalidReorderError, match="not loaded"):
        store.apply_reorder(uuid4(), 0, 1)


def test_failed_final_write_rolls_back_to_snapshot(service_id: UUID) -> None:
    a, b, c = make_setlist(service_id, 3)
    collection = InMemorySetlistCollection([a, b, c])
    store = _loaded_store(collection, service_id)
    changes: list[ListChange] = []
    store.subscribe(changes.append)

    assert _ids(store.apply_reorder(service_id, 0, 1)) == [b.id, a.id, c.id]
    collection.fail = _fail_positive_writes

    with pytest.raises(ReorderRolledBackError) as excinfo:
        asyncio.run(store.commit_reorder(service_id))

    assert isinstance(excinfo.value.__cause__, NetworkOrTimeoutError)
    assert excinfo.value.reload_recommended
    assert _ids(store.entries(service_id)) == [a.id, b.id, c.id]
    assert [entry.position for entry in store.entries(service_id)] == [1, 2, 3]
    assert store.state(service_id) is ListState.IDLE
    assert store.reload_recommended(service_id)
    assert changes[-1].kind is ChangeKind.ROLLED_BACK
    assert _ids(list(changes[-1].entries)) == [a.id, b.id, c.id]


def test_commit_after_suspect_rollback_reads_back_positions(service_id: UUID) -> None:
    a, b, c = make_setlist(service_id, 3)
    collection = InMemorySetlistCollection([a, b, c])
    store = _loaded_store(collection, service_id)
    store.apply_reorder(service_id, 0, 1)
    collection.fail = _fail_positive_writes
    with pytest.raises(ReorderRolledBackError):
        asyncio.run(store.commit_reorder(service_id))

    collection.fail = None
    collection.writes.clear()
    finds = collection.finds
    store.apply_reorder(service_id, 0, 1)
    asyncio.run(store.commit_reorder(service_id))

    assert collection.finds == finds + 1
    assert collection.order(service_id) == [b.id, a.id, c.id]
    assert sorted(collection.positions(service_id).values()) == [1, 2, 3]
    # b and a were left on -1 and -2, so new placeholders start below them
    assert [(w.entity_id, w.changes["position"]) for w in collection.writes] == [
        (b.id, -3),
        (a.id, -4),
        (b.id, 1),
        (a.id, 2),
    ]
    assert not store.reload_recommended(service_id)


def test_new_order_after_suspect_rollback_avoids_parked_rows(service_id: UUID) -> None:
    a, b, c = make_setlist(service_id, 3)
    collection = InMemorySetlistCollection([a, b, c])
    store = _loaded_store(collection, service_id)
    store.apply_reorder(service_id, 0, 1)
    collection.fail = _fail_positive_writes
    with pytest.raises(ReorderRolledBackError):
        asyncio.run(store.commit_reorder(service_id))
    collection.fail = None

    store.apply_reorder(service_id, 2, 0)
    entries = asyncio.run(store.commit_reorder(service_id))

    assert _ids(entries) == [c.id, a.id, b.id]
    assert collection.order(service_id) == [c.id, a.id, b.id]
    assert sorted(collection.positions(service_id).values()) == [1, 2, 3]


def test_reload_clears_recommendation(service_id: UUID) -> None:
    entries = make_setlist(service_id, 2)
    collection = InMemorySetlistCollection(entries)
    store = _loaded_store(collection, service_id)
    store.apply_reorder(service_id, 0, 1)
    collection.fail = _fail_positive_writes
    with pytest.raises(ReorderRolledBackError):
        asyncio.run(store.commit_reorder(service_id))

    asyncio.run(store.load(service_id))

    assert not store.reload_recommended(service_id)


def test_failed_transaction_rolls_back_without_reload(service_id: UUID) -> None:
    a, b, c = make_setlist(service_id, 3)
    collection = TransactionalSetlistCollection([a, b, c])
    collection.fail_batch = UniqueConstraintError("position taken")
    store = _loaded_store(collection, service_id)

    store.apply_reorder(service_id, 2, 0)
    with pytest.raises(ReorderRolledBackError) as excinfo:
        asyncio.run(store.commit_reorder(service_id))

    assert isinstance(excinfo.value.__cause__, UniqueConstraintError)
    assert not excinfo.value.reload_recommended
    assert _ids(store.entries(service_id)) == [a.id, b.id, c.id]
    assert collection.order(service_id) == [a.id, b.id, c.id]


def test_repeated_reorders_roll_back_to_first_snapshot(service_id: UUID) -> None:
    a, b, c = make_setlist(service_id, 3)
    collection = InMemorySetlistCollection([a, b, c])
    store = _loaded_store(collection, service_id)

    store.apply_reorder(service_id, 0, 1)
    assert _ids(store.apply_reorder(service_id, 2, 0)) == [c.id, b.id, a.id]
    collection.fail = _fail_positive_writes
    with pytest.raises(ReorderRolledBackError):
        asyncio.run(store.commit_reorder(service_id))

    assert _ids(store.entries(service_id)) == [a.id, b.id, c.id]


def test_operations_are_refused_while_committing(service_id: UUID) -> None:
    a, b, c = make_setlist(service_id, 3)
    collection = InMemorySetlistCollection([a, b, c])
    collection.delay = 0.01
    store = OptimisticListStore(collection)

    async def scenario() -> list[SetlistEntry]:
        await store.load(service_id)
        store.apply_reorder(service_id, 0, 2)
        commit = asyncio.create_task(store.commit_reorder(service_id))
        await asyncio.sleep(0)
        assert store.state(service_id) is ListState.COMMITTING
        with pytest.raises(ReorderInProgressError):
            store.apply_reorder(service_id, 0, 1)
        with pytest.raises(ReorderInProgressError):
            await store.commit_reorder(service_id)
        with pytest.raises(ReorderInProgressError):
            await store.remove_entry(service_id, a.id)
        with pytest.raises(ReorderInProgressError):
            await store.add_entry(service_id, uuid4())
        with pytest.raises(ReorderInProgressError):
            await store.load(service_id)
        return await commit

    assert _ids(asyncio.run(scenario())) == [b.id, c.id, a.id]
    assert store.state(service_id) is ListState.IDLE


def test_commit_timeout_rolls_back(service_id: UUID) -> None:
    a, b = make_setlist(service_id, 2)
    collection = InMemorySetlistCollection([a, b])
    collection.delay = 0.5
    store = _loaded_store(collection, service_id, commit_timeout_seconds=0.05)

    store.apply_reorder(service_id, 1, 0)
    with pytest.raises(ReorderRolledBackError) as excinfo:
        asyncio.run(store.commit_reorder(service_id))

    assert isinstance(excinfo.value.__cause__, NetworkOrTimeoutError)
    assert excinfo.value.reload_recommended
    assert _ids(store.entries(service_id)) == [a.id, b.id]
    assert store.state(service_id) is ListState.IDLE


def test_subscribers_see_each_visible_change(service_id: UUID) -> None:
    entries = make_setlist(service_id, 2)
    collection = InMemorySetlistCollection(entries)
    store = OptimisticListStore(collection)
    kinds: list[ChangeKind] = []
    unsubscribe = store.subscribe(lambda change: kinds.append(change.kind))

    asyncio.run(store.load(service_id))
    store.apply_reorder(service_id, 0, 1)
    asyncio.run(store.commit_reorder(service_id))
    unsubscribe()
    store.apply_reorder(service_id, 0, 1)

    assert kinds == [ChangeKind.LOADED, ChangeKind.REORDERED, ChangeKind.COMMITTED]


def test_remove_entry_closes_the_gap(service_id: UUID) -> None:
    a, b, c, d = make_setlist(service_id, 4)
    collection = InMemorySetlistCollection([a, b, c, d])
    store = _loaded_store(collection, service_id)

    remaining = asyncio.run(store.remove_entry(service_id, b.id))

    assert _ids(remaining) == [a.id, c.id, d.id]
    assert [entry.position for entry in remaining] == [1, 2, 3]
    assert collection.writes[0].op == "delete"
    assert collection.writes[0].entity_id == b.id
    assert collection.positions(service_id) == {a.id: 1, c.id: 2, d.id: 3}


def test_remove_last_entry_needs_no_renumbering(service_id: UUID) -> None:
    a, b = make_setlist(service_id, 2)
    collection = InMemorySetlistCollection([a, b])
    store = _loaded_store(collection, service_id)

    asyncio.run(store.remove_entry(service_id, b.id))

    assert [write.op for write in collection.writes] == ["delete"]


def test_remove_unknown_entry_is_rejected(service_id: UUID) -> None:
    collection = InMemorySetlistCollection(make_setlist(service_id, 2))
    store = _loaded_store(collection, service_id)

    with pytest.raises(InvalidReorderError):
        asyncio.run(store.remove_entry(service_id, uuid4()))

    assert collection.writes == []


def test_failed_delete_restores_entry(service_id: UUID) -> None:
    a, b = make_setlist(service_id, 2)
    collection = TransactionalSetlistCollection([a, b])
    collection.fail = lambda op, _id, _changes: (
        PersistenceError("denied") if op == "delete" else None
    )
    store = _loaded_store(collection, service_id)

    with pytest.raises(ReorderRolledBackError) as excinfo:
        asyncio.run(store.remove_entry(service_id, a.id))

    assert not excinfo.value.reload_recommended
    assert _ids(store.entries(service_id)) == [a.id, b.id]


def test_failed_renumber_after_delete_recommends_reload(service_id: UUID) -> None:
    a, b, c = make_setlist(service_id, 3)
    collection = TransactionalSetlistCollection([a, b, c])
    collection.fail_batch = NotFoundError("row vanished")
    store = _loaded_store(collection, service_id)

    with pytest.raises(ReorderRolledBackError) as excinfo:
        asyncio.run(store.remove_entry(service_id, a.id))

    assert excinfo.value.reload_recommended
    assert a.id not in collection.rows
    assert _ids(store.entries(service_id)) == [a.id, b.id, c.id]


def test_add_entry_appends_at_next_position(service_id: UUID) -> None:
    entries = make_setlist(service_id, 2)
    collection = InMemorySetlistCollection(entries)
    store = _loaded_store(collection, service_id)
    song_id = uuid4()

    added = asyncio.run(store.add_entry(service_id, song_id, notes="key of G"))

    assert added.position == 3
    assert added.song_id == song_id
    assert store.entries(service_id)[-1] == added
    assert collection.rows[added.id].notes == "key of G"


def test_add_entry_failure_leaves_list_untouched(service_id: UUID) -> None:
    entries = make_setlist(service_id, 1)
    collection = InMemorySetlistCollection(entries)
    collection.fail = lambda op, _id, _changes: (
        UniqueConstraintError("taken") if op == "insert" else None
    )
    store = _loaded_store(collection, service_id)

    with pytest.raises(UniqueConstraintError):
        asyncio.run(store.add_entry(service_id, uuid4()))

    assert _ids(store.entries(service_id)) == _ids(entries)
    assert store.state(service_id) is ListState.IDLE


@pytest.mark.parametrize("transactional", [False, True])
def test_random_operations_keep_positions_contiguous(
    service_id: UUID,
    transactional: bool,  # noqa: FBT001
) -> None:
    rng = random.Random(7)
    entries = make_setlist(service_id, 8)
    collection = (
        TransactionalSetlistCollection(entries)
        if transactional
        else InMemorySetlistCollection(entries)
    )
    store = OptimisticListStore(collection, PositionReconciler(collection, write_concurrency=2))

    async def scenario() -> None:
        await store.load(service_id)
        for _ in range(40):
            size = len(store.entries(service_id))
            roll = rng.random()
            if roll < 0.15 and size > 1:
                victim = rng.choice(store.entries(service_id))
                await store.remove_entry(service_id, victim.id)
            elif roll < 0.3:
                await store.add_entry(service_id, uuid4())
            else:
                store.apply_reorder(service_id, rng.randrange(size), rng.randrange(size))
                await store.commit_reorder(service_id)
            visible = store.entries(service_id)
            assert is_contiguous(visible)
            assert collection.positions(service_id) == {e.id: e.position for e in visible}

    asyncio.run(scenario())
