from __future__ import annotations

import pytest

from git_cmp.core.errors import MalformedHistoryError
from git_cmp.core.merge import merge, resolve_conflicts_theirs, squash
from git_cmp.core.models import ConflictEntry, IndexEntry, MergeResult


def test_merge_of_identical_inputs_returns_same_tree(store):
    c = store.commit({"a": "1", "b": "2"})

    assert merge(store, c, c, c) == c.tree_id


def test_merge_takes_non_overlapping_changes_from_both_sides(store):
    base = store.commit({"a": "1", "b": "1"})
    ours = store.commit({"a": "2", "b": "1"}, parents=[base])
    theirs = store.commit({"a": "1", "b": "2", "c": "new"}, parents=[base])

    tree = merge(store, base, ours, theirs)

    assert store.files(tree) == {"a": "2", "b": "2", "c": "new"}


def test_conflicting_path_takes_their_blob(store):
    base = store.commit({"a": "base", "keep": "k"})
    ours = store.commit({"a": "ours", "keep": "k"}, parents=[base])
    theirs = store.commit({"a": "theirs", "keep": "k"}, parents=[base])

    tree = merge(store, base, ours, theirs)

    assert store.files(tree) == {"a": "theirs", "keep": "k"}


def test_conflict_deleted_on_their_side_is_absent(store):
    base = store.commit({"a": "base", "keep": "k"})
    ours = store.commit({"a": "ours", "keep": "k"}, parents=[base])
    theirs = store.commit({"keep": "k"}, parents=[base])

    tree = merge(store, base, ours, theirs)

    assert store.files(tree) == {"keep": "k"}


def test_conflict_deleted_on_our_side_takes_theirs(store):
    base = store.commit({"a": "base"})
    ours = store.commit({}, parents=[base])
    theirs = store.commit({"a": "theirs"}, parents=[base])

    assert store.files(merge(store, base, ours, theirs)) == {"a": "theirs"}


def test_merge_accepts_tree_ids(store):
    base = store.commit({"a": "1"})
    theirs = store.commit({"a": "2"}, parents=[base])

    assert merge(store, base.tree_id, base.tree_id, theirs.tree_id) == theirs.tree_id


def test_resolve_conflicts_theirs_clears_every_conflict():
    theirs = IndexEntry("x", "100644", "t")
    result = MergeResult(
        index={},
        conflicts=[
            ConflictEntry(ancestor=IndexEntry("x", "100644", "b"), ours=IndexEntry("x", "100644", "o"), theirs=theirs),
            ConflictEntry(ancestor=IndexEntry("y", "100644", "b"), ours=IndexEntry("y", "100644", "o")),
        ],
    )

    resolve_conflicts_theirs(result)

    assert not result.has_conflicts
    assert result.resolutions == {"x": theirs, "y": None}


def test_squash_single_commit_returns_its_tree_without_merging(store):
    base = store.commit({"a": "1"})
    only = store.commit({"a": "2"}, parents=[base])
    store.calls.clear()

    assert squash(store, [only]) == only.tree_id
    assert store.calls == []


def test_squash_empty_is_rejected(store):
    with pytest.raises(ValueError):
        squash(store, [])


def test_squash_layers_each_commit_change(store):
    root = store.commit({"a": "0", "b": "0", "c": "0"})
    c1 = store.commit({"a": "1", "b": "0", "c": "0"}, parents=[root])
    # c2 and c3 were written on an older base; only their own change is layered
    old = store.commit({"a": "0", "b": "0", "c": "0", "z": "old"}, parents=[root])
    c2 = store.commit({"a": "0", "b": "2", "c": "0", "z": "old"}, parents=[old])
    c3 = store.commit({"a": "0", "b": "0", "c": "3", "z": "old"}, parents=[old])

    tree = squash(store, [c1, c2, c3])

    assert store.files(tree) == {"a": "1", "b": "2", "c": "3"}
    assert store.count("merge_trees") == 2


def test_squash_equals_left_fold_of_merges(store):
    root = store.commit({"a": "0"})
    c1 = store.commit({"a": "1"}, parents=[root])
    c2 = store.commit({"a": "1", "b": "1"}, parents=[c1])
    c3 = store.commit({"a": "3", "b": "1"}, parents=[c2])

    step = merge(store, c1, c1.tree_id, c2)
    expected = merge(store, c2, step, c3)

    assert squash(store, [c1, c2, c3]) == expected


def test_squash_of_root_commit_after_first_is_malformed(store):
    c1 = store.commit({"a": "1"})
    orphan = store.commit({"b": "1"})

    with pytest.raises(MalformedHistoryError):
        squash(store, [c1, orphan])
