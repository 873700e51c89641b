from __future__ import annotations

import math

import pytest

from batchgcd.errors import EmptyInputError
from batchgcd.level_store import LevelStore
from batchgcd.product_tree import build_product_tree, level_sizes
from tests._helpers import product


@pytest.mark.parametrize("n", list(range(1, 40)) + [1000, 1025])
def test_level_sizes_recurrence_and_height(n):
    sizes = level_sizes(n)
    assert sizes[0] == n
    assert sizes[-1] == 1
    for a, b in zip(sizes, sizes[1:]):
        assert b == a // 2 + a % 2
    assert len(sizes) == math.ceil(math.log2(n)) + 1


@pytest.mark.parametrize("n", [1, 2, 3, 5, 8, 13])
def test_built_shape_matches_recurrence(tmp_path, n):
    store = LevelStore(str(tmp_path))
    levels = build_product_tree(list(range(2, n + 2)), store)
    assert levels == len(level_sizes(n))
    assert [store.shape_of(l) for l in range(levels)] == level_sizes(n)


def test_root_is_product_of_leaves(tmp_path):
    primes = [3, 5, 7, 11, 13]
    store = LevelStore(str(tmp_path))
    levels = build_product_tree(list(primes), store)
    assert levels == 4
    assert store.read_level(levels - 1) == [product(primes)]


def test_odd_level_carries_last_element(tmp_path):
    a, b, c = 101, 103, 107
    store = LevelStore(str(tmp_path))
    levels = build_product_tree([a, b, c], store)
    assert levels == 3
    assert store.read_level(0) == [a, b, c]
    assert store.read_level(1) == [a * b, c]
    assert store.read_level(2) == [a * b * c]


def test_single_modulus_is_root(tmp_path):
    store = LevelStore(str(tmp_path))
    assert build_product_tree([35], store) == 1
    assert store.read_level(0) == [35]


def test_leaves_are_consumed(tmp_path):
    leaves = [3, 5, 7, 11]
    build_product_tree(leaves, LevelStore(str(tmp_path)))
    assert leaves == []


def test_empty_input_raises(tmp_path):
    with pytest.raises(EmptyInputError):
        build_product_tree([], LevelStore(str(tmp_path)))


def test_rebuild_replaces_old_shape(tmp_path):
    store = LevelStore(str(tmp_path))
    build_product_tree(list(range(2, 20)), store)
    levels = build_product_tree([6, 10], store)
    reopened = LevelStore(str(tmp_path))
    assert reopened.height() == levels == 2
    assert reopened.read_level(1) == [60]
