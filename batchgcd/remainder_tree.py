import logging
from typing import List, Optional

from gmpy2 import f_mod, mpz

from batchgcd.errors import IncompleteTreeError
from batchgcd.level_store import LevelStore
from batchgcd.workers import ordered_map

LOGGER = logging.getLogger("batchgcd.remainder_tree")

# Anzahl Knoten, die pro Pool-Runde aus dem Store gelesen werden
STREAM_CHUNK = 4096


def reduce_mod_square(args):
    """
    Berechnet value mod node^2.
    """
    value, node = args
    return f_mod(value, node * node)

def remainders_squares(store: LevelStore, levels: Optional[int] = None) -> List[mpz]:
    """
    Leichte Variante: liest nur die Blätter und die Wurzel Z und berechnet rem_i = Z mod X_i^2 direkt.
    Wenig I/O, dafür N Reduktionen gegen das volle Z.
    """
    if levels is None:
        levels = store.height()
    if levels < 1:
        raise IncompleteTreeError("No product tree levels recorded", phase="remainder_tree")
    # Sanity check
    root_count = store.shape_of(levels - 1)
    if root_count != 1:
        raise IncompleteTreeError(
            f"Incomplete product tree: root level holds {root_count} elements",
            phase="remainder_tree", level=levels - 1)

    leaves = store.read_level(0)
    Z = store.read_element(levels - 1, 0)
    return [reduce_mod_square((Z, x)) for x in leaves]

def _reduce_level_streaming(store: LevelStore, level: int, partial: list, pool=None) -> list:
    """
    Eine Stufe der Kaskade: newPartial[i] = partial[i // 2] mod node_i^2.
    Die Knoten werden aus dem Store gestreamt, im Pool blockweise.
    """
    count = store.shape_of(level)
    if (count + 1) // 2 != len(partial):
        raise IncompleteTreeError(
            f"Level holds {count} nodes but parent level holds {len(partial)}",
            phase="remainder_tree", level=level)

    if pool is None:
        return [reduce_mod_square((partial[i // 2], node))
                for i, node in enumerate(store.iter_level(level))]

    new_partial = []
    for start in range(0, count, STREAM_CHUNK):
        stop = min(start + STREAM_CHUNK, count)
        jobs = [(partial[i // 2], store.read_element(level, i)) for i in range(start, stop)]
        new_partial.extend(ordered_map(pool, reduce_mod_square, jobs))
    return new_partial

def remainders_squares_fast(store: LevelStore, levels: Optional[int] = None, pool=None) -> List[mpz]:
    """
    Bernsteins Restbaum: von der Wurzel abwärts wird der Rest des Elternknotens modulo dem
    Quadrat jedes Kindknotens reduziert. Auf Ebene 0 steht dann Z mod X_i^2 für jedes Blatt.
    Braucht jede persistierte Ebene; die erste Stufe hält kurzzeitig Werte in Wurzelgröße.
    """
    if levels is None:
        levels = store.height()
    if levels < 1:
        raise IncompleteTreeError("No product tree levels recorded", phase="remainder_tree")

    partial = store.read_level(levels - 1)
    # Sanity check
    if len(partial) != 1:
        raise IncompleteTreeError(
            f"Incomplete product tree: root level holds {len(partial)} elements",
            phase="remainder_tree", level=levels - 1)

    if levels == 1:
        # Einziges Blatt ist zugleich die Wurzel
        return [reduce_mod_square((partial[0], partial[0]))]

    for level in range(levels - 2, -1, -1):
        LOGGER.info("   Computing partial remainders %d of %d", levels - 2 - level, levels - 2)
        partial = _reduce_level_streaming(store, level, partial, pool)
    return partial
