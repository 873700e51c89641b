import logging
from typing import List

from gmpy2 import mpz

from batchgcd.errors import EmptyInputError
from batchgcd.level_store import LevelStore
from batchgcd.workers import ordered_map

LOGGER = logging.getLogger("batchgcd.product_tree")


def level_sizes(n: int) -> List[int]:
    """
    Erwartete Elementanzahl je Ebene für n Blätter: halbieren, ungerader Rest wird mitgenommen.
    """
    if n <= 0:
        raise EmptyInputError("Product tree needs at least one modulus", phase="product_tree")
    sizes = [n]
    while sizes[-1] > 1:
        sizes.append(sizes[-1] // 2 + sizes[-1] % 2)
    return sizes

def multiply_pair(pair):
    a, b = pair
    return a * b

def next_level(current: list, pool=None) -> list:
    """
    Paarweise Produkte (2i, 2i+1); ein einsamer letzter Knoten wird unverändert übernommen.
    """
    pairs = [(current[i], current[i + 1]) for i in range(0, len(current) - 1, 2)]
    nxt = ordered_map(pool, multiply_pair, pairs)
    if len(current) % 2 != 0:
        nxt.append(current[-1])
    return nxt

def build_product_tree(leaves: list, store: LevelStore, pool=None) -> int:
    """
    Baut den Produktbaum von unten nach oben und schreibt jede Ebene samt Form in den Store.
    Die Blätter gehen in den Besitz des Builders über: die übergebene Liste ist danach leer.
    Rückgabe: Anzahl der Ebenen H.
    """
    if not leaves:
        raise EmptyInputError("Product tree needs at least one modulus", phase="product_tree")

    LOGGER.info("Computing product tree of %d moduli.", len(leaves))
    store.reset_shape()

    current_level = [mpz(x) for x in leaves]
    level = 0
    while len(current_level) > 1:
        store.write_level(level, current_level)
        store.record_shape(level, len(current_level))

        LOGGER.info("   Multiplying %d ints of %d bits", len(current_level), current_level[0].bit_length())
        new_level = next_level(current_level, pool)

        if level == 0:
            # Blätter freigeben, sobald Ebene 1 existiert
            del leaves[:]
        current_level = new_level
        level += 1

    # Wurzel
    store.write_level(level, current_level)
    store.record_shape(level, len(current_level))
    del leaves[:]
    return level + 1
