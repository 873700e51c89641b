import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from gmpy2 import f_divmod, gcd

from batchgcd.errors import ArithmeticPreconditionError

LOGGER = logging.getLogger("batchgcd.gcd_finalizer")


@dataclass(frozen=True)
class GCDResult:
    """Ergebnis für einen Modulus: gemeinsamer Teiler g = gcd((Z mod X^2) / X, X)."""
    id: int
    position: int
    divisor: int
    # g == X: alle Faktoren geteilt (z.B. doppelter Modulus), g zerlegt X nicht
    shares_all_factors: bool = False

    @property
    def compromised(self) -> bool:
        return self.divisor != 1


def finalize_gcds(leaves: Sequence, remainders: Sequence, ids: Optional[Sequence[int]] = None) -> List[GCDResult]:
    """
    Teilt jeden Rest exakt durch sein Blatt und bildet den ggT mit dem Blatt.
    Ein Divisionsrest ungleich 0 bedeutet einen defekten Baum und bricht ab.
    """
    if len(leaves) != len(remainders):
        raise ArithmeticPreconditionError(
            f"Got {len(remainders)} remainders for {len(leaves)} moduli", phase="gcd")
    if ids is None:
        ids = range(len(leaves))
    elif len(ids) != len(leaves):
        raise ArithmeticPreconditionError(f"Got {len(ids)} IDs for {len(leaves)} moduli", phase="gcd")

    LOGGER.info("Sanity check: %d input moduli.", len(leaves))
    results = []
    for position, (x, rem, modulus_id) in enumerate(zip(leaves, remainders, ids)):
        q, r = f_divmod(rem, x)
        if r != 0:
            raise ArithmeticPreconditionError(
                "Remainder is not divisible by its modulus", phase="gcd", level=0, position=position)
        g = gcd(q, x)
        results.append(GCDResult(id=int(modulus_id), position=position, divisor=int(g),
                                 shares_all_factors=(g == x and g != 1)))
    return results

def compromised_ids(results: Sequence[GCDResult]) -> List[int]:
    return [res.id for res in results if res.compromised]

def summarize(results: Sequence[GCDResult]) -> dict:
    """
    Fasst die Ergebnisse für die Ausgabe zusammen: Anzahl und IDs der kompromittierten Schlüssel.
    """
    ids = compromised_ids(results)
    LOGGER.info("Done. Compromised keys: %d", len(ids))
    return {"compromised": len(ids), "ids": ids}
