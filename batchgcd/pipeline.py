import logging
from dataclasses import dataclass

from batchgcd.errors import ArithmeticPreconditionError, IncompleteTreeError
from batchgcd.gcd_finalizer import finalize_gcds, summarize
from batchgcd.level_store import LevelStore
from batchgcd.moduli_reader import INPUT_READERS, read_moduli
from batchgcd.product_tree import build_product_tree
from batchgcd.remainder_tree import remainders_squares, remainders_squares_fast
from batchgcd.timing import phase_timer
from batchgcd.workers import open_pool, resolve_workers

LOGGER = logging.getLogger("batchgcd.pipeline")

DEFAULT_MODULI_FILE = "data/moduli.csv"
DEFAULT_DATA_DIR = "data/product_tree"
ALGORITHMS = ("fast", "light")


@dataclass(frozen=True)
class AuditConfig:
    moduli_file: str = DEFAULT_MODULI_FILE
    input_format: str = "csv"
    data_dir: str = DEFAULT_DATA_DIR
    algorithm: str = "fast"
    workers: int = 1

    @classmethod
    def from_arguments(cls, arguments: dict) -> "AuditConfig":
        """
        Erzeugt die Konfiguration aus den JSON-Argumenten einer Action und validiert sie.
        Fehlende Felder bekommen die Standardwerte.
        """
        arguments = arguments or {}
        algorithm = str(arguments.get("algorithm", "fast")).strip().lower()
        if algorithm not in ALGORITHMS:
            raise ValueError(f"Invalid algorithm {algorithm}")
        input_format = str(arguments.get("input_format", "csv")).strip().lower()
        if input_format not in INPUT_READERS:
            raise ValueError(f"Invalid input format {input_format}")
        return cls(
            moduli_file=str(arguments.get("moduli_file", DEFAULT_MODULI_FILE)),
            input_format=input_format,
            data_dir=str(arguments.get("data_dir", DEFAULT_DATA_DIR)),
            algorithm=algorithm,
            workers=resolve_workers(arguments.get("workers", 1)),
        )


def compute_remainders(store: LevelStore, algorithm: str, pool=None):
    if algorithm == "light":
        return remainders_squares(store)
    return remainders_squares_fast(store, pool=pool)

def _load_ids(config: AuditConfig, store: LevelStore):
    """
    Liest die IDs erneut aus der Eingabe und prüft sie gegen die gespeicherte Blattanzahl.
    """
    ids = [m.id for m in read_moduli(config.moduli_file, config.input_format)]
    leaves = store.shape_of(0)
    if len(ids) != leaves:
        raise IncompleteTreeError(
            f"Input holds {len(ids)} moduli but stored tree holds {leaves} leaves",
            phase="gcd", level=0)
    return ids

# =============================================================================
# Phasen

def run_build_phase(config: AuditConfig, store: LevelStore, pool, timings: dict):
    """
    Teil (A): Moduli einlesen und Produktbaum aufbauen. Rückgabe: (IDs, Anzahl Ebenen).
    """
    moduli = read_moduli(config.moduli_file, config.input_format)
    ids = [m.id for m in moduli]
    leaves = [m.value for m in moduli]
    del moduli

    with phase_timer("product_tree", "Part (A) - Computing product tree of all moduli", timings):
        levels = build_product_tree(leaves, store, pool)
    return ids, levels

def run_remainder_phase(config: AuditConfig, store: LevelStore, pool, timings: dict):
    with phase_timer("remainders", "Part (B) - Computing the remainders of Z mod Xi^2", timings):
        return compute_remainders(store, config.algorithm, pool)

def run_gcd_phase(store: LevelStore, remainders, ids, timings: dict) -> dict:
    with phase_timer("gcd", " - Computing final GCDs", timings):
        leaves = store.read_level(0)
        results = finalize_gcds(leaves, remainders, ids)
        return summarize(results)

# =============================================================================
# Actions

def build_tree(arguments: dict) -> dict:
    """Baut nur den Produktbaum und persistiert alle Ebenen."""
    config = AuditConfig.from_arguments(arguments)
    store = LevelStore(config.data_dir)
    timings = {}
    with open_pool(config.workers) as pool:
        ids, levels = run_build_phase(config, store, pool, timings)
    return {"moduli": len(ids), "levels": levels, "elapsed": timings}

def find_weak_keys(arguments: dict) -> dict:
    """Berechnet Reste und ggTs gegen einen bereits persistierten Produktbaum."""
    config = AuditConfig.from_arguments(arguments)
    store = LevelStore(config.data_dir)
    timings = {}
    ids = _load_ids(config, store)
    with open_pool(config.workers) as pool:
        remainders = run_remainder_phase(config, store, pool, timings)
    reply = run_gcd_phase(store, remainders, ids, timings)
    reply["elapsed"] = timings
    return reply

def batch_gcd(arguments: dict) -> dict:
    """Führt alle drei Phasen nacheinander aus."""
    config = AuditConfig.from_arguments(arguments)
    store = LevelStore(config.data_dir)
    timings = {}
    with open_pool(config.workers) as pool:
        ids, levels = run_build_phase(config, store, pool, timings)
        remainders = run_remainder_phase(config, store, pool, timings)
    reply = run_gcd_phase(store, remainders, ids, timings)
    reply["levels"] = levels
    reply["elapsed"] = timings
    return reply

def cross_check(arguments: dict) -> dict:
    """
    Rechnet beide Restbaum-Varianten gegen denselben gespeicherten Baum und vergleicht sie bitgenau.
    """
    config = AuditConfig.from_arguments(arguments)
    store = LevelStore(config.data_dir)
    timings = {}
    with phase_timer("light", "Remainders (light)", timings):
        light = remainders_squares(store)
    with open_pool(config.workers) as pool:
        with phase_timer("fast", "Remainders (fast)", timings):
            fast = remainders_squares_fast(store, pool=pool)

    if len(light) != len(fast):
        raise ArithmeticPreconditionError(
            f"Light algorithm returned {len(light)} remainders, fast returned {len(fast)}",
            phase="cross_check")
    mismatches = [i for i, (a, b) in enumerate(zip(light, fast)) if a != b]
    if mismatches:
        LOGGER.error("Remainder algorithms disagree at %d positions", len(mismatches))
        raise ArithmeticPreconditionError(
            f"Remainder algorithms disagree at {len(mismatches)} positions",
            phase="cross_check", level=0, position=mismatches[0])
    return {"identical": True, "remainders": len(light), "elapsed": timings}
