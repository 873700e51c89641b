from contextlib import contextmanager
from multiprocessing import Pool, cpu_count


def resolve_workers(workers) -> int:
    """
    Normalisiert die Worker-Anzahl: 0 oder None bedeutet alle CPUs.
    """
    if workers is None or workers == 0:
        return cpu_count()
    workers = int(workers)
    if workers < 0:
        raise ValueError(f"Invalid worker count: {workers}")
    return workers

@contextmanager
def open_pool(workers):
    """
    Öffnet einen Prozesspool für die Arbeit innerhalb einer Ebene.
    Bei einem Worker wird kein Pool gestartet, alles läuft im aktuellen Prozess.
    """
    workers = resolve_workers(workers)
    if workers <= 1:
        yield None
        return
    with Pool(workers) as pool:
        yield pool

def ordered_map(pool, func, items, chunksize=None):
    """
    Wendet func auf alle Elemente an. Die Ergebnisse stehen immer in der Reihenfolge der Eingabe,
    egal ob im Pool oder sequenziell gerechnet wurde.
    """
    if pool is None or len(items) < 2:
        return [func(item) for item in items]
    # Pool.map wählt ohne chunksize selbst eine Blockgröße
    return pool.map(func, items, chunksize)
