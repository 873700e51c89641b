import logging
import time
from contextlib import contextmanager

LOGGER = logging.getLogger("batchgcd.timing")


@contextmanager
def phase_timer(phase: str, title: str, timings: dict = None):
    """
    Loggt Beginn und Ende einer Phase samt Laufzeit (monotone Uhr).
    Ist timings gesetzt, landet die Laufzeit in Sekunden unter dem Phasennamen.
    """
    rule = "-" * len(title)
    LOGGER.info(rule)
    LOGGER.info(title)
    LOGGER.info(rule)
    start = time.monotonic()
    try:
        yield
    finally:
        elapsed = time.monotonic() - start
        if timings is not None:
            timings[phase] = round(elapsed, 6)
        LOGGER.info("End %s", phase)
        LOGGER.info("Time elapsed (s): %.6f", elapsed)
