import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import List, Tuple

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from gmpy2 import mpz

from batchgcd.errors import ParseError, StorageIOError

LOGGER = logging.getLogger("batchgcd.moduli_reader")


@dataclass(frozen=True)
class Modulus:
    """Ein Eingabedatensatz: ID, Modulus und unbenutzte Zusatzfelder."""
    id: int
    value: mpz
    extra: Tuple[str, ...] = field(default=())


def _read_lines(filename: str) -> List[str]:
    try:
        with open(filename, "r", encoding="utf-8") as file:
            return file.read().splitlines()
    except FileNotFoundError:
        raise StorageIOError(f"Input file {filename} not found", phase="input")
    except OSError as e:
        raise StorageIOError(f"Could not read input file {filename}: {e}", phase="input")

def parse_record(line: str, line_no: int) -> Modulus:
    """
    Parst eine CSV-Zeile "id,<zusatzfelder...>,modulus": erstes Feld ist die ID,
    letztes Feld der dezimale Modulus, alles dazwischen wird mitgeführt.
    """
    fields = [f.strip() for f in line.split(",")]
    if len(fields) < 2:
        raise ParseError(f"Line {line_no}: expected at least ID and modulus", phase="input", position=line_no)
    try:
        if not fields[0].isdigit():
            raise ValueError(fields[0])
        modulus_id = int(fields[0], 10)
    except ValueError:
        raise ParseError(f"Line {line_no}: invalid ID {fields[0]!r}", phase="input", position=line_no)
    try:
        # nur reine Dezimalziffern, keine Vorzeichen oder Unterstriche
        if not fields[-1].isdigit():
            raise ValueError(fields[-1])
        value = mpz(fields[-1], 10)
    except ValueError:
        raise ParseError(f"Line {line_no}: invalid modulus for ID {modulus_id}", phase="input", position=line_no)
    if value <= 0:
        raise ParseError(f"Line {line_no}: modulus for ID {modulus_id} must be positive",
                         phase="input", position=line_no)
    return Modulus(id=modulus_id, value=value, extra=tuple(fields[1:-1]))

def _reject_duplicate_ids(moduli: List[Modulus]) -> None:
    seen = set()
    for pos, m in enumerate(moduli):
        if m.id in seen:
            raise ParseError(f"Duplicate ID {m.id}", phase="input", position=pos)
        seen.add(m.id)

def read_moduli_from_csv(filename: str) -> List[Modulus]:
    """
    Liest alle Moduli aus einer CSV-Datei. Leerzeilen werden übersprungen, doppelte IDs abgelehnt.
    """
    LOGGER.info("Reading moduli from %s", filename)
    moduli = []
    for line_no, line in enumerate(_read_lines(filename), start=1):
        if not line.strip():
            continue
        moduli.append(parse_record(line, line_no))
    _reject_duplicate_ids(moduli)
    LOGGER.info("Done. Read %d moduli", len(moduli))
    return moduli

def load_single_certificate(data: str, line_no: int):
    """
    Dekodiert ein Base64-DER-X.509-Zertifikat und gibt den RSA-Modulus zurück.
    Zertifikate mit anderen Schlüsseltypen liefern None.
    """
    try:
        der = base64.b64decode(data.strip(), validate=True)
        cert = x509.load_der_x509_certificate(der)
    except (binascii.Error, ValueError) as e:
        raise ParseError(f"Line {line_no}: invalid certificate: {e}", phase="input", position=line_no)

    public_key = cert.public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        LOGGER.debug("Line %d: skipping non-RSA certificate", line_no)
        return None
    return mpz(public_key.public_numbers().n)

def load_certificates(filename: str) -> List[Modulus]:
    """
    Liest ein Zertifikat pro Zeile; die ID ist die Zeilennummer (ab 0).
    """
    LOGGER.info("Loading certificates from %s", filename)
    moduli = []
    for line_no, line in enumerate(_read_lines(filename)):
        if not line.strip():
            continue
        n = load_single_certificate(line, line_no)
        if n is not None:
            moduli.append(Modulus(id=line_no, value=n))
    LOGGER.info("Done. Read %d RSA moduli", len(moduli))
    return moduli

INPUT_READERS = {
    "csv": read_moduli_from_csv,
    "certs": load_certificates,
}

def read_moduli(filename: str, input_format: str = "csv") -> List[Modulus]:
    reader = INPUT_READERS.get(input_format)
    if reader is None:
        raise ValueError(f"Unknown input format {input_format}")
    return reader(filename)
