from gmpy2 import mpz

from batchgcd.errors import DecodeError

# =============================================================================
# Konstanten

# Längenfeld: 4 Byte Big-Endian wie bei mpz_out_raw, höchstes Bit = Vorzeichen
LENGTH_BYTES = 4
SIGN_BIT = 1 << (8 * LENGTH_BYTES - 1)
MAX_MAGNITUDE_BYTES = SIGN_BIT - 1

# =============================================================================
# Kodierung

def encode(x) -> bytes:
    """
    Kodiert eine nicht-negative Ganzzahl kanonisch:
    4 Byte Länge (Big-Endian) gefolgt vom Betrag in Big-Endian ohne führende Nullbytes.
    Die Null wird als reine Länge 0 ohne Betragsbytes gespeichert.
    """
    value = int(x)
    if value < 0:
        raise ValueError("Only non-negative integers can be encoded")
    length = (value.bit_length() + 7) // 8
    if length > MAX_MAGNITUDE_BYTES:
        raise ValueError(f"Integer too large to encode: {length} bytes")
    return length.to_bytes(LENGTH_BYTES, "big") + value.to_bytes(length, "big")

def decode(data: bytes) -> mpz:
    """
    Dekodiert genau einen mit encode() geschriebenen Wert.
    Abgeschnittene, zu lange oder nicht kanonische Eingaben führen zu DecodeError.
    """
    if len(data) < LENGTH_BYTES:
        raise DecodeError(f"Truncated length header: got {len(data)} of {LENGTH_BYTES} bytes")
    length = int.from_bytes(data[:LENGTH_BYTES], "big")
    if length & SIGN_BIT:
        raise DecodeError("Negative raw integer in unsigned encoding")

    magnitude = data[LENGTH_BYTES:]
    if len(magnitude) < length:
        raise DecodeError(f"Truncated magnitude: expected {length} bytes, got {len(magnitude)}")
    if len(magnitude) > length:
        raise DecodeError(f"Trailing bytes after magnitude: {len(magnitude) - length}")
    if length and magnitude[0] == 0:
        raise DecodeError("Non-canonical encoding with leading zero byte")
    return mpz(int.from_bytes(magnitude, "big"))
