"""Generador de identificadores ULID.

Formato (26 caracteres, base32 de Crockford):
  TTTTTTTTTT RRRRRRRRRRRRRRRR
  10 chars   = timestamp en milisegundos (48 bits)
  16 chars   = 80 bits aleatorios

Solo es monótono a nivel de milisegundo: dos ids generados en el mismo
milisegundo se distinguen únicamente por la parte aleatoria.
"""

from __future__ import annotations

import secrets
import time
from typing import Callable, Optional

ENCODING = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
ULID_LENGTH = 26
TIMESTAMP_LENGTH = 10
RANDOM_LENGTH = 16

_DECODING = {ch: i for i, ch in enumerate(ENCODING)}
_TIMESTAMP_MASK = (1 << 48) - 1


def _encode(value: int, length: int) -> str:
    chars = []
    for _ in range(length):
        chars.append(ENCODING[value & 0x1F])
        value >>= 5
    return "".join(reversed(chars))


def now_ms() -> int:
    """Epoch actual en milisegundos."""
    return int(time.time() * 1000)


def generate_ulid(
    timestamp_ms: Optional[int] = None,
    randbits: Callable[[int], int] = secrets.randbits,
) -> str:
    """Genera un ULID para el instante dado (o el actual)."""
    if timestamp_ms is None:
        timestamp_ms = now_ms()
    if timestamp_ms < 0:
        raise ValueError("timestamp_ms must be non-negative")

    return (
        _encode(timestamp_ms & _TIMESTAMP_MASK, TIMESTAMP_LENGTH)
        + _encode(randbits(80), RANDOM_LENGTH)
    )


def decode_timestamp(ulid: str) -> int:
    """Recupera el timestamp (ms) codificado en los 10 primeros caracteres."""
    if len(ulid) != ULID_LENGTH:
        raise ValueError(f"ULID must be {ULID_LENGTH} characters, got {len(ulid)}")

    value = 0
    for ch in ulid[:TIMESTAMP_LENGTH]:
        try:
            value = (value << 5) | _DECODING[ch]
        except KeyError:
            raise ValueError(f"Invalid ULID character: {ch!r}") from None
    return value
