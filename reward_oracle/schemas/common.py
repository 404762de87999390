"""
Common field types shared by the wire schemas.

Addresses travel checksum-cased, 256-bit amounts as decimal strings and
raw bytes as 0x-prefixed hex.
"""

from typing import Annotated, Any

from eth_utils import is_address, to_checksum_address
from pydantic import BeforeValidator, PlainSerializer


UINT256_MAX = 2 ** 256 - 1
UINT32_MAX = 2 ** 32 - 1


def to_address(value: Any) -> str:
    if isinstance(value, bytes) and len(value) == 20:
        return to_checksum_address(value)
    if not isinstance(value, str) or not is_address(value):
        raise ValueError(f"invalid address: {value!r}")
    return to_checksum_address(value)


def to_uint256(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("boolean is not an amount")
    if isinstance(value, str):
        if not (value.isascii() and value.isdigit()):
            raise ValueError(f"invalid decimal amount: {value!r}")
        value = int(value)
    if not isinstance(value, int):
        raise ValueError(f"invalid amount: {value!r}")
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"amount out of uint256 range: {value}")
    return value


def to_hex_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str):
        raise ValueError(f"invalid hex bytes: {value!r}")
    text = value[2:] if value.startswith(("0x", "0X")) else value
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise ValueError(f"invalid hex bytes: {value!r}")


Address = Annotated[str, BeforeValidator(to_address)]

Uint256 = Annotated[
    int,
    BeforeValidator(to_uint256),
    PlainSerializer(lambda v: str(v), return_type=str, when_used="json"),
]

HexBytes = Annotated[
    bytes,
    BeforeValidator(to_hex_bytes),
    PlainSerializer(lambda v: "0x" + v.hex(), return_type=str, when_used="json"),
]
