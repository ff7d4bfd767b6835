"""Base58 helpers for object digests reported by Sui full nodes.

Digests travel as Base58 strings in JSON-RPC responses but as raw 32-byte
values inside BCS payloads. Unlike Base58Check there is no version byte and no
checksum.
"""

from __future__ import annotations

import binascii
from typing import List

b58_digits = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def base58_encode(data: bytes) -> str:
    """Encode raw bytes into a Base58 string."""

    if not data:
        return ""
    value = int.from_bytes(data, "big")

    output: List[str] = []
    while value > 0:
        value, remainder = divmod(value, 58)
        output.append(b58_digits[remainder])
    encoded = "".join(output[::-1])

    leading_zero_count = 0
    for byte in data:
        if byte == 0:
            leading_zero_count += 1
        else:
            break

    return b58_digits[0] * leading_zero_count + encoded


def base58_decode(value: str) -> bytes:
    """Decode a Base58 string into raw bytes."""

    number = 0
    for character in value:
        number *= 58
        if character not in b58_digits:
            raise ValueError(f"Invalid Base58 character: {character}")
        number += b58_digits.index(character)

    if number:
        hex_value = f"{number:x}"
        if len(hex_value) % 2:
            hex_value = "0" + hex_value
        decoded = binascii.unhexlify(hex_value.encode("utf8"))
    else:
        decoded = b""

    padding = 0
    for character in value:
        if character == b58_digits[0]:
            padding += 1
        else:
            break
    return b"\x00" * padding + decoded
