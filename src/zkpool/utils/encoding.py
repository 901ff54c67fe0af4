"""Encoding and decoding utilities."""

from typing import Optional, Union

from py_ecc.optimized_bn128 import curve_order

from zkpool.exceptions import FieldEncodingError

# BN254 scalar field modulus
FIELD_MODULUS = curve_order
FIELD_ELEMENT_SIZE = 32


def bytes_to_hex(data: bytes) -> str:
    """
    Convert bytes to hexadecimal string.

    Args:
        data: Bytes to convert

    Returns:
        str: Hexadecimal string with '0x' prefix
    """
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str, expected_length: Optional[int] = None) -> bytes:
    """
    Convert hexadecimal string to bytes.

    Args:
        hex_str: Hexadecimal string (with or without '0x' prefix)
        expected_length: Required decoded length in bytes, if any

    Returns:
        bytes: Decoded bytes

    Raises:
        ValueError: If hex string is invalid
    """
    if hex_str.startswith("0x"):
        hex_str = hex_str[2:]

    if len(hex_str) % 2 != 0:
        raise ValueError("Hex string must have even number of characters")

    data = bytes.fromhex(hex_str)
    if expected_length is not None and len(data) != expected_length:
        raise ValueError(f"Expected {expected_length} bytes, got {len(data)}")
    return data


def ensure_bytes(data: Union[bytes, str]) -> bytes:
    """
    Ensure data is in bytes format.

    Args:
        data: Bytes or hex string

    Returns:
        bytes: Data as bytes
    """
    if isinstance(data, bytes):
        return data
    elif isinstance(data, str):
        return hex_to_bytes(data)
    else:
        raise TypeError(f"Expected bytes or str, got {type(data)}")


def field_to_bytes(element: int) -> bytes:
    """Serialize a field element to its canonical 32-byte little-endian form."""
    if not 0 <= element < FIELD_MODULUS:
        raise FieldEncodingError("Value is not a reduced field element")
    return element.to_bytes(FIELD_ELEMENT_SIZE, 'little')


def bytes_to_field(data: bytes) -> int:
    """
    Parse a canonical 32-byte little-endian field element.

    Raises:
        FieldEncodingError: If data has the wrong length or is not reduced
    """
    if not isinstance(data, bytes) or len(data) != FIELD_ELEMENT_SIZE:
        raise FieldEncodingError("Field element must be 32 bytes")
    value = int.from_bytes(data, 'little')
    if value >= FIELD_MODULUS:
        raise FieldEncodingError("Field element is not canonical")
    return value


def bytes_to_field_mod(data: bytes) -> int:
    """Interpret 32 arbitrary bytes as a field element, reducing mod r."""
    if not isinstance(data, bytes) or len(data) != FIELD_ELEMENT_SIZE:
        raise FieldEncodingError("Value must be 32 bytes")
    return int.from_bytes(data, 'little') % FIELD_MODULUS
