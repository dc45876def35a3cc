"""Additive checksum for JK BMS frames."""


def calculate_checksum(data: bytes) -> int:
    """
    Calculate the 8-bit additive checksum used by JK BMS.

    The checksum is the low byte of the sum of all bytes. Requests carry it
    in their last byte (index 19), responses in byte 299.

    Args:
        data: Bytes to calculate the checksum over

    Returns:
        8-bit checksum value

    Example:
        >>> calculate_checksum(b'\\xaa\\x55\\x90\\xeb\\x96')
        16
    """
    return sum(data) & 0xFF


def verify_checksum(data: bytes, expected: int) -> bool:
    """
    Verify the checksum of data matches the expected value.

    Args:
        data: Data bytes (excluding checksum)
        expected: Expected checksum value

    Returns:
        True if checksum matches, False otherwise
    """
    return calculate_checksum(data) == expected
