"""Numeric codec - field elements, wide integers and fixed-point scaling."""

from decimal import Decimal, InvalidOperation, localcontext

from eth_utils import keccak

HALF_BITS = 128
HALF_MASK = (1 << HALF_BITS) - 1
SELECTOR_MASK = (1 << 250) - 1

# NUMERIC(78, 18) worth of digits; enough for any u256 at any scale we store
DECIMAL_PRECISION = 96

# Entry-point names that Starknet maps to a zero selector
_DEFAULT_ENTRY_POINTS = ("__default__", "__l1_default__")

FeltLike = int | str | bytes


class CodecError(ValueError):
    """Raised when a value cannot be converted by the codec."""


def felt_to_int(value: FeltLike) -> int:
    """
    Parse a field element into a non-negative integer.

    Accepts 0x-prefixed hex strings (as returned by the node), decimal
    strings, native ints and big-endian bytes.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        result = value
    elif isinstance(value, (bytes, bytearray)):
        result = int.from_bytes(value, "big")
    elif isinstance(value, str):
        s = value.strip().lower()
        try:
            result = int(s, 16) if s.startswith("0x") else int(s)
        except ValueError as e:
            raise CodecError(f"Invalid field element: {value!r}") from e
    else:
        raise CodecError(f"Unsupported field element type: {type(value).__name__}")

    if result < 0:
        raise CodecError(f"Field element must be non-negative: {value!r}")
    return result


def felt_to_bool(value: FeltLike) -> bool:
    """Zero is false, anything else is true."""
    return felt_to_int(value) != 0


def felt_to_hex(value: FeltLike) -> str:
    """Render a field element as a fixed-width 0x-prefixed hex string."""
    return "0x" + format(felt_to_int(value), "064x")


def wide_from_halves(high: FeltLike, low: FeltLike) -> int:
    """Rebuild a 256-bit integer from its two 128-bit halves."""
    return (felt_to_int(high) << HALF_BITS) | felt_to_int(low)


def split_wide(value: int) -> tuple[int, int]:
    """Split a 256-bit integer into (high, low) 128-bit halves."""
    return value >> HALF_BITS, value & HALF_MASK


def to_fixed_point_decimal(value: int, scale: int) -> Decimal:
    """
    Render an integer token quantity as a fixed-point decimal.

    The division by 10**scale is exact: the result has exactly `scale`
    fractional digits and never goes through floating point.

    Raises:
        CodecError: if `value` does not render as a decimal integer string
    """
    text = str(value)
    if not text.isdigit():
        raise CodecError(f"Not a decimal integer: {text!r}")

    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        try:
            return Decimal(text).scaleb(-scale)
        except InvalidOperation as e:
            raise CodecError(f"Cannot scale {text} by 10^{scale}") from e


def to_storage_decimal(value: int, scale: int | None) -> Decimal:
    """Scale `value` when a scale is configured, otherwise keep it whole."""
    if scale is None:
        return Decimal(felt_to_int(value))
    return to_fixed_point_decimal(value, scale)


def selector_from_name(name: str) -> int:
    """Compute the Starknet selector (event key) for an entry point or event name."""
    if name in _DEFAULT_ENTRY_POINTS:
        return 0
    return int.from_bytes(keccak(text=name), "big") & SELECTOR_MASK
