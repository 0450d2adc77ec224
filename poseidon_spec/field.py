"""
BN254 scalar field arithmetic.

FieldElement is the value type that crosses the public API: it is always
canonically reduced into [0, p) and never mutated. The permutation hot path
works on plain ints with explicit reductions; the galois field class GF is
used where whole matrices are handled at once (MDS construction and checks).

Reference field: the scalar field of the alt_bn128 curve, as used by the
iden3 circomlib Poseidon contracts.
"""

import string
from dataclasses import dataclass
from typing import Union

import galois
import numpy as np

from .errors import InvalidEncoding

# p = r of alt_bn128
BN254_PRIME = 21888242871839275222246405745257275088548364400416034343698204186575808495617

# 254 bits; also the width of one element drawn from the constant stream
FIELD_BITS = BN254_PRIME.bit_length()

# Width of the fixed hexadecimal rendering (32 bytes)
HEX_DIGITS = 64

# Multiplicative generator of the field
GENERATOR = 5

# Base field GF(p). The generator is supplied up front so galois does not
# have to factor p - 1 when the class is built.
GF = galois.GF(BN254_PRIME, primitive_element=GENERATOR, verify=False)


def pow_mod(base: int, exp: int, mod: int = BN254_PRIME) -> int:
    """
    Modular exponentiation with a Montgomery ladder.

    Every exponent bit costs one multiplication and one squaring regardless
    of its value, so the sequence of operations depends only on the bit
    length of the exponent.
    """
    if exp < 0:
        return pow_mod(inv_mod(base, mod), -exp, mod)
    r0 = 1
    r1 = base % mod
    for i in reversed(range(exp.bit_length())):
        if (exp >> i) & 1:
            r0 = (r0 * r1) % mod
            r1 = (r1 * r1) % mod
        else:
            r1 = (r0 * r1) % mod
            r0 = (r0 * r0) % mod
    return r0


def inv_mod(x: int, mod: int = BN254_PRIME) -> int:
    """Modular inverse using Fermat's little theorem."""
    if x % mod == 0:
        raise ZeroDivisionError("zero has no inverse in the field")
    return pow(x, mod - 2, mod)


def sbox(x: int) -> int:
    """x^5 via the fixed chain x^2, x^4, x^5."""
    x2 = (x * x) % BN254_PRIME
    x4 = (x2 * x2) % BN254_PRIME
    return (x4 * x) % BN254_PRIME


def _int_from_hex(text: str) -> int:
    digits = text[2:] if text[:2] in ("0x", "0X") else text
    if not digits:
        raise InvalidEncoding(f"empty hex string: {text!r}")
    if len(digits) > HEX_DIGITS:
        raise InvalidEncoding(
            f"hex string wider than {HEX_DIGITS} digits ({len(digits)}): {text!r}"
        )
    # int(..., 16) also takes signs, underscores and spaces
    if any(c not in string.hexdigits for c in digits):
        raise InvalidEncoding(f"not a hex string: {text!r}")
    return int(digits, 16)


def _int_from_str(text: str) -> int:
    text = text.strip()
    if text[:2] in ("0x", "0X"):
        return _int_from_hex(text)
    if not text or not (text.isascii() and text.isdigit()):
        raise InvalidEncoding(f"not a decimal or 0x-prefixed hex string: {text!r}")
    return int(text)


def _coerce_int(value: object) -> int:
    """Read any supported encoding as a non-negative Python int."""
    if isinstance(value, FieldElement):
        return value.value
    # bool is an int subclass but never a meaningful field element
    if isinstance(value, (bool, np.bool_)):
        raise InvalidEncoding(f"booleans are not field elements: {value!r}")
    if isinstance(value, (int, np.integer)):
        value = int(value)
        if value < 0:
            raise InvalidEncoding(f"negative value: {value}")
        return value
    if isinstance(value, galois.FieldArray):
        if value.ndim != 0:
            raise InvalidEncoding(f"expected a scalar field element, got shape {value.shape}")
        return int(value)
    if isinstance(value, str):
        return _int_from_str(value)
    if isinstance(value, (bytes, bytearray)):
        if not 1 <= len(value) <= HEX_DIGITS // 2:
            raise InvalidEncoding(f"expected 1..32 bytes, got {len(value)}")
        return int.from_bytes(value, "big")
    raise InvalidEncoding(f"unsupported input type: {type(value).__name__}")


@dataclass(frozen=True)
class FieldElement:
    """
    Element of the BN254 scalar field.

    Integers at or above the modulus are reduced, not rejected. Malformed
    input (negative numbers, non-numeric strings, over-wide hex) raises
    InvalidEncoding.

    Attributes:
        value: Canonical representative in [0, p)
    """
    value: int

    def __post_init__(self):
        object.__setattr__(self, "value", _coerce_int(self.value) % BN254_PRIME)

    # --- Construction ---

    @classmethod
    def parse(cls, value: "FieldLike") -> "FieldElement":
        """Build from an int, hex/decimal string, bytes or FieldElement."""
        if isinstance(value, FieldElement):
            return value
        return cls(_coerce_int(value))

    @classmethod
    def from_int(cls, value: int) -> "FieldElement":
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
            raise InvalidEncoding(f"expected an integer, got {type(value).__name__}")
        return cls(value)

    @classmethod
    def from_hex(cls, text: str) -> "FieldElement":
        """Parse a hex string of at most 64 digits, 0x prefix optional."""
        if not isinstance(text, str):
            raise InvalidEncoding(f"expected a hex string, got {type(text).__name__}")
        return cls(_int_from_hex(text.strip()))

    @classmethod
    def zero(cls) -> "FieldElement":
        return cls(0)

    @classmethod
    def one(cls) -> "FieldElement":
        return cls(1)

    # --- Arithmetic ---

    def __add__(self, other: "FieldLike") -> "FieldElement":
        return FieldElement((self.value + _coerce_int(other)) % BN254_PRIME)

    __radd__ = __add__

    def __sub__(self, other: "FieldLike") -> "FieldElement":
        return FieldElement((self.value - _coerce_int(other) % BN254_PRIME) % BN254_PRIME)

    def __rsub__(self, other: "FieldLike") -> "FieldElement":
        return FieldElement((_coerce_int(other) - self.value) % BN254_PRIME)

    def __mul__(self, other: "FieldLike") -> "FieldElement":
        return FieldElement((self.value * _coerce_int(other)) % BN254_PRIME)

    __rmul__ = __mul__

    def __neg__(self) -> "FieldElement":
        return FieldElement((-self.value) % BN254_PRIME)

    def __pow__(self, exp: int) -> "FieldElement":
        return FieldElement(pow_mod(self.value, exp))

    def __truediv__(self, other: "FieldLike") -> "FieldElement":
        return self * FieldElement(inv_mod(_coerce_int(other)))

    def inverse(self) -> "FieldElement":
        """Multiplicative inverse. Raises ZeroDivisionError for zero."""
        return FieldElement(inv_mod(self.value))

    def sbox(self) -> "FieldElement":
        return FieldElement(sbox(self.value))

    def is_zero(self) -> bool:
        return self.value == 0

    # --- Rendering ---

    def to_decimal(self) -> str:
        return str(self.value)

    def to_hex(self, width: int = HEX_DIGITS) -> str:
        """Fixed-width, 0x-prefixed, lowercase hex."""
        return "0x" + format(self.value, f"0{width}x")

    def to_bytes(self) -> bytes:
        """32-byte big-endian encoding."""
        return self.value.to_bytes(HEX_DIGITS // 2, "big")

    def to_gf(self) -> GF:
        return GF(self.value)

    def __int__(self) -> int:
        return self.value

    def __index__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return self.to_decimal()


FieldLike = Union[FieldElement, int, str, bytes]


def to_field_elements(values) -> list:
    """Parse a sequence of inputs into FieldElements, failing on the first bad one."""
    return [FieldElement.parse(v) for v in values]
