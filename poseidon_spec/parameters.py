"""
Poseidon parameter sets: round constants, MDS matrix and round counts.

Constants are drawn from the Grain LFSR stream of the Poseidon reference
generator (generate_parameters_grain.sage), seeded with the instance
description. Two independent generations for the same width are therefore
bit-identical, and agree with the constant tables shipped by iden3
circomlib.

Parameter sets are published through a process-wide registry keyed by
state width. Generation runs at most once per width; afterwards every
caller shares the same frozen object.
"""

import dataclasses
import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .constants import (
    ALPHA,
    GRAIN_FIELD_PRIME,
    GRAIN_HEADER_WIDTHS,
    GRAIN_PADDING_ONES,
    GRAIN_SBOX_POWER,
    GRAIN_STATE_BITS,
    GRAIN_WARMUP,
    MAX_MDS_ATTEMPTS,
    MAX_WIDTH,
    MIN_WIDTH,
    ROUNDS_F,
    ROUNDS_P,
)
from .errors import ArityMismatch, InvalidEncoding, WeakParameters
from .field import BN254_PRIME, FIELD_BITS, GF, FieldElement

logger = logging.getLogger(__name__)

Matrix = Tuple[Tuple[int, ...], ...]


# --- Constant stream ---

class GrainLFSR:
    """
    80-bit Grain LFSR in self-shrinking mode.

    The register is held as an int whose bit k is position k of the
    reference bit list; clocking drops bit 0 and appends the feedback bit
    at position 79. Feedback taps: 62, 51, 38, 23, 13, 0.
    """

    def __init__(
        self,
        field_size: int,
        t: int,
        rounds_f: int,
        rounds_p: int,
        field: int = GRAIN_FIELD_PRIME,
        sbox: int = GRAIN_SBOX_POWER,
    ):
        header = dict(field=field, sbox=sbox, field_size=field_size,
                      t=t, rounds_f=rounds_f, rounds_p=rounds_p)
        bits: List[int] = []
        for name, width in GRAIN_HEADER_WIDTHS:
            value = header[name]
            if not 0 <= value < (1 << width):
                raise ValueError(f"{name}={value} does not fit in {width} bits")
            bits.extend(int(b) for b in format(value, f"0{width}b"))
        bits.extend([1] * GRAIN_PADDING_ONES)
        assert len(bits) == GRAIN_STATE_BITS

        self._state = 0
        for i, bit in enumerate(bits):
            self._state |= bit << i

        for _ in range(GRAIN_WARMUP):
            self._clock()

    def _clock(self) -> int:
        s = self._state
        bit = ((s >> 62) ^ (s >> 51) ^ (s >> 38) ^ (s >> 23) ^ (s >> 13) ^ s) & 1
        self._state = (s >> 1) | (bit << (GRAIN_STATE_BITS - 1))
        return bit

    def next_bit(self) -> int:
        # Bits come in pairs; the second is emitted only when the first is 1.
        while True:
            select = self._clock()
            out = self._clock()
            if select:
                return out

    def random_bits(self, n: int) -> int:
        """n output bits read MSB-first as an integer."""
        value = 0
        for _ in range(n):
            value = (value << 1) | self.next_bit()
        return value

    def field_element(self) -> int:
        """Uniform element of [0, p) by rejection sampling."""
        while True:
            value = self.random_bits(FIELD_BITS)
            if value < BN254_PRIME:
                return value

    def reduced_element(self) -> int:
        """FIELD_BITS output bits reduced modulo p (no rejection)."""
        return self.random_bits(FIELD_BITS) % BN254_PRIME


# --- MDS matrix ---

def validate_mds(mds: Sequence[Sequence[int]]) -> None:
    """
    Reject a matrix with a zero entry or without full rank.

    Raises:
        WeakParameters: If either check fails
    """
    matrix = GF([[int(v) for v in row] for row in mds])
    if np.any(matrix == 0):
        raise WeakParameters("MDS matrix has a zero entry")
    rank = np.linalg.matrix_rank(matrix)
    if rank != len(mds):
        raise WeakParameters(f"MDS matrix is singular (rank {rank} < {len(mds)})")


def cauchy_matrix(xs: Sequence[int], ys: Sequence[int]) -> Matrix:
    """
    Cauchy matrix M[i][j] = 1 / (x_i + y_j).

    Every square submatrix of a Cauchy matrix is invertible provided the
    x_i are pairwise distinct, the y_j are pairwise distinct and no
    x_i + y_j vanishes.

    Raises:
        WeakParameters: If the inputs repeat or some x_i + y_j is zero
    """
    if len(set(xs) | set(ys)) != len(xs) + len(ys):
        raise WeakParameters("Cauchy sequences are not pairwise distinct")
    sums = GF(list(xs))[:, np.newaxis] + GF(list(ys))[np.newaxis, :]
    if np.any(sums == 0):
        raise WeakParameters("x_i + y_j vanishes for some i, j")
    mds = sums ** -1
    return tuple(tuple(int(v) for v in row) for row in mds)


def generate_mds(grain: GrainLFSR, t: int) -> Matrix:
    """
    Draw a t x t Cauchy MDS matrix from the constant stream.

    Each attempt consumes 2t stream elements. A rejected draw is logged and
    replaced by the next 2t elements, up to MAX_MDS_ATTEMPTS times.
    """
    for attempt in range(1, MAX_MDS_ATTEMPTS + 1):
        draw = [grain.reduced_element() for _ in range(2 * t)]
        try:
            mds = cauchy_matrix(draw[:t], draw[t:])
            validate_mds(mds)
            return mds
        except WeakParameters as e:
            logger.warning("t=%d: MDS draw %d rejected: %s", t, attempt, e)
    raise WeakParameters(f"t={t}: no acceptable MDS matrix after {MAX_MDS_ATTEMPTS} draws")


# --- Parameter set ---

@dataclass(frozen=True)
class ParameterSet:
    """
    Immutable Poseidon instance for one state width.

    Attributes:
        t: State width (inputs + 1 capacity element)
        full_rounds: Rounds with a full S-box layer, half before and half
            after the partial rounds
        partial_rounds: Rounds where only state[0] goes through the S-box
        round_constants: t constants per round, round-major
        mds: t x t linear layer, applied as state' = M * state
        alpha: S-box exponent
    """
    t: int
    full_rounds: int
    partial_rounds: int
    round_constants: Tuple[int, ...]
    mds: Matrix
    alpha: int = ALPHA

    def __post_init__(self):
        object.__setattr__(self, "round_constants", tuple(self.round_constants))
        object.__setattr__(self, "mds", tuple(tuple(row) for row in self.mds))

        if self.t < 2:
            raise ArityMismatch(f"state width must be at least 2, got {self.t}")
        if self.alpha != ALPHA:
            raise ValueError(f"only the x^{ALPHA} S-box is supported, got alpha={self.alpha}")
        if self.full_rounds <= 0 or self.full_rounds % 2:
            raise ValueError(f"full_rounds must be positive and even, got {self.full_rounds}")
        if self.partial_rounds < 0:
            raise ValueError(f"partial_rounds must be >= 0, got {self.partial_rounds}")

        expected = self.t * self.n_rounds
        if len(self.round_constants) != expected:
            raise ArityMismatch(
                f"round schedule needs t * (RF + RP) = {self.t} * {self.n_rounds} = "
                f"{expected} constants, got {len(self.round_constants)}"
            )
        if len(self.mds) != self.t or any(len(row) != self.t for row in self.mds):
            shape = (len(self.mds), len(self.mds[0]) if self.mds else 0)
            raise ArityMismatch(f"MDS matrix must be {self.t}x{self.t}, got {shape[0]}x{shape[1]}")
        for value in self.round_constants:
            _check_canonical(value)
        for row in self.mds:
            for value in row:
                _check_canonical(value)
        validate_mds(self.mds)

    @property
    def n_rounds(self) -> int:
        return self.full_rounds + self.partial_rounds

    @property
    def half_full_rounds(self) -> int:
        return self.full_rounds // 2

    def is_full_round(self, r: int) -> bool:
        half = self.half_full_rounds
        return r < half or r >= half + self.partial_rounds

    def round_constants_for(self, r: int) -> Tuple[int, ...]:
        """The t constants added at the start of round r."""
        return self.round_constants[r * self.t:(r + 1) * self.t]

    def round_constant_elements(self) -> List[FieldElement]:
        return [FieldElement(c) for c in self.round_constants]

    def mds_elements(self) -> List[List[FieldElement]]:
        return [[FieldElement(v) for v in row] for row in self.mds]

    def mds_gf(self) -> GF:
        return GF([list(row) for row in self.mds])

    def replace(self, **changes) -> "ParameterSet":
        """Copy with some fields substituted; the copy is fully re-validated."""
        return dataclasses.replace(self, **changes)


def _check_canonical(value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < BN254_PRIME:
        raise InvalidEncoding(f"parameter value is not a reduced field element: {value!r}")


def generate_parameters(
    t: int,
    full_rounds: Optional[int] = None,
    partial_rounds: Optional[int] = None,
) -> ParameterSet:
    """
    Derive the parameter set for width t from scratch.

    Round constants are drawn first, t per round, then the MDS matrix
    continues on the same stream.

    Args:
        t: State width, MIN_WIDTH..MAX_WIDTH unless both round counts are given
        full_rounds: Override for the number of full rounds
        partial_rounds: Override for the number of partial rounds

    Raises:
        ArityMismatch: If t has no published round numbers
        WeakParameters: If no acceptable MDS matrix could be drawn
    """
    if full_rounds is None:
        full_rounds = ROUNDS_F
    if partial_rounds is None:
        if t not in ROUNDS_P:
            raise ArityMismatch(f"t must be in [{MIN_WIDTH}, {MAX_WIDTH}], got {t}")
        partial_rounds = ROUNDS_P[t]

    start = time.perf_counter()
    grain = GrainLFSR(FIELD_BITS, t, full_rounds, partial_rounds)
    n_constants = t * (full_rounds + partial_rounds)
    round_constants = tuple(grain.field_element() for _ in range(n_constants))
    mds = generate_mds(grain, t)

    params = ParameterSet(
        t=t,
        full_rounds=full_rounds,
        partial_rounds=partial_rounds,
        round_constants=round_constants,
        mds=mds,
    )
    logger.debug(
        "generated Poseidon parameters t=%d RF=%d RP=%d (%d constants) in %.3fs",
        t, full_rounds, partial_rounds, n_constants, time.perf_counter() - start,
    )
    return params


# --- Registry ---

_registry: Dict[int, ParameterSet] = {}
_registry_lock = threading.Lock()


def get_parameters(t: int) -> ParameterSet:
    """
    Shared parameter set for width t, generated on first use.

    Double-checked: the lock is only taken while the width is missing, so
    published sets are read without synchronisation.
    """
    params = _registry.get(t)
    if params is None:
        with _registry_lock:
            params = _registry.get(t)
            if params is None:
                params = generate_parameters(t)
                _registry[t] = params
                logger.debug("published parameters for t=%d", t)
    return params


def preload(widths: Iterable[int]) -> None:
    """Eagerly generate parameter sets, e.g. before starting worker threads."""
    for t in widths:
        get_parameters(t)


def clear_registry() -> None:
    """Drop all published parameter sets. Intended for tests."""
    with _registry_lock:
        _registry.clear()
