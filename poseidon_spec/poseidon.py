"""
Poseidon permutation and hash front-ends over the BN254 scalar field.

One permutation, three schedules. Variant.V1 is the plain round loop,
Variant.V2 reorganises it into the first-full / partial / last-full phases
and reduces lazily, Variant.T3 is an unrolled width-3 version of V2. They
all read the same ParameterSet, so they cannot diverge on constants; the
test suite pins that they agree digit for digit.

State layout (all variants, matching iden3 circomlib):

    state = [capacity, in_1, ..., in_k, 0, ..., 0]      capacity = 0

and the digest is state[0] after the permutation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .constants import ROUNDS_P
from .errors import ArityMismatch, InputTooLarge
from .field import BN254_PRIME, FieldElement, FieldLike, sbox, to_field_elements
from .parameters import ParameterSet, get_parameters

P = BN254_PRIME

# Width of the fixed three-element variant
T3_WIDTH = 3


class Variant(Enum):
    """Interchangeable schedules of the same permutation."""
    V1 = "v1"
    V2 = "v2"
    T3 = "t3"


# --- Linear layer ---

def _mix(state: List[int], mds) -> List[int]:
    """state' = M * state, reducing after every operation."""
    result = []
    for row in mds:
        acc = 0
        for m, s in zip(row, state):
            acc = (acc + (m * s) % P) % P
        result.append(acc)
    return result


def _mix_lazy(state: List[int], mds) -> List[int]:
    """state' = M * state with one reduction per output element."""
    return [sum(m * s for m, s in zip(row, state)) % P for row in mds]


# --- Schedules ---

def _permute_v1(state: List[int], params: ParameterSet) -> List[int]:
    t = params.t
    for r in range(params.n_rounds):
        rc = params.round_constants_for(r)
        state = [(state[i] + rc[i]) % P for i in range(t)]
        if params.is_full_round(r):
            state = [sbox(x) for x in state]
        else:
            state[0] = sbox(state[0])
        state = _mix(state, params.mds)
    return state


def _permute_v2(state: List[int], params: ParameterSet) -> List[int]:
    t = params.t
    C = params.round_constants
    M = params.mds
    offset = 0

    # First half of full rounds
    for _ in range(params.half_full_rounds):
        state = [sbox(state[i] + C[offset + i]) for i in range(t)]
        state = _mix_lazy(state, M)
        offset += t

    # Partial rounds: only state[0] is reduced before the linear layer
    for _ in range(params.partial_rounds):
        state = [state[i] + C[offset + i] for i in range(t)]
        state[0] = sbox(state[0])
        state = _mix_lazy(state, M)
        offset += t

    # Second half of full rounds
    for _ in range(params.half_full_rounds):
        state = [sbox(state[i] + C[offset + i]) for i in range(t)]
        state = _mix_lazy(state, M)
        offset += t

    return state


def _permute_t3(state: List[int], params: ParameterSet) -> List[int]:
    if params.t != T3_WIDTH:
        raise ArityMismatch(f"T3 schedule needs t=3 parameters, got t={params.t}")
    (m00, m01, m02), (m10, m11, m12), (m20, m21, m22) = params.mds
    C = params.round_constants
    s0, s1, s2 = state

    for r in range(params.n_rounds):
        k = 3 * r
        s0 = sbox(s0 + C[k])
        if params.is_full_round(r):
            s1 = sbox(s1 + C[k + 1])
            s2 = sbox(s2 + C[k + 2])
        else:
            s1 = s1 + C[k + 1]
            s2 = s2 + C[k + 2]
        s0, s1, s2 = (
            (m00 * s0 + m01 * s1 + m02 * s2) % P,
            (m10 * s0 + m11 * s1 + m12 * s2) % P,
            (m20 * s0 + m21 * s1 + m22 * s2) % P,
        )

    return [s0, s1, s2]


_SCHEDULES: Dict[Variant, Callable[[List[int], ParameterSet], List[int]]] = {
    Variant.V1: _permute_v1,
    Variant.V2: _permute_v2,
    Variant.T3: _permute_t3,
}


def permute(
    state: Sequence[FieldLike],
    params: ParameterSet,
    variant: Variant = Variant.V1,
) -> List[int]:
    """
    Apply the full Poseidon permutation to a state of params.t elements.

    Args:
        state: Field elements (ints, strings or FieldElements)
        params: Parameter set of matching width
        variant: Schedule to run; all variants return the same state

    Returns:
        The permuted state as reduced ints

    Raises:
        ArityMismatch: If len(state) != params.t, or T3 is asked for t != 3
    """
    if len(state) != params.t:
        raise ArityMismatch(f"state has {len(state)} elements, parameters are for t={params.t}")
    values = [FieldElement.parse(x).value for x in state]
    return _SCHEDULES[variant](values, params)


# --- Front-ends ---

def initial_state(inputs: Iterable[FieldLike], t: int) -> List[int]:
    """
    Build [0, in_1, ..., in_k, 0, ...] of width t.

    The capacity element sits at index 0, ahead of the inputs, as in
    iden3 circomlib; the published digests depend on this layout.

    Raises:
        InvalidEncoding: If an input cannot be read as a field element
        InputTooLarge: If len(inputs) >= t
        ValueError: If inputs is empty
    """
    elements = to_field_elements(inputs)
    if not elements:
        raise ValueError("at least one input is required")
    if len(elements) >= t:
        raise InputTooLarge(
            f"t={t} holds at most {t - 1} inputs next to the capacity element, got {len(elements)}"
        )
    return [0] + [e.value for e in elements] + [0] * (t - 1 - len(elements))


def _check_width(t: int, variant: Variant) -> None:
    if t not in ROUNDS_P:
        raise ArityMismatch(f"no Poseidon parameters for t={t}")
    if variant is Variant.T3 and t != T3_WIDTH:
        raise ArityMismatch(f"variant T3 requires t=3, got t={t}")


def poseidon_multi(
    inputs: Iterable[FieldLike],
    arity: Optional[int] = None,
    n_outputs: int = 1,
    variant: Variant = Variant.V1,
) -> Tuple[FieldElement, ...]:
    """
    Hash inputs and return the first n_outputs elements of the final state.

    Args:
        inputs: 1..t-1 field elements
        arity: State width t; defaults to len(inputs) + 1
        n_outputs: Number of state elements to return, 1..t
        variant: Permutation schedule

    Raises:
        InputTooLarge: If len(inputs) >= arity
        ArityMismatch: If arity has no parameters or does not suit the variant
    """
    elements = to_field_elements(inputs)
    if len(elements) == 0:
        raise ValueError("at least one input is required")
    t = len(elements) + 1 if arity is None else arity
    _check_width(t, variant)
    if not 1 <= n_outputs <= t:
        raise ValueError(f"n_outputs must be in [1, {t}], got {n_outputs}")
    state = initial_state(elements, t)
    state = _SCHEDULES[variant](state, get_parameters(t))
    return tuple(FieldElement(x) for x in state[:n_outputs])


def poseidon(
    inputs: Iterable[FieldLike],
    arity: Optional[int] = None,
    variant: Variant = Variant.V1,
) -> FieldElement:
    """
    Generic Poseidon hash of 1..t-1 field elements.

    With the default arity (len(inputs) + 1) this is the iden3
    poseidon(inputs) function, e.g. poseidon([1, 2]) ==
    7853200120776062878684798364095072458815029376092732009249414926327459813530.
    """
    return poseidon_multi(inputs, arity=arity, n_outputs=1, variant=variant)[0]


def poseidon_t3(a: FieldLike, b: FieldLike) -> FieldElement:
    """Fixed width-3 hash of exactly two elements."""
    return poseidon([a, b], arity=T3_WIDTH, variant=Variant.T3)


def poseidon_sponge(
    inputs: Iterable[FieldLike],
    arity: int = T3_WIDTH,
    variant: Variant = Variant.V1,
) -> FieldElement:
    """
    Hash any number of elements by chaining permutations.

    The capacity element starts as the input count, so inputs that differ
    only by trailing zeros do not collide. Each permutation absorbs up to
    t-1 inputs; its state[0] becomes the next capacity element.
    """
    _check_width(arity, variant)
    elements = to_field_elements(inputs)
    if not elements:
        raise ValueError("at least one input is required")

    params = get_parameters(arity)
    schedule = _SCHEDULES[variant]
    rate = arity - 1
    digest = len(elements) % P
    for offset in range(0, len(elements), rate):
        chunk = [e.value for e in elements[offset:offset + rate]]
        state = [digest] + chunk + [0] * (rate - len(chunk))
        digest = schedule(state, params)[0]
    return FieldElement(digest)


@dataclass(frozen=True)
class Hasher:
    """
    A fixed hash configuration.

    Attributes:
        arity: State width t
        variant: Permutation schedule
        n_outputs: Number of state elements in the digest
    """
    arity: int = T3_WIDTH
    variant: Variant = Variant.V1
    n_outputs: int = 1

    def __post_init__(self):
        _check_width(self.arity, self.variant)
        if not 1 <= self.n_outputs <= self.arity:
            raise ValueError(f"n_outputs must be in [1, {self.arity}], got {self.n_outputs}")

    @property
    def params(self) -> ParameterSet:
        return get_parameters(self.arity)

    def hash(self, inputs: Iterable[FieldLike]) -> FieldElement:
        return poseidon_multi(inputs, self.arity, 1, self.variant)[0]

    def digest(self, inputs: Iterable[FieldLike]) -> Tuple[FieldElement, ...]:
        return poseidon_multi(inputs, self.arity, self.n_outputs, self.variant)

    def __call__(self, inputs: Iterable[FieldLike]) -> FieldElement:
        return self.hash(inputs)
