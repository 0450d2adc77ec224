"""
Fixed Poseidon instance parameters for the BN254 scalar field.

Round numbers are the published security margins for the x^5 S-box over a
254-bit prime field (128-bit security target, including the security
margin of +2 full rounds and +7.5% partial rounds). They are constants per
state width and are never derived at runtime.

Reference: Grassi et al., "Poseidon: A New Hash Function for
Zero-Knowledge Proof Systems", Table 2 / calc_round_numbers.py, and the
N_ROUNDS_P table of iden3 circomlib.
"""

from typing import Dict

# S-box exponent (x^ALPHA)
ALPHA = 5

# Full rounds, split evenly before and after the partial rounds
ROUNDS_F = 8

# Partial rounds per state width t
ROUNDS_P: Dict[int, int] = {
    2: 56,
    3: 57,
    4: 56,
    5: 60,
    6: 60,
    7: 63,
    8: 64,
    9: 63,
    10: 60,
    11: 66,
    12: 60,
    13: 65,
    14: 70,
    15: 60,
    16: 64,
    17: 68,
}

MIN_WIDTH = min(ROUNDS_P)
MAX_WIDTH = max(ROUNDS_P)

# --- Constant generator header ---
# The Grain LFSR is seeded with the instance description, which doubles as
# the domain-separation label: two instances that differ in any field draw
# unrelated constants.

GRAIN_FIELD_PRIME = 1      # 0 = GF(2^n), 1 = GF(p)
GRAIN_SBOX_POWER = 0       # 0 = x^alpha, 1 = x^-1
GRAIN_STATE_BITS = 80
GRAIN_WARMUP = 160         # raw LFSR bits discarded before output starts

# Header layout: (field, bit width) in order, followed by ones
GRAIN_HEADER_WIDTHS = (
    ("field", 2),
    ("sbox", 4),
    ("field_size", 12),
    ("t", 12),
    ("rounds_f", 10),
    ("rounds_p", 10),
)
GRAIN_PADDING_ONES = 30

# Upper bound on MDS redraws before parameters are declared unusable
MAX_MDS_ATTEMPTS = 16
