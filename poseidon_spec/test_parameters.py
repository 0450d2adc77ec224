"""Parameter generation, validation and registry tests."""

import logging
import unittest
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from .constants import MAX_MDS_ATTEMPTS, ROUNDS_F, ROUNDS_P
from .errors import ArityMismatch, InvalidEncoding, WeakParameters
from .field import BN254_PRIME, FIELD_BITS, FieldElement
from .parameters import (
    GrainLFSR,
    ParameterSet,
    cauchy_matrix,
    clear_registry,
    generate_mds,
    generate_parameters,
    get_parameters,
    preload,
    validate_mds,
)
from .test_vectors import T3_FIRST_ROUND_CONSTANT, T3_MDS_00


class TestGrainLFSR(unittest.TestCase):
    """Constant stream."""

    def test_deterministic(self):
        a = GrainLFSR(FIELD_BITS, 3, 8, 57)
        b = GrainLFSR(FIELD_BITS, 3, 8, 57)
        self.assertEqual([a.random_bits(64) for _ in range(4)], [b.random_bits(64) for _ in range(4)])

    def test_header_separates_instances(self):
        a = GrainLFSR(FIELD_BITS, 3, 8, 57)
        b = GrainLFSR(FIELD_BITS, 4, 8, 56)
        self.assertNotEqual(a.random_bits(128), b.random_bits(128))

    def test_field_elements_are_reduced(self):
        grain = GrainLFSR(FIELD_BITS, 5, 8, 60)
        for _ in range(20):
            self.assertLess(grain.field_element(), BN254_PRIME)
            self.assertLess(grain.reduced_element(), BN254_PRIME)

    def test_header_overflow(self):
        with self.assertRaises(ValueError):
            GrainLFSR(FIELD_BITS, 1 << 12, 8, 57)


class TestGeneration(unittest.TestCase):
    """Generated sets match the published tables."""

    def test_t3_reference_constants(self):
        params = generate_parameters(3)
        self.assertEqual(params.round_constants[0], T3_FIRST_ROUND_CONSTANT)
        self.assertEqual(params.mds[0][0], T3_MDS_00)

    def test_round_counts(self):
        for t in (2, 3, 4, 6):
            params = get_parameters(t)
            self.assertEqual(params.full_rounds, ROUNDS_F)
            self.assertEqual(params.partial_rounds, ROUNDS_P[t])

    def test_schedule_length(self):
        for t in (2, 3, 5):
            params = get_parameters(t)
            self.assertEqual(len(params.round_constants), t * (params.full_rounds + params.partial_rounds))
            self.assertEqual(len(params.round_constants_for(params.n_rounds - 1)), t)

    def test_regeneration_is_identical(self):
        self.assertEqual(generate_parameters(4), generate_parameters(4))

    def test_mds_is_invertible(self):
        params = get_parameters(3)
        validate_mds(params.mds)
        self.assertEqual(np.linalg.matrix_rank(params.mds_gf()), 3)
        self.assertTrue(all(v != 0 for row in params.mds for v in row))

    def test_element_views(self):
        params = get_parameters(3)
        self.assertEqual(params.round_constant_elements()[0], FieldElement(T3_FIRST_ROUND_CONSTANT))
        self.assertEqual(params.mds_elements()[0][0], FieldElement(T3_MDS_00))

    def test_round_classification(self):
        params = get_parameters(3)
        full = [r for r in range(params.n_rounds) if params.is_full_round(r)]
        self.assertEqual(full, [0, 1, 2, 3, 61, 62, 63, 64])

    def test_unknown_width(self):
        for t in (0, 1, 18):
            with self.assertRaises(ArityMismatch):
                generate_parameters(t)

    def test_explicit_rounds_for_untabled_width(self):
        params = generate_parameters(18, full_rounds=8, partial_rounds=4)
        self.assertEqual(len(params.round_constants), 18 * 12)


class TestCauchy(unittest.TestCase):
    """MDS construction and its rejection paths."""

    def test_entries(self):
        mds = cauchy_matrix([1, 2], [3, 4])
        self.assertEqual(FieldElement(mds[0][0]), FieldElement(4).inverse())
        self.assertEqual(FieldElement(mds[1][1]), FieldElement(6).inverse())
        validate_mds(mds)

    def test_repeated_elements(self):
        with self.assertRaises(WeakParameters):
            cauchy_matrix([1, 2], [2, 3])

    def test_vanishing_sum(self):
        with self.assertRaises(WeakParameters):
            cauchy_matrix([1, 2], [BN254_PRIME - 1, 5])

    def test_singular_matrix(self):
        with self.assertRaises(WeakParameters):
            validate_mds([[1, 2], [2, 4]])

    def test_zero_entry(self):
        with self.assertRaises(WeakParameters):
            validate_mds([[1, 0], [0, 1]])


class _StuckStream:
    """Stream that keeps returning the same element."""

    def __init__(self):
        self.draws = 0

    def reduced_element(self):
        self.draws += 1
        return 7


def test_mds_retries_are_bounded(caplog):
    stream = _StuckStream()
    with caplog.at_level(logging.WARNING, logger="poseidon_spec.parameters"):
        with pytest.raises(WeakParameters):
            generate_mds(stream, 3)
    assert stream.draws == MAX_MDS_ATTEMPTS * 6
    assert len([r for r in caplog.records if "rejected" in r.getMessage()]) == MAX_MDS_ATTEMPTS


class TestSubstitution(unittest.TestCase):
    """Manual parameter substitution is validated before use."""

    def setUp(self):
        self.params = get_parameters(3)

    def test_short_schedule_rejected(self):
        with self.assertRaises(ArityMismatch):
            self.params.replace(round_constants=self.params.round_constants[:-1])

    def test_rounds_without_constants_rejected(self):
        with self.assertRaises(ArityMismatch):
            self.params.replace(partial_rounds=self.params.partial_rounds + 1)

    def test_matrix_shape_rejected(self):
        with self.assertRaises(ArityMismatch):
            self.params.replace(mds=self.params.mds[:2])

    def test_weak_matrix_rejected(self):
        singular = ((1, 1, 1), (1, 1, 1), (1, 1, 1))
        with self.assertRaises(WeakParameters):
            self.params.replace(mds=singular)

    def test_direct_construction_checks_matrix(self):
        p = self.params
        for weak in (((1, 1, 1),) * 3, ((1, 2, 3), (4, 0, 6), (7, 8, 10))):
            with self.subTest(mds=weak):
                with self.assertRaises(WeakParameters):
                    ParameterSet(
                        t=3,
                        full_rounds=p.full_rounds,
                        partial_rounds=p.partial_rounds,
                        round_constants=p.round_constants,
                        mds=weak,
                    )

    def test_direct_construction_accepts_reference_set(self):
        p = self.params
        rebuilt = ParameterSet(
            t=3,
            full_rounds=p.full_rounds,
            partial_rounds=p.partial_rounds,
            round_constants=p.round_constants,
            mds=p.mds,
        )
        self.assertEqual(rebuilt, p)

    def test_unreduced_constant_rejected(self):
        constants = (BN254_PRIME,) + self.params.round_constants[1:]
        with self.assertRaises(InvalidEncoding):
            self.params.replace(round_constants=constants)

    def test_odd_full_rounds_rejected(self):
        with self.assertRaises(ValueError):
            ParameterSet(t=2, full_rounds=3, partial_rounds=0, round_constants=(0,) * 6, mds=((1, 2), (3, 4)))

    def test_other_sbox_rejected(self):
        with self.assertRaises(ValueError):
            self.params.replace(alpha=3)

    def test_valid_substitution(self):
        constants = (1,) + self.params.round_constants[1:]
        params = self.params.replace(round_constants=constants)
        self.assertEqual(params.round_constants[0], 1)
        self.assertEqual(self.params.round_constants[0], T3_FIRST_ROUND_CONSTANT)


class TestRegistry(unittest.TestCase):
    """Process-wide, generate-once parameter cache."""

    def test_same_object(self):
        self.assertIs(get_parameters(3), get_parameters(3))

    def test_frozen(self):
        with self.assertRaises(AttributeError):
            get_parameters(3).partial_rounds = 1

    def test_clear_and_regenerate(self):
        before = get_parameters(2)
        clear_registry()
        after = get_parameters(2)
        self.assertIsNot(before, after)
        self.assertEqual(before, after)

    def test_concurrent_first_use(self):
        clear_registry()
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(get_parameters, [4] * 16))
        self.assertTrue(all(r is results[0] for r in results))

    def test_preload(self):
        clear_registry()
        preload([2, 3])
        self.assertIs(get_parameters(2), get_parameters(2))
