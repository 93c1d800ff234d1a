#!/usr/bin/env python3
"""Test suite for integer ambiguity constraints"""

import unittest
from unittest.mock import MagicMock

import numpy as np
from numpy.testing import assert_array_equal

from pyppp.core.data_structures import SatID, SourceID, TypeID
from pyppp.core.exceptions import DimensionMismatch, ErrorKind, NoFixableAmbiguity
from pyppp.core.stochastic import Constant, WhiteNoise
from pyppp.estimation.ambiguity import (
    AmbiguityConstraintInjector, AmbiguityFixResolver, FixingRateTracker,
    FloatAmbiguitySolution, RoundingFixResolver
)
from pyppp.estimation.variable import Variable, VariableSet

ROVR = SourceID("ROVR")
G1, G2 = SatID("G", 1), SatID("G", 2)


class FixedMapResolver(AmbiguityFixResolver):
    """Resolver returning a predetermined map"""

    def __init__(self, fixes):
        self.fixes = fixes
        self.solutions = []

    def resolve(self, solution):
        self.solutions.append(solution)
        return dict(self.fixes)


def build_variables():
    return VariableSet([
        Variable(TypeID.cdt, ROVR, None, 0, WhiteNoise(9.0e10), 9.0e10),
        Variable(TypeID.ionoL1, ROVR, G1, 0, WhiteNoise(2500.0), 2500.0),
        Variable(TypeID.BL1, ROVR, G1, 0, Constant(), 4.0e14),
        Variable(TypeID.BL2, ROVR, G1, 0, Constant(), 4.0e14),
        Variable(TypeID.BL1, ROVR, G2, 0, Constant(), 4.0e14),
        Variable(TypeID.BL2, ROVR, G2, 0, Constant(), 4.0e14),
    ])


class TestAmbiguityConstraintInjector(unittest.TestCase):
    """Test augmentation of the equation system"""

    def setUp(self):
        self.variables = build_variables()
        n = len(self.variables)
        self.x = np.arange(n, dtype=float)
        self.P = np.eye(n)
        self.z = np.array([1.0, 2.0])
        self.H = np.ones((2, n))
        self.W = np.diag([10.0, 20.0])
        self.injector = AmbiguityConstraintInjector()
        self.bl1_g2 = self.variables.find(TypeID.BL1, G2)
        self.bl2_g1 = self.variables.find(TypeID.BL2, G1)

    def test_rows_appended(self):
        resolver = FixedMapResolver({self.bl1_g2: 12, self.bl2_g1: -3})
        z, H, W = self.injector.constrain(self.x, self.P, self.z, self.H, self.W,
                                          self.variables, resolver)
        n = len(self.variables)
        self.assertEqual(z.shape, (4,))
        self.assertEqual(H.shape, (4, n))
        self.assertEqual(W.shape, (4, 4))

        # Observation rows kept on top
        assert_array_equal(z[:2], self.z)
        assert_array_equal(H[:2], self.H)
        assert_array_equal(W[:2, :2], self.W)

        # Constraint rows in column order: BL1 G2 before BL2 G1
        col_bl1 = self.variables.index(self.bl1_g2)
        col_bl2 = self.variables.index(self.bl2_g1)
        self.assertLess(col_bl1, col_bl2)
        assert_array_equal(z[2:], [12.0, -3.0])
        expected = np.zeros((2, n))
        expected[0, col_bl1] = 1.0
        expected[1, col_bl2] = 1.0
        assert_array_equal(H[2:], expected)
        assert_array_equal(W[2:, 2:], np.eye(2) * 1.0e14)
        assert_array_equal(W[:2, 2:], np.zeros((2, 2)))

        self.assertEqual([(r.variable, r.value) for r in self.injector.last_fixes],
                         [(self.bl1_g2, 12), (self.bl2_g1, -3)])

    def test_resolver_sees_prediction(self):
        resolver = FixedMapResolver({self.bl1_g2: 4})
        self.injector.constrain(self.x, self.P, self.z, self.H, self.W,
                                self.variables, resolver)
        solution = resolver.solutions[0]
        self.assertIs(solution.variables, self.variables)
        assert_array_equal(solution.state, self.x)
        assert_array_equal(solution.covariance, self.P)
        self.assertEqual(len(solution.ambiguities()), 4)

    def test_no_fix(self):
        with self.assertRaises(NoFixableAmbiguity) as ctx:
            self.injector.constrain(self.x, self.P, self.z, self.H, self.W,
                                    self.variables, FixedMapResolver({}))
        self.assertEqual(ctx.exception.kind, ErrorKind.NO_FIXABLE_AMBIGUITY)
        self.assertEqual(self.injector.last_fixes, [])
        # Float ambiguities are still counted
        self.assertEqual(self.injector.tracker.statistics(G1).float_count, 1)
        self.assertEqual(self.injector.fixing_rate(G1), 0.0)

    def test_untracked_fix_ignored(self):
        """Test fixes of unknown or non-ambiguity variables are dropped"""
        stranger = Variable(TypeID.BL1, ROVR, SatID("G", 9))
        iono = self.variables.find(TypeID.ionoL1, G1)
        with self.assertLogs('pyppp.estimation.ambiguity', level='WARNING'):
            z, _, _ = self.injector.constrain(
                self.x, self.P, self.z, self.H, self.W, self.variables,
                FixedMapResolver({stranger: 1, iono: 2, self.bl1_g2: 3}))
        assert_array_equal(z[2:], [3.0])

    def test_only_untracked_fixes(self):
        stranger = Variable(TypeID.BL1, ROVR, SatID("G", 9))
        with self.assertRaises(NoFixableAmbiguity):
            self.injector.constrain(self.x, self.P, self.z, self.H, self.W,
                                    self.variables, FixedMapResolver({stranger: 1}))

    def test_custom_weight(self):
        injector = AmbiguityConstraintInjector(constraint_weight=1.0e10)
        _, _, W = injector.constrain(self.x, self.P, self.z, self.H, self.W,
                                     self.variables, FixedMapResolver({self.bl1_g2: 1}))
        self.assertEqual(W[-1, -1], 1.0e10)

    def test_dimension_mismatch(self):
        resolver = MagicMock(spec=AmbiguityFixResolver)
        with self.assertRaises(DimensionMismatch):
            self.injector.constrain(self.x[:3], self.P, self.z, self.H, self.W,
                                    self.variables, resolver)
        with self.assertRaises(DimensionMismatch):
            self.injector.constrain(self.x, self.P, self.z, self.H[:, :3], self.W,
                                    self.variables, resolver)
        resolver.resolve.assert_not_called()


class TestFixingRateTracker(unittest.TestCase):
    """Test per-satellite fixing statistics"""

    def setUp(self):
        self.variables = build_variables()
        self.tracker = FixingRateTracker()

    def test_rate(self):
        """Test an L1 ambiguity fixed in every epoch gives a rate of 1"""
        bl1_g1 = self.variables.find(TypeID.BL1, G1)
        self.tracker.record(self.variables, {bl1_g1: 5})
        self.assertEqual(self.tracker.fixing_rate(G1), 1.0)
        self.assertEqual(self.tracker.fixing_rate(G2), 0.0)

        self.tracker.record(self.variables, {})
        self.assertEqual(self.tracker.fixing_rate(G1), 0.5)
        self.tracker.record(self.variables, {bl1_g1: 5, self.variables.find(TypeID.BL1, G2): 3})
        self.assertEqual(self.tracker.fixing_rates(), {G1: 2.0 / 3.0, G2: 1.0 / 3.0})

    def test_other_ambiguity_type_ignored(self):
        """Test fixes of L2 ambiguities do not count towards the L1 rate"""
        self.tracker.record(self.variables, {self.variables.find(TypeID.BL1, G1): 5,
                                             self.variables.find(TypeID.BL2, G1): 2})
        stats = self.tracker.statistics(G1)
        self.assertEqual((stats.float_count, stats.fixed_count), (1, 1))
        self.assertEqual(self.tracker.fixing_rate(G1), 1.0)

        tracker = FixingRateTracker(TypeID.BL2)
        tracker.record(self.variables, {self.variables.find(TypeID.BL1, G1): 5})
        self.assertEqual(tracker.fixing_rate(G1), 0.0)

    def test_purged_when_out_of_view(self):
        self.tracker.record(self.variables, {self.variables.find(TypeID.BL1, G2): 1})
        remaining = VariableSet(v for v in self.variables if v.satellite != G2)
        self.tracker.record(remaining, {})
        self.assertIsNone(self.tracker.statistics(G2))
        self.assertEqual(self.tracker.fixing_rate(G2), 0.0)

    def test_unknown_satellite(self):
        self.assertEqual(self.tracker.fixing_rate(SatID("E", 1)), 0.0)
        self.tracker.reset()
        self.assertEqual(self.tracker.fixing_rates(), {})


class TestRoundingFixResolver(unittest.TestCase):
    """Test the rounding resolver"""

    def test_resolve(self):
        variables = build_variables()
        n = len(variables)
        x = np.zeros(n)
        P = np.eye(n) * 1.0e-4
        bl1_g1 = variables.find(TypeID.BL1, G1)
        bl2_g1 = variables.find(TypeID.BL2, G1)
        bl1_g2 = variables.find(TypeID.BL1, G2)
        bl2_g2 = variables.find(TypeID.BL2, G2)
        x[variables.index(bl1_g1)] = 1017.04
        x[variables.index(bl2_g1)] = -788.96
        x[variables.index(bl1_g2)] = 1034.5
        x[variables.index(bl2_g2)] = 778.0
        P[variables.index(bl2_g2), variables.index(bl2_g2)] = 1.0

        fixes = RoundingFixResolver().resolve(FloatAmbiguitySolution(variables, x, P))
        self.assertEqual(fixes, {bl1_g1: 1017, bl2_g1: -789})

    def test_thresholds(self):
        resolver = RoundingFixResolver(max_fraction=0.5, max_sigma=2.0)
        variables = build_variables()
        x = np.full(len(variables), 3.4)
        fixes = resolver.resolve(FloatAmbiguitySolution(variables, x, np.eye(len(variables))))
        self.assertEqual(set(fixes), {v for v in variables if v.type in (TypeID.BL1, TypeID.BL2)})
        self.assertTrue(all(value == 3 for value in fixes.values()))


if __name__ == '__main__':
    unittest.main()
