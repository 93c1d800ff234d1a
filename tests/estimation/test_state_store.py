#!/usr/bin/env python3
"""Test suite for the state store"""

import unittest

import numpy as np
from numpy.testing import assert_array_equal

from pyppp.core.data_structures import SatID, SourceID, TypeID
from pyppp.core.exceptions import DimensionMismatch
from pyppp.core.stochastic import Constant, WhiteNoise
from pyppp.estimation.state_store import StateStore
from pyppp.estimation.variable import Variable, VariableSet

ROVR = SourceID("ROVR")


def amb(prn, arc=0):
    return Variable(TypeID.BL1, ROVR, SatID("G", prn), arc, Constant(), 4.0e14)


CLOCK = Variable(TypeID.cdt, ROVR, None, 0, WhiteNoise(9.0e10), 9.0e10)


class TestStateStore(unittest.TestCase):
    """Test prior loading and result commit"""

    def setUp(self):
        self.store = StateStore()
        self.variables = VariableSet([CLOCK, amb(1), amb(2)])
        self.state = np.array([10.0, 1001.0, 1002.0])
        self.cov = np.array([[4.0, 0.5, 0.2],
                             [0.5, 3.0, 0.1],
                             [0.2, 0.1, 2.0]])
        self.store.save_result(self.state, self.cov, self.variables)

    def test_empty_store_cold_starts(self):
        x, P = StateStore().load_prior_state(self.variables)
        assert_array_equal(x, np.zeros(3))
        assert_array_equal(P, np.diag([9.0e10, 4.0e14, 4.0e14]))

    def test_lookup(self):
        self.assertEqual(len(self.store), 3)
        self.assertIn(amb(1), self.store)
        self.assertEqual(self.store.estimate(amb(2)), 1002.0)
        self.assertEqual(self.store.variance(amb(1)), 3.0)
        self.assertEqual(self.store.covariance(amb(2), CLOCK), 0.2)
        self.assertEqual(self.store.covariance(CLOCK, amb(2)), 0.2)

    def test_reload_unchanged(self):
        x, P = self.store.load_prior_state(self.variables)
        assert_array_equal(x, self.state)
        assert_array_equal(P, self.cov)

    def test_new_variable_seeded(self):
        """Test a new variable gets its initial variance and zero cross terms"""
        variables = VariableSet([CLOCK, amb(1), amb(2), amb(7)])
        x, P = self.store.load_prior_state(variables)
        j = variables.index(amb(7))
        self.assertEqual(P[j, j], 4.0e14)
        self.assertEqual(x[j], 0.0)
        self.assertEqual(np.count_nonzero(P[j]), 1)
        self.assertEqual(np.count_nonzero(P[:, j]), 1)

        old = [variables.index(v) for v in self.variables]
        assert_array_equal(P[np.ix_(old, old)], self.cov)
        assert_array_equal(x[old], self.state)

    def test_save_replaces_contents(self):
        """Test variables outside the committed set are purged"""
        variables = VariableSet([CLOCK, amb(2), amb(3)])
        x, P = self.store.load_prior_state(variables)
        self.store.save_result(x, P, variables)

        self.assertEqual(self.store.variables, variables)
        self.assertNotIn(amb(1), self.store)

        # Reappearing later is a cold start
        again = VariableSet([CLOCK, amb(1), amb(2), amb(3)])
        x, P = self.store.load_prior_state(again)
        i = again.index(amb(1))
        self.assertEqual(P[i, i], 4.0e14)
        self.assertEqual(np.count_nonzero(P[i]), 1)

    def test_new_arc_cold_started(self):
        variables = VariableSet([CLOCK, amb(1, arc=1), amb(2)])
        _, P = self.store.load_prior_state(variables)
        i = variables.index(amb(1, arc=1))
        self.assertEqual(P[i, i], 4.0e14)

    def test_save_symmetrizes_from_upper_triangle(self):
        cov = self.cov.copy()
        cov[2, 0] = 99.0
        self.store.save_result(self.state, cov, self.variables)
        P = self.store.covariance_matrix
        assert_array_equal(P, P.T)
        self.assertEqual(P[2, 0], 0.2)

    def test_save_dimension_mismatch(self):
        with self.assertRaises(DimensionMismatch):
            self.store.save_result(np.zeros(2), self.cov, self.variables)
        with self.assertRaises(DimensionMismatch):
            self.store.save_result(self.state, np.eye(2), self.variables)
        # Store untouched
        assert_array_equal(self.store.state_vector, self.state)

    def test_accessors_return_copies(self):
        self.store.state_vector[0] = -1.0
        self.store.covariance_matrix[0, 0] = -1.0
        self.assertEqual(self.store.estimate(CLOCK), 10.0)
        self.assertEqual(self.store.variance(CLOCK), 4.0)

    def test_clear(self):
        self.store.clear()
        self.assertEqual(len(self.store), 0)
        self.assertEqual(self.store.covariance_matrix.shape, (0, 0))

    def test_to_dataframe(self):
        df = self.store.to_dataframe()
        self.assertEqual(list(df.columns),
                         ['type', 'source', 'satellite', 'arc', 'estimate', 'variance'])
        self.assertEqual(len(df), 3)
        row = df[df['satellite'] == 'G02'].iloc[0]
        self.assertEqual(row['type'], 'BL1')
        self.assertEqual(row['estimate'], 1002.0)
        self.assertEqual(row['variance'], 2.0)


if __name__ == '__main__':
    unittest.main()
