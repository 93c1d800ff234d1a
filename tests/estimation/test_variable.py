#!/usr/bin/env python3
"""Test suite for variables and variable sets"""

import random
import unittest

from pyppp.core.config import VariableSpec
from pyppp.core.data_structures import SatID, SourceID, TypeID
from pyppp.core.stochastic import Constant, WhiteNoise
from pyppp.estimation.variable import Variable, VariableFactory, VariableSet


ROVR = SourceID("ROVR")


class TestVariable(unittest.TestCase):
    """Test variable identity"""

    def test_identity_ignores_model(self):
        """Test stochastic model and initial variance are not part of identity"""
        a = Variable(TypeID.BL1, ROVR, SatID("G", 7), 0, Constant(), 4.0e14)
        b = Variable(TypeID.BL1, ROVR, SatID("G", 7), 0, WhiteNoise(1.0), 1.0)
        self.assertEqual(a, b)
        self.assertEqual(hash(a), hash(b))

    def test_arc_is_identity(self):
        a = Variable(TypeID.BL1, ROVR, SatID("G", 7), 0)
        b = Variable(TypeID.BL1, ROVR, SatID("G", 7), 1)
        self.assertNotEqual(a, b)

    def test_str(self):
        self.assertEqual(str(Variable(TypeID.cdt, ROVR)), "cdt:ROVR")
        self.assertEqual(str(Variable(TypeID.BL1, ROVR, SatID("G", 7), 2)), "BL1:ROVR:G07:arc2")
        self.assertTrue(Variable(TypeID.ionoL1, ROVR, SatID("G", 7)).satellite_indexed)


class TestVariableSet(unittest.TestCase):
    """Test canonical ordering of unknowns"""

    def setUp(self):
        self.variables = [Variable(TypeID.cdt, ROVR), Variable(TypeID.wetMap, ROVR),
                          Variable(TypeID.dx, ROVR)]
        for prn in (12, 3, 7):
            sat = SatID("G", prn)
            self.variables.append(Variable(TypeID.BL1, ROVR, sat))
            self.variables.append(Variable(TypeID.ionoL1, ROVR, sat))
        self.variables.append(Variable(TypeID.BL1, ROVR, SatID("E", 5)))

    def test_order_independent_of_insertion(self):
        expected = VariableSet(self.variables)
        for seed in range(5):
            shuffled = list(self.variables)
            random.Random(seed).shuffle(shuffled)
            self.assertEqual(list(VariableSet(shuffled)), list(expected))

    def test_canonical_order(self):
        var_set = VariableSet(self.variables)
        types = [v.type for v in var_set]
        self.assertEqual(types[:3], [TypeID.wetMap, TypeID.dx, TypeID.cdt])
        iono = var_set.of_type(TypeID.ionoL1)
        self.assertEqual([v.satellite.prn for v in iono], [3, 7, 12])
        ambs = var_set.of_type(TypeID.BL1)
        self.assertEqual(ambs[0].satellite, SatID("E", 5))

    def test_duplicates_removed(self):
        var_set = VariableSet(self.variables + self.variables[:4])
        self.assertEqual(len(var_set), len(self.variables))

    def test_index(self):
        var_set = VariableSet(self.variables)
        for i, var in enumerate(var_set):
            self.assertEqual(var_set.index(var), i)
            self.assertIs(var_set[i], var)
        missing = Variable(TypeID.BL2, ROVR, SatID("G", 3))
        self.assertNotIn(missing, var_set)
        self.assertIsNone(var_set.get_index(missing))
        with self.assertRaises(KeyError):
            var_set.index(missing)

    def test_satellites_and_find(self):
        var_set = VariableSet(self.variables)
        self.assertEqual(var_set.satellites(),
                         [SatID("E", 5), SatID("G", 3), SatID("G", 7), SatID("G", 12)])
        self.assertEqual(var_set.find(TypeID.ionoL1, SatID("G", 7)),
                         Variable(TypeID.ionoL1, ROVR, SatID("G", 7)))
        self.assertEqual(var_set.find(TypeID.cdt), Variable(TypeID.cdt, ROVR))
        self.assertIsNone(var_set.find(TypeID.BL2, SatID("G", 7)))

    def test_equality(self):
        self.assertEqual(VariableSet(self.variables), VariableSet(reversed(self.variables)))
        self.assertEqual(len(VariableSet()), 0)


class TestVariableFactory(unittest.TestCase):
    """Test creation of variables from specs"""

    def test_spec_attached(self):
        factory = VariableFactory(ROVR)
        spec = VariableSpec(TypeID.cdt, WhiteNoise(9.0e10), 9.0e10)
        var = factory.source_variable(spec)
        self.assertEqual(var.source, ROVR)
        self.assertIsNone(var.satellite)
        self.assertEqual(var.model, WhiteNoise(9.0e10))
        self.assertEqual(var.initial_variance, 9.0e10)

    def test_arc_only_for_reset_on_slip(self):
        factory = VariableFactory(ROVR)
        amb = VariableSpec(TypeID.BL1, Constant(), 4.0e14, satellite_indexed=True, reset_on_slip=True)
        iono = VariableSpec(TypeID.ionoL1, WhiteNoise(2500.0), 2500.0, satellite_indexed=True)
        self.assertEqual(factory.satellite_variable(amb, SatID("G", 1), 3).arc, 3)
        self.assertEqual(factory.satellite_variable(iono, SatID("G", 1), 3).arc, 0)

    def test_visibility_pass_for_other_unknowns(self):
        factory = VariableFactory(ROVR)
        amb = VariableSpec(TypeID.BL1, Constant(), 4.0e14, satellite_indexed=True, reset_on_slip=True)
        iono = VariableSpec(TypeID.ionoL1, WhiteNoise(2500.0), 2500.0, satellite_indexed=True)
        self.assertEqual(factory.satellite_variable(amb, SatID("G", 1), 3, 1).arc, 3)
        self.assertEqual(factory.satellite_variable(iono, SatID("G", 1), 3, 1).arc, 1)


if __name__ == '__main__':
    unittest.main()
