# Copyright 2024 inuex35
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Persistence of estimates and covariances across epochs"""

import logging
from typing import Tuple

import numpy as np
import pandas as pd

from ..core.exceptions import DimensionMismatch
from .variable import Variable, VariableSet

logger = logging.getLogger(__name__)


class StateStore:
    """
    Variable-keyed filter state carried from one epoch to the next.

    The store holds the variables of the last committed epoch, a dense state
    vector and a dense covariance matrix whose slots follow that set's
    ordering. Lookups go through the set's identity hash, so re-keying costs
    O(1) per variable. Only the upper triangle of the covariance is read;
    the lower triangle is its mirror.

    :meth:`save_result` is the only method that changes the stored state and
    it replaces the contents entirely: variables absent from the committed
    set, and every covariance entry that refers to them, are dropped.
    """

    def __init__(self):
        self._variables = VariableSet()
        self._state = np.zeros(0)
        self._covariance = np.zeros((0, 0))

    @property
    def variables(self) -> VariableSet:
        return self._variables

    @property
    def state_vector(self) -> np.ndarray:
        return self._state.copy()

    @property
    def covariance_matrix(self) -> np.ndarray:
        return self._covariance.copy()

    def __len__(self) -> int:
        return len(self._variables)

    def __contains__(self, variable: object) -> bool:
        return variable in self._variables

    def estimate(self, variable: Variable) -> float:
        return float(self._state[self._variables.index(variable)])

    def variance(self, variable: Variable) -> float:
        i = self._variables.index(variable)
        return float(self._covariance[i, i])

    def covariance(self, var1: Variable, var2: Variable) -> float:
        """Covariance between two stored variables (order-independent)"""
        i = self._variables.index(var1)
        j = self._variables.index(var2)
        if i > j:
            i, j = j, i
        return float(self._covariance[i, j])

    def load_prior_state(self, variables: VariableSet) -> Tuple[np.ndarray, np.ndarray]:
        """
        Assemble the prior state and covariance for a set of unknowns

        Parameters
        ----------
        variables : VariableSet
            Unknowns of the current epoch

        Returns
        -------
        state : np.ndarray
            Prior estimates (n,); zero for new variables
        covariance : np.ndarray
            Prior covariance (n, n); new variables get their initial variance
            on the diagonal and zero cross-covariance
        """
        n = len(variables)
        state = np.zeros(n)
        covariance = np.zeros((n, n))

        new_slots = []
        old_slots = []
        for i, var in enumerate(variables):
            j = self._variables.get_index(var)
            if j is None:
                covariance[i, i] = var.initial_variance
                logger.trace(f"Cold start {var}: variance={var.initial_variance:.3e}")
            else:
                new_slots.append(i)
                old_slots.append(j)

        if old_slots:
            state[new_slots] = self._state[old_slots]
            covariance[np.ix_(new_slots, new_slots)] = \
                self._covariance[np.ix_(old_slots, old_slots)]

        logger.debug(f"Prior state: {len(old_slots)} carried over, "
                     f"{n - len(old_slots)} new")
        return state, covariance

    def save_result(self, state: np.ndarray, covariance: np.ndarray,
                    variables: VariableSet):
        """
        Commit a solution, replacing the store's contents

        Parameters
        ----------
        state : np.ndarray
            Posterior estimates (n,)
        covariance : np.ndarray
            Posterior covariance (n, n)
        variables : VariableSet
            Unknowns the arrays are indexed by

        Raises
        ------
        DimensionMismatch
            If the arrays do not match the size of ``variables``
        """
        state = np.asarray(state, dtype=float)
        covariance = np.asarray(covariance, dtype=float)
        n = len(variables)

        if state.shape != (n,):
            raise DimensionMismatch(
                f"save_result(): state has shape {state.shape}, expected ({n},)")
        if covariance.shape != (n, n):
            raise DimensionMismatch(
                f"save_result(): covariance has shape {covariance.shape}, expected ({n}, {n})")

        dropped = sum(1 for var in self._variables if var not in variables)
        if dropped:
            logger.debug(f"Purging {dropped} variables no longer in view")

        self._variables = variables
        self._state = state.copy()
        self._covariance = np.triu(covariance) + np.triu(covariance, 1).T

    def clear(self):
        """Drop all stored state"""
        self._variables = VariableSet()
        self._state = np.zeros(0)
        self._covariance = np.zeros((0, 0))

    def to_dataframe(self) -> pd.DataFrame:
        """Posterior mean and variance of every stored variable"""
        records = []
        for i, var in enumerate(self._variables):
            records.append({
                'type': var.type.name,
                'source': str(var.source) if var.source is not None else None,
                'satellite': str(var.satellite) if var.satellite is not None else None,
                'arc': var.arc,
                'estimate': self._state[i],
                'variance': self._covariance[i, i],
            })
        return pd.DataFrame(records, columns=['type', 'source', 'satellite', 'arc',
                                              'estimate', 'variance'])
