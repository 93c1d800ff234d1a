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

"""
Integer ambiguity constraints
=============================

Between prediction and update the float ambiguities are handed to a fix
resolver. Every ambiguity it fixes to an integer k is added to the equation
system as a pseudo-observation

    z = k,   h = e_j (indicator of the ambiguity column),   w = 1e14

so that the ordinary update absorbs the fix as a (numerically) hard
equality constraint.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np
from scipy.linalg import block_diag

from ..core.constants import CONSTRAINT_WEIGHT
from ..core.data_structures import AMBIGUITY_TYPES, SatID, TypeID
from ..core.exceptions import DimensionMismatch, NoFixableAmbiguity
from .variable import Variable, VariableSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AmbiguityFixRecord:
    """An ambiguity fixed in the current epoch"""
    variable: Variable
    value: int


@dataclass
class FixingStatistics:
    """Float/fixed ambiguity counters of one satellite"""
    float_count: int = 0
    fixed_count: int = 0

    @property
    def fixing_rate(self) -> float:
        """Fixed over float ambiguities; 0 when nothing was tracked"""
        if self.float_count == 0:
            return 0.0
        return self.fixed_count / self.float_count


class FixingRateTracker:
    """
    Per-satellite fixing-rate bookkeeping.

    Only ambiguities of ``ambiguity_type`` are counted, so a satellite whose
    L1 ambiguity is fixed every epoch has a rate of 1. Counters accumulate for
    as long as the satellite stays in view and are dropped as soon as it is
    missing from an epoch's unknowns.
    """

    def __init__(self, ambiguity_type: TypeID = TypeID.BL1):
        self.ambiguity_type = ambiguity_type
        self._stats: Dict[SatID, FixingStatistics] = {}

    def record(self, variables: VariableSet, fixes: Mapping[Variable, int]):
        """Count the float and fixed ambiguities of an epoch"""
        in_view = set(variables.satellites())
        for sat in list(self._stats):
            if sat not in in_view:
                del self._stats[sat]

        for var in variables:
            if var.type == self.ambiguity_type and var.satellite is not None:
                self._stats.setdefault(var.satellite, FixingStatistics()).float_count += 1

        for var in fixes:
            if var.type != self.ambiguity_type:
                continue
            self._stats.setdefault(var.satellite, FixingStatistics()).fixed_count += 1

    def statistics(self, satellite: SatID) -> Optional[FixingStatistics]:
        return self._stats.get(satellite)

    def fixing_rate(self, satellite: SatID) -> float:
        stats = self._stats.get(satellite)
        return stats.fixing_rate if stats is not None else 0.0

    def fixing_rates(self) -> Dict[SatID, float]:
        return {sat: stats.fixing_rate for sat, stats in sorted(self._stats.items())}

    def reset(self):
        self._stats.clear()


@dataclass
class FloatAmbiguitySolution:
    """Predicted state handed to a fix resolver

    Attributes
    ----------
    variables : VariableSet
        Unknowns indexing the arrays
    state : np.ndarray
        Predicted (pre-update) state (n,)
    covariance : np.ndarray
        Predicted covariance (n, n)
    """
    variables: VariableSet
    state: np.ndarray
    covariance: np.ndarray

    def ambiguities(self) -> List[Variable]:
        """Ambiguity unknowns in column order"""
        return [v for v in self.variables if v.type in AMBIGUITY_TYPES]

    def estimate(self, variable: Variable) -> float:
        return float(self.state[self.variables.index(variable)])

    def variance(self, variable: Variable) -> float:
        i = self.variables.index(variable)
        return float(self.covariance[i, i])

    def covariance_block(self, variables: List[Variable]) -> np.ndarray:
        """Covariance sub-matrix of the given variables"""
        idx = [self.variables.index(v) for v in variables]
        return self.covariance[np.ix_(idx, idx)]


class AmbiguityFixResolver(ABC):
    """
    Contract of an integer ambiguity resolver.

    Given the predicted float solution, return the ambiguities judged
    fixable this epoch mapped to their integer values (cycles).
    """

    @abstractmethod
    def resolve(self, solution: FloatAmbiguitySolution) -> Dict[Variable, int]:
        """Return fixable ambiguity variables and their integer values"""


class RoundingFixResolver(AmbiguityFixResolver):
    """
    Fix ambiguities that are already close to an integer.

    An ambiguity is fixed to its nearest integer when its predicted standard
    deviation and its distance to that integer are both below thresholds.
    This is a simple reference resolver; integer least-squares search is
    left to dedicated resolvers implementing the same contract.
    """

    def __init__(self, max_fraction: float = 0.15, max_sigma: float = 0.1):
        """
        Initialize rounding resolver

        Parameters
        ----------
        max_fraction : float
            Maximum distance to the nearest integer (cycles)
        max_sigma : float
            Maximum predicted standard deviation (cycles)
        """
        self.max_fraction = max_fraction
        self.max_sigma = max_sigma

    def resolve(self, solution: FloatAmbiguitySolution) -> Dict[Variable, int]:
        fixes = {}
        for var in solution.ambiguities():
            value = solution.estimate(var)
            sigma = np.sqrt(max(solution.variance(var), 0.0))
            nearest = int(np.round(value))
            if sigma <= self.max_sigma and abs(value - nearest) <= self.max_fraction:
                fixes[var] = nearest
        return fixes


class AmbiguityConstraintInjector:
    """
    Augment an epoch's equation system with integer-fix pseudo-observations.

    Attributes:
        constraint_weight: Weight given to every fixed-ambiguity row
        tracker: Per-satellite fixing-rate statistics
        last_fixes: Ambiguities fixed in the most recent call
    """

    def __init__(self, constraint_weight: float = CONSTRAINT_WEIGHT,
                 tracker: Optional[FixingRateTracker] = None):
        self.constraint_weight = constraint_weight
        self.tracker = tracker if tracker is not None else FixingRateTracker()
        self.last_fixes: List[AmbiguityFixRecord] = []

    def fixing_rate(self, satellite: SatID) -> float:
        return self.tracker.fixing_rate(satellite)

    def constrain(self,
                  predicted_state: np.ndarray,
                  predicted_covariance: np.ndarray,
                  measurements: np.ndarray,
                  design: np.ndarray,
                  weight: np.ndarray,
                  variables: VariableSet,
                  fix_resolver: AmbiguityFixResolver) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Append one constraint row per fixed ambiguity

        Parameters
        ----------
        predicted_state : np.ndarray
            A priori state from the prediction step (n,)
        predicted_covariance : np.ndarray
            A priori covariance (n, n)
        measurements : np.ndarray
            Prefit residuals (m,)
        design : np.ndarray
            Design matrix (m, n)
        weight : np.ndarray
            Weight matrix (m, m)
        variables : VariableSet
            Unknowns indexing the columns
        fix_resolver : AmbiguityFixResolver
            Resolver consulted with the predicted solution

        Returns
        -------
        measurements, design, weight : np.ndarray
            Augmented system with m + k rows

        Raises
        ------
        DimensionMismatch
            If the predicted state or design do not match ``variables``
        NoFixableAmbiguity
            If the resolver fixes nothing
        """
        x = np.asarray(predicted_state, dtype=float)
        P = np.asarray(predicted_covariance, dtype=float)
        z = np.asarray(measurements, dtype=float)
        H = np.asarray(design, dtype=float)
        W = np.asarray(weight, dtype=float)

        n = len(variables)
        if x.shape != (n,) or P.shape != (n, n):
            raise DimensionMismatch(
                f"constrain(): predicted state {x.shape} / covariance {P.shape} "
                f"do not match {n} unknowns")
        if H.ndim != 2 or H.shape[1] != n:
            raise DimensionMismatch(f"constrain(): design columns {H.shape} do not match {n} unknowns")

        solution = FloatAmbiguitySolution(variables, x.copy(), P.copy())
        candidates = fix_resolver.resolve(solution) or {}

        fixes: Dict[Variable, int] = {}
        for var, value in candidates.items():
            if var not in variables or var.type not in AMBIGUITY_TYPES:
                logger.warning(f"Resolver returned {var}, which is not a tracked ambiguity; ignored")
                continue
            fixes[var] = int(np.round(value))

        self.tracker.record(variables, fixes)
        ordered = sorted(fixes, key=variables.index)
        self.last_fixes = [AmbiguityFixRecord(v, fixes[v]) for v in ordered]

        if not ordered:
            raise NoFixableAmbiguity("The ambiguity constraint equation number is 0")

        k = len(ordered)
        z_fix = np.array([fixes[v] for v in ordered], dtype=float)
        H_fix = np.zeros((k, n))
        for row, var in enumerate(ordered):
            H_fix[row, variables.index(var)] = 1.0
        W_fix = np.eye(k) * self.constraint_weight

        logger.debug(f"Fixed {k} of {len(solution.ambiguities())} ambiguities")
        return (np.concatenate([z, z_fix]),
                np.vstack([H.reshape(-1, n), H_fix]),
                block_diag(W, W_fix))
