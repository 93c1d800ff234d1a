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
Undifferenced dual-frequency PPP equation system
================================================

For every satellite four observation equations are formed from the prefit
residuals of C1/P1, P2, L1 and L2:

    P1 = g'dX + cdt + m*ZWD + I
    P2 = g'dX + cdt + m*ZWD + gamma*I
    L1 = g'dX + cdt + m*ZWD - I       + lambda1*N1
    L2 = g'dX + cdt + m*ZWD - gamma*I + lambda2*N2

The coefficients of the receiver unknowns (wet mapping, position partials,
clock) come with the observations. Optional pseudo-observations constrain
single-difference ionospheric delays (against the highest satellite) and
the zenith wet delay to a priori values.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..core.config import EstimatorConfig
from ..core.constants import GAMMA_L2, LAMBDA_L1, LAMBDA_L2
from ..core.data_structures import EpochObservations, SatID, SourceID, TypeID
from .variable import VariableSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Equation:
    """Identity of one row of the equation system

    Attributes
    ----------
    type : TypeID
        Type of the independent term (a prefit type for observation rows,
        the constrained unknown's type for pseudo-observations)
    source : SourceID
        Receiver the row belongs to
    satellite : Optional[SatID]
        Satellite of the row, None for receiver-level constraints
    """
    type: TypeID
    source: SourceID
    satellite: Optional[SatID] = None


@dataclass
class EquationSystem:
    """Measurement vector, design matrix and weight matrix of an epoch"""
    measurements: np.ndarray
    design: np.ndarray
    weight: np.ndarray
    equations: List[Equation] = field(default_factory=list)

    @property
    def num_equations(self) -> int:
        return self.measurements.shape[0]


# (prefit type, ionosphere coefficient, ambiguity type, wavelength, is_phase)
_OBSERVABLES = (
    (TypeID.prefitC, 1.0, None, 0.0, False),
    (TypeID.prefitP2, GAMMA_L2, None, 0.0, False),
    (TypeID.prefitL1, -1.0, TypeID.BL1, LAMBDA_L1, True),
    (TypeID.prefitL2, -GAMMA_L2, TypeID.BL2, LAMBDA_L2, True),
)


class UndifferencedEquationBuilder:
    """Assemble the epoch equation system of the undifferenced PPP model"""

    def __init__(self, config: Optional[EstimatorConfig] = None):
        self.config = config if config is not None else EstimatorConfig()

    def build(self, epoch: EpochObservations, variables: VariableSet) -> EquationSystem:
        """
        Build the equation system for an epoch

        Parameters
        ----------
        epoch : EpochObservations
            Observations of the receiver
        variables : VariableSet
            Unknowns of the epoch (from the variable catalog)

        Returns
        -------
        EquationSystem
            Rows ordered by observable, then satellite, then constraints
        """
        n = len(variables)
        sats = epoch.sorted_satellites()

        source_cols: List[Tuple[TypeID, int]] = []
        sat_cols: Dict[Tuple[TypeID, SatID], int] = {}
        for i, var in enumerate(variables):
            if var.satellite is None:
                source_cols.append((var.type, i))
            else:
                sat_cols[(var.type, var.satellite)] = i

        rows: List[np.ndarray] = []
        prefits: List[float] = []
        weights: List[float] = []
        equations: List[Equation] = []

        code_w = 1.0 / self.config.code_sigma ** 2
        phase_w = 1.0 / self.config.phase_sigma ** 2

        for prefit_type, iono_coef, amb_type, wavelength, is_phase in _OBSERVABLES:
            for sat in sats:
                obs = epoch.satellites[sat]
                value = obs.get(prefit_type)
                if value is None:
                    continue

                row = np.zeros(n)
                for type_id, col in source_cols:
                    coef = obs.get(type_id)
                    if coef is None:
                        if type_id != TypeID.cdt:
                            raise ValueError(
                                f"{epoch.source} {sat}: missing coefficient {type_id.name}")
                        coef = 1.0
                    row[col] = coef

                iono_col = sat_cols.get((TypeID.ionoL1, sat))
                if iono_col is not None:
                    row[iono_col] = iono_coef

                if amb_type is not None:
                    amb_col = sat_cols.get((amb_type, sat))
                    if amb_col is not None:
                        row[amb_col] = wavelength

                sat_weight = obs.get(TypeID.weight, 1.0)
                rows.append(row)
                prefits.append(value)
                weights.append(sat_weight * (phase_w if is_phase else code_w))
                equations.append(Equation(prefit_type, epoch.source, sat))

        if self.config.iono_constraint:
            self._add_iono_constraints(epoch, sats, sat_cols, n,
                                       rows, prefits, weights, equations)

        if self.config.trop_constraint and epoch.zenith_wet_delay is not None:
            for type_id, col in source_cols:
                if type_id == TypeID.wetMap:
                    row = np.zeros(n)
                    row[col] = 1.0
                    rows.append(row)
                    prefits.append(epoch.zenith_wet_delay)
                    weights.append(1.0 / self.config.trop_constraint_variance)
                    equations.append(Equation(TypeID.wetMap, epoch.source, None))

        design = np.vstack(rows) if rows else np.zeros((0, n))
        system = EquationSystem(np.array(prefits, dtype=float), design,
                                np.diag(np.array(weights, dtype=float)), equations)

        logger.debug(f"{epoch.source}: {system.num_equations} equations, {n} unknowns")
        return system

    def _add_iono_constraints(self, epoch, sats, sat_cols, n,
                              rows, prefits, weights, equations):
        """Single-difference ionosphere pseudo-observations"""
        iono = {sat: epoch.satellites[sat].get(TypeID.ionoL1) for sat in sats}
        if any(value is None for value in iono.values()):
            return
        if any((TypeID.ionoL1, sat) not in sat_cols for sat in sats):
            return

        # Highest satellite is the reference; ties keep the first in order
        ref = sats[0]
        max_elev = epoch.satellites[ref].get(TypeID.elevation, 0.0)
        for sat in sats[1:]:
            elev = epoch.satellites[sat].get(TypeID.elevation, 0.0)
            if elev > max_elev:
                ref, max_elev = sat, elev

        for sat in sats:
            if sat == ref:
                continue
            row = np.zeros(n)
            row[sat_cols[(TypeID.ionoL1, sat)]] = 1.0
            row[sat_cols[(TypeID.ionoL1, ref)]] = -1.0
            rows.append(row)
            prefits.append(iono[sat] - iono[ref])
            weights.append(epoch.satellites[sat].get(TypeID.weight, 1.0)
                           / self.config.iono_constraint_variance)
            equations.append(Equation(TypeID.ionoL1, epoch.source, sat))
