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

"""Commit of posterior results and postfit residual reporting"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..core.constants import FREQ_L1, FREQ_L2, LAMBDA_LC, LAMBDA_WL
from ..core.data_structures import PREFIT_TO_POSTFIT, SatID, SourceID, TypeID
from ..core.exceptions import DimensionMismatch
from .equations import Equation
from .state_store import StateStore
from .variable import VariableSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResidualRecord:
    """One tagged postfit residual"""
    source: SourceID
    satellite: Optional[SatID]
    type: TypeID
    value: float


class ResidualSink(ABC):
    """Receiver of the tagged residuals of each epoch"""

    @abstractmethod
    def emit(self, time: float, residuals: Sequence[ResidualRecord]):
        """Accept the residuals of one epoch"""


class ResidualCollector(ResidualSink):
    """In-memory sink keeping every residual it is given"""

    def __init__(self):
        self.records: List[tuple] = []

    def emit(self, time: float, residuals: Sequence[ResidualRecord]):
        for res in residuals:
            self.records.append((time, res))

    def __len__(self) -> int:
        return len(self.records)

    def clear(self):
        self.records.clear()

    def to_dataframe(self) -> pd.DataFrame:
        """Residual table with one row per (epoch, source, satellite, type)"""
        rows = [{
            'time': time,
            'source': str(res.source),
            'satellite': str(res.satellite) if res.satellite is not None else None,
            'type': res.type.name,
            'value': res.value,
        } for time, res in self.records]
        return pd.DataFrame(rows, columns=['time', 'source', 'satellite', 'type', 'value'])


def ambiguity_combinations(state: np.ndarray,
                           variables: VariableSet) -> Dict[SatID, Dict[TypeID, float]]:
    """
    Wide-lane and iono-free ambiguities from the L1/L2 estimates

    BWL = lambda_WL * (BL1 - BL2)
    BLC = lambda_LC * (BL1 + f2 / (f1 - f2) * (BL1 - BL2))

    Parameters
    ----------
    state : np.ndarray
        Posterior state indexed by ``variables``
    variables : VariableSet
        Unknowns of the epoch

    Returns
    -------
    Dict[SatID, Dict[TypeID, float]]
        BWL and BLC of every satellite carrying both BL1 and BL2
    """
    ratio = FREQ_L2 / (FREQ_L1 - FREQ_L2)
    combos = {}
    for var in variables.of_type(TypeID.BL1):
        other = variables.find(TypeID.BL2, var.satellite)
        if other is None:
            continue
        bl1 = state[variables.index(var)]
        bl2 = state[variables.index(other)]
        combos[var.satellite] = {
            TypeID.BWL: float(LAMBDA_WL * (bl1 - bl2)),
            TypeID.BLC: float(LAMBDA_LC * (bl1 + ratio * (bl1 - bl2))),
        }
    return combos


class ResultDistributor:
    """
    Write posterior results back and forward tagged residuals.

    Residual i belongs to equation i. Rows past the end of the equation list
    (appended integer-fix constraints) are not reported.
    """

    def __init__(self, store: StateStore, sink: Optional[ResidualSink] = None):
        self.store = store
        self.sink = sink

    @staticmethod
    def tag_residuals(postfit_residuals: np.ndarray,
                      equations: Sequence[Equation]) -> List[ResidualRecord]:
        """Label residuals with the postfit type of their equation"""
        residuals = np.asarray(postfit_residuals, dtype=float)
        if residuals.ndim != 1 or residuals.shape[0] < len(equations):
            raise DimensionMismatch(
                f"distribute(): {residuals.shape} residuals for {len(equations)} equations")

        records = []
        for value, eq in zip(residuals, equations):
            tag = PREFIT_TO_POSTFIT.get(eq.type, eq.type)
            records.append(ResidualRecord(eq.source, eq.satellite, tag, float(value)))
        return records

    def distribute(self, posterior_state: np.ndarray,
                   posterior_covariance: np.ndarray,
                   postfit_residuals: np.ndarray,
                   variables: VariableSet,
                   equations: Sequence[Equation],
                   time: float = 0.0) -> List[ResidualRecord]:
        """
        Commit the posterior and emit the epoch's residuals

        Parameters
        ----------
        posterior_state : np.ndarray
            Updated state (n,)
        posterior_covariance : np.ndarray
            Updated covariance (n, n)
        postfit_residuals : np.ndarray
            Residuals of every row of the (augmented) equation system
        variables : VariableSet
            Unknowns the arrays are indexed by
        equations : Sequence[Equation]
            Identities of the observation rows
        time : float
            Epoch time forwarded to the sink

        Returns
        -------
        List[ResidualRecord]
            The tagged residuals

        Raises
        ------
        DimensionMismatch
            If the arrays do not match ``variables`` or ``equations``
        """
        # Tag first so a bad residual vector leaves the store untouched
        records = self.tag_residuals(postfit_residuals, equations)
        self.store.save_result(posterior_state, posterior_covariance, variables)

        if self.sink is not None:
            self.sink.emit(time, records)
        logger.debug(f"Committed {len(variables)} unknowns, {len(records)} residuals")
        return records
