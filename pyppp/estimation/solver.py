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
Per-epoch PPP filter driver
===========================

One :class:`EpochSolver` owns the whole pipeline of a receiver:

    catalog -> equations -> prior -> predict -> constrain -> update -> distribute

Errors of the :mod:`pyppp.core.exceptions` taxonomy abort the current epoch
only. They are caught here and reported through :attr:`EpochResult.error`;
the state store keeps its last committed contents.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from ..core.config import EstimatorConfig, NoFixPolicy
from ..core.data_structures import EpochObservations, SatID, SourceID, TypeID
from ..core.exceptions import ErrorKind, FilterError, NoFixableAmbiguity
from .ambiguity import AmbiguityConstraintInjector, AmbiguityFixRecord, AmbiguityFixResolver
from .catalog import VariableCatalog
from .distributor import ResidualRecord, ResidualSink, ResultDistributor, ambiguity_combinations
from .equations import UndifferencedEquationBuilder
from .kalman import KalmanCore, build_transition
from .state_store import StateStore
from .variable import Variable

logger = logging.getLogger(__name__)

_XYZ = (TypeID.dx, TypeID.dy, TypeID.dz)
_NEU = (TypeID.dLat, TypeID.dLon, TypeID.dH)


@dataclass
class EpochResult:
    """Outcome of one epoch

    Attributes
    ----------
    source : SourceID
        Receiver processed
    time : float
        Epoch time
    index : int
        Index of the solver that produced the result
    error : Optional[ErrorKind]
        Kind of the error that aborted the epoch, None on success
    message : str
        Error description
    estimates, variances : Dict[Variable, float]
        Posterior mean and variance of every unknown
    residuals : List[ResidualRecord]
        Tagged postfit residuals
    fixes : List[AmbiguityFixRecord]
        Ambiguities constrained this epoch
    fixing_rates : Dict[SatID, float]
        Per-satellite fixing rate
    combinations : Dict[SatID, Dict[TypeID, float]]
        Wide-lane (BWL) and iono-free (BLC) ambiguities
    """
    source: SourceID
    time: float
    index: int = 0
    error: Optional[ErrorKind] = None
    message: str = ""
    estimates: Dict[Variable, float] = field(default_factory=dict)
    variances: Dict[Variable, float] = field(default_factory=dict)
    residuals: List[ResidualRecord] = field(default_factory=list)
    fixes: List[AmbiguityFixRecord] = field(default_factory=list)
    fixing_rates: Dict[SatID, float] = field(default_factory=dict)
    combinations: Dict[SatID, Dict[TypeID, float]] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.error is None

    def estimate(self, type_id: TypeID, satellite: Optional[SatID] = None) -> Optional[float]:
        for var, value in self.estimates.items():
            if var.type == type_id and var.satellite == satellite:
                return value
        return None

    def variance(self, type_id: TypeID, satellite: Optional[SatID] = None) -> Optional[float]:
        for var, value in self.variances.items():
            if var.type == type_id and var.satellite == satellite:
                return value
        return None

    def position(self) -> Optional[np.ndarray]:
        """Position corrections (dx, dy, dz) or (dLat, dLon, dH), None if not estimated"""
        for types in (_XYZ, _NEU):
            values = [self.estimate(t) for t in types]
            if all(v is not None for v in values):
                return np.array(values)
        return None


class EpochSolver:
    """
    Recursive PPP filter of one receiver.

    Parameters
    ----------
    source : SourceID
        Receiver processed by this solver
    config : EstimatorConfig, optional
        Estimator configuration
    fix_resolver : AmbiguityFixResolver, optional
        Integer ambiguity resolver; without one no constraints are applied
    sink : ResidualSink, optional
        Receiver of the tagged postfit residuals
    index : int
        Identifier assigned by the creating factory
    """

    def __init__(self, source: SourceID,
                 config: Optional[EstimatorConfig] = None,
                 fix_resolver: Optional[AmbiguityFixResolver] = None,
                 sink: Optional[ResidualSink] = None,
                 index: int = 0):
        self.source = source
        self.config = config if config is not None else EstimatorConfig()
        self.fix_resolver = fix_resolver
        self.index = index

        self.catalog = VariableCatalog(source, self.config)
        self.builder = UndifferencedEquationBuilder(self.config)
        self.store = StateStore()
        self.kalman = KalmanCore()
        self.injector = AmbiguityConstraintInjector(self.config.constraint_weight)
        self.distributor = ResultDistributor(self.store, sink)

        self._last_time: Optional[float] = None

    def reset(self):
        """Return to a cold state"""
        self.catalog.reset()
        self.store.clear()
        self.injector.tracker.reset()
        self._last_time = None

    def process(self, epoch: EpochObservations) -> EpochResult:
        """
        Run one epoch through the filter

        Parameters
        ----------
        epoch : EpochObservations
            Observation batch of this solver's receiver

        Returns
        -------
        EpochResult
            Posterior results, or the kind of error that aborted the epoch
        """
        dt = 0.0 if self._last_time is None else epoch.time - self._last_time
        self._last_time = epoch.time

        try:
            return self._process(epoch, dt)
        except FilterError as e:
            logger.warning(f"{self.source} epoch {epoch.time}: {e.kind.value}: {e}")
            return EpochResult(self.source, epoch.time, self.index,
                               error=e.kind, message=str(e))

    def _process(self, epoch: EpochObservations, dt: float) -> EpochResult:
        variables = self.catalog.enumerate(epoch)
        system = self.builder.build(epoch, variables)

        prior_state, prior_cov = self.store.load_prior_state(variables)
        transition, process_noise = build_transition(variables, dt)
        prediction = self.kalman.predict(prior_state, prior_cov, transition, process_noise)

        z, H, W = system.measurements, system.design, system.weight
        fixes: List[AmbiguityFixRecord] = []
        fixing_rates: Dict[SatID, float] = {}
        if self.config.enable_ambiguity_fixing and self.fix_resolver is not None:
            try:
                z, H, W = self.injector.constrain(prediction.state, prediction.covariance,
                                                  z, H, W, variables, self.fix_resolver)
                fixes = list(self.injector.last_fixes)
            except NoFixableAmbiguity:
                if self.config.no_fix_policy == NoFixPolicy.ABORT:
                    raise
                logger.debug(f"{self.source}: no ambiguity fixed, float update")
            fixing_rates = self.injector.tracker.fixing_rates()

        posterior = self.kalman.update(prediction.state, prediction.covariance, z, H, W)
        residuals = self.distributor.distribute(posterior.state, posterior.covariance,
                                                posterior.postfit_residuals, variables,
                                                system.equations, epoch.time)

        diag = np.diag(posterior.covariance)
        return EpochResult(
            source=self.source,
            time=epoch.time,
            index=self.index,
            estimates={v: float(posterior.state[i]) for i, v in enumerate(variables)},
            variances={v: float(diag[i]) for i, v in enumerate(variables)},
            residuals=residuals,
            fixes=fixes,
            fixing_rates=fixing_rates,
            combinations=ambiguity_combinations(posterior.state, variables),
        )
