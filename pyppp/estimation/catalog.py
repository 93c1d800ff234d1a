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

"""Enumeration of the unknowns of an epoch"""

import logging
from typing import Dict, Optional, Set

from ..core.config import EstimatorConfig
from ..core.data_structures import EpochObservations, SatID, SourceID, TypeID
from ..core.exceptions import InsufficientGeometry
from .variable import VariableFactory, VariableSet

logger = logging.getLogger(__name__)


class VariableCatalog:
    """
    Build the ordered set of unknowns of one receiver, epoch by epoch.

    The catalog also keeps the tracking-arc number of every satellite it has
    seen. The arc is bumped when the preprocessing step flags a cycle slip,
    when the satellite's ``satArc`` value changes, or when the satellite comes
    back after being absent. Variables whose spec has ``reset_on_slip`` carry
    the arc in their identity, so a new arc always starts a fresh unknown.
    The other satellite-indexed variables carry the pass number instead, which
    is bumped only when the satellite comes back after an absence: a returning
    satellite is cold-started in full even if the epochs it missed were
    rejected and its old unknowns are still in the state store.

    Examples
    --------
    >>> catalog = VariableCatalog(SourceID("ROVR"), EstimatorConfig())
    >>> variables = catalog.enumerate(epoch)
    >>> len(variables)   # 5 receiver unknowns + 3 per satellite
    """

    def __init__(self, source: SourceID, config: Optional[EstimatorConfig] = None):
        self.source = source
        self.config = config if config is not None else EstimatorConfig()
        self.factory = VariableFactory(source)

        self._arcs: Dict[SatID, int] = {}
        self._arc_values: Dict[SatID, float] = {}
        self._passes: Dict[SatID, int] = {}
        self._previous: Set[SatID] = set()

    def arc_of(self, satellite: SatID) -> Optional[int]:
        """Current arc number of a satellite, None if never seen"""
        return self._arcs.get(satellite)

    def pass_of(self, satellite: SatID) -> Optional[int]:
        """Number of times a satellite came back after an absence, None if never seen"""
        return self._passes.get(satellite)

    def reset(self):
        """Forget all arc bookkeeping"""
        self._arcs.clear()
        self._arc_values.clear()
        self._passes.clear()
        self._previous = set()

    def _update_arcs(self, epoch: EpochObservations):
        for sat in epoch.sorted_satellites():
            obs = epoch.satellites[sat]

            new_arc = obs.cycle_slip
            arc_value = obs.get(TypeID.satArc)
            if arc_value is not None:
                previous_value = self._arc_values.get(sat)
                if previous_value is not None and previous_value != arc_value:
                    new_arc = True
                self._arc_values[sat] = arc_value

            if sat not in self._arcs:
                self._arcs[sat] = 0
                self._passes[sat] = 0
                continue

            if sat not in self._previous:
                self._passes[sat] += 1
                new_arc = True

            if new_arc:
                self._arcs[sat] += 1
                logger.info(f"{self.source}: new tracking arc for {sat} "
                            f"(arc={self._arcs[sat]}, slip={obs.cycle_slip})")

        self._previous = set(epoch.satellites)

    def enumerate(self, epoch: EpochObservations) -> VariableSet:
        """
        Enumerate the unknowns of an epoch

        Parameters
        ----------
        epoch : EpochObservations
            Observation batch of this catalog's receiver

        Returns
        -------
        VariableSet
            Source-indexed unknowns followed by the satellite-indexed ones,
            in canonical order

        Raises
        ------
        InsufficientGeometry
            If fewer than ``config.min_satellites`` satellites are visible
        """
        if epoch.source != self.source:
            raise ValueError(f"Epoch of {epoch.source} given to catalog of {self.source}")

        # Arc bookkeeping runs even for epochs that are rejected below,
        # otherwise a slip flagged in a rejected epoch would be lost
        self._update_arcs(epoch)

        num_sats = epoch.num_satellites
        if num_sats < self.config.min_satellites:
            raise InsufficientGeometry(
                f"{self.source}: {num_sats} satellites visible, "
                f"at least {self.config.min_satellites} required")

        variables = [self.factory.source_variable(spec)
                     for spec in self.config.source_indexed]

        for spec in self.config.satellite_indexed:
            for sat in epoch.satellites:
                variables.append(
                    self.factory.satellite_variable(
                        spec, sat, self._arcs[sat], self._passes[sat]))

        var_set = VariableSet(variables)
        logger.debug(f"{self.source}: {len(var_set)} unknowns for {num_sats} satellites")
        return var_set
