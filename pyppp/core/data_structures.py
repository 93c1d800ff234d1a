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

"""Core data structures for the PPP estimation core"""

import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional

_SAT_PATTERN = re.compile(r'^\s*([GRECJSI])\s*(\d{1,3})\s*$')


class TypeID(IntEnum):
    """Identifiers for unknowns, coefficients and observation values.

    The integer value fixes the canonical order of unknowns: source-indexed
    types sort before satellite-indexed types, and within each group the
    order below is the column order of the design matrix.
    """
    # Source-indexed unknowns
    wetMap = 10
    dx = 11
    dy = 12
    dz = 13
    dLat = 14
    dLon = 15
    dH = 16
    cdt = 17

    # Satellite-indexed unknowns
    ionoL1 = 30
    BL1 = 31
    BL2 = 32

    # Prefit residuals
    prefitC = 50
    prefitP2 = 51
    prefitL1 = 52
    prefitL2 = 53
    prefitL = 54

    # Postfit residuals
    postfitC = 60
    postfitP2 = 61
    postfitL1 = 62
    postfitL2 = 63
    postfitL = 64

    # Auxiliary per-satellite values
    weight = 80
    elevation = 81
    satArc = 82

    # Derived ambiguity combinations
    BWL = 90
    BLC = 91


# Prefit residual types and their postfit counterparts
PREFIT_TO_POSTFIT = {
    TypeID.prefitC: TypeID.postfitC,
    TypeID.prefitP2: TypeID.postfitP2,
    TypeID.prefitL1: TypeID.postfitL1,
    TypeID.prefitL2: TypeID.postfitL2,
    TypeID.prefitL: TypeID.postfitL,
}

AMBIGUITY_TYPES = frozenset({TypeID.BL1, TypeID.BL2})


@dataclass(frozen=True, order=True)
class SatID:
    """Satellite identity.

    Attributes
    ----------
    system : str
        Constellation letter (G, R, E, C, J, S, I)
    prn : int
        PRN / slot number within the constellation
    """
    system: str
    prn: int

    @classmethod
    def from_string(cls, text: str) -> 'SatID':
        """Parse identifiers such as ``"G07"`` or ``"E 12"``."""
        match = _SAT_PATTERN.match(text)
        if match is None:
            raise ValueError(f"Invalid satellite identifier: {text!r}")
        return cls(match.group(1), int(match.group(2)))

    def __str__(self) -> str:
        return f"{self.system}{self.prn:02d}"


@dataclass(frozen=True, order=True)
class SourceID:
    """Receiver (observation source) identity"""
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass
class SatObservation:
    """Per-satellite data handed to the estimator for one epoch.

    Attributes
    ----------
    values : Dict[TypeID, float]
        Prefit residuals, model coefficients of the source-indexed unknowns
        (wetMap, dx/dy/dz or dLat/dLon/dH, cdt), and auxiliary values
        (weight, elevation, a priori ionoL1, satArc).
    cycle_slip : bool
        Cycle slip / arc change flag from the preprocessing step
    """
    values: Dict[TypeID, float] = field(default_factory=dict)
    cycle_slip: bool = False

    def get(self, type_id: TypeID, default: Optional[float] = None) -> Optional[float]:
        return self.values.get(type_id, default)

    def __getitem__(self, type_id: TypeID) -> float:
        try:
            return self.values[type_id]
        except KeyError:
            raise KeyError(f"Observation has no value for {type_id.name}") from None

    def __contains__(self, type_id: TypeID) -> bool:
        return type_id in self.values


@dataclass
class EpochObservations:
    """Observation batch of one receiver at one epoch.

    Attributes
    ----------
    source : SourceID
        Receiver identity
    time : float
        Epoch time (s, any continuous time scale)
    satellites : Dict[SatID, SatObservation]
        Visible satellites with their corrected observables
    zenith_wet_delay : Optional[float]
        A priori zenith wet delay (m); enables the troposphere constraint row
    """
    source: SourceID
    time: float
    satellites: Dict[SatID, SatObservation] = field(default_factory=dict)
    zenith_wet_delay: Optional[float] = None

    @property
    def num_satellites(self) -> int:
        return len(self.satellites)

    def sorted_satellites(self) -> List[SatID]:
        """Visible satellites in canonical order"""
        return sorted(self.satellites)
