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

"""Unknowns of the filter and their canonical ordering"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from ..core.config import VariableSpec
from ..core.data_structures import SatID, SourceID, TypeID
from ..core.stochastic import StochasticModel, WhiteNoise


@dataclass(frozen=True)
class Variable:
    """
    One unknown of the equation system.

    Identity is (type, source, satellite, arc). The stochastic descriptor and
    the initial variance travel with the variable but take no part in
    equality or hashing.

    Attributes
    ----------
    type : TypeID
        Semantic type of the unknown
    source : Optional[SourceID]
        Owning receiver, None for receiver-independent unknowns
    satellite : Optional[SatID]
        Satellite for satellite-indexed unknowns
    arc : int
        Tracking arc number; bumped on a cycle slip or on reappearance so
        that the unknown of the new arc is a different variable
    model : StochasticModel
        Process governing the unknown between epochs
    initial_variance : float
        Variance used when the unknown is cold-started
    """
    type: TypeID
    source: Optional[SourceID] = None
    satellite: Optional[SatID] = None
    arc: int = 0
    model: StochasticModel = field(default_factory=lambda: WhiteNoise(1.0e10),
                                   compare=False, hash=False)
    initial_variance: float = field(default=1.0e10, compare=False, hash=False)

    @property
    def satellite_indexed(self) -> bool:
        return self.satellite is not None

    @property
    def sort_key(self) -> Tuple:
        source = self.source.name if self.source is not None else ""
        sat = ((self.satellite.system, self.satellite.prn)
               if self.satellite is not None else ("", -1))
        return (int(self.type), source, sat, self.arc)

    def __str__(self) -> str:
        parts = [self.type.name]
        if self.source is not None:
            parts.append(str(self.source))
        if self.satellite is not None:
            parts.append(str(self.satellite))
            if self.arc:
                parts.append(f"arc{self.arc}")
        return ":".join(parts)


class VariableSet:
    """
    Ordered, duplicate-free collection of the unknowns of one epoch.

    The order is a pure function of the variables' identities, so two sets
    built from the same unknowns in any insertion order are identical and
    index the same columns.
    """

    def __init__(self, variables: Iterable[Variable] = ()):
        ordered = sorted(variables, key=lambda v: v.sort_key)
        # dict keeps the first occurrence of each identity
        self._index: Dict[Variable, int] = {}
        unique: List[Variable] = []
        for var in ordered:
            if var not in self._index:
                self._index[var] = len(unique)
                unique.append(var)
        self._variables: Tuple[Variable, ...] = tuple(unique)

    @property
    def variables(self) -> Tuple[Variable, ...]:
        return self._variables

    def index(self, variable: Variable) -> int:
        """Column of a variable in the equation system"""
        try:
            return self._index[variable]
        except KeyError:
            raise KeyError(f"Variable {variable} is not in the set") from None

    def get_index(self, variable: Variable) -> Optional[int]:
        return self._index.get(variable)

    def of_type(self, type_id: TypeID) -> List[Variable]:
        return [v for v in self._variables if v.type == type_id]

    def satellites(self) -> List[SatID]:
        """Satellites referenced by satellite-indexed variables, sorted"""
        return sorted({v.satellite for v in self._variables if v.satellite is not None})

    def find(self, type_id: TypeID, satellite: Optional[SatID] = None) -> Optional[Variable]:
        """First variable of a type (and satellite), or None"""
        for var in self._variables:
            if var.type == type_id and var.satellite == satellite:
                return var
        return None

    def __len__(self) -> int:
        return len(self._variables)

    def __iter__(self) -> Iterator[Variable]:
        return iter(self._variables)

    def __getitem__(self, i: int) -> Variable:
        return self._variables[i]

    def __contains__(self, variable: object) -> bool:
        return variable in self._index

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VariableSet):
            return NotImplemented
        return self._variables == other._variables

    def __hash__(self) -> int:
        return hash(self._variables)

    def __repr__(self) -> str:
        return f"VariableSet([{', '.join(str(v) for v in self._variables)}])"


class VariableFactory:
    """Create the variables of one receiver from their specs"""

    def __init__(self, source: SourceID):
        self.source = source

    def source_variable(self, spec: VariableSpec) -> Variable:
        return Variable(spec.type, self.source, None, 0,
                        spec.model, spec.initial_variance)

    def satellite_variable(self, spec: VariableSpec, satellite: SatID,
                           arc: int = 0, visibility: int = 0) -> Variable:
        """Unknowns reset on slip follow the tracking arc, the others the visibility pass"""
        return Variable(spec.type, self.source, satellite,
                        arc if spec.reset_on_slip else visibility,
                        spec.model, spec.initial_variance)
