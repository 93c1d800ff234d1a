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

"""Estimator configuration"""

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import yaml

from .constants import (
    CONSTRAINT_WEIGHT, MIN_SATELLITES, QPRIME_TROP, SIGMA_CODE, SIGMA_PHASE,
    VAR_AMB, VAR_CLOCK, VAR_COORD, VAR_IONO, VAR_IONO_CONSTRAINT, VAR_TROP,
    VAR_TROP_CONSTRAINT,
)
from .data_structures import TypeID
from .stochastic import (
    Constant, RandomWalk, StochasticModel, WhiteNoise, model_from_dict,
    model_to_dict,
)


class NoFixPolicy(Enum):
    """What to do when no ambiguity can be fixed in an epoch"""
    ABORT = "abort"    # skip the update, keep the previous state
    FLOAT = "float"    # run the unconstrained update


@dataclass
class VariableSpec:
    """Description of one kind of unknown

    Attributes
    ----------
    type : TypeID
        Semantic type of the unknown
    model : StochasticModel
        Process governing the unknown between epochs
    initial_variance : float
        Variance assigned when the unknown is (re)created
    satellite_indexed : bool
        One instance per receiver x satellite instead of one per receiver
    reset_on_slip : bool
        A cycle slip on the satellite creates a new identity
    """
    type: TypeID
    model: StochasticModel = field(default_factory=lambda: WhiteNoise(1.0e10))
    initial_variance: float = 1.0e10
    satellite_indexed: bool = False
    reset_on_slip: bool = False

    def to_dict(self) -> dict:
        return {
            'type': self.type.name,
            'model': model_to_dict(self.model),
            'initial_variance': self.initial_variance,
            'satellite_indexed': self.satellite_indexed,
            'reset_on_slip': self.reset_on_slip,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'VariableSpec':
        try:
            type_id = TypeID[data['type']]
        except KeyError:
            raise ValueError(f"Unknown variable type: {data.get('type')!r}") from None
        return cls(
            type=type_id,
            model=model_from_dict(data.get('model', {'kind': 'white_noise', 'variance': 1.0e10})),
            initial_variance=float(data.get('initial_variance', 1.0e10)),
            satellite_indexed=bool(data.get('satellite_indexed', False)),
            reset_on_slip=bool(data.get('reset_on_slip', False)),
        )


def default_variable_specs(use_neu: bool = False,
                           fix_coordinates: bool = False) -> List[VariableSpec]:
    """
    Unknowns of the undifferenced dual-frequency PPP model

    Parameters
    ----------
    use_neu : bool
        Estimate dLat/dLon/dH instead of dx/dy/dz
    fix_coordinates : bool
        Treat the receiver position as known (no coordinate unknowns)

    Returns
    -------
    List[VariableSpec]
        Troposphere, coordinates, clock, then per-satellite ionosphere and
        L1/L2 ambiguities
    """
    specs = [VariableSpec(TypeID.wetMap, RandomWalk(QPRIME_TROP), VAR_TROP)]

    if not fix_coordinates:
        coord_types = ((TypeID.dLat, TypeID.dLon, TypeID.dH) if use_neu
                       else (TypeID.dx, TypeID.dy, TypeID.dz))
        specs.extend(VariableSpec(t, Constant(), VAR_COORD) for t in coord_types)

    specs.append(VariableSpec(TypeID.cdt, WhiteNoise(VAR_CLOCK), VAR_CLOCK))
    specs.append(VariableSpec(TypeID.ionoL1, WhiteNoise(VAR_IONO), VAR_IONO,
                              satellite_indexed=True))
    specs.append(VariableSpec(TypeID.BL1, Constant(), VAR_AMB,
                              satellite_indexed=True, reset_on_slip=True))
    specs.append(VariableSpec(TypeID.BL2, Constant(), VAR_AMB,
                              satellite_indexed=True, reset_on_slip=True))
    return specs


@dataclass
class EstimatorConfig:
    """Configuration of one receiver's estimation pipeline"""

    min_satellites: int = MIN_SATELLITES
    use_neu: bool = False
    fix_coordinates: bool = False
    variables: Optional[List[VariableSpec]] = None

    # Observation weighting
    code_sigma: float = SIGMA_CODE
    phase_sigma: float = SIGMA_PHASE

    # A priori atmospheric constraints
    iono_constraint: bool = True
    iono_constraint_variance: float = VAR_IONO_CONSTRAINT
    trop_constraint: bool = True
    trop_constraint_variance: float = VAR_TROP_CONSTRAINT

    # Ambiguity fixing
    enable_ambiguity_fixing: bool = True
    constraint_weight: float = CONSTRAINT_WEIGHT
    no_fix_policy: NoFixPolicy = NoFixPolicy.ABORT

    # Multi-receiver processing
    enable_parallel: bool = False
    max_workers: Optional[int] = None

    def __post_init__(self):
        if self.variables is None:
            self.variables = default_variable_specs(self.use_neu, self.fix_coordinates)
        if isinstance(self.no_fix_policy, str):
            self.no_fix_policy = NoFixPolicy(self.no_fix_policy.lower())
        if self.min_satellites < 1:
            raise ValueError("min_satellites must be positive")

        seen = set()
        for spec in self.variables:
            if spec.type in seen:
                raise ValueError(f"Duplicate variable type: {spec.type.name}")
            seen.add(spec.type)

    @property
    def source_indexed(self) -> List[VariableSpec]:
        return [s for s in self.variables if not s.satellite_indexed]

    @property
    def satellite_indexed(self) -> List[VariableSpec]:
        return [s for s in self.variables if s.satellite_indexed]

    def spec_for(self, type_id: TypeID) -> Optional[VariableSpec]:
        """Get the spec of a variable type, or None if it is not estimated"""
        for spec in self.variables:
            if spec.type == type_id:
                return spec
        return None

    def to_dict(self) -> dict:
        return {
            'min_satellites': self.min_satellites,
            'use_neu': self.use_neu,
            'fix_coordinates': self.fix_coordinates,
            'variables': [spec.to_dict() for spec in self.variables],
            'code_sigma': self.code_sigma,
            'phase_sigma': self.phase_sigma,
            'iono_constraint': self.iono_constraint,
            'iono_constraint_variance': self.iono_constraint_variance,
            'trop_constraint': self.trop_constraint,
            'trop_constraint_variance': self.trop_constraint_variance,
            'enable_ambiguity_fixing': self.enable_ambiguity_fixing,
            'constraint_weight': self.constraint_weight,
            'no_fix_policy': self.no_fix_policy.value,
            'enable_parallel': self.enable_parallel,
            'max_workers': self.max_workers,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'EstimatorConfig':
        """Build a configuration from a dictionary; missing keys keep defaults"""
        data = dict(data)
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        if data.get('variables') is not None:
            data['variables'] = [VariableSpec.from_dict(v) for v in data['variables']]
        return cls(**data)

    @classmethod
    def from_file(cls, filepath: Union[str, Path]) -> 'EstimatorConfig':
        """
        Load configuration from file.

        Supports both YAML and JSON formats. The file format is determined
        automatically from the file extension.

        Parameters:
        -----------
        filepath : str or Path
            Path to configuration file (.yaml, .yml, or .json)

        Raises:
            ValueError: If file format is not supported
            FileNotFoundError: If the specified file doesn't exist
        """
        filepath = Path(filepath)

        if filepath.suffix in ['.yaml', '.yml']:
            with open(filepath) as f:
                data = yaml.safe_load(f) or {}
        elif filepath.suffix == '.json':
            with open(filepath) as f:
                data = json.load(f)
        else:
            raise ValueError(f"Unsupported file format: {filepath.suffix}")

        return cls.from_dict(data)

    def save_to_file(self, filepath: Union[str, Path]) -> None:
        """Save configuration as YAML or JSON depending on the extension"""
        filepath = Path(filepath)
        data = self.to_dict()

        if filepath.suffix in ['.yaml', '.yml']:
            with open(filepath, 'w') as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        elif filepath.suffix == '.json':
            with open(filepath, 'w') as f:
                json.dump(data, f, indent=2)
        else:
            raise ValueError(f"Unsupported file format: {filepath.suffix}")
