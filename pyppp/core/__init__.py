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

"""Core Module.

Building blocks shared by the estimation pipeline:

- **Constants**: default variances, process noise and observation weights,
  dual-frequency L1/L2 coefficients
- **Data Structures**: type identifiers, satellite/receiver identities and
  the per-epoch observation batch
- **Stochastic Models**: constant / white-noise / random-walk descriptors
- **Configuration**: per-receiver estimator configuration (dict, YAML, JSON)
- **Exceptions**: per-epoch error taxonomy
"""

from .config import EstimatorConfig, NoFixPolicy, VariableSpec, default_variable_specs
from .constants import *
from .data_structures import (
    AMBIGUITY_TYPES, PREFIT_TO_POSTFIT, EpochObservations, SatID,
    SatObservation, SourceID, TypeID,
)
from .exceptions import (
    DimensionMismatch, ErrorKind, FilterError, InsufficientGeometry,
    NoFixableAmbiguity, SingularMatrix,
)
from .stochastic import Constant, RandomWalk, StochasticModel, WhiteNoise, transition_terms
