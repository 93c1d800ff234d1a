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

"""Estimation Module.

Recursive filter over a changing set of unknowns:

- **Variables**: identities, canonical ordering and per-epoch enumeration
- **State Store**: estimates and covariances carried between epochs
- **Kalman Core**: predict and information-form update
- **Ambiguity Constraints**: integer fixes injected as pseudo-observations
- **Distribution**: commit of the posterior and postfit residual reporting
- **Solvers**: per-receiver epoch driver and multi-receiver fan-out
"""

from .ambiguity import (
    AmbiguityConstraintInjector, AmbiguityFixRecord, AmbiguityFixResolver,
    FixingRateTracker, FixingStatistics, FloatAmbiguitySolution, RoundingFixResolver,
)
from .catalog import VariableCatalog
from .distributor import (
    ResidualCollector, ResidualRecord, ResidualSink, ResultDistributor,
    ambiguity_combinations,
)
from .equations import Equation, EquationSystem, UndifferencedEquationBuilder
from .kalman import KalmanCore, Posterior, Prediction, build_transition, inverse_chol
from .parallel import MultiReceiverProcessor, SolverFactory
from .solver import EpochResult, EpochSolver
from .state_store import StateStore
from .variable import Variable, VariableFactory, VariableSet
