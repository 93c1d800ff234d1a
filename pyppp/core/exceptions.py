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

"""Per-epoch error taxonomy of the estimator.

Every error here is fatal to the current epoch only. Components raise them;
:class:`pyppp.estimation.solver.EpochSolver` catches them and reports the
:class:`ErrorKind` in its result.
"""

from enum import Enum


class ErrorKind(Enum):
    """Kinds of per-epoch failures"""
    INSUFFICIENT_GEOMETRY = "insufficient_geometry"
    DIMENSION_MISMATCH = "dimension_mismatch"
    SINGULAR_MATRIX = "singular_matrix"
    NO_FIXABLE_AMBIGUITY = "no_fixable_ambiguity"


class FilterError(ValueError):
    """Base class for errors that abort an epoch"""
    kind: ErrorKind = None


class InsufficientGeometry(FilterError):
    """Too few visible satellites for a solvable equation system"""
    kind = ErrorKind.INSUFFICIENT_GEOMETRY


class DimensionMismatch(FilterError):
    """Matrix/vector shapes violate the predict/update contract"""
    kind = ErrorKind.DIMENSION_MISMATCH


class SingularMatrix(FilterError):
    """Cholesky-based inversion failed (input not positive definite)"""
    kind = ErrorKind.SINGULAR_MATRIX


class NoFixableAmbiguity(FilterError):
    """The fix resolver returned no ambiguity to constrain"""
    kind = ErrorKind.NO_FIXABLE_AMBIGUITY
