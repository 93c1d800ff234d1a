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
PyPPP - Recursive PPP State Estimation Core

A Python library for epoch-by-epoch Kalman filtering of undifferenced
dual-frequency GNSS observables over a changing set of unknowns: receiver
position, clock and troposphere, per-satellite ionosphere and carrier-phase
ambiguities, with integer ambiguity constraints.
"""

__version__ = "1.0.0"
__author__ = "PyPPP Development Team"
__title__ = "pyppp"
__description__ = "Recursive PPP state estimation core"

# The logger module installs Logger.trace, used throughout the package
from .logger import get_logger, setup_logger
from .core import *
from .estimation import *
