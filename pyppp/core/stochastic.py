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
Stochastic process descriptors
==============================

Each unknown evolves between epochs according to one of three scalar
processes. The descriptor is a plain value; the transition (phi) and
process-noise (q) terms are derived from it at prediction time:

    Constant          phi = 1, q = 0
    WhiteNoise(s2)    phi = 0, q = s2
    RandomWalk(r)     phi = 1, q = r * |dt|
"""

from dataclasses import dataclass
from typing import Tuple, Union


@dataclass(frozen=True)
class Constant:
    """Unknown that does not change between epochs"""


@dataclass(frozen=True)
class WhiteNoise:
    """Unknown re-estimated from scratch every epoch

    Attributes
    ----------
    variance : float
        Variance of the process (unit^2)
    """
    variance: float


@dataclass(frozen=True)
class RandomWalk:
    """Unknown drifting as a random walk

    Attributes
    ----------
    rate : float
        Variance growth rate (unit^2 / s)
    """
    rate: float


StochasticModel = Union[Constant, WhiteNoise, RandomWalk]


def transition_terms(model: StochasticModel, dt: float) -> Tuple[float, float]:
    """
    Get the scalar transition and process-noise terms of a process

    Parameters
    ----------
    model : StochasticModel
        Process descriptor
    dt : float
        Elapsed time since the previous epoch (s)

    Returns
    -------
    phi : float
        State transition factor
    q : float
        Process noise variance
    """
    if isinstance(model, Constant):
        return 1.0, 0.0
    if isinstance(model, WhiteNoise):
        return 0.0, model.variance
    if isinstance(model, RandomWalk):
        return 1.0, model.rate * abs(dt)
    raise TypeError(f"Unknown stochastic model: {model!r}")


def model_to_dict(model: StochasticModel) -> dict:
    """Serialize a descriptor for configuration files"""
    if isinstance(model, Constant):
        return {'kind': 'constant'}
    if isinstance(model, WhiteNoise):
        return {'kind': 'white_noise', 'variance': model.variance}
    if isinstance(model, RandomWalk):
        return {'kind': 'random_walk', 'rate': model.rate}
    raise TypeError(f"Unknown stochastic model: {model!r}")


def model_from_dict(data: dict) -> StochasticModel:
    """Build a descriptor from its configuration dictionary"""
    kind = str(data.get('kind', '')).lower()
    if kind == 'constant':
        return Constant()
    if kind == 'white_noise':
        return WhiteNoise(float(data['variance']))
    if kind == 'random_walk':
        return RandomWalk(float(data['rate']))
    raise ValueError(f"Unknown stochastic model kind: {data.get('kind')!r}")
