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

"""Example: undifferenced PPP filter on a simulated static receiver"""

from pathlib import Path

import numpy as np

from pyppp import (
    EpochObservations, EpochSolver, EstimatorConfig, ResidualCollector,
    RoundingFixResolver, SatID, SatObservation, SourceID, TypeID,
)
from pyppp.core.constants import GAMMA_L2, LAMBDA_L1, LAMBDA_L2
from pyppp.logger import setup_logger

TRUE_POSITION = np.array([0.35, -0.20, 0.10])
TRUE_ZWD = 0.12


def simulate_epoch(source, time, prns, rng, slips=()):
    """Prefit residuals of a static receiver with white code/phase noise"""
    satellites = {}
    clock = 50.0 + rng.normal(0.0, 5.0)
    for prn in prns:
        elev = np.deg2rad(15.0 + (prn * 37) % 70)
        azim = np.deg2rad((prn * 83) % 360 + 0.01 * time)
        los = np.array([np.cos(elev) * np.sin(azim), np.cos(elev) * np.cos(azim), np.sin(elev)])
        wet_map = 1.0 / np.sin(elev)
        iono = 1.5 + 0.2 * prn
        n1, n2 = 1000 + 17 * prn, 800 - 11 * prn

        common = -los @ TRUE_POSITION + clock + wet_map * TRUE_ZWD
        satellites[SatID("G", prn)] = SatObservation({
            TypeID.wetMap: wet_map,
            TypeID.dx: -los[0], TypeID.dy: -los[1], TypeID.dz: -los[2],
            TypeID.cdt: 1.0,
            TypeID.prefitC: common + iono + rng.normal(0.0, 0.3),
            TypeID.prefitP2: common + GAMMA_L2 * iono + rng.normal(0.0, 0.3),
            TypeID.prefitL1: common - iono + LAMBDA_L1 * n1 + rng.normal(0.0, 0.003),
            TypeID.prefitL2: common - GAMMA_L2 * iono + LAMBDA_L2 * n2 + rng.normal(0.0, 0.003),
            TypeID.weight: np.sin(elev) ** 2,
            TypeID.elevation: np.rad2deg(elev),
        }, cycle_slip=prn in slips)
    return EpochObservations(source, time, satellites)


def main():
    setup_logger("pyppp", level="INFO")

    config = EstimatorConfig.from_file(Path(__file__).with_name("ppp_estimator.yaml"))
    residuals = ResidualCollector()
    solver = EpochSolver(SourceID("ROVR"), config,
                         fix_resolver=RoundingFixResolver(), sink=residuals)

    rng = np.random.default_rng(42)
    for k in range(120):
        prns = (1, 2, 3, 4, 5, 6, 7) if k < 80 else (1, 2, 4, 5, 6, 7)
        slips = (5,) if k == 40 else ()
        result = solver.process(simulate_epoch(SourceID("ROVR"), 30.0 * k, prns, rng, slips))

        if not result.success:
            print(f"{result.time:7.1f}  {result.error.value}")
            continue
        if k % 20 == 0:
            error = result.position() - TRUE_POSITION
            print(f"{result.time:7.1f}  error={np.round(error, 3)}  fixed={len(result.fixes)}")

    print("\nState at the last epoch:")
    print(solver.store.to_dataframe().to_string(index=False))

    df = residuals.to_dataframe()
    print("\nPostfit residual RMS per type:")
    print(df.groupby('type')['value'].apply(lambda v: np.sqrt(np.mean(v ** 2))))


if __name__ == "__main__":
    main()
