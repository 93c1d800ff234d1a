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
Estimator Constants and Default Stochastic Parameters
=====================================================

Default values used by the undifferenced PPP filter: initial variances,
process noise, observation weights and the dual-frequency GPS L1/L2
combination coefficients.
"""

# Physical Constants
CLIGHT = 299792458.0  # speed of light (m/s)

# GPS frequencies
FREQ_L1 = 1575.42e6   # L1 frequency (Hz)
FREQ_L2 = 1227.60e6   # L2 frequency (Hz)

# Wavelengths (m)
LAMBDA_L1 = 0.190293672798
LAMBDA_L2 = 0.244210213425
LAMBDA_WL = 0.861918400322     # wide-lane
LAMBDA_LC = 0.106953378142     # iono-free narrow-lane scale

# Ionospheric delay scale of L2 relative to L1 (f1^2 / f2^2)
GAMMA_L2 = 1.646944444

# ============================================================================
# INITIAL VARIANCES
# ============================================================================
VAR_TROP = 0.25          # (0.5 m)^2
VAR_COORD = 0.25         # (0.5 m)^2
VAR_CLOCK = 9.0e10       # (3e5 m)^2
VAR_IONO = 2500.0        # (50 m)^2
VAR_AMB = 4.0e14         # (20000 km)^2

# ============================================================================
# PROCESS NOISE
# ============================================================================
QPRIME_TROP = 3.0e-8     # wet troposphere random walk (m^2/s)

# ============================================================================
# OBSERVATION WEIGHTS
# ============================================================================
SIGMA_CODE = 0.3         # code noise (m)
SIGMA_PHASE = 0.003      # phase noise (m)

# A priori constraint variances
VAR_IONO_CONSTRAINT = 1.0e9
VAR_TROP_CONSTRAINT = 1.0e9

# Weight of integer ambiguity pseudo-observations
CONSTRAINT_WEIGHT = 1.0e14

# ============================================================================
# GEOMETRY
# ============================================================================
MIN_SATELLITES = 4
