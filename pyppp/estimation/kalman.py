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
Kalman filter recursion in information form
===========================================

Prediction:

    x- = Phi x
    P- = Phi P Phi' + Q

Update (information-form combination):

    N  = H' W H + inv(P-)
    P  = inv(N)
    x  = P (H' W z + inv(P-) x-)
    v  = z - H x

Both inversions go through a Cholesky factorization; the inputs must be
symmetric positive definite.
"""

import logging
from typing import NamedTuple, Tuple

import numpy as np
from scipy.linalg import LinAlgError, cho_factor, solve_triangular

from ..core.exceptions import DimensionMismatch, SingularMatrix
from ..core.stochastic import transition_terms
from .variable import VariableSet

logger = logging.getLogger(__name__)


class Prediction(NamedTuple):
    """Predicted (a priori) state"""
    state: np.ndarray
    covariance: np.ndarray


class Posterior(NamedTuple):
    """Updated (a posteriori) state and postfit residuals"""
    state: np.ndarray
    covariance: np.ndarray
    postfit_residuals: np.ndarray


def inverse_chol(matrix: np.ndarray) -> np.ndarray:
    """
    Invert a symmetric positive-definite matrix via Cholesky factorization

    With A = L L', the inverse is computed as inv(L)' inv(L), which is
    symmetric with a non-negative diagonal.

    Parameters
    ----------
    matrix : np.ndarray
        Symmetric positive-definite matrix (n, n). Only the lower triangle
        is read.

    Returns
    -------
    np.ndarray
        Inverse matrix (n, n)

    Raises
    ------
    SingularMatrix
        If the matrix is not positive definite or holds non-finite values
    """
    n = matrix.shape[0]
    if n == 0:
        return np.zeros((0, 0))

    try:
        c, lower = cho_factor(matrix, lower=True, check_finite=True)
    except (LinAlgError, ValueError) as e:
        raise SingularMatrix(f"Cholesky factorization failed: {e}") from e

    L = np.tril(c)
    L_inv = solve_triangular(L, np.eye(n), lower=True)
    return L_inv.T @ L_inv


def build_transition(variables: VariableSet, dt: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Block-diagonal transition and process-noise matrices of an epoch

    Parameters
    ----------
    variables : VariableSet
        Unknowns of the epoch
    dt : float
        Time elapsed since the previous epoch (s)

    Returns
    -------
    phi : np.ndarray
        State transition matrix (n, n)
    q : np.ndarray
        Process noise covariance (n, n)
    """
    n = len(variables)
    phi = np.zeros(n)
    q = np.zeros(n)
    for i, var in enumerate(variables):
        phi[i], q[i] = transition_terms(var.model, dt)
    return np.diag(phi), np.diag(q)


class KalmanCore:
    """
    Stateless predict/update recursion.

    All inputs are passed in and all outputs returned; nothing is kept
    between calls.
    """

    @staticmethod
    def predict(prior_state: np.ndarray,
                prior_covariance: np.ndarray,
                transition: np.ndarray,
                process_noise: np.ndarray) -> Prediction:
        """
        Time update

        Parameters
        ----------
        prior_state : np.ndarray
            State after the previous epoch (n,)
        prior_covariance : np.ndarray
            Covariance after the previous epoch (n, n)
        transition : np.ndarray
            State transition matrix (n, n)
        process_noise : np.ndarray
            Process noise covariance (n, n)

        Returns
        -------
        Prediction
            Predicted state and covariance

        Raises
        ------
        DimensionMismatch
            If any shape disagrees with the state length
        """
        x = np.asarray(prior_state, dtype=float)
        P = np.asarray(prior_covariance, dtype=float)
        phi = np.asarray(transition, dtype=float)
        Q = np.asarray(process_noise, dtype=float)

        if phi.ndim != 2 or phi.shape[0] != phi.shape[1]:
            raise DimensionMismatch(f"predict(): transition matrix is not square {phi.shape}")
        n = phi.shape[0]
        if x.ndim != 1 or x.shape[0] != n:
            raise DimensionMismatch(
                f"predict(): state length {x.shape} does not match transition size {n}")
        if P.shape != (n, n):
            raise DimensionMismatch(
                f"predict(): covariance shape {P.shape} does not match state length {n}")
        if Q.ndim != 2 or Q.shape[0] != Q.shape[1]:
            raise DimensionMismatch(f"predict(): process noise matrix is not square {Q.shape}")
        if Q.shape[0] != n:
            raise DimensionMismatch(
                f"predict(): process noise size {Q.shape[0]} does not match state length {n}")

        x_pred = phi @ x
        P_pred = phi @ P @ phi.T + Q

        logger.trace(f"predict(): n={n}, trace(P-)={np.trace(P_pred):.6e}")
        return Prediction(x_pred, P_pred)

    @staticmethod
    def update(predicted_state: np.ndarray,
               predicted_covariance: np.ndarray,
               measurements: np.ndarray,
               design: np.ndarray,
               weight: np.ndarray) -> Posterior:
        """
        Measurement update in information form

        Parameters
        ----------
        predicted_state : np.ndarray
            A priori state (n,)
        predicted_covariance : np.ndarray
            A priori covariance (n, n), symmetric positive definite
        measurements : np.ndarray
            Prefit residuals (m,)
        design : np.ndarray
            Design matrix (m, n)
        weight : np.ndarray
            Weight matrix (m, m)

        Returns
        -------
        Posterior
            Updated state, covariance and postfit residuals

        Raises
        ------
        DimensionMismatch
            If the shapes violate the measurement model
        SingularMatrix
            If either inversion fails
        """
        x_pred = np.asarray(predicted_state, dtype=float)
        P_pred = np.asarray(predicted_covariance, dtype=float)
        z = np.asarray(measurements, dtype=float)
        H = np.asarray(design, dtype=float)
        W = np.asarray(weight, dtype=float)

        if W.ndim != 2 or W.shape[0] != W.shape[1]:
            raise DimensionMismatch(f"update(): weight matrix is not square {W.shape}")
        if z.ndim != 1 or z.shape[0] != W.shape[0]:
            raise DimensionMismatch(
                f"update(): measurement length {z.shape} does not match weight matrix {W.shape}")
        if H.ndim != 2 or H.shape[0] != z.shape[0]:
            raise DimensionMismatch(
                f"update(): design rows {H.shape} do not match measurement length {z.shape[0]}")
        if x_pred.ndim != 1 or H.shape[1] != x_pred.shape[0]:
            raise DimensionMismatch(
                f"update(): design columns {H.shape[1]} do not match state length {x_pred.shape}")
        n = x_pred.shape[0]
        if P_pred.shape != (n, n):
            raise DimensionMismatch(
                f"update(): covariance shape {P_pred.shape} does not match state length {n}")

        inv_P_pred = inverse_chol(P_pred)
        HtW = H.T @ W
        normal = HtW @ H + inv_P_pred
        P = inverse_chol(normal)
        x = P @ (HtW @ z + inv_P_pred @ x_pred)
        postfit = z - H @ x

        logger.trace(f"update(): m={z.shape[0]}, n={n}, "
                     f"postfit rms={np.sqrt(np.mean(postfit ** 2)) if postfit.size else 0.0:.4f}")
        return Posterior(x, P, postfit)
