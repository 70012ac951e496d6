""" Utility definitions for the filters """
from typing import Tuple

import numpy as np
from scipy.linalg import cho_factor, cho_solve

from parcae.exceptions import NotPositiveSemiDefiniteError, SingularCovarianceError


def symmetrize(Sig: np.ndarray) -> np.ndarray:
    """ Remove the antisymmetric part introduced by round-off """
    return (Sig + Sig.T) / 2.


def matrix_sqrt(Sig: np.ndarray, rtol: float = 1.0e-09) -> np.ndarray:
    """
    Computes a square root ``L`` of a covariance matrix, such that ``L @ L.T == Sig``.

    The Cholesky factor is used whenever the matrix is positive definite. Singular (but positive semi-definite)
    matrices fall back to an eigendecomposition, where eigenvalues that are negative only by round-off are clipped
    to zero.

    Args:
        Sig: symmetric matrix to take the square root of
        rtol: tolerance on negative eigenvalues, relative to the largest eigenvalue

    Returns:
        square root of the matrix, lower-triangular when the Cholesky decomposition succeeds

    Raises:
        NotPositiveSemiDefiniteError: when the matrix has eigenvalues which are materially negative
    """
    if Sig.size == 0:
        return np.zeros_like(Sig)
    try:
        return np.linalg.cholesky(Sig)
    except np.linalg.LinAlgError:
        pass
    eigvals, eigvecs = np.linalg.eigh(symmetrize(Sig))
    tolerance = rtol * max(np.max(np.abs(eigvals)), 1.)
    if np.min(eigvals) < -tolerance:
        raise NotPositiveSemiDefiniteError(f'Covariance has a negative eigenvalue ({np.min(eigvals):.3e})')
    eigvals = np.clip(eigvals, 0., None)
    return eigvecs * np.sqrt(eigvals)


def check_positive_semi_definite(Sig: np.ndarray, rtol: float = 1.0e-09) -> np.ndarray:
    """
    Makes sure a matrix is a valid covariance (symmetric and positive semi-definite) and returns its symmetric part.

    Args:
        Sig: matrix to check
        rtol: tolerance on negative eigenvalues, relative to the largest eigenvalue

    Raises:
        NotPositiveSemiDefiniteError: when the matrix is not symmetric or has negative eigenvalues
    """
    if Sig.ndim != 2 or Sig.shape[0] != Sig.shape[1]:
        raise NotPositiveSemiDefiniteError(f'Covariance must be a square matrix, but has shape {Sig.shape}')
    if not np.allclose(Sig, Sig.T):
        raise NotPositiveSemiDefiniteError('Covariance is not symmetric')
    matrix_sqrt(Sig, rtol=rtol)
    return symmetrize(Sig)


def calculate_gain_correction(cov_xy: np.ndarray,
                              cov_y: np.ndarray,
                              innovation: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Function to calculate the Kálmán correction terms, with gain defined as L = cov_xy * (cov_y^(-1)).

    The inverse of ``cov_y`` is never formed; a Cholesky factorization is used to solve the linear systems instead.

    Args:
        cov_xy: covariance between x and y (hidden states and outputs, respectively)
        cov_y: variance of y (output), must be positive definite
        innovation: difference between the measured and predicted outputs

    Returns:
        - mean_shift: ``L @ innovation``, the correction to the mean
        - cov_reduction: ``L @ cov_xy.T``, the reduction of the covariance

    Raises:
        SingularCovarianceError: when ``cov_y`` is not positive definite
    """
    try:
        factor = cho_factor(cov_y, lower=True, check_finite=True)
    except (np.linalg.LinAlgError, ValueError) as exc:
        raise SingularCovarianceError('Innovation covariance is not invertible') from exc
    mean_shift = np.matmul(cov_xy, cho_solve(factor, innovation))
    cov_reduction = np.matmul(cov_xy, cho_solve(factor, cov_xy.T))
    return mean_shift, cov_reduction
