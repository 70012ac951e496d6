"""Moment-integration policies: deterministic point sets which approximate the moments of a function of a Gaussian

Each policy computes the mean and covariance of ``y = h(x, w)`` where ``x`` follows the belief and ``w`` follows
a noise distribution, as well as the cross-covariance between ``x`` and ``y`` needed by the Kálmán correction.
"""
from abc import abstractmethod
from typing import Callable, Literal, Optional, Tuple, TypedDict, Union
from typing_extensions import NotRequired, Self

import numpy as np
from scipy.linalg import block_diag
from pydantic import BaseModel, Field

from parcae.exceptions import ConfigurationError
from .distributions import MultivariateGaussian, MultivariateRandomDistribution
from .utils import matrix_sqrt, symmetrize

MomentFunction = Callable[[np.ndarray, np.ndarray], np.ndarray]
"""Batched function ``h(states, noises)`` taking one point per row and returning one output per row"""


def compute_weighted_covariance(cov_weights: np.ndarray,
                                array0: np.ndarray,
                                array1: Optional[np.ndarray] = None,
                                ) -> np.ndarray:
    """
    Function that computes the weighted covariance between zero-mean arrays. If second array is not provided,
    this is equivalent to computing the weighted variance of the only provided array.

    Weights may be negative, so the computation does not rely on :func:`numpy.cov`.
    """
    if array1 is None:
        array1 = array0
    return np.matmul(array0.T, cov_weights[:, None] * array1)


class UnscentedTuningParameters(TypedDict):
    """
    Auxiliary class to help provide tuning parameters to
    :class:`~parcae.filters.quadrature.UnscentedQuadrature`

    Args:
        alpha_param: alpha parameter to the unscented transform
        beta_param: beta parameter to the unscented transform
        kappa_param: kappa parameter to the unscented transform
    """
    alpha_param: NotRequired[float]
    beta_param: NotRequired[float]
    kappa_param: NotRequired[Union[float, Literal['automatic']]]

    @classmethod
    def defaults(cls) -> Self:
        return {'alpha_param': 1., 'kappa_param': 0., 'beta_param': 2.}


class MomentIntegrationPolicy(BaseModel):
    """
    Base class for sigma-point rules.

    A rule is defined by a set of unit points (for a standard Gaussian of a given dimension) and the weights used to
    recover the mean and covariance from those points. The points are mapped onto any other Gaussian through a square
    root of its covariance.
    """

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    def unit_points(self, num_dimensions: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Points and weights for a standard Gaussian

        Args:
            num_dimensions: dimensionality of the Gaussian

        Returns:
            - points: array of shape (num_points, num_dimensions)
            - mean_weights: weights used to compute the mean
            - cov_weights: weights used to compute covariances
        """
        raise NotImplementedError('Please implement in child class!')

    def num_points(self, num_dimensions: int) -> int:
        """ Number of function evaluations needed for a Gaussian of a certain dimension """
        return self.unit_points(num_dimensions)[0].shape[0]

    def integrate_moments(self,
                          function: MomentFunction,
                          belief: MultivariateGaussian,
                          noise: Optional[MultivariateRandomDistribution] = None
                          ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Approximate the first two moments of ``function(x, w)``

        Args:
            function: batched function of states and noises
            belief: distribution of the state ``x``
            noise: distribution of the noise ``w``, of which only the first two moments are used. ``None`` for
                deterministic functions, which then receive an empty noise array. A
                :class:`~parcae.filters.distributions.DeltaDistribution` holds the noise at known values.

        Returns:
            - mean: mean of the output
            - covariance: covariance of the output
            - cross_covariance: covariance between the state and the output
        """
        mean_x = belief.get_mean()
        num_states = mean_x.shape[0]

        # Augmented Gaussian over (state, noise)
        if noise is None or noise.num_dimensions == 0:
            mean_aug = mean_x
            cov_aug = belief.get_covariance()
        else:
            mean_aug = np.hstack((mean_x, noise.get_mean()))
            cov_aug = block_diag(belief.get_covariance(), noise.get_covariance())
        sqrt_cov_aug = matrix_sqrt(cov_aug)

        unit_pts, mean_weights, cov_weights = self.unit_points(mean_aug.shape[0])
        sigma_pts = mean_aug + np.matmul(unit_pts, sqrt_cov_aug.T)
        states = sigma_pts[:, :num_states]
        noises = sigma_pts[:, num_states:]

        outputs = np.asarray(function(states, noises), dtype=float)
        if outputs.shape[0] != sigma_pts.shape[0]:
            raise ConfigurationError(f'Function returned {outputs.shape[0]} outputs for {sigma_pts.shape[0]} points')
        outputs = outputs.reshape((sigma_pts.shape[0], -1))

        mean_y = np.matmul(mean_weights, outputs)
        diffs_y = outputs - mean_y
        cov_y = compute_weighted_covariance(cov_weights, diffs_y)
        cov_xy = compute_weighted_covariance(cov_weights, states - mean_x, diffs_y)
        return mean_y, symmetrize(cov_y), cov_xy


class UnscentedQuadrature(MomentIntegrationPolicy):
    """
    Scaled unscented transform, which uses ``2L + 1`` points for an ``L``-dimensional Gaussian

    Args:
        alpha_param: tuning parameter 0.001 <= alpha <= 1 used to control the spread of the sigma points; lower values
            keep sigma points closer to the mean, alpha=1 effectively brings the KF closer to Central Difference KF
            (default = 1.)
        kappa_param: tuning parameter  kappa >= 3 - aug_len; choose values of kappa >=0 for positive semidefiniteness.
            ``'automatic'`` selects ``3 - aug_len``. (default = 0.)
        beta_param: tuning parameter beta >=0 used to incorporate knowledge of prior distribution; for Gaussian use
            beta = 2 (default = 2.)
    """
    alpha_param: float = Field(default=1., ge=0.001, le=1., description='Spread of the sigma points')
    beta_param: float = Field(default=2., ge=0., description='Prior knowledge about the distribution')
    kappa_param: Union[float, Literal['automatic']] = Field(default=0., description='Secondary scaling parameter')

    def _kappa(self, num_dimensions: int) -> float:
        if self.kappa_param == 'automatic':
            return 3. - num_dimensions
        if num_dimensions + self.kappa_param <= 0:
            raise ConfigurationError('Kappa parameter (%f) must be > - Augmented_length L (%d)!' %
                                     (self.kappa_param, num_dimensions))
        return self.kappa_param

    def unit_points(self, num_dimensions: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        kappa = self._kappa(num_dimensions)
        scale = self.alpha_param * self.alpha_param * (num_dimensions + kappa)
        lambda_param = scale - num_dimensions
        gamma_param = np.sqrt(scale)

        mean_weights = 0.5 * np.ones((2 * num_dimensions + 1))
        mean_weights[0] = lambda_param
        mean_weights /= scale
        cov_weights = mean_weights.copy()
        cov_weights[0] += 1 - (self.alpha_param * self.alpha_param) + self.beta_param

        points = np.vstack((np.zeros((num_dimensions,)),
                            gamma_param * np.eye(num_dimensions),
                            -gamma_param * np.eye(num_dimensions)))
        return points, mean_weights, cov_weights


class CubatureQuadrature(MomentIntegrationPolicy):
    """
    Third-degree spherical-radial cubature rule, which uses ``2L`` equally-weighted points for an
    ``L``-dimensional Gaussian placed at ``±sqrt(L)`` along each axis.

    All weights are positive, so covariances computed with this rule are always positive semi-definite.
    """

    def unit_points(self, num_dimensions: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        if num_dimensions == 0:
            raise ConfigurationError('Cubature requires at least one dimension')
        offset = np.sqrt(num_dimensions) * np.eye(num_dimensions)
        points = np.vstack((offset, -offset))
        weights = np.full(2 * num_dimensions, 0.5 / num_dimensions)
        return points, weights, weights.copy()
