"""Observation models which describe and mitigate outliers

Raw sensor data is described by a :class:`BodyTailObservationModel`: most observations follow a well-behaved "body"
model, while a small fraction come from a broad "tail" model. The :class:`RobustFeatureObservationModel` maps raw
observations into a feature space where outliers lose their influence, so that the usual Gaussian correction can be
applied to the features.
"""
from typing import Optional, Tuple
import logging

import numpy as np
from scipy.stats import norm

from parcae.exceptions import ConfigurationError, FeatureDomainError
from parcae.filters.distributions import MultivariateGaussian
from parcae.filters.quadrature import MomentIntegrationPolicy
from .base import ObservationModel, as_batch

logger = logging.getLogger(__name__)


class UniformObservationModel(ObservationModel):
    """
    Observations spread uniformly over a box, independently of the state.

    Standard-normal noise variates are mapped onto the box through the normal cumulative distribution function.

    Args:
        lower: lower corner of the box
        upper: upper corner of the box
        state_dimension: dimension of the (ignored) state
    """

    def __init__(self, lower: np.ndarray, upper: np.ndarray, state_dimension: int):
        lower = np.atleast_1d(np.asarray(lower, dtype=float))
        upper = np.atleast_1d(np.asarray(upper, dtype=float))
        if lower.shape != upper.shape or lower.ndim != 1:
            raise ConfigurationError(f'Box corners must be vectors of the same size, not {lower.shape} and '
                                     f'{upper.shape}')
        if np.any(upper <= lower):
            raise ConfigurationError('Upper corner of the box must be above the lower corner')
        self.lower = lower
        self.upper = upper
        self._state_dimension = state_dimension

    @property
    def observation_dimension(self) -> int:
        return self.lower.shape[0]

    @property
    def noise_dimension(self) -> int:
        return self.lower.shape[0]

    @property
    def state_dimension(self) -> int:
        return self._state_dimension

    @property
    def log_volume(self) -> float:
        return float(np.sum(np.log(self.upper - self.lower)))

    def observation(self, states: np.ndarray, noises: np.ndarray) -> np.ndarray:
        noises = as_batch(noises, self.noise_dimension, 'noises')
        return self.lower + (self.upper - self.lower) * norm.cdf(noises)

    def log_likelihood(self, observation: np.ndarray, states: np.ndarray) -> np.ndarray:
        observation = np.asarray(observation, dtype=float).flatten()
        states = as_batch(states, self.state_dimension, 'states')
        inside = np.all((observation >= self.lower) & (observation <= self.upper))
        value = -self.log_volume if inside else -np.inf
        return np.full(states.shape[0], value)


class BodyTailObservationModel(ObservationModel):
    """
    Mixture of a body model, which describes well-behaved observations, and a tail model, which describes outliers.

    The noise vector is the concatenation of the body noise, the tail noise and one selector variate. An observation
    is drawn from the tail when the normal CDF of the selector falls below the tail weight.

    Args:
        body: model of regular observations
        tail: model of outliers
        tail_weight: prior probability that an observation is an outlier, strictly between 0 and 1
    """

    def __init__(self, body: ObservationModel, tail: ObservationModel, tail_weight: float = 0.1):
        if body.observation_dimension != tail.observation_dimension:
            raise ConfigurationError(f'Body produces {body.observation_dimension} observations, but tail produces '
                                     f'{tail.observation_dimension}')
        if body.state_dimension != tail.state_dimension:
            raise ConfigurationError(f'Body expects {body.state_dimension} states, but tail expects '
                                     f'{tail.state_dimension}')
        if not 0. < tail_weight < 1.:
            raise ConfigurationError(f'Tail weight must be strictly between 0 and 1, not {tail_weight}')
        self.body_model = body
        self.tail_model = tail
        self.tail_weight = float(tail_weight)

    @property
    def observation_dimension(self) -> int:
        return self.body_model.observation_dimension

    @property
    def noise_dimension(self) -> int:
        return self.body_model.noise_dimension + self.tail_model.noise_dimension + 1

    @property
    def state_dimension(self) -> int:
        return self.body_model.state_dimension

    def observation(self, states: np.ndarray, noises: np.ndarray) -> np.ndarray:
        noises = as_batch(noises, self.noise_dimension, 'noises')
        body_end = self.body_model.noise_dimension
        body_obs = self.body_model.observation(states, noises[:, :body_end])
        tail_obs = self.tail_model.observation(states, noises[:, body_end:-1])
        from_tail = norm.cdf(noises[:, -1]) < self.tail_weight
        return np.where(from_tail[:, None], tail_obs, body_obs)

    def log_likelihood(self, observation: np.ndarray, states: np.ndarray) -> np.ndarray:
        log_body = np.log1p(-self.tail_weight) + self.body_model.log_likelihood(observation, states)
        log_tail = np.log(self.tail_weight) + self.tail_model.log_likelihood(observation, states)
        return np.logaddexp(log_body, log_tail)


class RobustFeatureObservationModel(ObservationModel):
    """
    Observation model in a robust feature space.

    A raw observation ``z`` is mapped to the feature ``f(z) = mu + r(z) (z - mu)``, where ``mu`` is the predicted
    mean of the body observation and ``r(z)`` is the posterior probability that ``z`` came from the body rather than
    the tail. Observations consistent with the prediction pass through nearly unchanged, while outliers collapse onto
    the predicted mean and therefore produce almost no innovation.

    The mapping depends on the current operating point, which must be supplied through :meth:`parameters` before
    the features are used.

    Args:
        embedded: raw observation model, a mixture of body and tail
    """

    def __init__(self, embedded: BodyTailObservationModel):
        if not isinstance(embedded, BodyTailObservationModel):
            raise ConfigurationError(f'Robust features require a body-tail model, not a {embedded.__class__.__name__}')
        self.embedded_observation_model = embedded
        self._body_distribution: Optional[MultivariateGaussian] = None
        self._state_mean: Optional[np.ndarray] = None

    @property
    def observation_dimension(self) -> int:
        return self.embedded_observation_model.observation_dimension

    @property
    def noise_dimension(self) -> int:
        return self.embedded_observation_model.noise_dimension

    @property
    def state_dimension(self) -> int:
        return self.embedded_observation_model.state_dimension

    @property
    def body_distribution(self) -> Optional[MultivariateGaussian]:
        """ Predicted distribution of body observations set by the last call to :meth:`parameters` """
        return self._body_distribution

    def parameters(self, body_distribution: MultivariateGaussian, state_mean: np.ndarray) -> None:
        """
        Adapt the feature transform to the current prediction

        Args:
            body_distribution: predicted distribution of the raw observation under the body model
            state_mean: mean of the predicted state
        """
        if body_distribution.num_dimensions != self.observation_dimension:
            raise ConfigurationError(f'Body distribution has {body_distribution.num_dimensions} dimensions, '
                                     f'but observations have {self.observation_dimension}')
        self._body_distribution = body_distribution.model_copy(deep=True)
        self._state_mean = np.asarray(state_mean, dtype=float).flatten()

    def _tail_log_density(self, observations: np.ndarray) -> np.ndarray:
        tail = self.embedded_observation_model.tail_model
        return np.array([tail.log_likelihood(z, self._state_mean)[0] for z in observations])

    def body_responsibility(self, observations: np.ndarray) -> np.ndarray:
        """
        Posterior probability that each observation came from the body model

        Args:
            observations: 2D array of raw observations, one per row

        Returns:
            1D array of probabilities
        """
        if self._body_distribution is None:
            raise FeatureDomainError('Feature transform is not parameterized, call `parameters` first')
        tail_weight = self.embedded_observation_model.tail_weight
        log_body = np.log1p(-tail_weight) + np.atleast_1d(
            self._body_distribution.compute_log_likelihood(observations))
        log_tail = np.log(tail_weight) + self._tail_log_density(observations)
        log_total = np.logaddexp(log_body, log_tail)
        if not np.all(np.isfinite(log_total)):
            raise FeatureDomainError('Observation has zero probability under both the body and the tail models')
        return np.exp(log_body - log_total)

    def _features(self, observations: np.ndarray) -> np.ndarray:
        if not np.all(np.isfinite(observations)):
            raise FeatureDomainError('Observations must be finite')
        responsibility = self.body_responsibility(observations)
        body_mean = self._body_distribution.get_mean()
        return body_mean + responsibility[:, None] * (observations - body_mean)

    def feature_obsrv(self, observation: np.ndarray) -> np.ndarray:
        """
        Map a raw observation into the feature space

        Args:
            observation: a single raw observation

        Returns:
            feature vector, of the same size as the raw observation
        """
        observation = np.asarray(observation, dtype=float)
        if observation.shape != (self.observation_dimension,):
            raise FeatureDomainError(f'Expected an observation of shape ({self.observation_dimension},), '
                                     f'but received {observation.shape}')
        feature = self._features(observation[None, :])[0]
        logger.debug('Robust feature shifted observation by %.3e', np.linalg.norm(feature - observation))
        return feature

    def feature_moments(self,
                        quadrature: MomentIntegrationPolicy,
                        belief: MultivariateGaussian) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Moments of the feature under a belief about the state, and its covariance with the state

        Integrating :meth:`observation` directly would push the discontinuous body/tail selector through the
        quadrature points. Instead, the responsibility ``r(z)`` cancels the mixture density:
        ``r(z) p(z) = (1 - e) p_body(z)``, so the feature mean and covariance only need integrals over the body
        model, where the integrand is smooth. The tail only contributes to the cross-covariance, which vanishes for
        tails that do not depend on the state.

        Args:
            quadrature: policy used to integrate over the belief and the noise
            belief: distribution of the state, usually the one given to :meth:`parameters`

        Returns:
            - mean of the feature
            - covariance of the feature
            - covariance between the state and the feature
        """
        if self._body_distribution is None:
            raise FeatureDomainError('Feature transform is not parameterized, call `parameters` first')
        embedded = self.embedded_observation_model
        body_weight = 1. - embedded.tail_weight
        body_mean = self._body_distribution.get_mean()
        dim = self.observation_dimension

        def body_terms(states: np.ndarray, noises: np.ndarray) -> np.ndarray:
            raw = as_batch(embedded.body_model.observation(states, noises), dim, 'observations')
            diffs = raw - body_mean
            weighted = self.body_responsibility(raw)[:, None] * diffs
            outer = weighted[:, :, None] * diffs[:, None, :]
            return np.hstack((diffs, weighted, outer.reshape((raw.shape[0], -1))))

        def tail_features(states: np.ndarray, noises: np.ndarray) -> np.ndarray:
            raw = embedded.tail_model.observation(states, noises)
            return self._features(as_batch(raw, dim, 'observations'))

        body_means, _, body_cross = quadrature.integrate_moments(body_terms, belief,
                                                                 embedded.body_model.noise_distribution)
        _, _, tail_cross = quadrature.integrate_moments(tail_features, belief,
                                                        embedded.tail_model.noise_distribution)

        mean_shift = body_weight * body_means[:dim]
        second_moment = body_weight * body_means[2 * dim:].reshape((dim, dim))
        covariance = second_moment - np.outer(mean_shift, mean_shift)
        cross_covariance = body_weight * body_cross[:, dim:2 * dim] + embedded.tail_weight * tail_cross
        return body_mean + mean_shift, (covariance + covariance.T) / 2., cross_covariance

    def observation(self, states: np.ndarray, noises: np.ndarray) -> np.ndarray:
        raw = self.embedded_observation_model.observation(states, noises)
        return self._features(as_batch(raw, self.observation_dimension, 'observations'))
