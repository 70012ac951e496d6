"""Base classes which define how the filters interact with a dynamical system:
the process model which evolves the hidden state, and the observation model which links it to measurements.

All models are batched. States and noises are 2D arrays where the first dimension is the batch dimension, and each
row is evaluated independently of the others. Noise arguments are standard-normal variates; the models scale them
into their own noise distributions."""
from abc import abstractmethod

import numpy as np
from scipy.stats import norm

from parcae.exceptions import ConfigurationError
from parcae.filters.distributions import MultivariateGaussian
from parcae.filters.utils import check_positive_semi_definite, matrix_sqrt


def as_batch(x: np.ndarray, dim: int, name: str = 'array') -> np.ndarray:
    """
    Make sure an array is 2D with the expected number of columns

    Args:
        x: single point (1D) or batch of points (2D)
        dim: expected number of columns
        name: name used in error messages

    Returns:
        2D array where each row is a point
    """
    x = np.asarray(x, dtype=float)
    if x.ndim == 1 and x.shape[0] == dim:
        x = x[None, :]
    if x.ndim != 2 or x.shape[1] != dim:
        raise ConfigurationError(f'Expected {name} with {dim} columns, but received shape {x.shape}')
    return x


def noise_matrix_from_covariance(noise_covariance: np.ndarray) -> np.ndarray:
    """
    Turn a noise covariance into the matrix which scales standard-normal variates

    Args:
        noise_covariance: covariance of the noise, must be square and positive semi-definite

    Returns:
        matrix ``G`` such that ``G @ G.T == noise_covariance``
    """
    noise_covariance = np.atleast_2d(np.asarray(noise_covariance, dtype=float))
    try:
        noise_covariance = check_positive_semi_definite(noise_covariance)
    except np.linalg.LinAlgError as exc:
        raise ConfigurationError(f'Invalid noise covariance: {exc}') from exc
    return matrix_sqrt(noise_covariance)


class ProcessModel:
    """
    Base class for the state-transition function ``x' = f(x, w, u)``
    """

    @property
    @abstractmethod
    def state_dimension(self) -> int:
        raise NotImplementedError('Please implement in child class!')

    @property
    @abstractmethod
    def noise_dimension(self) -> int:
        raise NotImplementedError('Please implement in child class!')

    @property
    def input_dimension(self) -> int:
        return 0

    @property
    def noise_distribution(self) -> MultivariateGaussian:
        """ Distribution of the noise variates given to :meth:`state` """
        return MultivariateGaussian.standard(self.noise_dimension)

    @abstractmethod
    def state(self, states: np.ndarray, noises: np.ndarray, inputs: np.ndarray) -> np.ndarray:
        """
        Method to evolve hidden states.

        Args:
            states: numpy array of hidden states, where each row is a hidden state array
            noises: numpy array of standard-normal noise variates, one row per state
            inputs: single control input vector applied to all states

        Returns:
            numpy array corresponding to updated hidden states
        """
        raise NotImplementedError('Please implement in child class!')


class AdditiveProcessModel(ProcessModel):
    """
    State-transition function with additive Gaussian noise, ``x' = f(x, u) + G w``

    Args:
        noise_covariance: covariance ``G G^T`` of the additive noise
    """

    def __init__(self, noise_covariance: np.ndarray):
        self._noise_matrix = noise_matrix_from_covariance(noise_covariance)

    @property
    def noise_dimension(self) -> int:
        return self._noise_matrix.shape[1]

    @property
    def noise_matrix(self) -> np.ndarray:
        return self._noise_matrix.copy()

    @property
    def noise_covariance(self) -> np.ndarray:
        return np.matmul(self._noise_matrix, self._noise_matrix.T)

    @abstractmethod
    def expected_state(self, states: np.ndarray, inputs: np.ndarray) -> np.ndarray:
        """
        Noise-free evolution of the hidden states

        Args:
            states: numpy array of hidden states, where each row is a hidden state array
            inputs: single control input vector applied to all states
        """
        raise NotImplementedError('Please implement in child class!')

    def state(self, states: np.ndarray, noises: np.ndarray, inputs: np.ndarray) -> np.ndarray:
        return self.expected_state(states, inputs) + np.matmul(noises, self._noise_matrix.T)


class ObservationModel:
    """
    Base class for the observation function ``z = h(x, v)``
    """

    @property
    @abstractmethod
    def observation_dimension(self) -> int:
        raise NotImplementedError('Please implement in child class!')

    @property
    @abstractmethod
    def noise_dimension(self) -> int:
        raise NotImplementedError('Please implement in child class!')

    @property
    @abstractmethod
    def state_dimension(self) -> int:
        raise NotImplementedError('Please implement in child class!')

    @property
    def noise_distribution(self) -> MultivariateGaussian:
        """ Distribution of the noise variates given to :meth:`observation` """
        return MultivariateGaussian.standard(self.noise_dimension)

    @abstractmethod
    def observation(self, states: np.ndarray, noises: np.ndarray) -> np.ndarray:
        """
        Method to predict observations.

        Args:
            states: numpy array of hidden states, where each row is a hidden state array
            noises: numpy array of standard-normal noise variates, one row per state

        Returns:
            numpy array of observations, one row per state
        """
        raise NotImplementedError('Please implement in child class!')

    def log_likelihood(self, observation: np.ndarray, states: np.ndarray) -> np.ndarray:
        """
        Log-probability of an observation given each of a set of states, ``log p(z | x)``

        Args:
            observation: a single observation
            states: numpy array of hidden states, where each row is a hidden state array

        Returns:
            1D array with one log-likelihood per state
        """
        raise NotImplementedError(f'{self.__class__.__name__} does not provide a likelihood')


class AdditiveObservationModel(ObservationModel):
    """
    Observation function with additive Gaussian noise, ``z = h(x) + L v``

    Args:
        noise_covariance: covariance ``L L^T`` of the additive noise
    """

    def __init__(self, noise_covariance: np.ndarray):
        self._noise_matrix = noise_matrix_from_covariance(noise_covariance)

    @property
    def observation_dimension(self) -> int:
        return self._noise_matrix.shape[0]

    @property
    def noise_dimension(self) -> int:
        return self._noise_matrix.shape[1]

    @property
    def noise_matrix(self) -> np.ndarray:
        return self._noise_matrix.copy()

    @property
    def noise_covariance(self) -> np.ndarray:
        return np.matmul(self._noise_matrix, self._noise_matrix.T)

    @abstractmethod
    def expected_observation(self, states: np.ndarray) -> np.ndarray:
        """
        Noise-free observations of the hidden states

        Args:
            states: numpy array of hidden states, where each row is a hidden state array
        """
        raise NotImplementedError('Please implement in child class!')

    def observation(self, states: np.ndarray, noises: np.ndarray) -> np.ndarray:
        return self.expected_observation(states) + np.matmul(noises, self._noise_matrix.T)

    def log_likelihood(self, observation: np.ndarray, states: np.ndarray) -> np.ndarray:
        observation = np.asarray(observation, dtype=float).flatten()
        residuals = observation - self.expected_observation(as_batch(states, self.state_dimension, 'states'))
        noise = MultivariateGaussian(mean=np.zeros(self.observation_dimension), covariance=self.noise_covariance)
        return np.atleast_1d(noise.compute_log_likelihood(residuals))


class AdditiveUncorrelatedObservationModel(AdditiveObservationModel):
    """
    Observation function with additive noise which is independent across the observation dimensions

    Args:
        noise_variances: variance of the noise on each observation dimension
    """

    def __init__(self, noise_variances: np.ndarray):
        noise_variances = np.asarray(noise_variances, dtype=float).flatten()
        if np.any(noise_variances <= 0):
            raise ConfigurationError('Noise variances must be positive')
        super().__init__(noise_covariance=np.diag(noise_variances))
        self._noise_variances = noise_variances

    @property
    def noise_covariance_diagonal(self) -> np.ndarray:
        return self._noise_variances.copy()

    @property
    def noise_matrix_diagonal(self) -> np.ndarray:
        return np.sqrt(self._noise_variances)

    def log_likelihood(self, observation: np.ndarray, states: np.ndarray) -> np.ndarray:
        observation = np.asarray(observation, dtype=float).flatten()
        residuals = observation - self.expected_observation(as_batch(states, self.state_dimension, 'states'))
        return np.sum(norm.logpdf(residuals, loc=0., scale=self.noise_matrix_diagonal), axis=1)
