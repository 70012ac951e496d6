"""Linear-Gaussian models, for which the predicted moments are available in closed form"""
from typing import Optional, Tuple

import numpy as np

from parcae.exceptions import ConfigurationError
from .base import AdditiveProcessModel, AdditiveObservationModel, as_batch


class LinearStateTransitionModel(AdditiveProcessModel):
    """
    Linear dynamics ``x' = A x + B u + G w``

    Args:
        dynamics_matrix: square matrix ``A``
        noise_covariance: covariance ``G G^T`` of the process noise
        input_matrix: matrix ``B`` mapping inputs onto the state; no inputs if not provided
    """

    def __init__(self,
                 dynamics_matrix: np.ndarray,
                 noise_covariance: np.ndarray,
                 input_matrix: Optional[np.ndarray] = None):
        super().__init__(noise_covariance=noise_covariance)
        dynamics_matrix = np.atleast_2d(np.asarray(dynamics_matrix, dtype=float))
        dim = dynamics_matrix.shape[0]
        if dynamics_matrix.shape != (dim, dim):
            raise ConfigurationError(f'Dynamics matrix must be square, but has shape {dynamics_matrix.shape}')
        if self._noise_matrix.shape[0] != dim:
            raise ConfigurationError(f'Noise covariance of size {self._noise_matrix.shape[0]} '
                                     f'does not match the {dim} states')
        if input_matrix is None:
            input_matrix = np.zeros((dim, 0))
        input_matrix = np.asarray(input_matrix, dtype=float)
        if input_matrix.ndim != 2 or input_matrix.shape[0] != dim:
            raise ConfigurationError(f'Input matrix must have {dim} rows, but has shape {input_matrix.shape}')
        self.dynamics_matrix = dynamics_matrix
        self.input_matrix = input_matrix

    @property
    def state_dimension(self) -> int:
        return self.dynamics_matrix.shape[0]

    @property
    def input_dimension(self) -> int:
        return self.input_matrix.shape[1]

    def _control(self, inputs: Optional[np.ndarray]) -> np.ndarray:
        if inputs is None:
            inputs = np.zeros(self.input_dimension)
        inputs = np.asarray(inputs, dtype=float)
        if inputs.shape[-1:] != (self.input_dimension,):
            raise ConfigurationError(f'Expected {self.input_dimension} inputs, but received shape {inputs.shape}')
        return np.matmul(inputs, self.input_matrix.T)

    def expected_state(self, states: np.ndarray, inputs: np.ndarray) -> np.ndarray:
        states = as_batch(states, self.state_dimension, 'states')
        return np.matmul(states, self.dynamics_matrix.T) + self._control(inputs)

    def propagate_moments(self,
                          mean: np.ndarray,
                          covariance: np.ndarray,
                          inputs: Optional[np.ndarray] = None) -> Tuple[np.ndarray, np.ndarray]:
        """
        Closed-form prediction of a Gaussian through the dynamics

        Args:
            mean: mean of the prior
            covariance: covariance of the prior
            inputs: control input

        Returns:
            mean and covariance of the predicted Gaussian, ``A m + B u`` and ``A P A^T + G G^T``
        """
        predicted_mean = np.matmul(self.dynamics_matrix, mean) + self._control(inputs)
        predicted_cov = np.matmul(self.dynamics_matrix, np.matmul(covariance, self.dynamics_matrix.T))
        predicted_cov += self.noise_covariance
        return predicted_mean, predicted_cov


class LinearGaussianObservationModel(AdditiveObservationModel):
    """
    Linear sensor ``z = H x + L v``

    Args:
        sensor_matrix: matrix ``H`` of shape (observation dimension, state dimension)
        noise_covariance: covariance ``L L^T`` of the sensor noise
    """

    def __init__(self, sensor_matrix: np.ndarray, noise_covariance: np.ndarray):
        super().__init__(noise_covariance=noise_covariance)
        sensor_matrix = np.atleast_2d(np.asarray(sensor_matrix, dtype=float))
        if sensor_matrix.ndim != 2 or sensor_matrix.shape[0] != self._noise_matrix.shape[0]:
            raise ConfigurationError(f'Sensor matrix of shape {sensor_matrix.shape} does not match the '
                                     f'noise covariance of size {self._noise_matrix.shape[0]}')
        self.sensor_matrix = sensor_matrix

    @property
    def state_dimension(self) -> int:
        return self.sensor_matrix.shape[1]

    def expected_observation(self, states: np.ndarray) -> np.ndarray:
        states = as_batch(states, self.state_dimension, 'states')
        return np.matmul(states, self.sensor_matrix.T)

    def observation_moments(self,
                            mean: np.ndarray,
                            covariance: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Closed-form moments of the predicted observation

        Args:
            mean: mean of the predicted state
            covariance: covariance of the predicted state

        Returns:
            - observation mean ``H m``
            - innovation covariance ``H P H^T + L L^T``
            - cross-covariance between state and observation ``P H^T``
        """
        cross_cov = np.matmul(covariance, self.sensor_matrix.T)
        innovation_cov = np.matmul(self.sensor_matrix, cross_cov) + self.noise_covariance
        return np.matmul(self.sensor_matrix, mean), innovation_cov, cross_cov
