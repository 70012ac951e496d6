import numpy as np
from pytest import raises
from scipy.stats import multivariate_normal, norm

from parcae.exceptions import ConfigurationError
from parcae.models.base import AdditiveUncorrelatedObservationModel, as_batch
from parcae.models.linear import LinearStateTransitionModel, LinearGaussianObservationModel


class ScaledSensor(AdditiveUncorrelatedObservationModel):
    """Measures each state through a different gain"""

    def __init__(self, gains, noise_variances):
        super().__init__(noise_variances=noise_variances)
        self.gains = np.asarray(gains, dtype=float)

    @property
    def state_dimension(self) -> int:
        return len(self.gains)

    def expected_observation(self, states):
        return as_batch(states, self.state_dimension, 'states') * self.gains


def test_as_batch():
    assert as_batch(np.zeros(3), 3).shape == (1, 3)
    assert as_batch(np.zeros((4, 3)), 3).shape == (4, 3)
    with raises(ConfigurationError, match='Expected states with 2 columns'):
        as_batch(np.zeros((4, 3)), 2, 'states')


def test_additive_process():
    model = LinearStateTransitionModel(dynamics_matrix=np.array([[1., 1.], [0., 1.]]),
                                       noise_covariance=np.array([[4., 2.], [2., 2.]]))
    assert model.state_dimension == 2
    assert model.noise_dimension == 2
    assert model.input_dimension == 0
    assert np.allclose(model.noise_matrix @ model.noise_matrix.T, model.noise_covariance)
    assert np.allclose(model.noise_covariance, [[4., 2.], [2., 2.]])

    # Standard-normal noise is scaled by the noise matrix
    states = np.array([[1., 2.], [0., 0.]])
    noises = np.array([[0., 0.], [1., 0.]])
    new_states = model.state(states, noises, np.zeros(0))
    assert np.allclose(new_states[0], [3., 2.])
    assert np.allclose(new_states[1], model.noise_matrix[:, 0])

    with raises(ConfigurationError, match='Invalid noise covariance'):
        LinearStateTransitionModel(dynamics_matrix=np.eye(2), noise_covariance=np.diag([1., -1.]))
    with raises(ConfigurationError, match='does not match the 3 states'):
        LinearStateTransitionModel(dynamics_matrix=np.eye(3), noise_covariance=np.eye(2))
    with raises(ConfigurationError, match='must be square'):
        LinearStateTransitionModel(dynamics_matrix=np.ones((2, 3)), noise_covariance=np.eye(2))
    with raises(ConfigurationError, match='Input matrix must have 2 rows'):
        LinearStateTransitionModel(dynamics_matrix=np.eye(2), noise_covariance=np.eye(2), input_matrix=np.ones((3, 1)))


def test_gaussian_likelihood():
    model = LinearGaussianObservationModel(sensor_matrix=np.array([[1., 0.], [1., 1.]]),
                                           noise_covariance=np.array([[1., 0.2], [0.2, 0.5]]))
    states = np.array([[0., 0.], [1., 2.], [3., -1.]])
    z = np.array([1., 2.5])
    expected = [multivariate_normal.logpdf(z, mean=model.sensor_matrix @ x, cov=model.noise_covariance)
                for x in states]
    assert np.allclose(model.log_likelihood(z, states), expected)
    assert model.log_likelihood(z, states[0]).shape == (1,)

    with raises(ConfigurationError, match='does not match the noise covariance'):
        LinearGaussianObservationModel(sensor_matrix=np.eye(3), noise_covariance=np.eye(2))


def test_uncorrelated_noise():
    model = ScaledSensor(gains=[1., 2.], noise_variances=[0.25, 4.])
    assert model.observation_dimension == 2
    assert np.allclose(model.noise_covariance_diagonal, [0.25, 4.])
    assert np.allclose(model.noise_matrix_diagonal, [0.5, 2.])
    assert np.allclose(model.noise_covariance, np.diag([0.25, 4.]))

    observations = model.observation(np.array([[1., 1.]]), np.array([[1., -1.]]))
    assert np.allclose(observations, [[1.5, 0.]])

    states = np.array([[0., 0.], [1., 1.]])
    z = np.array([1., 1.])
    expected = norm.logpdf(z - states * model.gains, scale=[0.5, 2.]).sum(axis=1)
    assert np.allclose(model.log_likelihood(z, states), expected)

    with raises(ConfigurationError, match='must be positive'):
        ScaledSensor(gains=[1.], noise_variances=[0.])
