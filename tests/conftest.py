from typing import Tuple

from pytest import fixture
import numpy as np

from parcae.models import LinearStateTransitionModel, LinearGaussianObservationModel


def some_rotation(rng: np.random.Generator) -> np.ndarray:
    """Rotation about the x, z and y axes, in that order, by the same random angle"""
    angle = 2 * np.pi * rng.random()
    cos, sin = np.cos(angle), np.sin(angle)
    rot_x = np.array([[1., 0., 0.], [0., cos, -sin], [0., sin, cos]])
    rot_z = np.array([[cos, -sin, 0.], [sin, cos, 0.], [0., 0., 1.]])
    rot_y = np.array([[cos, 0., sin], [0., 1., 0.], [-sin, 0., cos]])
    return rot_x @ rot_z @ rot_y


@fixture()
def rotation_models() -> Tuple[LinearStateTransitionModel, LinearGaussianObservationModel]:
    """3D system where the dynamics, sensor and noise axes are all randomly rotated"""
    rng = np.random.default_rng(0)

    rot = some_rotation(rng)
    process = LinearStateTransitionModel(dynamics_matrix=some_rotation(rng),
                                         noise_covariance=rot @ np.diag([1., 3.5, 1.2]) @ rot.T)

    rot = some_rotation(rng)
    observation = LinearGaussianObservationModel(sensor_matrix=some_rotation(rng),
                                                 noise_covariance=rot @ np.diag([3.1, 1.0, 1.3]) @ rot.T)
    return process, observation


@fixture()
def tracking_models() -> Tuple[LinearStateTransitionModel, LinearGaussianObservationModel]:
    """Constant-velocity model with an acceleration input, where only the position is measured"""
    process = LinearStateTransitionModel(dynamics_matrix=np.array([[1., 0.1], [0., 1.]]),
                                         noise_covariance=np.array([[0.01, 0.002], [0.002, 0.02]]),
                                         input_matrix=np.array([[0.005], [0.1]]))
    observation = LinearGaussianObservationModel(sensor_matrix=np.array([[1., 0.]]),
                                                 noise_covariance=np.array([[0.5]]))
    return process, observation
