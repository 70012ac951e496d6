""" Definition of the generic Gaussian filter, which propagates moments with sigma-point quadrature"""
from typing import Optional, Tuple
import logging

import numpy as np

from parcae.exceptions import ConfigurationError
from parcae.models.base import ProcessModel, ObservationModel, AdditiveProcessModel, AdditiveObservationModel
from parcae.models.linear import LinearStateTransitionModel, LinearGaussianObservationModel
from .base import BaseFilter
from .distributions import MultivariateGaussian
from .quadrature import MomentIntegrationPolicy, UnscentedQuadrature, UnscentedTuningParameters
from .utils import calculate_gain_correction, check_positive_semi_definite, symmetrize

logger = logging.getLogger(__name__)


class GaussianFilter(BaseFilter):
    """
    Filter which approximates the belief with a multivariate Gaussian.

    The moments of the predicted state and of the predicted observation are computed, in order of preference:

    1. in closed form, when the model is linear and ``closed_form`` is enabled;
    2. by integrating only the noise-free part of the model and adding the noise covariance, for additive-noise models;
    3. by integrating the full model over the joint distribution of the state and the standard-normal noise.

    The correction step is the usual Kálmán update, which only needs the predicted observation moments and the
    cross-covariance between state and observation.

    Args:
        process_model: model describing how the hidden state evolves
        observation_model: model linking the hidden state to observations
        quadrature: policy used to integrate moments of nonlinear functions (default: unscented transform)
        closed_form: whether to use exact expressions for linear models
    """

    def __init__(self,
                 process_model: ProcessModel,
                 observation_model: ObservationModel,
                 quadrature: Optional[MomentIntegrationPolicy] = None,
                 closed_form: bool = True) -> None:
        super().__init__(process_model=process_model, observation_model=observation_model)
        if quadrature is None:
            quadrature = UnscentedQuadrature(**UnscentedTuningParameters.defaults())
        self.quadrature = quadrature
        self.closed_form = closed_form

    @property
    def name(self) -> str:
        return f'GaussianFilter<{self.quadrature.name}>'

    @property
    def description(self) -> str:
        return (f'Gaussian filter integrating moments with {self.quadrature.name} '
                f'(closed form for linear models: {self.closed_form})')

    def create_belief(self) -> MultivariateGaussian:
        """
        Standard Gaussian (zero mean, identity covariance) over the state
        """
        return MultivariateGaussian.standard(self.state_dimension)

    def _check_gaussian(self, belief: MultivariateGaussian, label: str) -> None:
        if not isinstance(belief, MultivariateGaussian):
            raise ConfigurationError(f'{self.name} requires a Gaussian {label}, not a {belief.__class__.__name__}')
        self._check_belief(belief, label)

    def _write(self,
               mean: np.ndarray,
               covariance: np.ndarray,
               out: Optional[MultivariateGaussian]) -> MultivariateGaussian:
        covariance = check_positive_semi_definite(covariance)
        if out is None:
            return MultivariateGaussian(mean=mean, covariance=covariance)
        self._check_gaussian(out, 'output belief')
        return out.set_moments(mean=mean, covariance=covariance)

    def predict_state_moments(self,
                              prior_belief: MultivariateGaussian,
                              inputs: Optional[np.ndarray] = None) -> Tuple[np.ndarray, np.ndarray]:
        """
        Mean and covariance of the state after the transition

        Args:
            prior_belief: belief before the transition
            inputs: control inputs applied during the transition
        """
        model = self.process_model
        if inputs is None:
            inputs = np.zeros(model.input_dimension)
        inputs = np.asarray(inputs, dtype=float)

        if self.closed_form and isinstance(model, LinearStateTransitionModel):
            return model.propagate_moments(prior_belief.get_mean(), prior_belief.get_covariance(), inputs)

        if isinstance(model, AdditiveProcessModel):
            mean, cov, _ = self.quadrature.integrate_moments(
                lambda x, w: model.expected_state(x, inputs), prior_belief)
            return mean, cov + model.noise_covariance

        mean, cov, _ = self.quadrature.integrate_moments(
            lambda x, w: model.state(x, w, inputs), prior_belief, model.noise_distribution)
        return mean, cov

    def predict_observation(self,
                            predicted_belief: MultivariateGaussian) -> Tuple[MultivariateGaussian, np.ndarray]:
        """
        Distribution of the next observation given the predicted state

        Args:
            predicted_belief: belief about the state at the time of the observation

        Returns:
            - distribution of the observation
            - covariance between the state and the observation
        """
        self._check_gaussian(predicted_belief, 'predicted belief')
        model = self.observation_model
        if self.closed_form and isinstance(model, LinearGaussianObservationModel):
            mean, cov, cross_cov = model.observation_moments(predicted_belief.get_mean(),
                                                             predicted_belief.get_covariance())
        elif isinstance(model, AdditiveObservationModel):
            mean, cov, cross_cov = self.quadrature.integrate_moments(
                lambda x, w: model.expected_observation(x), predicted_belief)
            cov = cov + model.noise_covariance
        else:
            mean, cov, cross_cov = self.quadrature.integrate_moments(
                model.observation, predicted_belief, model.noise_distribution)
        return MultivariateGaussian(mean=mean, covariance=check_positive_semi_definite(symmetrize(cov))), cross_cov

    def predict(self,
                prior_belief: MultivariateGaussian,
                inputs: Optional[np.ndarray] = None,
                out: Optional[MultivariateGaussian] = None) -> MultivariateGaussian:
        self._check_gaussian(prior_belief, 'prior belief')
        mean, cov = self.predict_state_moments(prior_belief, inputs)
        return self._write(mean, cov, out)

    def update(self,
               predicted_belief: MultivariateGaussian,
               observation: np.ndarray,
               out: Optional[MultivariateGaussian] = None) -> MultivariateGaussian:
        y_hat, cov_xy = self.predict_observation(predicted_belief)
        return self.correct(predicted_belief, observation, y_hat, cov_xy, out=out)

    def correct(self,
                predicted_belief: MultivariateGaussian,
                observation: np.ndarray,
                predicted_observation: MultivariateGaussian,
                cross_covariance: np.ndarray,
                out: Optional[MultivariateGaussian] = None) -> MultivariateGaussian:
        """
        Kálmán correction given the moments of the predicted observation

        Args:
            predicted_belief: belief before the observation
            observation: measured values
            predicted_observation: distribution of the observation under the predicted belief
            cross_covariance: covariance between the state and the observation
            out: belief to write the result into (may be ``predicted_belief``)

        Returns:
            posterior belief
        """
        self._check_gaussian(predicted_belief, 'predicted belief')
        observation = np.asarray(observation, dtype=float).flatten()
        if observation.shape != (self.observation_model.observation_dimension,):
            raise ConfigurationError('Expected %d observations, but received %d!' %
                                     (self.observation_model.observation_dimension, observation.size))

        # Innovation is relative to the predicted observation
        innovation = observation - predicted_observation.get_mean()
        mean_shift, cov_reduction = calculate_gain_correction(cov_xy=cross_covariance,
                                                              cov_y=predicted_observation.get_covariance(),
                                                              innovation=innovation)
        posterior_mean = predicted_belief.get_mean() + mean_shift
        posterior_cov = symmetrize(predicted_belief.get_covariance() - cov_reduction)
        logger.debug('%s moved the mean by %.3e for an innovation of norm %.3e',
                     self.name, np.linalg.norm(mean_shift), np.linalg.norm(innovation))
        return self._write(posterior_mean, posterior_cov, out)
