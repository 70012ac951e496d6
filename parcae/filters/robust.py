"""Gaussian filter which corrects the belief with robust features instead of raw observations"""
from typing import Optional
import logging

import numpy as np

from parcae.exceptions import ConfigurationError
from parcae.models.base import ProcessModel
from parcae.models.robust import BodyTailObservationModel, RobustFeatureObservationModel
from .base import BaseFilter
from .distributions import MultivariateGaussian
from .gaussian import GaussianFilter
from .quadrature import MomentIntegrationPolicy
from .utils import check_positive_semi_definite, symmetrize

logger = logging.getLogger(__name__)


class RobustGaussianFilter(BaseFilter):
    """
    Gaussian filter resilient to outliers and heavy-tailed sensor noise.

    Wraps a :class:`~parcae.filters.gaussian.GaussianFilter` whose observation model is a
    :class:`~parcae.models.robust.RobustFeatureObservationModel` built around the raw observation model. Each update

    1. integrates the moments of the raw body observation under the predicted belief,
    2. adapts the feature transform to those moments,
    3. maps the raw observation into the feature space, and
    4. applies the Kálmán correction to the feature, using the feature moments of
       :meth:`~parcae.models.robust.RobustFeatureObservationModel.feature_moments`.

    Args:
        process_model: model describing how the hidden state evolves
        observation_model: raw observation model, a mixture of regular observations and outliers
        quadrature: policy used to integrate moments (default: unscented transform)
        closed_form: whether the wrapped filter uses exact expressions for linear process models
    """

    def __init__(self,
                 process_model: ProcessModel,
                 observation_model: BodyTailObservationModel,
                 quadrature: Optional[MomentIntegrationPolicy] = None,
                 closed_form: bool = True) -> None:
        if not isinstance(observation_model, BodyTailObservationModel):
            raise ConfigurationError(f'A robust Gaussian filter requires a body-tail observation model, '
                                     f'not a {observation_model.__class__.__name__}')
        feature_model = RobustFeatureObservationModel(observation_model)
        self.gaussian_filter = GaussianFilter(process_model=process_model,
                                              observation_model=feature_model,
                                              quadrature=quadrature,
                                              closed_form=closed_form)

    @property
    def process_model(self) -> ProcessModel:
        return self.gaussian_filter.process_model

    @process_model.setter
    def process_model(self, model: ProcessModel):
        self.gaussian_filter.process_model = model

    @property
    def observation_model(self) -> BodyTailObservationModel:
        """ Raw observation model embedded in the feature model """
        return self.feature_observation_model.embedded_observation_model

    @observation_model.setter
    def observation_model(self, model: BodyTailObservationModel):
        self.gaussian_filter.observation_model = RobustFeatureObservationModel(model)

    @property
    def feature_observation_model(self) -> RobustFeatureObservationModel:
        return self.gaussian_filter.observation_model

    @property
    def quadrature(self) -> MomentIntegrationPolicy:
        return self.gaussian_filter.quadrature

    @property
    def state_dimension(self) -> int:
        return self.gaussian_filter.state_dimension

    @property
    def name(self) -> str:
        return f'RobustGaussianFilter<{self.gaussian_filter.name}>'

    @property
    def description(self) -> str:
        return f'Robust feature-space variant of a {self.gaussian_filter.description}'

    def create_belief(self) -> MultivariateGaussian:
        return self.gaussian_filter.create_belief()

    def predict(self,
                prior_belief: MultivariateGaussian,
                inputs: Optional[np.ndarray] = None,
                out: Optional[MultivariateGaussian] = None) -> MultivariateGaussian:
        return self.gaussian_filter.predict(prior_belief, inputs, out=out)

    def update(self,
               predicted_belief: MultivariateGaussian,
               observation: np.ndarray,
               out: Optional[MultivariateGaussian] = None) -> MultivariateGaussian:
        self.gaussian_filter._check_gaussian(predicted_belief, 'predicted belief')
        body_model = self.observation_model.body_model

        # Moments of the raw observation, which set the operating point of the feature transform
        body_mean, body_cov, _ = self.quadrature.integrate_moments(body_model.observation,
                                                                   predicted_belief,
                                                                   body_model.noise_distribution)
        body_distr = MultivariateGaussian(mean=body_mean, covariance=check_positive_semi_definite(symmetrize(body_cov)))
        feature_model = self.feature_observation_model
        feature_model.parameters(body_distr, predicted_belief.get_mean())

        feature = feature_model.feature_obsrv(np.asarray(observation, dtype=float).flatten())
        logger.debug('Robust update with body prediction %s and feature %s', body_mean, feature)

        feature_mean, feature_cov, cross_cov = feature_model.feature_moments(self.quadrature, predicted_belief)
        predicted_feature = MultivariateGaussian(mean=feature_mean,
                                                 covariance=check_positive_semi_definite(feature_cov))
        return self.gaussian_filter.correct(predicted_belief, feature, predicted_feature, cross_cov, out=out)
