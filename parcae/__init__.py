"""Recursive Bayesian state estimation with Gaussian, robust and particle filters"""
# Filters are imported first, as the models depend on the distributions they define
from parcae.filters import (MultivariateGaussian, ParticleDistribution, UnscentedQuadrature, CubatureQuadrature,
                            GaussianFilter, RobustGaussianFilter, ParticleFilter)
from parcae.models import (LinearStateTransitionModel, LinearGaussianObservationModel, ComposedProcessModel,
                           UniformObservationModel, BodyTailObservationModel, RobustFeatureObservationModel)
from parcae.version import __version__

__all__ = ['MultivariateGaussian', 'ParticleDistribution', 'UnscentedQuadrature', 'CubatureQuadrature',
           'GaussianFilter', 'RobustGaussianFilter', 'ParticleFilter', 'LinearStateTransitionModel',
           'LinearGaussianObservationModel', 'ComposedProcessModel', 'UniformObservationModel',
           'BodyTailObservationModel', 'RobustFeatureObservationModel', '__version__']
