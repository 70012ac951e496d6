"""Filters which refine a belief about the hidden state, and the distributions used to represent that belief"""
from .distributions import MultivariateRandomDistribution, DeltaDistribution, MultivariateGaussian, ParticleDistribution
from .quadrature import MomentIntegrationPolicy, UnscentedQuadrature, UnscentedTuningParameters, CubatureQuadrature
from .base import BaseFilter
from .gaussian import GaussianFilter
from .robust import RobustGaussianFilter
from .particle import ParticleFilter

__all__ = ['MultivariateRandomDistribution', 'DeltaDistribution', 'MultivariateGaussian', 'ParticleDistribution',
           'MomentIntegrationPolicy', 'UnscentedQuadrature', 'UnscentedTuningParameters', 'CubatureQuadrature',
           'BaseFilter', 'GaussianFilter', 'RobustGaussianFilter', 'ParticleFilter']
