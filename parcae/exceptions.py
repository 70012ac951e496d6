"""Errors raised by the filters and models"""
import numpy as np


class FilterError(Exception):
    """Base class for all errors raised while estimating"""


class ConfigurationError(FilterError, ValueError):
    """Models, beliefs or tuning parameters are inconsistent with each other"""


class SingularCovarianceError(FilterError, np.linalg.LinAlgError):
    """A covariance which must be inverted is not invertible"""


class NotPositiveSemiDefiniteError(SingularCovarianceError):
    """A covariance has negative eigenvalues beyond numerical tolerance"""


class FeatureDomainError(FilterError, ValueError):
    """An observation lies outside the domain of a feature transform"""


class ParticleDegeneracyError(FilterError, RuntimeError):
    """All particles have zero weight, so the estimate cannot continue"""
