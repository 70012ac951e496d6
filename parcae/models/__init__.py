"""Process and observation models consumed by the filters"""
from .base import (ProcessModel, AdditiveProcessModel, ObservationModel, AdditiveObservationModel,
                   AdditiveUncorrelatedObservationModel)
from .linear import LinearStateTransitionModel, LinearGaussianObservationModel
from .composed import ComposedProcessModel, ComponentSlice
from .robust import UniformObservationModel, BodyTailObservationModel, RobustFeatureObservationModel

__all__ = ['ProcessModel', 'AdditiveProcessModel', 'ObservationModel', 'AdditiveObservationModel',
           'AdditiveUncorrelatedObservationModel', 'LinearStateTransitionModel', 'LinearGaussianObservationModel',
           'ComposedProcessModel', 'ComponentSlice', 'UniformObservationModel', 'BodyTailObservationModel',
           'RobustFeatureObservationModel']
