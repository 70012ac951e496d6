""" Base definitions for all filters """
from abc import abstractmethod
from typing import Optional

import numpy as np

from parcae.exceptions import ConfigurationError
from parcae.models.base import ProcessModel, ObservationModel
from .distributions import MultivariateRandomDistribution


class BaseFilter:
    """
    Interface shared by all filters: a belief is refined by alternating calls to :meth:`predict` and :meth:`update`.

    Filters do not hold the belief themselves. Callers pass it to each call and receive the new belief back. An
    ``out`` belief may be provided to receive the result in place, and it may be the same object as the input belief:
    every quantity needed from the input is computed before ``out`` is written. A call that fails leaves ``out``
    untouched.

    Args:
        process_model: model describing how the hidden state evolves
        observation_model: model linking the hidden state to observations
    """

    def __init__(self, process_model: ProcessModel, observation_model: ObservationModel) -> None:
        if process_model.state_dimension != observation_model.state_dimension:
            raise ConfigurationError('Process model has %d states, but the observation model expects %d!' %
                                     (process_model.state_dimension, observation_model.state_dimension))
        self._process_model = process_model
        self._observation_model = observation_model

    @property
    def process_model(self) -> ProcessModel:
        return self._process_model

    @process_model.setter
    def process_model(self, model: ProcessModel):
        if model.state_dimension != self._observation_model.state_dimension:
            raise ConfigurationError('Process model must keep %d states' % self._observation_model.state_dimension)
        self._process_model = model

    @property
    def observation_model(self) -> ObservationModel:
        return self._observation_model

    @observation_model.setter
    def observation_model(self, model: ObservationModel):
        if model.state_dimension != self._process_model.state_dimension:
            raise ConfigurationError('Observation model must use %d states' % self._process_model.state_dimension)
        self._observation_model = model

    @property
    def state_dimension(self) -> int:
        return self._process_model.state_dimension

    @property
    def name(self) -> str:
        """ Short identifier of the filter, for logging """
        return self.__class__.__name__

    @property
    def description(self) -> str:
        """ Human-readable summary of the filter """
        return self.name

    def _check_belief(self, belief: MultivariateRandomDistribution, label: str = 'belief') -> None:
        if belief.num_dimensions != self.state_dimension:
            raise ConfigurationError('Filter expects %d states, but %s has %d!' %
                                     (self.state_dimension, label, belief.num_dimensions))

    @abstractmethod
    def create_belief(self) -> MultivariateRandomDistribution:
        """
        Creates a belief of the right kind and size for this filter
        """
        raise NotImplementedError('Please implement in child class!')

    @abstractmethod
    def predict(self,
                prior_belief: MultivariateRandomDistribution,
                inputs: Optional[np.ndarray] = None,
                out: Optional[MultivariateRandomDistribution] = None) -> MultivariateRandomDistribution:
        """
        Propagates the belief through the process model.

        Args:
            prior_belief: belief before the transition
            inputs: control inputs applied during the transition
            out: belief to write the result into (may be ``prior_belief``); a new one is created if not provided

        Returns:
            predicted belief
        """
        raise NotImplementedError('Please implement in child class!')

    @abstractmethod
    def update(self,
               predicted_belief: MultivariateRandomDistribution,
               observation: np.ndarray,
               out: Optional[MultivariateRandomDistribution] = None) -> MultivariateRandomDistribution:
        """
        Corrects the belief given a new observation.

        Args:
            predicted_belief: belief before the observation
            observation: measured values
            out: belief to write the result into (may be ``predicted_belief``); a new one is created if not provided

        Returns:
            posterior belief
        """
        raise NotImplementedError('Please implement in child class!')
