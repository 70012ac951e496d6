"""Joint process model assembled from independent sub-systems"""
from typing import List, NamedTuple, Optional, Sequence, Tuple
import logging

import numpy as np

from parcae.exceptions import ConfigurationError
from .base import ProcessModel, as_batch

logger = logging.getLogger(__name__)


class ComponentSlice(NamedTuple):
    """Where one sub-model reads and writes within the concatenated vectors"""

    model: ProcessModel
    """Sub-model evolving this part of the state"""
    state: slice
    """Columns of the joint state owned by the sub-model"""
    noise: slice
    """Columns of the joint noise owned by the sub-model"""
    input: slice
    """Entries of the joint input owned by the sub-model"""


class ComposedProcessModel(ProcessModel):
    """
    Process model over the concatenation of the states of several independent sub-models.

    Sub-models never interact: each one evolves its own contiguous block of the state using its own block of the
    noise and input vectors, so the joint dynamics are block-diagonal. The joint state, noise and input vectors are
    the concatenations, in order, of those of the sub-models.

    Args:
        process_models: ordered sequence of sub-models
    """

    def __init__(self, process_models: Sequence[ProcessModel]):
        process_models = list(process_models)
        if len(process_models) == 0:
            raise ConfigurationError('A composed process model needs at least one sub-model')
        self._process_models = process_models

        # Offsets are computed once, as the sub-model sizes are fixed
        slices: List[ComponentSlice] = []
        state_start = noise_start = input_start = 0
        for model in process_models:
            state_end = state_start + model.state_dimension
            noise_end = noise_start + model.noise_dimension
            input_end = input_start + model.input_dimension
            slices.append(ComponentSlice(model=model,
                                         state=slice(state_start, state_end),
                                         noise=slice(noise_start, noise_end),
                                         input=slice(input_start, input_end)))
            state_start, noise_start, input_start = state_end, noise_end, input_end
        self._slices = tuple(slices)
        logger.debug('Composed %d process models into %d states, %d noises and %d inputs',
                     len(slices), state_start, noise_start, input_start)

    @property
    def process_models(self) -> Tuple[ProcessModel, ...]:
        return tuple(self._process_models)

    @property
    def slices(self) -> Tuple[ComponentSlice, ...]:
        return self._slices

    @property
    def state_dimension(self) -> int:
        return self._slices[-1].state.stop

    @property
    def noise_dimension(self) -> int:
        return self._slices[-1].noise.stop

    @property
    def input_dimension(self) -> int:
        return self._slices[-1].input.stop

    def state(self, states: np.ndarray, noises: np.ndarray, inputs: Optional[np.ndarray] = None) -> np.ndarray:
        states = as_batch(states, self.state_dimension, 'states')
        noises = as_batch(noises, self.noise_dimension, 'noises')
        if noises.shape[0] != states.shape[0]:
            raise ConfigurationError(f'Received {noises.shape[0]} noises for {states.shape[0]} states')
        if inputs is None:
            inputs = np.zeros(self.input_dimension)
        inputs = np.asarray(inputs, dtype=float)
        if inputs.shape[-1:] != (self.input_dimension,):
            raise ConfigurationError(f'Expected {self.input_dimension} inputs, but received shape {inputs.shape}')

        new_states = np.empty_like(states)
        for component in self._slices:
            new_states[:, component.state] = component.model.state(states[:, component.state],
                                                                   noises[:, component.noise],
                                                                   inputs[..., component.input])
        return new_states
