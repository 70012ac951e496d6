"""Sequential importance resampling (SIR) particle filter"""
from typing import Literal, Optional
import logging

import numpy as np
from scipy.special import logsumexp

from parcae.exceptions import ConfigurationError, ParticleDegeneracyError
from parcae.models.base import ProcessModel, ObservationModel
from .base import BaseFilter
from .distributions import MultivariateGaussian, ParticleDistribution

logger = logging.getLogger(__name__)


class ParticleFilter(BaseFilter):
    """
    Nonparametric filter which represents the belief with a weighted set of samples.

    Particles are moved through the process model with sampled noise, reweighted by the likelihood of each
    observation, and resampled once the effective sample size falls below a fraction of the particle count.

    Args:
        process_model: model describing how the hidden state evolves
        observation_model: model linking the hidden state to observations; must implement
            :meth:`~parcae.models.base.ObservationModel.log_likelihood`
        num_particles: number of particles in beliefs created by this filter
        resample_threshold: resample when the effective sample size drops below this fraction of the particles
        resampling: resampling scheme, ``systematic`` or ``multinomial``
        rng: random number generator used for the process noise and the resampling
    """

    def __init__(self,
                 process_model: ProcessModel,
                 observation_model: ObservationModel,
                 num_particles: int = 1000,
                 resample_threshold: float = 0.5,
                 resampling: Literal['systematic', 'multinomial'] = 'systematic',
                 rng: Optional[np.random.Generator] = None) -> None:
        super().__init__(process_model=process_model, observation_model=observation_model)
        if num_particles < 1:
            raise ConfigurationError(f'Need at least one particle, not {num_particles}')
        if not 0. < resample_threshold <= 1.:
            raise ConfigurationError(f'Resampling threshold must be in (0, 1], not {resample_threshold}')
        if resampling not in ('systematic', 'multinomial'):
            raise ConfigurationError(f'Unknown resampling scheme: {resampling}')
        self.num_particles = num_particles
        self.resample_threshold = resample_threshold
        self.resampling = resampling
        self.rng = np.random.default_rng() if rng is None else rng

    @property
    def name(self) -> str:
        return f'ParticleFilter<{self.resampling}>'

    @property
    def description(self) -> str:
        return (f'Particle filter with {self.num_particles} particles, {self.resampling} resampling below an '
                f'effective sample size of {self.resample_threshold:.0%}')

    def create_belief(self) -> ParticleDistribution:
        """
        Particles drawn from a standard Gaussian over the state
        """
        return ParticleDistribution.from_distribution(MultivariateGaussian.standard(self.state_dimension),
                                                      num_samples=self.num_particles,
                                                      rng=self.rng)

    def _check_particles(self, belief: ParticleDistribution, label: str) -> None:
        if not isinstance(belief, ParticleDistribution):
            raise ConfigurationError(f'{self.name} requires a particle {label}, not a {belief.__class__.__name__}')
        self._check_belief(belief, label)

    def _write(self,
               samples: np.ndarray,
               log_weights: np.ndarray,
               out: Optional[ParticleDistribution]) -> ParticleDistribution:
        if out is None:
            return ParticleDistribution(samples=samples, log_weights=log_weights)
        self._check_particles(out, 'output belief')
        return out.set_particles(samples=samples, log_weights=log_weights)

    def predict(self,
                prior_belief: ParticleDistribution,
                inputs: Optional[np.ndarray] = None,
                out: Optional[ParticleDistribution] = None) -> ParticleDistribution:
        self._check_particles(prior_belief, 'prior belief')
        model = self.process_model
        if inputs is None:
            inputs = np.zeros(model.input_dimension)
        noises = self.rng.standard_normal((prior_belief.num_samples, model.noise_dimension))
        samples = model.state(prior_belief.samples, noises, np.asarray(inputs, dtype=float))
        return self._write(samples, prior_belief.log_weights.copy(), out)

    def update(self,
               predicted_belief: ParticleDistribution,
               observation: np.ndarray,
               out: Optional[ParticleDistribution] = None) -> ParticleDistribution:
        self._check_particles(predicted_belief, 'predicted belief')
        observation = np.asarray(observation, dtype=float).flatten()
        if observation.shape != (self.observation_model.observation_dimension,):
            raise ConfigurationError('Expected %d observations, but received %d!' %
                                     (self.observation_model.observation_dimension, observation.size))

        log_likelihoods = self.observation_model.log_likelihood(observation, predicted_belief.samples)
        log_weights = predicted_belief.log_weights + log_likelihoods
        log_norm = logsumexp(log_weights)
        if not np.isfinite(log_norm):
            raise ParticleDegeneracyError('All particles have zero weight given the observation')
        log_weights = log_weights - log_norm

        posterior = ParticleDistribution(samples=predicted_belief.samples, log_weights=log_weights)
        ess = posterior.effective_sample_size
        if ess < self.resample_threshold * posterior.num_samples:
            logger.debug('Resampling %d particles, effective sample size is %.1f', posterior.num_samples, ess)
            posterior = posterior.resample(rng=self.rng, scheme=self.resampling)
        return self._write(posterior.samples, posterior.log_weights, out)
