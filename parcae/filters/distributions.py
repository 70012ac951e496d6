"""Classes defining different multivariate probability distributions"""
from abc import abstractmethod
from typing import Iterable, Literal, Optional
from typing_extensions import Self

import numpy as np
from scipy.linalg import block_diag
from scipy.special import logsumexp
from scipy.stats import multivariate_normal
from pydantic import Field, ValidationInfo, field_validator, model_validator, BaseModel

from parcae.exceptions import ConfigurationError, SingularCovarianceError


def _as_float_array(value) -> np.ndarray:
    return np.array(value, dtype=float)


def _check_mean_1d(mu: np.ndarray) -> np.ndarray:
    mean_shape = mu.shape
    if not mean_shape:
        raise ValueError('Mean must be Sized and have a non-empty shape!')
    if len(mean_shape) > 2 or (len(mean_shape) == 2 and 1 not in mean_shape):
        raise ValueError('Mean must be a 1D vector, but array provided has shape ' + str(mean_shape) + '!')
    elif len(mean_shape) == 2:
        msg = 'Provided mean has shape (%d, %d), please flatten to (%d,)' % \
              (mean_shape + (max(mean_shape),))
        raise ValueError(msg)
    return mu.flatten()


class MultivariateRandomDistribution(BaseModel, arbitrary_types_allowed=True):
    """
    Base class to help represent a multivariate random variable.
    """

    @property
    def num_dimensions(self) -> int:
        """ Number of dimensions of random variable """
        return len(self.get_mean())

    @abstractmethod
    def get_mean(self) -> np.ndarray:
        """
        Provides mean (first moment) of distribution
        """
        raise NotImplementedError('Please implement in child class!')

    @abstractmethod
    def get_covariance(self) -> np.ndarray:
        """
        Provides the covariance of the distribution
        """
        raise NotImplementedError('Please implement in child class!')

    @abstractmethod
    def combine_with(self, random_dists: Iterable[Self]) -> Self:
        """
        Provides an easy way to combine several multivariate independent random variables of the same distribution type
        (delta, gaussian, etc.), but not necessarily of the same dimensions or from the same PDFs. It must not change
        self!
        """
        raise NotImplementedError('Please implement in child class!')

    @abstractmethod
    def compute_log_likelihood(self, data: np.ndarray) -> np.ndarray:
        r"""
        Computes the log-likelihood of the data, that is, :math:`\log(P(\mathcal{D}|\theta))`, where :math:`\mathcal{D}`
        is the data and :math:`\theta` are the parameters of the distribution

        Args:
            data: value(s) whose log-likelihood we would like to compute, where the first axis corresponds to the batch
                dimension of the data, and the second, to the dimension of the datapoint

        Returns:
            log likelihood of data provided
        """
        raise NotImplementedError('Please implement in child class!')


class DeltaDistribution(MultivariateRandomDistribution, validate_assignment=True):
    """
    A distribution with only one set of allowed values

    Args:
        mean: a 1D array containing allowed values; can be passed as flattened array or array with shapes (1, dim) or
            (dim, 1)
    """

    mean: np.ndarray = Field(default=None, description='Mean of the distribution.')

    @field_validator('mean', mode='before')
    @classmethod
    def mean_to_array(cls, mu) -> np.ndarray:
        return _as_float_array(mu)

    @field_validator('mean', mode='after')
    @classmethod
    def mean_1d(cls, mu: np.ndarray) -> np.ndarray:
        """ Making sure the mean is a vector """
        return _check_mean_1d(mu)

    def get_mean(self) -> np.ndarray:
        return self.mean.copy()

    def get_covariance(self) -> np.ndarray:
        size = self.get_mean().shape[0]
        return np.zeros((size, size))

    def combine_with(self, random_dists: Iterable[Self]) -> Self:
        combined_mean = [self.get_mean(),]
        combined_mean += [delta.get_mean() for delta in random_dists]
        combined_mean = np.concatenate(combined_mean, axis=None)
        return DeltaDistribution(mean=combined_mean)

    def compute_log_likelihood(self, data: np.ndarray) -> np.ndarray:
        return np.sum(np.where(np.isclose(np.atleast_2d(data), self.mean), 0., -np.inf), axis=1)


class MultivariateGaussian(MultivariateRandomDistribution, validate_assignment=True):
    """
    Class to describe a multivariate Gaussian distribution, the belief maintained by the Gaussian filters.

    Args:
        mean: a 1D array containing allowed values; can be passed as flattened array or array with shapes (1, dim) or
            (dim, 1)
        covariance: a symmetric 2D array of shape (dim, dim) describing the covariance of the distribution
    """
    mean: np.ndarray = Field(default=np.array([0.]),
                             description='Mean of the multivariate Gaussian distribution')
    covariance: np.ndarray = Field(default=np.array([[1.]]),
                                   description='Covariance of the multivariate Gaussian distribution')

    @classmethod
    def standard(cls, num_dimensions: int) -> Self:
        """
        Zero-mean Gaussian with identity covariance

        Args:
            num_dimensions: dimensionality of the distribution
        """
        return cls(mean=np.zeros(num_dimensions), covariance=np.eye(num_dimensions))

    @field_validator('mean', 'covariance', mode='before')
    @classmethod
    def to_array(cls, value) -> np.ndarray:
        return _as_float_array(value)

    @field_validator('mean', mode='after')
    @classmethod
    def mean_1d(cls, mu: np.ndarray) -> np.ndarray:
        """ Making sure the mean is a vector """
        return _check_mean_1d(mu)

    @field_validator('covariance', mode='after')
    @classmethod
    def cov_2d(cls, sigma: np.ndarray) -> np.ndarray:
        """ Making sure the covariance is a symmetric, positive semi-definite 2D matrix """
        cov_shape = sigma.shape
        if len(cov_shape) != 2:
            raise ValueError('Covariance must be a 2D matrix, but shape provided was ' + str(cov_shape) + '!')
        if cov_shape[0] != cov_shape[1]:
            raise ValueError('Covariance must be square, but shape provided was ' + str(cov_shape) + '!')
        if not np.allclose(sigma, sigma.T):
            raise ValueError('Covariance must be symmetric!')
        if sigma.size > 0:
            eigvals = np.linalg.eigvalsh(sigma)
            if np.min(eigvals) < -1.0e-09 * max(np.max(np.abs(eigvals)), 1.):
                raise ValueError('Covariance must be positive semi-definite, but has an eigenvalue of ' +
                                 str(np.min(eigvals)) + '!')
        return sigma

    @model_validator(mode='after')
    def fields_dim(self) -> Self:
        """ Making sure dimensions match between mean and covariance """
        dim = self.num_dimensions
        if self.covariance.shape != (dim, dim):
            msg = 'Wrong dimensions! Mean has shape ' + str(self.mean.shape)
            msg += ', but covariance has shape ' + str(self.covariance.shape)
            raise ValueError(msg)
        return self

    @property
    def precision(self) -> np.ndarray:
        """ Inverse of the covariance """
        try:
            return np.linalg.inv(self.covariance)
        except np.linalg.LinAlgError as exc:
            raise SingularCovarianceError('Covariance is singular, precision is undefined') from exc

    def get_mean(self) -> np.ndarray:
        return self.mean.copy()

    def get_covariance(self) -> np.ndarray:
        return self.covariance.copy()

    def set_moments(self, mean: np.ndarray, covariance: np.ndarray) -> Self:
        """
        Overwrite the mean and covariance in place, keeping the dimensionality of the distribution

        Args:
            mean: new mean
            covariance: new covariance

        Returns:
            this distribution, now holding the new moments
        """
        mean = np.asarray(mean, dtype=float).flatten()
        covariance = np.asarray(covariance, dtype=float)
        dim = self.num_dimensions
        if mean.shape != (dim,) or covariance.shape != (dim, dim):
            raise ConfigurationError(f'Belief has {dim} dimensions, but received a mean of shape {mean.shape} '
                                     f'and a covariance of shape {covariance.shape}')
        self.covariance = covariance
        self.mean = mean
        return self

    def sample(self, num_samples: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        """
        Draw independent samples from the distribution

        Args:
            num_samples: number of samples to draw
            rng: random number generator (a fresh one is created if not provided)

        Returns:
            array of shape (num_samples, num_dimensions)
        """
        if rng is None:
            rng = np.random.default_rng()
        return rng.multivariate_normal(mean=self.mean, cov=self.covariance, size=num_samples)

    def combine_with(self, random_dists: Iterable[Self]) -> Self:
        combined_mean = [self.get_mean(),]
        combined_cov = [self.get_covariance(),]
        for gaussian in random_dists:
            combined_mean.append(gaussian.get_mean())
            combined_cov.append(gaussian.get_covariance())
        combined_mean = np.concatenate(combined_mean, axis=None)
        combined_cov = block_diag(*combined_cov)
        return MultivariateGaussian(mean=combined_mean, covariance=combined_cov)

    def compute_log_likelihood(self, data: np.ndarray) -> np.ndarray:
        return multivariate_normal.logpdf(x=data, mean=self.mean, cov=self.covariance, allow_singular=True)


class ParticleDistribution(MultivariateRandomDistribution, validate_assignment=True):
    """
    Weighted set of samples, the belief maintained by the particle filter.

    Weights are stored as unnormalized log-weights so that products of small likelihoods do not underflow.

    Args:
        samples: 2D array of shape (num_samples, dim), one sample per row
        log_weights: 1D array of log-weights, one per sample (uniform if not provided)
    """
    samples: np.ndarray = Field(description='Samples, one per row')
    log_weights: Optional[np.ndarray] = Field(default=None,
                                              description='Unnormalized log-weight of each sample',
                                              validate_default=True)

    @field_validator('samples', mode='before')
    @classmethod
    def samples_to_array(cls, value) -> np.ndarray:
        return _as_float_array(value)

    @field_validator('samples', mode='after')
    @classmethod
    def samples_2d(cls, samples: np.ndarray) -> np.ndarray:
        """ Making sure samples are stored as a non-empty 2D array """
        if samples.ndim != 2:
            raise ValueError(f'Samples must be a 2D array, but have shape {samples.shape}!')
        if samples.shape[0] == 0:
            raise ValueError('At least one sample is required!')
        return samples

    @field_validator('log_weights', mode='before')
    @classmethod
    def default_weights(cls, log_weights, info: ValidationInfo) -> np.ndarray:
        """ Uniform weights unless provided """
        if log_weights is None:
            samples = info.data.get('samples')
            if samples is None:
                raise ValueError('Cannot assign default weights without valid samples')
            return np.zeros(samples.shape[0])
        return _as_float_array(log_weights).flatten()

    @model_validator(mode='after')
    def weights_per_sample(self) -> Self:
        """ Making sure there is exactly one weight per sample """
        if self.log_weights.shape != (self.samples.shape[0],):
            raise ValueError(f'Expected {self.samples.shape[0]} weights, but received {self.log_weights.shape}')
        return self

    @classmethod
    def from_distribution(cls,
                          distribution: MultivariateGaussian,
                          num_samples: int,
                          rng: Optional[np.random.Generator] = None) -> Self:
        """
        Build an equally-weighted set of samples drawn from a Gaussian

        Args:
            distribution: distribution to draw from
            num_samples: number of samples to draw
            rng: random number generator
        """
        return cls(samples=distribution.sample(num_samples, rng=rng))

    @property
    def num_samples(self) -> int:
        return self.samples.shape[0]

    @property
    def num_dimensions(self) -> int:
        return self.samples.shape[1]

    @property
    def weights(self) -> np.ndarray:
        """ Normalized weights of each sample """
        return np.exp(self.log_weights - logsumexp(self.log_weights))

    @property
    def effective_sample_size(self) -> float:
        """ Reciprocal of the sum of squared normalized weights """
        return 1. / np.sum(self.weights ** 2)

    def get_mean(self) -> np.ndarray:
        return np.average(self.samples, axis=0, weights=self.weights)

    def get_covariance(self) -> np.ndarray:
        weights = self.weights
        diffs = self.samples - np.average(self.samples, axis=0, weights=weights)
        return np.matmul(diffs.T, diffs * weights[:, None])

    def set_particles(self, samples: np.ndarray, log_weights: np.ndarray) -> Self:
        """
        Overwrite samples and weights in place, keeping the number of samples and dimensionality

        Args:
            samples: new samples
            log_weights: new log-weights

        Returns:
            this distribution, now holding the new particles
        """
        samples = np.asarray(samples, dtype=float)
        log_weights = np.asarray(log_weights, dtype=float)
        if samples.shape != self.samples.shape or log_weights.shape != (self.num_samples,):
            raise ConfigurationError(f'Particle belief holds samples of shape {self.samples.shape}, but received '
                                     f'samples of shape {samples.shape} and weights of shape {log_weights.shape}')
        self.samples = samples
        self.log_weights = log_weights
        return self

    def resample(self,
                 rng: Optional[np.random.Generator] = None,
                 scheme: Literal['systematic', 'multinomial'] = 'systematic') -> Self:
        """
        Draw samples with replacement proportional to their weight. Does not change self!

        Args:
            rng: random number generator
            scheme: ``systematic`` (one random offset, lower variance) or ``multinomial`` (independent draws)

        Returns:
            equally-weighted distribution with the same number of samples
        """
        if rng is None:
            rng = np.random.default_rng()
        weights = self.weights
        num = self.num_samples
        if scheme == 'systematic':
            positions = (rng.random() + np.arange(num)) / num
            indices = np.searchsorted(np.cumsum(weights), positions, side='right')
            indices = np.minimum(indices, num - 1)
        elif scheme == 'multinomial':
            indices = rng.choice(num, size=num, p=weights)
        else:
            raise ConfigurationError(f'Unknown resampling scheme: {scheme}')
        return ParticleDistribution(samples=self.samples[indices], log_weights=np.zeros(num))

    def combine_with(self, random_dists: Iterable[Self]) -> Self:
        # Joint samples of independent sets are row-wise concatenations, with weights multiplied
        samples = [self.samples]
        log_weights = self.log_weights - logsumexp(self.log_weights)
        for dist in random_dists:
            if dist.num_samples != self.num_samples:
                raise ConfigurationError('Can only combine particle sets with the same number of samples')
            samples.append(dist.samples)
            log_weights = log_weights + dist.log_weights - logsumexp(dist.log_weights)
        return ParticleDistribution(samples=np.hstack(samples), log_weights=log_weights)

    def compute_log_likelihood(self, data: np.ndarray) -> np.ndarray:
        """
        Approximate log-likelihood of the data, scored under the Gaussian which matches the weighted mean and
        covariance of the particles.

        A weighted set of samples has no density of its own, so this is a moment-matched approximation rather than
        the likelihood of the particle cloud. It ignores skewness and multimodality of the particles.

        Args:
            data: value(s) whose log-likelihood we would like to compute, one per row

        Returns:
            log likelihood of the data under the moment-matched Gaussian
        """
        gaussian = multivariate_normal(mean=self.get_mean(), cov=self.get_covariance(), allow_singular=True)
        return gaussian.logpdf(data)
