import numpy as np
from pytest import raises, mark
from scipy.linalg import block_diag
from scipy.stats import multivariate_normal

from parcae.exceptions import ConfigurationError, SingularCovarianceError
from parcae.filters.distributions import MultivariateGaussian, DeltaDistribution, ParticleDistribution


def test_gaussian_validation():
    gauss = MultivariateGaussian(mean=[1., 2.], covariance=[[2., 0.5], [0.5, 1.]])
    assert gauss.num_dimensions == 2
    assert isinstance(gauss.mean, np.ndarray)

    with raises(ValueError, match='Mean must be a 1D vector'):
        MultivariateGaussian(mean=np.zeros((2, 2)), covariance=np.eye(2))
    with raises(ValueError, match='Covariance must be square'):
        MultivariateGaussian(mean=np.zeros(2), covariance=np.zeros((2, 3)))
    with raises(ValueError, match='Covariance must be symmetric'):
        MultivariateGaussian(mean=np.zeros(2), covariance=np.array([[1., 0.5], [0., 1.]]))
    with raises(ValueError, match='Wrong dimensions'):
        MultivariateGaussian(mean=np.zeros(3), covariance=np.eye(2))


def test_gaussian_rejects_negative_eigenvalues():
    with raises(ValueError, match='positive semi-definite'):
        MultivariateGaussian(mean=np.zeros(2), covariance=np.diag([1., -1.]))
    with raises(ValueError, match='positive semi-definite'):
        MultivariateGaussian(mean=np.zeros(2), covariance=np.array([[1., 2.], [2., 1.]]))

    # Round-off below zero is accepted, as are singular covariances
    MultivariateGaussian(mean=np.zeros(2), covariance=np.array([[1., 1.], [1., 1. - 1e-14]]))
    MultivariateGaussian(mean=np.zeros(0), covariance=np.zeros((0, 0)))

    gauss = MultivariateGaussian.standard(2)
    with raises(ValueError, match='positive semi-definite'):
        gauss.set_moments(mean=np.zeros(2), covariance=np.diag([1., -1.]))
    assert np.allclose(gauss.get_covariance(), np.eye(2)), 'Failed overwrite changed the covariance'


def test_standard_and_precision():
    gauss = MultivariateGaussian.standard(3)
    assert np.allclose(gauss.get_mean(), 0.)
    assert np.allclose(gauss.get_covariance(), np.eye(3))

    gauss = MultivariateGaussian(mean=np.zeros(2), covariance=np.diag([2., 4.]))
    assert np.allclose(gauss.precision, np.diag([0.5, 0.25]))

    singular = MultivariateGaussian(mean=np.zeros(2), covariance=np.zeros((2, 2)))
    with raises(SingularCovarianceError):
        singular.precision


def test_moments_are_copies():
    gauss = MultivariateGaussian.standard(2)
    mean = gauss.get_mean()
    mean[0] = 10.
    cov = gauss.get_covariance()
    cov[0, 0] = 10.
    assert np.allclose(gauss.mean, 0.)
    assert np.allclose(gauss.covariance, np.eye(2))


def test_set_moments():
    gauss = MultivariateGaussian.standard(2)
    result = gauss.set_moments(mean=np.ones(2), covariance=2 * np.eye(2))
    assert result is gauss
    assert np.allclose(gauss.get_mean(), 1.)
    assert np.allclose(gauss.get_covariance(), 2 * np.eye(2))

    with raises(ConfigurationError, match='Belief has 2 dimensions'):
        gauss.set_moments(mean=np.ones(3), covariance=np.eye(3))
    assert np.allclose(gauss.get_mean(), 1.), 'Failed overwrite changed the mean'


def test_combine():
    gaussian0 = MultivariateGaussian(mean=np.zeros(2), covariance=np.eye(2))
    gaussian1 = MultivariateGaussian(mean=np.ones(3), covariance=2 * np.eye(3))
    comb_gauss = gaussian0.combine_with(random_dists=[gaussian1])
    assert np.allclose(comb_gauss.get_mean(), [0., 0., 1., 1., 1.])
    assert np.allclose(comb_gauss.get_covariance(), block_diag(np.eye(2), 2 * np.eye(3)))

    delta0 = DeltaDistribution(mean=np.zeros(2))
    delta1 = DeltaDistribution(mean=np.ones(3))
    comb_delta = delta0.combine_with(random_dists=(delta1,))
    assert np.allclose(comb_delta.get_mean(), [0., 0., 1., 1., 1.])
    assert np.allclose(comb_delta.get_covariance(), np.zeros((5, 5)))


def test_log_likelihood():
    data = np.array([[0., 0.],
                     [5., 6.],
                     [6., 5.],
                     [10., 12.]])

    delta = DeltaDistribution(mean=np.array([5., 6.]))
    expected = -np.inf * np.ones(len(data))
    expected[1] = 0.
    assert np.allclose(delta.compute_log_likelihood(data), expected)

    mean = np.array([5., 6.])
    cov = np.array([[2., 0.5], [0.5, 1.]])
    gauss = MultivariateGaussian(mean=mean, covariance=cov)
    assert np.allclose(gauss.compute_log_likelihood(data), multivariate_normal.logpdf(data, mean=mean, cov=cov))


def test_sample():
    rng = np.random.default_rng(1)
    gauss = MultivariateGaussian(mean=np.array([1., -1.]), covariance=np.array([[1., 0.3], [0.3, 0.5]]))
    samples = gauss.sample(20000, rng=rng)
    assert samples.shape == (20000, 2)
    assert np.allclose(samples.mean(axis=0), gauss.mean, atol=0.05)
    assert np.allclose(np.cov(samples.T), gauss.covariance, atol=0.05)


def test_particle_weights():
    particles = ParticleDistribution(samples=np.zeros((4, 2)))
    assert particles.num_samples == 4
    assert particles.num_dimensions == 2
    assert np.allclose(particles.log_weights, 0.)
    assert np.allclose(particles.weights, 0.25)
    assert np.isclose(particles.effective_sample_size, 4.)

    # Only one particle survives
    particles = ParticleDistribution(samples=np.arange(3.)[:, None], log_weights=[0., -np.inf, -np.inf])
    assert np.allclose(particles.weights, [1., 0., 0.])
    assert np.isclose(particles.effective_sample_size, 1.)

    with raises(ValueError, match='Expected 3 weights'):
        ParticleDistribution(samples=np.zeros((3, 1)), log_weights=np.zeros(2))
    with raises(ValueError, match='Samples must be a 2D array'):
        ParticleDistribution(samples=np.zeros(3))


def test_particle_moments():
    # Weights of 0.75 and 0.25
    particles = ParticleDistribution(samples=np.array([[0.], [2.]]), log_weights=[np.log(3.), 0.])
    assert np.allclose(particles.get_mean(), [0.5])
    assert np.allclose(particles.get_covariance(), [[0.75]])

    # Gaussian moments are recovered from enough samples
    gauss = MultivariateGaussian(mean=np.array([1., 2.]), covariance=np.array([[1., -0.2], [-0.2, 2.]]))
    particles = ParticleDistribution.from_distribution(gauss, num_samples=20000, rng=np.random.default_rng(2))
    assert particles.num_samples == 20000
    assert np.allclose(particles.get_mean(), gauss.mean, atol=0.05)
    assert np.allclose(particles.get_covariance(), gauss.covariance, atol=0.08)

    # Gaussian likelihood of the matched moments
    data = np.array([[1., 2.], [0., 0.]])
    expected = multivariate_normal.logpdf(data, mean=particles.get_mean(), cov=particles.get_covariance())
    assert np.allclose(particles.compute_log_likelihood(data), expected)


def test_set_particles():
    particles = ParticleDistribution(samples=np.zeros((5, 2)))
    result = particles.set_particles(samples=np.ones((5, 2)), log_weights=np.arange(5.))
    assert result is particles
    assert np.allclose(particles.samples, 1.)
    assert np.allclose(particles.log_weights, np.arange(5.))

    with raises(ConfigurationError, match='Particle belief holds samples of shape'):
        particles.set_particles(samples=np.ones((6, 2)), log_weights=np.zeros(6))


@mark.parametrize('scheme', ['systematic', 'multinomial'])
def test_resample(scheme):
    rng = np.random.default_rng(3)

    # All weight on the first particle
    particles = ParticleDistribution(samples=np.arange(4.)[:, None], log_weights=[0., -np.inf, -np.inf, -np.inf])
    resampled = particles.resample(rng=rng, scheme=scheme)
    assert resampled.num_samples == 4
    assert np.allclose(resampled.samples, 0.)
    assert np.allclose(resampled.log_weights, 0.)
    assert np.allclose(particles.log_weights[1:], -np.inf), 'Resampling changed the original particles'

    # Tilting a standard normal by exp(x) gives a normal with unit mean
    samples = rng.standard_normal((10000, 1))
    particles = ParticleDistribution(samples=samples, log_weights=samples[:, 0])
    resampled = particles.resample(rng=rng, scheme=scheme)
    assert resampled.num_samples == 10000
    assert np.isclose(resampled.effective_sample_size, 10000.)
    assert np.allclose(resampled.get_mean(), particles.get_mean(), atol=0.1)
    assert np.allclose(resampled.get_covariance(), particles.get_covariance(), atol=0.1)
    assert np.allclose(resampled.get_mean(), [1.], atol=0.1)


def test_resample_scheme():
    particles = ParticleDistribution(samples=np.zeros((4, 1)))
    with raises(ConfigurationError, match='Unknown resampling scheme'):
        particles.resample(scheme='stratified')


def test_combine_particles():
    particles0 = ParticleDistribution(samples=np.zeros((3, 1)), log_weights=np.log([1., 1., 2.]))
    particles1 = ParticleDistribution(samples=np.ones((3, 2)), log_weights=np.log([2., 1., 1.]))
    combined = particles0.combine_with([particles1])
    assert combined.samples.shape == (3, 3)
    assert np.allclose(combined.weights, np.array([2., 1., 2.]) / 5.)

    with raises(ConfigurationError, match='same number of samples'):
        particles0.combine_with([ParticleDistribution(samples=np.zeros((2, 1)))])
