import logging
import numpy as np
import scipy.stats


logger = logging.getLogger(__name__)


# Largest contamination estimated
MAX_CONTAMINATION = 0.9

# Resolution of the contamination grid searched by the likelihood estimator
CONTAMINATION_GRID_STEP = 0.01

# Penalty in log likelihood per copy of deviation from the neutral copy number
LEVEL_PENALTY = 1.0

# Minimum deviation of a segment from the normal level, in copies, for the
# segment to inform the simple estimator
MIN_ABERRATION = 0.1

# Significance of the likelihood ratio test against no contamination
LR_SIGNIFICANCE = 0.95


def evaluate_contamination(profile):
    """ Estimate normal cell contamination from aberrant segment medians

    Args:
        profile (CopyNumberProfile): segmented profile with segment medians

    Returns:
        float: contamination in [0, MAX_CONTAMINATION]

    Each aberrant segment is assigned its nearest integer copy number k, and
    contributes the contamination c solving m P = (1 - c) k + c n for its
    median m, with P the ploidy and n the normal copy number. The estimate is
    the length weighted median over segments.

    """

    segments = profile.get_segments()

    level = segments['median_ratio'].values * profile.ploidy
    normal = segments['normal_copies'].values
    copy_number = np.round(level)

    informative = (
        (np.absolute(level - normal) >= MIN_ABERRATION) &
        (copy_number != normal))

    if not informative.any():
        return 0.

    level = level[informative]
    normal = normal[informative]
    copy_number = copy_number[informative]
    lengths = segments['length'].values[informative].astype(float)

    contamination = (level - copy_number) / (normal - copy_number)
    contamination = np.clip(contamination, 0., MAX_CONTAMINATION)

    order = np.argsort(contamination)
    cumulative = np.cumsum(lengths[order])
    median_idx = np.searchsorted(cumulative, 0.5 * cumulative[-1])

    return float(contamination[order][median_idx])


def calculate_log_likelihood(segments, ploidy, contamination, max_copy_number):
    """ Log likelihood of segment medians at a given contamination

    Each segment takes its best copy number, scored by a Gaussian on its
    median and penalized by its deviation from the neutral copy number.
    """

    levels = np.arange(max_copy_number + 1)[np.newaxis, :]

    median = segments['median_ratio'].values[:, np.newaxis]
    sem = segments['sem'].values[:, np.newaxis]
    normal = segments['normal_copies'].values[:, np.newaxis]
    neutral = segments['neutral'].values[:, np.newaxis]

    expected = ((1. - contamination) * levels + contamination * normal) / ploidy

    log_likelihood = -0.5 * ((median - expected) / sem) ** 2
    log_likelihood -= LEVEL_PENALTY * np.absolute(levels - neutral)

    return log_likelihood.max(axis=1).sum()


def evaluate_contamination_with_lr(profile):
    """ Estimate normal cell contamination by maximum likelihood

    Args:
        profile (CopyNumberProfile): segmented profile with segment medians

    Returns:
        float: contamination in [0, MAX_CONTAMINATION], 0 unless the
        likelihood ratio test against no contamination is significant

    """

    segments = profile.get_segments()
    if segments.shape[0] == 0:
        return 0.

    grid = np.round(np.arange(0., MAX_CONTAMINATION + CONTAMINATION_GRID_STEP / 2., CONTAMINATION_GRID_STEP), 6)

    log_likelihoods = np.array([
        calculate_log_likelihood(segments, profile.ploidy, c, profile.max_copy_number)
        for c in grid])

    best = np.argmax(log_likelihoods)
    statistic = 2. * (log_likelihoods[best] - log_likelihoods[0])

    logger.debug('{}: contamination {} with likelihood ratio statistic {:.3f}'.format(
        profile.name, grid[best], statistic))

    if statistic <= scipy.stats.chi2.ppf(LR_SIGNIFICANCE, 1):
        return 0.

    return float(grid[best])
