import numpy as np


# Handling of masked windows between two segments
UNKNOWN_TO_RIGHT = 0
UNKNOWN_TO_LONGER = 1
NORMAL_LEVEL = 2
UNKNOWN_TO_LONGER_HALF = 3
UNKNOWN_SEPARATE = 4

BREAKPOINT_TYPES = (
    UNKNOWN_TO_RIGHT,
    UNKNOWN_TO_LONGER,
    NORMAL_LEVEL,
    UNKNOWN_TO_LONGER_HALF,
    UNKNOWN_SEPARATE,
)

# Lower bound on the noise variance of a ratio profile
MIN_NOISE_VARIANCE = 1e-4


def estimate_noise_variance(y):
    """ Estimate the noise variance of a piecewise constant signal

    Uses the median absolute first difference, which is insensitive to a
    small number of level changes.
    """
    y = np.asarray(y, dtype=float)
    if y.shape[0] < 2:
        return MIN_NOISE_VARIANCE
    sigma = 1.4826 * np.median(np.absolute(np.diff(y))) / np.sqrt(2.)
    return max(sigma * sigma, MIN_NOISE_VARIANCE)


def best_split_unopt(y, min_size=1):
    """ Find the split of y maximizing the reduction in residual sum of squares (unopt)

    Args:
        y (numpy.array): signal

    KwArgs:
        min_size (int): minimum length of each side of the split

    Returns:
        int: index of the first element of the right side, None if y is too short
        float: reduction in residual sum of squares

    """

    y = np.asarray(y, dtype=float)
    n = y.shape[0]
    if n < 2 * min_size or n < 2:
        return None, 0.

    total_rss = ((y - y.mean()) ** 2).sum()

    best_idx = None
    best_gain = 0.
    for k in range(min_size, n - min_size + 1):
        left = y[:k]
        right = y[k:]
        rss = ((left - left.mean()) ** 2).sum() + ((right - right.mean()) ** 2).sum()
        gain = total_rss - rss
        if best_idx is None or gain > best_gain:
            best_idx = k
            best_gain = gain

    return best_idx, best_gain


def best_split(y, min_size=1):
    """ Find the split of y maximizing the reduction in residual sum of squares

    Args:
        y (numpy.array): signal

    KwArgs:
        min_size (int): minimum length of each side of the split

    Returns:
        int: index of the first element of the right side, None if y is too short
        float: reduction in residual sum of squares

    """

    y = np.asarray(y, dtype=float)
    n = y.shape[0]
    if n < 2 * min_size or n < 2:
        return None, 0.

    y = y - y.mean()
    cumsum = np.cumsum(y)
    total = cumsum[-1]

    k = np.arange(min_size, n - min_size + 1)
    left = cumsum[k - 1]
    gain = left ** 2 / k + (total - left) ** 2 / (n - k) - total ** 2 / n

    best = np.argmax(gain)

    return int(k[best]), float(gain[best])


def binary_segmentation(y, threshold, min_size=2):
    """ Recursive binary segmentation of a ratio profile

    Args:
        y (numpy.array): ratio values without missing entries
        threshold (float): breakpoint threshold, higher values give fewer breakpoints

    KwArgs:
        min_size (int): minimum number of values in a segment

    Returns:
        list: sorted start indices of segments, always including 0

    A split is accepted if the reduction in residual sum of squares exceeds
    a penalty proportional to the noise variance and the log of the number
    of values.

    """

    y = np.asarray(y, dtype=float)
    n = y.shape[0]
    if n == 0:
        return []

    variance = estimate_noise_variance(y)
    penalty = 2. * variance * np.log(max(n, 2)) * (1. + threshold)

    starts = [0]
    stack = [(0, n)]
    while stack:
        start, end = stack.pop()
        split, gain = best_split(y[start:end], min_size=min_size)
        if split is None or gain <= penalty:
            continue
        starts.append(start + split)
        stack.append((start, start + split))
        stack.append((start + split, end))

    return sorted(starts)


def find_runs(mask):
    """ Find runs of True values

    Args:
        mask (numpy.array): boolean array

    Returns:
        numpy.array: start and end (exclusive) of each run with shape (N,2)

    """

    mask = np.asarray(mask, dtype=bool)
    padded = np.concatenate([[False], mask, [False]]).astype(int)
    changes = np.diff(padded)
    starts = np.where(changes == 1)[0]
    ends = np.where(changes == -1)[0]
    return np.array([starts, ends]).T.reshape((-1, 2))


def overlapping_any(X, Y):
    """ Find segments in X overlapping any segment in Y

    Args:
        X (numpy.array): start and end of segments with shape (N,2)
        Y (numpy.array): start and end of segments with shape (M,2), ordered by start

    Returns:
        numpy.array: N length boolean array

    """

    X = np.asarray(X).reshape((-1, 2))
    Y = np.asarray(Y).reshape((-1, 2))
    if Y.shape[0] == 0:
        return np.zeros(X.shape[0], dtype=bool)

    end_cummax = np.maximum.accumulate(Y[:, 1])
    idx = np.searchsorted(Y[:, 0], X[:, 1], side='left') - 1

    overlapping = idx >= 0
    overlapping[overlapping] = end_cummax[idx[overlapping]] > X[overlapping, 0]

    return overlapping


def assign_unknown_run(left, right, run_length, breakpoint_type, neutral_copy_number):
    """ Copy number of a masked run between two segments

    Args:
        left (tuple): copy number and length in windows of the segment on the left, or None
        right (tuple): copy number and length in windows of the segment on the right, or None
        run_length (int): length of the masked run in windows
        breakpoint_type (int): one of BREAKPOINT_TYPES
        neutral_copy_number (int): copy number given priority by NORMAL_LEVEL

    Returns:
        float: copy number, nan for no call

    Runs at a chromosome end are never called.

    """

    if left is None or right is None:
        return np.nan

    if breakpoint_type == UNKNOWN_SEPARATE:
        return np.nan

    if breakpoint_type == UNKNOWN_TO_RIGHT:
        return right[0]

    longer = left if left[1] >= right[1] else right

    if breakpoint_type == NORMAL_LEVEL:
        if left[0] == neutral_copy_number or right[0] == neutral_copy_number:
            return neutral_copy_number
        return longer[0]

    if breakpoint_type == UNKNOWN_TO_LONGER_HALF:
        if 2 * longer[1] < run_length:
            return np.nan
        return longer[0]

    return longer[0]
