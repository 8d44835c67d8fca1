import os
import numpy as np
import pandas as pd


def create_windows(num_chromosomes=4, chromosome_length=10000000, window_size=50000):
    """ Create a table of contiguous windows.

    Args:
        num_chromosomes (int): number of autosomes named '1', '2', ...
        chromosome_length (int): length of each chromosome
        window_size (int): length of each window

    Returns:
        pandas.DataFrame: windows with columns 'chromosome', 'start', 'end'
    """

    windows = []
    for idx in range(num_chromosomes):
        start = np.arange(0, chromosome_length, window_size)
        windows.append(pd.DataFrame({
            'chromosome': str(idx + 1),
            'start': start,
            'end': start + window_size,
        }))

    return pd.concat(windows, ignore_index=True)[['chromosome', 'start', 'end']]


def simulate_copy_number(windows, ploidy, events=()):
    """ Copy number of each window given a baseline ploidy and alterations.

    Args:
        windows (pandas.DataFrame): windows table
        ploidy (int): baseline copy number

    KwArgs:
        events (list): (chromosome, start, end, copy_number) alterations

    Returns:
        numpy.array: copy number per window
    """

    copy_number = np.full(windows.shape[0], ploidy, dtype=float)

    for chromosome, start, end, event_copy_number in events:
        overlapping = (
            (windows['chromosome'] == chromosome) &
            (windows['start'] < end) &
            (windows['end'] > start)).values
        copy_number[overlapping] = event_copy_number

    return copy_number


def simulate_gc(windows, random_state):
    gc = random_state.uniform(0.3, 0.6, size=windows.shape[0])
    return pd.DataFrame({
        'chromosome': windows['chromosome'].values,
        'start': windows['start'].values,
        'gc': gc,
        'non_n': 1.,
        'mappability': 1.,
    })


def gc_bias(gc):
    """ Smooth multiplicative GC-content bias, 1 at 45% GC
    """
    return 1. - 4. * (gc - 0.45) ** 2


def simulate_counts(windows, copy_number, random_state, depth=200., contamination=0., gc=None):
    """ Simulate Poisson read counts per window.

    Reads per window are proportional to the average copy number of tumour
    and normal cells, scaled so that a diploid window has depth reads.
    """

    mean_copy_number = (1. - contamination) * copy_number + contamination * 2.
    expected = depth * mean_copy_number / 2.

    if gc is not None:
        expected = expected * gc_bias(gc)

    counts = windows[['chromosome', 'start', 'end']].copy()
    counts['readcount'] = random_state.poisson(expected).astype(float)

    return counts


def simulate_dataset(random_state, ploidy=2, events=(), contamination=0., depth=200.,
                     num_chromosomes=4, chromosome_length=10000000, window_size=50000):
    """ Simulate sample counts, control counts and a GC profile.

    Returns:
        dict: 'sample', 'control' and 'gc_profile' tables and the true 'copy_number'
    """

    windows = create_windows(num_chromosomes, chromosome_length, window_size)
    gc_profile = simulate_gc(windows, random_state)

    copy_number = simulate_copy_number(windows, ploidy, events)

    sample = simulate_counts(
        windows, copy_number, random_state, depth=depth,
        contamination=contamination, gc=gc_profile['gc'].values)

    control = simulate_counts(
        windows, np.full(windows.shape[0], 2.), random_state, depth=depth,
        gc=gc_profile['gc'].values)

    return {
        'sample': sample,
        'control': control,
        'gc_profile': gc_profile,
        'copy_number': copy_number,
    }


def write_dataset(directory, dataset):
    """ Write a simulated dataset as tab separated files.

    Returns:
        dict: filenames of 'sample', 'control' and 'gc_profile'
    """

    filenames = {}

    for key in ('sample', 'control'):
        filenames[key] = os.path.join(directory, key + '_counts.txt')
        dataset[key][['chromosome', 'start', 'readcount']].to_csv(
            filenames[key], sep='\t', index=False, header=False)

    filenames['gc_profile'] = os.path.join(directory, 'gc_profile.txt')
    dataset['gc_profile'].to_csv(
        filenames['gc_profile'], sep='\t', index=False, header=False,
        columns=['chromosome', 'start', 'gc', 'non_n', 'mappability'])

    return filenames
