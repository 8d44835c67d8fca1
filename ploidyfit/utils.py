import numpy as np
import pandas as pd


def sort_chromosome_names(chromosomes):
    def get_chromosome_key(chromosome):
        name = chromosome[3:] if chromosome.startswith('chr') else chromosome
        try:
            return (0, int(name))
        except ValueError:
            return (1, name)
    return [chromosome for chromosome in sorted(chromosomes, key=get_chromosome_key)]


def is_sex_chromosome(chromosome, name):
    """ Check if a chromosome is X or Y, with or without chr prefix """
    if chromosome.startswith('chr'):
        chromosome = chromosome[3:]
    return chromosome == name


def sort_windows(windows):
    """ Sort a window table by chromosome then start, resetting the index
    """
    chromosomes = sort_chromosome_names(windows['chromosome'].unique())
    order = pd.DataFrame({'chromosome': chromosomes, 'chromosome_idx': range(len(chromosomes))})
    windows = windows.merge(order, on='chromosome', how='left')
    windows = windows.sort_values(['chromosome_idx', 'start'], kind='mergesort')
    windows = windows.drop('chromosome_idx', axis=1).reset_index(drop=True)
    return windows


def infer_step(windows):
    """ Most common distance between consecutive window starts
    """
    diffs = []
    for chromosome, chrom_windows in windows.groupby('chromosome', sort=False):
        diffs.append(np.diff(chrom_windows['start'].values))
    if len(diffs) == 0:
        return 0
    diffs = np.concatenate(diffs)
    diffs = diffs[diffs > 0]
    if diffs.shape[0] == 0:
        return 0
    values, counts = np.unique(diffs, return_counts=True)
    return int(values[np.argmax(counts)])
