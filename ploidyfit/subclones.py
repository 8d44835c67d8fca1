import logging
import os
import numpy as np
import pandas as pd


logger = logging.getLogger(__name__)


subclone_columns = [
    'chromosome',
    'start',
    'end',
    'clonal_copy_number',
    'subclonal_copy_number',
    'presence',
]


def find_subclones(profile, ploidy, min_subclone_presence):
    """ Explain fractional segment levels by subclonal copy number changes

    Args:
        profile (CopyNumberProfile): annotated profile
        ploidy (int): ploidy of the profile
        min_subclone_presence (float): minimum fraction of tumour cells carrying
            the subclonal copy number

    Returns:
        pandas.DataFrame: one row per unexplained segment with a subclonal explanation

    An unexplained segment at level L, in copies per tumour cell, is
    explained as a fraction f of cells at copy number k on a neutral
    background n0, with L = (1 - f) n0 + f k. The copy number closest to n0
    with 0 < f < 1 is chosen.

    """

    segments = profile.get_segments()
    explained = profile.windows.loc[profile.windows['segment'] >= 0].groupby('segment')['explained'].first()
    segments = segments[~segments['segment'].map(explained).astype(bool).values]

    c = profile.normal_contamination
    levels = np.arange(profile.max_copy_number + 1)

    subclones = []
    for idx, row in segments.iterrows():
        level = (row['median_ratio'] * ploidy - c * row['normal_copies']) / (1. - c)
        clonal = row['neutral']

        candidates = [k for k in levels if k != clonal]
        candidates.sort(key=lambda k: abs(k - clonal))

        for k in candidates:
            presence = (level - clonal) / (k - clonal)
            if 0. < presence < 1.:
                break
        else:
            continue

        if presence < min_subclone_presence:
            continue

        subclones.append({
            'chromosome': row['chromosome'],
            'start': row['start'],
            'end': row['end'],
            'clonal_copy_number': int(clonal),
            'subclonal_copy_number': int(k),
            'presence': presence,
        })

    return pd.DataFrame(subclones, columns=subclone_columns)


def seek_subclones(profile, ploidy, output_dir, min_subclone_presence):
    """ Write subclonal copy number changes of a profile to <name>_subclones.txt
    """
    subclones = find_subclones(profile, ploidy, min_subclone_presence)

    filename = os.path.join(output_dir, '{}_subclones.txt'.format(profile.name))
    subclones.to_csv(filename, sep='\t', index=False, float_format='%.4f')

    logger.info('{}: {} subclonal segments written to {}'.format(profile.name, subclones.shape[0], filename))
