import numpy as np
import pandas as pd


count_columns = ['chromosome', 'start', 'readcount']
count_columns_with_end = ['chromosome', 'start', 'end', 'readcount']
gc_profile_columns = ['chromosome', 'start', 'gc', 'non_n', 'mappability']


def _has_header(filename, required):
    first = pd.read_csv(filename, sep='\t', nrows=1, header=None, dtype=str)
    return set(required).issubset(first.iloc[0].values)


def _read_table(filename, columns, required):
    """ Read a tab separated table with or without a header line
    """
    if _has_header(filename, required):
        data = pd.read_csv(filename, sep='\t', converters={'chromosome': str})
    else:
        data = pd.read_csv(filename, sep='\t', header=None, converters={0: str})
        if data.shape[1] > len(columns):
            data = data.iloc[:, :len(columns)]
        data.columns = columns[:data.shape[1]]

    missing = set(required).difference(data.columns)
    if len(missing) > 0:
        raise ValueError('{} is missing columns {}'.format(filename, ', '.join(sorted(missing))))

    return data


def read_window_counts(filename):
    """ Read a table of read counts per window

    Args:
        filename (str): tab separated table

    Returns:
        pandas.DataFrame: window counts with columns 'chromosome', 'start', 'readcount'
        and 'end' if provided

    The table either has a header with columns 'chromosome', 'start',
    'readcount' and optionally 'end', or no header with columns in that
    order ('end' present if there are four columns).

    """

    data = pd.read_csv(filename, sep='\t', nrows=1, header=None)
    columns = count_columns_with_end if data.shape[1] >= 4 else count_columns

    counts = _read_table(filename, columns, ['chromosome', 'start', 'readcount'])

    counts['start'] = counts['start'].astype(int)
    if 'end' in counts:
        counts['end'] = counts['end'].astype(int)
    counts['readcount'] = counts['readcount'].astype(float)

    return counts


def read_gc_profile(filename):
    """ Read a GC content profile

    Args:
        filename (str): tab separated table

    Returns:
        pandas.DataFrame: GC content with columns 'chromosome', 'start', 'gc'
        and 'mappability' if provided

    Negative GC content marks windows without sequence and is read as missing.

    """

    gc_profile = _read_table(filename, gc_profile_columns, ['chromosome', 'start', 'gc'])

    gc_profile['start'] = gc_profile['start'].astype(int)
    gc_profile['gc'] = gc_profile['gc'].astype(float)
    gc_profile.loc[gc_profile['gc'] < 0, 'gc'] = np.nan

    if 'mappability' in gc_profile:
        gc_profile['mappability'] = gc_profile['mappability'].astype(float)
        gc_profile.loc[gc_profile['mappability'] < 0, 'mappability'] = np.nan

    return gc_profile[[a for a in ('chromosome', 'start', 'gc', 'mappability') if a in gc_profile]]


def _count_bed_header_lines(filename):
    num_lines = 0
    with open(filename) as f:
        for line in f:
            if not line.startswith(('#', 'track', 'browser')) and line.strip() != '':
                break
            num_lines += 1
    return num_lines


def read_capture_regions(filename):
    """ Read capture regions from a bed file
    """
    regions = pd.read_csv(
        filename, sep='\t', header=None, usecols=[0, 1, 2], comment='#',
        skiprows=_count_bed_header_lines(filename), converters={0: str})

    regions.columns = ['chromosome', 'start', 'end']
    regions['start'] = regions['start'].astype(int)
    regions['end'] = regions['end'].astype(int)
    return regions.sort_values(['chromosome', 'start']).reset_index(drop=True)


def write_ratio(filename, windows, print_na=True):
    """ Write the normalized ratio, segment medians and copy number calls

    Missing values are written as -1 if print_na is set, otherwise windows
    without a ratio are omitted.
    """
    data = windows[['chromosome', 'start', 'ratio', 'median_ratio', 'copy_number']].copy()

    if print_na:
        data = data.fillna(-1)
    else:
        data = data[data['ratio'].notnull()].fillna(-1)

    data['copy_number'] = data['copy_number'].astype(int)
    data.rename(columns={
        'chromosome': 'Chromosome',
        'start': 'Start',
        'ratio': 'Ratio',
        'median_ratio': 'MedianRatio',
        'copy_number': 'CopyNumber',
    }, inplace=True)

    data.to_csv(filename, sep='\t', index=False, float_format='%.6g')


def write_ratio_bedgraph(filename, windows, track_name):
    """ Write the normalized ratio as a BedGraph track for genome browsers
    """
    data = windows.loc[windows['ratio'].notnull(), ['chromosome', 'start', 'end', 'ratio']].copy()
    data['chromosome'] = data['chromosome'].apply(lambda a: a if a.startswith('chr') else 'chr' + a)

    with open(filename, 'w') as f:
        f.write('track type=bedGraph name="{0}" description="{0} normalized ratio"\n'.format(track_name))
        data.to_csv(f, sep='\t', index=False, header=False, float_format='%.6g')


def write_cnvs(filename, cnvs):
    """ Write called copy number alterations
    """
    data = cnvs.copy()
    data['copy_number'] = data['copy_number'].astype(int)
    data.to_csv(filename, sep='\t', index=False, header=False)


def write_scores(filename, records):
    """ Write the score table of the ploidy search
    """
    scores = pd.DataFrame([a._asdict() for a in records])
    if scores['contamination'].isnull().all():
        scores = scores.drop('contamination', axis=1)
    scores.to_csv(filename, sep='\t', index=False)
