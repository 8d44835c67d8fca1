import copy
import logging
import numpy as np
import pandas as pd

import ploidyfit.readcounts
import ploidyfit.regression
import ploidyfit.segalg
import ploidyfit.utils


logger = logging.getLogger(__name__)


# A segment is explained if its median lies within this fraction of the
# level spacing of the nearest copy number level
EXPLAINED_TOLERANCE = 0.25

# Lower bound on the standard error of a segment median
MIN_SEGMENT_SEM = 0.01

# Minimum number of windows on each side of a breakpoint
MIN_SEGMENT_WINDOWS = 2

window_columns = [
    'chromosome',
    'start',
    'end',
    'readcount',
    'gc',
    'mappability',
    'ratio',
    'segment',
    'median_ratio',
    'copy_number',
    'cn_probability',
    'explained',
]


class CopyNumberProfile(object):
    """ Read depth profile of one sample along genomic windows.

    The profile owns a table of windows, with read counts, GC content and
    mappability as inputs, and the normalized ratio, segmentation and copy
    number calls as derived columns. Normalization replaces the ratio and
    clears the derived columns, segmentation assigns segment ids, and the
    median and annotation steps fill in segment medians and copy numbers.

    Args:
        name (str): name used in logs and output files

    KwArgs:
        max_copy_number (int): maximum copy number called
        min_mappability (float): windows below this mappability are ignored
            for GC-content normalization

    """
    def __init__(self, name, max_copy_number=8, min_mappability=0.):
        self.name = name
        self.max_copy_number = max_copy_number
        self.min_mappability = min_mappability
        self.windows = pd.DataFrame(columns=window_columns)
        self.window_size = 0
        self.step = 0
        self.ploidy = 2
        self.normal_contamination = 0.
        self.sex = ''
        self.breakpoint_type = ploidyfit.segalg.NORMAL_LEVEL
        self.germline_cnvs = None

    def copy(self):
        return copy.deepcopy(self)

    @property
    def num_windows(self):
        return self.windows.shape[0]

    ###
    # Ingestion
    ###

    def set_window_counts(self, counts, window_size=None):
        """ Populate the profile from a table of window read counts

        Args:
            counts (pandas.DataFrame): columns 'chromosome', 'start', 'readcount', optionally 'end'

        KwArgs:
            window_size (int): window length if 'end' is not given, inferred from starts if None

        """

        columns = [a for a in ('chromosome', 'start', 'end', 'readcount') if a in counts]
        windows = ploidyfit.utils.sort_windows(counts[columns].copy())

        self.step = ploidyfit.utils.infer_step(windows)

        if 'end' in windows:
            lengths = windows['end'] - windows['start']
            self.window_size = int(lengths.mode().iloc[0]) if lengths.shape[0] > 0 else 0
        else:
            self.window_size = window_size if window_size is not None else self.step
            windows['end'] = windows['start'] + self.window_size

        windows['readcount'] = windows['readcount'].astype(float)
        windows['gc'] = np.nan
        windows['mappability'] = np.nan
        windows['ratio'] = np.nan

        self.windows = windows
        self._clear_segmentation()

    def read_window_counts(self, filename):
        """ Read window counts from a file, see readcounts.read_window_counts
        """
        self.set_window_counts(ploidyfit.readcounts.read_window_counts(filename))
        logger.info('{}: read {} windows from {}, window size {}'.format(
            self.name, self.num_windows, filename, self.window_size))

    def set_gc_profile(self, gc_profile):
        gc_profile = gc_profile.drop_duplicates(['chromosome', 'start'])
        windows = self.windows.drop(['gc', 'mappability'], axis=1)
        windows = windows.merge(gc_profile, on=['chromosome', 'start'], how='left')
        if 'mappability' not in windows:
            windows['mappability'] = np.nan
        self.windows = windows[window_columns]

    def read_gc_profile(self, filename):
        """ Read GC content and mappability for each window

        Returns:
            int: step of the GC profile

        """
        gc_profile = ploidyfit.readcounts.read_gc_profile(filename)
        self.set_gc_profile(gc_profile)
        return ploidyfit.utils.infer_step(gc_profile)

    def focus_on_capture(self, regions):
        """ Mask windows not overlapping capture regions

        Args:
            regions (pandas.DataFrame): capture regions with columns 'chromosome', 'start', 'end'

        Returns:
            int: length of the shortest capture region

        """

        is_captured = np.zeros(self.num_windows, dtype=bool)
        chromosomes = self.windows['chromosome'].values

        for chromosome, chrom_regions in regions.groupby('chromosome'):
            idx = np.where(chromosomes == chromosome)[0]
            if idx.shape[0] == 0:
                continue
            chrom_regions = chrom_regions.sort_values('start')
            is_captured[idx] = ploidyfit.segalg.overlapping_any(
                self.windows[['start', 'end']].values[idx],
                chrom_regions[['start', 'end']].values)

        self.windows.loc[~is_captured, 'readcount'] = np.nan

        logger.info('{}: {} of {} windows overlap capture regions'.format(
            self.name, is_captured.sum(), self.num_windows))

        return int((regions['end'] - regions['start']).min())

    def check_aligned(self, other):
        """ Raise ValueError if the windows of two profiles differ
        """
        if self.num_windows != other.num_windows:
            raise ValueError('inconsistent number of windows, {} has {} and {} has {}'.format(
                self.name, self.num_windows, other.name, other.num_windows))
        same = (
            (self.windows['chromosome'].values == other.windows['chromosome'].values) &
            (self.windows['start'].values == other.windows['start'].values))
        if not same.all():
            raise ValueError('inconsistent windows between {} and {}'.format(self.name, other.name))

    def remove_low_readcount_windows(self, control, threshold):
        """ Mask windows with fewer than threshold reads in the control
        """
        self.check_aligned(control)
        is_low = ~(control.windows['readcount'].values >= threshold)
        self.windows.loc[is_low, 'readcount'] = np.nan
        logger.info('{}: masked {} windows with less than {} control reads'.format(
            self.name, is_low.sum(), threshold))

    def remove_low_readcount_windows_from_control(self, threshold):
        is_low = ~(self.windows['readcount'].values >= threshold)
        self.windows.loc[is_low, 'readcount'] = np.nan

    ###
    # Scalar state
    ###

    def set_ploidy(self, ploidy):
        if int(ploidy) != ploidy or ploidy < 1:
            raise ValueError('ploidy must be a positive integer, got {}'.format(ploidy))
        self.ploidy = int(ploidy)

    def set_normal_contamination(self, contamination):
        if not 0. <= contamination < 1.:
            raise ValueError('contamination must be in [0, 1), got {}'.format(contamination))
        self.normal_contamination = float(contamination)

    def set_sex(self, sex):
        self.sex = sex

    def normal_copies(self):
        """ Copy number of each window in a normal cell
        """
        copies = np.full(self.num_windows, 2.)
        if self.sex == 'XY':
            for name in ('X', 'Y'):
                is_sex = self.windows['chromosome'].apply(ploidyfit.utils.is_sex_chromosome, args=(name,)).values.astype(bool)
                copies[is_sex] = 1.
        return copies

    def neutral_copy_numbers(self):
        """ Copy number of each window in the absence of alterations
        """
        return np.round(self.ploidy * self.normal_copies() / 2.)

    def expected_ratio(self, copy_number, normal_copies):
        """ Expected ratio of a window given its copy number in tumour cells
        """
        c = self.normal_contamination
        return ((1. - c) * copy_number + c * normal_copies) / self.ploidy

    ###
    # Normalization
    ###

    def _clear_segmentation(self):
        self.windows['segment'] = -1
        self.windows['median_ratio'] = np.nan
        self.windows['copy_number'] = np.nan
        self.windows['cn_probability'] = np.nan
        self.windows['explained'] = False

    def _set_ratio(self, observed, expected):
        with np.errstate(divide='ignore', invalid='ignore'):
            ratio = np.where(expected > 0, observed / expected, np.nan)
        ratio[~np.isfinite(ratio)] = np.nan

        if np.isfinite(ratio).any():
            median = np.nanmedian(ratio)
            if median > 0:
                ratio = ratio / median

        self.windows['ratio'] = ratio
        self._clear_segmentation()

    def _is_mappable(self):
        return ~(self.windows['mappability'].values < self.min_mappability)

    def calculate_ratio(self, control, degree, intercept, log_log=False):
        """ Normalize read counts by regression on control read counts

        Args:
            control (CopyNumberProfile): matched control profile
            degree (int): polynomial degree, None for linear
            intercept (int): include an intercept

        KwArgs:
            log_log (bool): fit log sample counts against log control counts,
                always with intercept

        """

        self.check_aligned(control)

        if degree is None:
            degree = 1

        x = control.windows['readcount'].values
        y = self.windows['readcount'].values

        valid = np.isfinite(x) & np.isfinite(y) & (x > 0)
        expected = np.full(self.num_windows, np.nan)

        if log_log:
            fit = valid & (y > 0)
            model = ploidyfit.regression.fit_polynomial(np.log(x[fit]), np.log(y[fit]), degree, True)
            expected[valid] = np.exp(model.predict(np.log(x[valid])))
        else:
            model = ploidyfit.regression.fit_polynomial(x[valid], y[valid], degree, intercept)
            expected[valid] = model.predict(x[valid])

        self._set_ratio(y, expected)

        logger.info('{}: normalized by control {}, degree {}{}'.format(
            self.name, control.name, model.degree, ', log-log' if log_log else ''))

    def calculate_ratio_using_gc(self, degree, intercept, min_expected_gc, max_expected_gc):
        """ Normalize read counts by regression on GC content

        Args:
            degree (int): polynomial degree, None to try degrees 3 and 4
            intercept (int): include an intercept
            min_expected_gc (float): minimum GC content of windows used for fitting
            max_expected_gc (float): maximum GC content of windows used for fitting

        """

        gc = self.windows['gc'].values.astype(float)
        if not np.isfinite(gc).any():
            raise ValueError('no GC-content available for {}, a GC profile is required'.format(self.name))

        y = self.windows['readcount'].values

        usable = np.isfinite(gc) & np.isfinite(y) & self._is_mappable()
        fit = usable & (y > 0) & (gc >= min_expected_gc) & (gc <= max_expected_gc)

        model = ploidyfit.regression.fit_polynomial(gc[fit], y[fit], degree, intercept)

        expected = np.full(self.num_windows, np.nan)
        expected[usable] = model.predict(gc[usable])

        self._set_ratio(y, expected)

        logger.info('{}: normalized by GC-content, degree {}'.format(self.name, model.degree))

    def divide_by_control_ratio(self, control):
        """ Ratio of this normalized profile to a normalized control profile
        """
        self.check_aligned(control)
        self._set_ratio(self.windows['ratio'].values, control.windows['ratio'].values)

    def recalculate_ratio_using_gc(self, degree, intercept, min_expected_gc, max_expected_gc):
        """ Correct the current ratio for residual GC-content bias
        """
        gc = self.windows['gc'].values.astype(float)
        if not np.isfinite(gc).any():
            raise ValueError('no GC-content available for {}, a GC profile is required'.format(self.name))

        ratio = self.windows['ratio'].values

        usable = np.isfinite(gc) & np.isfinite(ratio)
        fit = usable & (ratio > 0) & (gc >= min_expected_gc) & (gc <= max_expected_gc)

        model = ploidyfit.regression.fit_polynomial(gc[fit], ratio[fit], degree, intercept)

        expected = np.full(self.num_windows, np.nan)
        expected[usable] = model.predict(gc[usable])

        self._set_ratio(ratio, expected)

    def recalculate_ratio(self, contamination):
        """ Remove the contribution of contaminating normal cells from the ratio

        The stored contamination is left unchanged, callers reset it once
        the correction is part of the ratio.
        """
        if not 0. <= contamination < 1.:
            raise ValueError('contamination must be in [0, 1), got {}'.format(contamination))

        normal_ratio = contamination * self.normal_copies() / self.ploidy
        ratio = (self.windows['ratio'].values - normal_ratio) / (1. - contamination)

        self.windows['ratio'] = np.clip(ratio, 0., None)
        self._clear_segmentation()

    def set_all_normal(self):
        """ Call every window at the neutral copy number
        """
        neutral = self.neutral_copy_numbers()
        self.windows['copy_number'] = neutral
        self.windows['median_ratio'] = np.where(
            self.windows['ratio'].notnull(),
            self.expected_ratio(neutral, self.normal_copies()),
            np.nan)
        self.windows['cn_probability'] = 1.
        self.windows['explained'] = True

    ###
    # Segmentation
    ###

    def _chromosome_indices(self):
        chromosomes = self.windows['chromosome'].values
        for chromosome in pd.unique(chromosomes):
            yield chromosome, np.where(chromosomes == chromosome)[0]

    def calculate_breakpoints(self, threshold, breakpoint_type):
        """ Segment the ratio of each chromosome

        Args:
            threshold (float): breakpoint threshold, higher gives fewer breakpoints
            breakpoint_type (int): handling of masked runs between segments, see segalg

        Windows without a ratio are not part of any segment.

        """

        ratio = self.windows['ratio'].values
        segment = np.full(self.num_windows, -1, dtype=int)

        next_id = 0
        for chromosome, idx in self._chromosome_indices():
            valid_idx = idx[np.isfinite(ratio[idx])]
            if valid_idx.shape[0] == 0:
                continue

            starts = ploidyfit.segalg.binary_segmentation(
                ratio[valid_idx], threshold, min_size=MIN_SEGMENT_WINDOWS)

            labels = np.zeros(valid_idx.shape[0], dtype=int)
            labels[np.array(starts[1:], dtype=int)] = 1
            labels = np.cumsum(labels) + next_id

            segment[valid_idx] = labels
            next_id = labels[-1] + 1

        self._clear_segmentation()
        self.windows['segment'] = segment
        self.breakpoint_type = breakpoint_type

        logger.debug('{}: {} segments'.format(self.name, next_id))

    def _update_medians(self):
        ratio = self.windows['ratio']
        segment = self.windows['segment']
        medians = ratio[segment >= 0].groupby(segment[segment >= 0]).transform('median')
        self.windows['median_ratio'] = medians.reindex(self.windows.index)
        self.windows['copy_number'] = np.nan
        self.windows['cn_probability'] = np.nan
        self.windows['explained'] = False

    def _chromosome_segments(self, idx):
        """ Table of segments of one chromosome in genomic order
        """
        segment = self.windows['segment'].values[idx]
        valid = segment >= 0
        data = pd.DataFrame({
            'segment': segment[valid],
            'position': np.arange(idx.shape[0])[valid],
            'start': self.windows['start'].values[idx][valid],
            'end': self.windows['end'].values[idx][valid],
            'ratio': self.windows['ratio'].values[idx][valid],
        })
        segments = data.groupby('segment', sort=False).agg(
            first=('position', 'min'),
            last=('position', 'max'),
            start=('start', 'min'),
            end=('end', 'max'),
            length=('ratio', 'size'),
            median=('ratio', 'median'),
        )
        return segments.sort_values('first').reset_index()

    def _merge_segment(self, idx, source, target):
        chrom_segment = self.windows['segment'].values[idx]
        chrom_segment[chrom_segment == source] = target
        self.windows.loc[self.windows.index[idx], 'segment'] = chrom_segment

    def calculate_copy_number_medians(self, min_cna_length, noisy_data=False):
        """ Calculate segment medians, merging short segments

        Args:
            min_cna_length (int): segments with fewer windows are merged into
                the neighbour with the closest median

        KwArgs:
            noisy_data (bool): also merge adjacent segments rounding to the
                same copy number

        """

        for chromosome, idx in self._chromosome_indices():
            if not (self.windows['segment'].values[idx] >= 0).any():
                continue

            while True:
                segments = self._chromosome_segments(idx)
                if segments.shape[0] <= 1:
                    break
                short = segments[segments['length'] < min_cna_length]
                if short.shape[0] == 0:
                    break
                i = short['length'].idxmin()
                neighbours = [j for j in (i - 1, i + 1) if 0 <= j < segments.shape[0]]
                j = min(neighbours, key=lambda a: abs(segments.loc[a, 'median'] - segments.loc[i, 'median']))
                self._merge_segment(idx, segments.loc[i, 'segment'], segments.loc[j, 'segment'])

            if not noisy_data:
                continue

            while True:
                segments = self._chromosome_segments(idx)
                levels = np.round(segments['median'].values * self.ploidy)
                same = np.where(levels[1:] == levels[:-1])[0]
                if same.shape[0] == 0:
                    break
                i = same[0]
                self._merge_segment(idx, segments.loc[i + 1, 'segment'], segments.loc[i, 'segment'])

        self._update_medians()

    def recalc_flanks(self, flank_length, factor):
        """ Absorb short segments in telomeric and centromeric flanks

        Args:
            flank_length (int): segments spanning at most this many bases at a
                chromosome end or next to a masked gap are absorbed
            factor (int): minimum number of masked windows for a gap to be
                considered centromeric

        A short segment flanked on one side only is merged into its interior
        neighbour.

        """

        for chromosome, idx in self._chromosome_indices():
            if not (self.windows['segment'].values[idx] >= 0).any():
                continue

            while True:
                segments = self._chromosome_segments(idx)
                if segments.shape[0] <= 1:
                    break

                gap_before = segments['first'].values[1:] - segments['last'].values[:-1] - 1
                big_gap = gap_before >= factor
                flank_left = np.concatenate([[True], big_gap])
                flank_right = np.concatenate([big_gap, [True]])
                span = (segments['end'] - segments['start']).values

                merged = False
                for i in range(segments.shape[0]):
                    if span[i] > flank_length or flank_left[i] == flank_right[i]:
                        continue
                    j = i + 1 if flank_left[i] else i - 1
                    self._merge_segment(idx, segments.loc[i, 'segment'], segments.loc[j, 'segment'])
                    merged = True
                    break

                if not merged:
                    break

        self._update_medians()

    ###
    # Annotation
    ###

    def calculate_copy_number_probs(self, breakpoint_type, exome=False):
        """ Call integer copy numbers for each segment

        Args:
            breakpoint_type (int): handling of masked runs between segments, see segalg

        KwArgs:
            exome (bool): windows are capture regions, masked runs are not called

        Each segment is assigned the copy number whose expected ratio is
        closest to the segment median, with the posterior probability of that
        copy number under a Gaussian model of the median. Segments within
        EXPLAINED_TOLERANCE of the level spacing are marked explained.

        """

        levels = np.arange(self.max_copy_number + 1)
        normal = self.normal_copies()
        spacing = (1. - self.normal_contamination) / self.ploidy

        copy_number = np.full(self.num_windows, np.nan)
        cn_probability = np.full(self.num_windows, np.nan)
        explained = np.zeros(self.num_windows, dtype=bool)

        segment = self.windows['segment'].values
        ratio = self.windows['ratio'].values
        median_ratio = self.windows['median_ratio'].values

        for segment_id, idx in pd.Series(np.arange(self.num_windows))[segment >= 0].groupby(segment[segment >= 0]):
            idx = idx.values
            median = median_ratio[idx[0]]
            expected = self.expected_ratio(levels, normal[idx[0]])

            sem = max(np.std(ratio[idx], ddof=1) / np.sqrt(idx.shape[0]) if idx.shape[0] > 1 else 0., MIN_SEGMENT_SEM)
            log_likelihood = -0.5 * ((median - expected) / sem) ** 2
            best = np.argmax(log_likelihood)
            posterior = np.exp(log_likelihood - log_likelihood[best])
            posterior /= posterior.sum()

            copy_number[idx] = levels[best]
            cn_probability[idx] = posterior[best]
            explained[idx] = abs(median - expected[best]) <= EXPLAINED_TOLERANCE * spacing

        if not exome:
            neutral = self.neutral_copy_numbers()
            for chromosome, idx in self._chromosome_indices():
                chrom_segment = segment[idx]
                segment_lengths = pd.Series(chrom_segment[chrom_segment >= 0]).value_counts()
                for start, end in ploidyfit.segalg.find_runs(chrom_segment < 0):
                    if start == 0 or end == idx.shape[0]:
                        continue
                    left = chrom_segment[start - 1]
                    right = chrom_segment[end]
                    value = ploidyfit.segalg.assign_unknown_run(
                        (copy_number[idx[start - 1]], segment_lengths[left]),
                        (copy_number[idx[end]], segment_lengths[right]),
                        end - start,
                        breakpoint_type,
                        neutral[idx[start]],
                    )
                    copy_number[idx[start:end]] = value

        self.windows['copy_number'] = copy_number
        self.windows['cn_probability'] = cn_probability
        self.windows['explained'] = explained
        self.breakpoint_type = breakpoint_type

    def percentage_genome_explained(self):
        """ Percentage of the segmented genome explained by integer copy numbers

        Returns:
            float: percentage of segmented length within tolerance of a copy number level
            int: number of chromosomes with unexplained segments

        """

        called = self.windows[self.windows['median_ratio'].notnull()]
        if called.shape[0] == 0:
            return 0., 0

        length = (called['end'] - called['start']).astype(float)
        explained = called['explained'].values.astype(bool)

        percent = 100. * length[explained].sum() / length.sum()
        unexplained_chromosomes = called.loc[~explained, 'chromosome'].nunique()

        return percent, int(unexplained_chromosomes)

    def get_segments(self):
        """ Summary table of segments

        Returns:
            pandas.DataFrame: one row per segment with columns 'segment',
            'chromosome', 'start', 'end', 'length', 'median_ratio', 'sem',
            'normal_copies', 'neutral', 'copy_number'

        """

        is_segment = (self.windows['segment'] >= 0).values

        data = self.windows.loc[is_segment, ['segment', 'chromosome', 'start', 'end', 'ratio', 'median_ratio', 'copy_number']].copy()
        data['normal_copies'] = self.normal_copies()[is_segment]
        data['neutral'] = self.neutral_copy_numbers()[is_segment]

        segments = data.groupby('segment').agg(
            chromosome=('chromosome', 'first'),
            start=('start', 'min'),
            end=('end', 'max'),
            length=('ratio', 'size'),
            median_ratio=('median_ratio', 'first'),
            std=('ratio', 'std'),
            normal_copies=('normal_copies', 'first'),
            neutral=('neutral', 'first'),
            copy_number=('copy_number', 'first'),
        ).reset_index()

        segments['sem'] = np.maximum(
            segments['std'].fillna(0.) / np.sqrt(segments['length']), MIN_SEGMENT_SEM)

        return segments.drop('std', axis=1)

    ###
    # Output
    ###

    def annotate_somatic(self, control_cnvs):
        """ Mark CNVs also present in the control as germline
        """
        self.germline_cnvs = control_cnvs

    def get_cnvs(self):
        """ Table of copy number alterations

        Returns:
            pandas.DataFrame: columns 'chromosome', 'start', 'end', 'copy_number', 'status',
            and 'somatic' once annotate_somatic has been called

        Consecutive called windows with the same non-neutral copy number form
        one alteration.
        """

        cnv_columns = ['chromosome', 'start', 'end', 'copy_number', 'status']

        position = np.arange(self.num_windows)
        called = self.windows['copy_number'].notnull().values

        data = self.windows.loc[called, ['chromosome', 'start', 'end', 'copy_number']].copy()
        data['neutral'] = self.neutral_copy_numbers()[called]
        data['position'] = position[called]

        new_run = (
            (data['chromosome'] != data['chromosome'].shift()) |
            (data['copy_number'] != data['copy_number'].shift()) |
            (data['position'] - data['position'].shift() != 1))
        data['run'] = new_run.cumsum()

        cnvs = data.groupby('run').agg(
            chromosome=('chromosome', 'first'),
            start=('start', 'min'),
            end=('end', 'max'),
            copy_number=('copy_number', 'first'),
            neutral=('neutral', 'first'),
        )
        cnvs = cnvs[cnvs['copy_number'] != cnvs['neutral']].copy()
        cnvs['status'] = np.where(cnvs['copy_number'] > cnvs['neutral'], 'gain', 'loss')
        cnvs = cnvs[cnv_columns].reset_index(drop=True)

        if self.germline_cnvs is not None:
            cnvs['somatic'] = True
            for (chromosome, status), germline in self.germline_cnvs.groupby(['chromosome', 'status']):
                is_cnv = (cnvs['chromosome'] == chromosome) & (cnvs['status'] == status)
                if not is_cnv.any():
                    continue
                germline = germline.sort_values('start')
                overlapping = ploidyfit.segalg.overlapping_any(
                    cnvs.loc[is_cnv, ['start', 'end']].values,
                    germline[['start', 'end']].values)
                cnvs.loc[is_cnv, 'somatic'] = ~overlapping

        return cnvs

    def write_ratio(self, filename, print_na=True):
        ploidyfit.readcounts.write_ratio(filename, self.windows, print_na=print_na)

    def write_ratio_bedgraph(self, filename):
        ploidyfit.readcounts.write_ratio_bedgraph(filename, self.windows, self.name)

    def write_cnvs(self, filename):
        ploidyfit.readcounts.write_cnvs(filename, self.get_cnvs())
