import collections
import logging
import numpy as np

import ploidyfit.contamination
import ploidyfit.normalization
import ploidyfit.scoring
import ploidyfit.subclones


logger = logging.getLogger(__name__)


# Ploidy 4 wins over ploidy 2 only if it explains this fraction more of the
# genome and ploidy 2 leaves more than this many chromosomes unexplained
WGD_EXPLAINED_MARGIN = 0.05
WGD_MAX_UNEXPLAINED_CHROMOSOMES = 1

# Minimum masked windows for a gap to delimit telomeric or centromeric flanks
FLANK_FACTOR = 3


ScoreRecord = collections.namedtuple('ScoreRecord', [
    'ploidy',
    'rss',
    'percent_explained',
    'unexplained_chromosomes',
    'contamination',
])


PloidySearchResult = collections.namedtuple('PloidySearchResult', [
    'ploidy',
    'best_by_rss',
    'best_by_explained',
    'overridden',
    'rerun',
    'records',
    'sample',
    'control',
])


def segments_control(params):
    """ Control breakpoints are computed for whole genome data with allele frequencies
    """
    return params['control_present'] and params['baf_available'] and not params['targeted']


def segment_profiles(pool, sample, control, params):
    """ Compute breakpoints of sample and control concurrently
    """
    with pool.batch('calculate_breakpoints') as batch:
        batch.add(sample.calculate_breakpoints, params['breakpoint_threshold'], params['breakpoint_type'])
        if control is not None and segments_control(params):
            batch.add(control.calculate_breakpoints, params['breakpoint_threshold'], params['breakpoint_type'])
        batch.run()


def annotate_profile(profile, params):
    """ Segment medians, flank trimming and copy number calls of a segmented profile
    """
    profile.calculate_copy_number_medians(params['min_cna_length'], params['noisy_data'])
    if not params['exome']:
        profile.recalc_flanks(params['telocentromeric'], FLANK_FACTOR)
    profile.calculate_copy_number_probs(params['breakpoint_type'], exome=params['exome'])


def adjust_for_contamination(sample, pool, params):
    """ Estimate contamination by normal cells and correct the sample once

    Args:
        sample (CopyNumberProfile): segmented and annotated sample profile
        pool (WorkerPool): pool used to recompute breakpoints
        params (dict): resolved run parameters

    Returns:
        float: contamination used for the correction, 0 if none

    If the likelihood ratio estimate is positive, the ratio is corrected
    for it, the stored contamination is reset to 0 since the correction is
    now part of the ratio, and the sample is segmented and annotated again.
    Otherwise the sample is left unchanged.

    """

    simple_estimate = ploidyfit.contamination.evaluate_contamination(sample)
    contamination = ploidyfit.contamination.evaluate_contamination_with_lr(sample)

    logger.info('{}: contamination by normal cells {:.1f}% (simple estimate {:.1f}%)'.format(
        sample.name, 100. * contamination, 100. * simple_estimate))

    if contamination == 0:
        return 0.

    logger.info('{}: recalculating copy number profile for contamination'.format(sample.name))

    sample.recalculate_ratio(contamination)
    sample.set_normal_contamination(0.)

    segment_profiles(pool, sample, None, params)
    annotate_profile(sample, params)

    return contamination


def select_best_ploidy(records):
    """ Choose a ploidy from the scores of each candidate

    Args:
        records (list): ScoreRecord per candidate, in candidate order

    Returns:
        int: chosen ploidy
        int: ploidy with minimum RSS, first on ties
        int: ploidy with maximum percentage of genome explained
        bool: ploidy 4 was replaced by ploidy 2

    """

    if len(records) == 0:
        raise ValueError('at least one candidate ploidy is required')

    ploidies = [a.ploidy for a in records]

    best_by_rss = ploidies[int(np.argmin([a.rss for a in records]))]
    best_by_explained = ploidies[int(np.argmax([a.percent_explained for a in records]))]

    chosen = best_by_rss
    overridden = False

    if len(records) > 1 and best_by_rss == 4 and 2 in ploidies:
        diploid = records[ploidies.index(2)]
        tetraploid = records[ploidies.index(4)]
        explained_gain = (tetraploid.percent_explained - diploid.percent_explained) / 100.
        if explained_gain < WGD_EXPLAINED_MARGIN or diploid.unexplained_chromosomes <= WGD_MAX_UNEXPLAINED_CHROMOSOMES:
            chosen = 2
            overridden = True

    return chosen, best_by_rss, best_by_explained, overridden


def format_scores(records):
    lines = ['ploidy\tRSS\tpercent explained' + ('\tcontamination' if records[0].contamination is not None else '')]
    for record in records:
        line = '{}\t{:.6g}\t{:.2f}'.format(record.ploidy, record.rss, record.percent_explained)
        if record.contamination is not None:
            line += '\t{:.3f}'.format(record.contamination)
        lines.append(line)
    return '\n'.join(lines)


class PloidySearch(object):
    """ Fit each candidate ploidy and choose the best model.

    Each trial works on fresh copies of the prepared sample and control,
    so trials do not depend on one another. The search owns its score
    records.

    Args:
        sample (CopyNumberProfile): sample with read counts, before normalization
        control (CopyNumberProfile): control with read counts, or None
        params (dict): resolved run parameters
        pool (WorkerPool): worker pool for segmentation

    KwArgs:
        output_dir (str): directory for subclone output

    """
    def __init__(self, sample, control, params, pool, output_dir='.'):
        self.sample = sample
        self.control = control
        self.params = params
        self.pool = pool
        self.output_dir = output_dir
        self.records = []
        self.strategy = ploidyfit.normalization.select_strategy(
            control is not None,
            params['targeted'],
            params['exome'],
            params['baf_available'],
            params['force_gc_normalization'],
        )

    def run_trial(self, ploidy):
        """ Normalize, segment, annotate and score the profiles for one ploidy

        Returns:
            ScoreRecord: scores of the trial
            CopyNumberProfile: fitted sample
            CopyNumberProfile: fitted control, or None

        """

        params = self.params
        known_contamination = params['contamination']

        sample = self.sample.copy()
        control = self.control.copy() if self.control is not None else None

        sample.set_ploidy(ploidy)
        sample.set_normal_contamination(known_contamination)

        ploidyfit.normalization.apply_normalization(self.strategy, sample, control, params)

        if known_contamination > 0:
            logger.info('{}: recalculating copy number profile for known contamination {:.1f}%'.format(
                sample.name, 100. * known_contamination))
            sample.recalculate_ratio(known_contamination)
            sample.set_normal_contamination(0.)

        segment_profiles(self.pool, sample, control, params)
        annotate_profile(sample, params)

        contamination = known_contamination
        if params['contamination_adjustment'] and known_contamination == 0:
            contamination = adjust_for_contamination(sample, self.pool, params)

        if params['min_subclone_presence'] < 1:
            ploidyfit.subclones.seek_subclones(sample, ploidy, self.output_dir, params['min_subclone_presence'])

        rss = ploidyfit.scoring.calculate_rss(sample, ploidy)
        percent_explained, unexplained_chromosomes = ploidyfit.scoring.calculate_percent_explained(sample)

        record = ScoreRecord(
            ploidy,
            rss,
            percent_explained,
            unexplained_chromosomes,
            contamination if params['contamination_adjustment'] else None,
        )

        return record, sample, control

    def search(self):
        """ Run a trial for each candidate ploidy and choose the best

        Returns:
            PloidySearchResult: chosen ploidy, scores and the fitted profiles

        If the chosen ploidy is not the last candidate, its trial is run
        again to obtain the fitted profiles, without adding a score record.
        """

        ploidies = self.params['ploidy']
        if len(ploidies) == 0:
            raise ValueError('at least one candidate ploidy is required')

        self.records = []
        sample = control = None

        for ploidy in ploidies:
            logger.info('running with ploidy {}'.format(ploidy))
            record, sample, control = self.run_trial(ploidy)
            self.records.append(record)

        logger.info('ploidy scores:\n' + format_scores(self.records))

        chosen, best_by_rss, best_by_explained, overridden = select_best_ploidy(self.records)

        logger.info('best ploidy according to RSS is {}'.format(best_by_rss))
        logger.info('best ploidy according to percentage of genome explained is {}'.format(best_by_explained))

        if overridden:
            logger.info('ploidy changed to 2 as there is little difference in fit between ploidies 4 and 2, '
                'unexplained regions for ploidy 2 are on {} chromosomes'.format(
                    self.records[ploidies.index(2)].unexplained_chromosomes))

        rerun = chosen != ploidies[-1]
        if rerun:
            logger.info('running again with ploidy {}'.format(chosen))
            record, sample, control = self.run_trial(chosen)

        return PloidySearchResult(
            chosen,
            best_by_rss,
            best_by_explained,
            overridden,
            rerun,
            list(self.records),
            sample,
            control,
        )
