import logging


logger = logging.getLogger(__name__)


GC_ONLY = 'gc_only'
CONTROL_RATIO = 'control_ratio'
GC_THEN_RATIO = 'gc_then_ratio'
CONTROL_THEN_GC = 'control_then_gc'
CONTROL_DUAL_GC = 'control_dual_gc'

STRATEGIES = (
    GC_ONLY,
    CONTROL_RATIO,
    GC_THEN_RATIO,
    CONTROL_THEN_GC,
    CONTROL_DUAL_GC,
)

# Degree and intercept of the second GC-content pass on a control ratio
RESIDUAL_GC_DEGREE = 8
RESIDUAL_GC_INTERCEPT = 1


def select_strategy(control_present, targeted, exome, baf_available, force_gc):
    """ Choose how read counts are normalized into a ratio

    Args:
        control_present (bool): a matched control is available
        targeted (bool): targeted sequencing with capture regions
        exome (bool): whole exome sequencing, one window per capture region
        baf_available (bool): allele frequency data is available
        force_gc (int): 0 automatic, 1 GC normalize both then ratio,
            2 control ratio then GC

    Returns:
        str: one of STRATEGIES

    """

    if not control_present:
        return GC_ONLY

    if (force_gc == 0 and not baf_available) or (targeted and force_gc != 1) or exome:
        return CONTROL_RATIO

    if force_gc == 1:
        return GC_THEN_RATIO

    if force_gc == 2:
        return CONTROL_THEN_GC

    return CONTROL_DUAL_GC


def controls_normal(targeted, baf_available, force_gc):
    """ Control copy numbers are fixed at the neutral level
    """
    return targeted and baf_available and force_gc != 1


def apply_normalization(strategy, sample, control, params):
    """ Normalize sample and control read counts into ratios

    Args:
        strategy (str): one of STRATEGIES
        sample (CopyNumberProfile): sample profile
        control (CopyNumberProfile): control profile, None for GC_ONLY
        params (dict): resolved run parameters

    """

    degree = params['degree']
    intercept = params['intercept']
    gc_range = (params['min_expected_gc'], params['max_expected_gc'])

    logger.info('normalizing {} using strategy {}'.format(sample.name, strategy))

    if strategy == GC_ONLY:
        sample.calculate_ratio_using_gc(degree, intercept, *gc_range)

    elif strategy == CONTROL_RATIO:
        sample.calculate_ratio(control, degree, intercept, log_log=params['log_log_norm'])

    elif strategy == GC_THEN_RATIO:
        sample.calculate_ratio_using_gc(degree, intercept, *gc_range)
        control.calculate_ratio_using_gc(degree, intercept, *gc_range)
        sample.divide_by_control_ratio(control)

    elif strategy == CONTROL_THEN_GC:
        sample.calculate_ratio(control, degree, intercept, log_log=params['log_log_norm'])
        sample.recalculate_ratio_using_gc(RESIDUAL_GC_DEGREE, RESIDUAL_GC_INTERCEPT, *gc_range)
        if params['baf_available'] and not params['targeted']:
            control.calculate_ratio_using_gc(degree, intercept, *gc_range)

    elif strategy == CONTROL_DUAL_GC:
        if intercept != 1:
            logger.warning('intercept=1 is advised for GC-content normalization')
        sample.calculate_ratio(control, degree, intercept, log_log=params['log_log_norm'])
        sample.calculate_ratio_using_gc(degree, intercept, *gc_range)
        control.calculate_ratio_using_gc(degree, intercept, *gc_range)

    else:
        raise ValueError('unknown normalization strategy {}'.format(strategy))

    if control is not None and controls_normal(params['targeted'], params['baf_available'], params['force_gc_normalization']):
        logger.warning('no copy number changes are assumed in the control within capture regions')
        control.set_all_normal()
