import logging

import ploidyfit.defaults
import ploidyfit.segalg


logger = logging.getLogger(__name__)


def get_full_config(config):
    full_config = dict(
        (key, value) for key, value in vars(ploidyfit.defaults).items()
        if not key.startswith('_'))
    full_config.update(config)
    return full_config


def get_param(config, name):
    return get_full_config(config)[name]


def parse_ploidies(ploidy):
    """ Parse candidate ploidies from a list, an int or a comma separated string.

    Order and duplicates are preserved.
    """
    if isinstance(ploidy, str):
        values = [a.strip() for a in ploidy.split(',') if a.strip() != '']
    elif isinstance(ploidy, (list, tuple)):
        values = list(ploidy)
    else:
        values = [ploidy]

    if len(values) == 0:
        raise ValueError('ploidy must list at least one candidate ploidy')

    ploidies = []
    for value in values:
        rounded = int(round(float(value)))
        if rounded != float(value):
            logger.warning('ploidy {} rounded to {}'.format(value, rounded))
        value = rounded
        if value < 1:
            raise ValueError('ploidy must be positive, got {}'.format(value))
        ploidies.append(value)

    return ploidies


def resolve_params(config, control_present):
    """ Validate configuration and resolve automatic parameters.

    Args:
        config (dict): user configuration, missing keys take defaults
        control_present (bool): a control sample is available

    Returns:
        dict: resolved run parameters

    Raises ValueError naming the offending parameter for invalid
    combinations. Recommended but not required settings are logged as
    warnings and the documented default substituted.

    """

    full_config = get_full_config(config)
    params = dict(full_config)
    params['control_present'] = control_present

    if params['sex'] not in ('', 'XX', 'XY'):
        raise ValueError('sex can be either XX or XY, got {!r}'.format(params['sex']))

    if params['breakpoint_threshold'] <= 0:
        raise ValueError('breakpoint_threshold should be positive, 0.8 is recommended')

    if params['breakpoint_type'] not in ploidyfit.segalg.BREAKPOINT_TYPES:
        raise ValueError('breakpoint_type must be one of {}'.format(ploidyfit.segalg.BREAKPOINT_TYPES))

    if params['force_gc_normalization'] not in (0, 1, 2):
        raise ValueError('force_gc_normalization must be 0, 1 or 2')

    if params['max_threads'] < 1:
        raise ValueError('max_threads must be at least 1')

    # Contamination by normal cells
    contamination = float(params['contamination'])
    if contamination < 0:
        raise ValueError('contamination by normal cells should be a positive value')
    if contamination > 0:
        if not params['contamination_adjustment']:
            raise ValueError('set contamination_adjustment to use contamination')
        if contamination > 100:
            raise ValueError('contamination should not be greater than 100%')
        if contamination >= 1:
            logger.warning('contamination {} interpreted as a percentage'.format(contamination))
            contamination /= 100.
        if contamination >= 1:
            raise ValueError('contamination must be below 100%')
    params['contamination'] = contamination

    # Subclones, 1 disables detection
    presence = float(params['min_subclone_presence'])
    if presence <= 0 or presence > 100:
        raise ValueError('min_subclone_presence must be in (0, 1], or a percentage')
    if presence > 1:
        logger.warning('min_subclone_presence {} interpreted as a percentage'.format(presence))
        presence /= 100.
    params['min_subclone_presence'] = presence

    params['ploidy'] = parse_ploidies(params['ploidy'])
    params['ploidy_known'] = len(params['ploidy']) == 1

    # Experiment type
    targeted = params['capture_regions'] is not None
    params['targeted'] = targeted
    params['exome'] = targeted and params['window'] == 0

    if targeted and not control_present:
        raise ValueError('a control sample is required with capture_regions to eliminate capture bias')

    if not targeted and params['window'] == 0:
        raise ValueError('window=0 is only valid for exome data with capture_regions')

    force_gc = params['force_gc_normalization']
    baf_available = params['baf_available']

    use_gc = not control_present or baf_available or force_gc != 0
    if use_gc and targeted:
        if force_gc == 0:
            use_gc = False
            logger.info('targeted data: only control read counts will be used for normalization')
        else:
            logger.warning('force_gc_normalization is not recommended for targeted data since capture bias can be much stronger than GC-content bias')
    params['use_gc'] = use_gc

    # Intercept of the regression
    user_intercept = params['intercept']
    advised_intercept = 1 if use_gc else 0
    if user_intercept is None:
        params['intercept'] = advised_intercept
    elif user_intercept != advised_intercept:
        logger.warning('intercept={} is advised with these parameters'.format(advised_intercept))

    # Polynomial degree, None tries degrees 3 and 4 for GC-content regression
    if params['degree'] is None:
        if not (params['intercept'] == 1 and not (not baf_available and control_present)):
            params['degree'] = 1

    # Residual GC-content normalization after control normalization fits without intercept
    if force_gc == 2:
        if user_intercept is None:
            params['intercept'] = 0
        elif user_intercept != 0:
            logger.warning('intercept=0 is advised with force_gc_normalization=2')

    if params['min_cna_length'] is None:
        params['min_cna_length'] = 3 if targeted else 1

    if params['log_log_norm'] and use_gc and not targeted:
        logger.warning('log-log normalization disabled since GC-content is used')
        params['log_log_norm'] = False

    if params['noisy_data'] and not targeted:
        logger.warning('noisy_data is not recommended for whole genome data, real CNAs may be missed')

    if targeted and not use_gc:
        logger.info('mappability and GC-content will not be used, all windows overlapping capture regions are considered')
        params['min_mappability'] = 0.

    return params
