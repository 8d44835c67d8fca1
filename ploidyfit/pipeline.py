import logging
import os

import ploidyfit.config
import ploidyfit.ploidy
import ploidyfit.profile
import ploidyfit.readcounts
import ploidyfit.workers


logger = logging.getLogger(__name__)


# Ploidy of the matched control
CONTROL_PLOIDY = 2


def get_output_filenames(output_dir, prefix):
    """ Output filenames of a run, keyed by output type
    """
    suffixes = {
        'ratio': '_ratio.txt',
        'ratio_bedgraph': '_ratio.BedGraph',
        'cnvs': '_CNVs',
        'scores': '_ploidy_scores.txt',
        'normal_ratio': '_normal_ratio.txt',
        'normal_ratio_bedgraph': '_normal_ratio.BedGraph',
        'normal_cnvs': '_normal_CNVs',
    }
    return dict((key, os.path.join(output_dir, prefix + suffix)) for key, suffix in suffixes.items())


def get_prefix(sample_counts_filename, params):
    if params['output_prefix'] is not None:
        return params['output_prefix']
    return os.path.basename(sample_counts_filename)


def read_profiles(pool, name, sample_counts_filename, control_counts_filename, params):
    """ Read sample and control window counts concurrently
    """

    sample = ploidyfit.profile.CopyNumberProfile(
        name, max_copy_number=params['max_copy_number'], min_mappability=params['min_mappability'])

    control = None
    if control_counts_filename is not None:
        control = ploidyfit.profile.CopyNumberProfile(
            name + '_normal', max_copy_number=params['max_copy_number'], min_mappability=params['min_mappability'])

    with pool.batch('read_window_counts') as batch:
        batch.add(sample.read_window_counts, sample_counts_filename)
        if control is not None:
            batch.add(control.read_window_counts, control_counts_filename)
        batch.run()

    return sample, control


def prepare_profiles(sample, control, params, gc_profile_filename=None):
    """ Apply the GC profile, capture regions and read count filters

    Returns:
        dict: run parameters updated for the data

    """

    params = dict(params)

    window = params['window']
    if window and not params['exome'] and sample.window_size != window:
        raise ValueError('window size of {} is {}, {} was configured'.format(sample.name, sample.window_size, window))

    sample.set_sex(params['sex'])

    if control is not None:
        control.set_sex(params['sex'])
        control.set_ploidy(CONTROL_PLOIDY)
        control.set_normal_contamination(0.)

        if not params['exome'] and sample.window_size != control.window_size:
            raise ValueError('the window length is different for sample ({}) and control ({})'.format(
                sample.window_size, control.window_size))

    if gc_profile_filename is not None:
        gc_step = sample.read_gc_profile(gc_profile_filename)
        if not params['exome'] and gc_step != sample.step:
            raise ValueError('the step of GC profile {} is {}, the step of window counts is {}'.format(
                gc_profile_filename, gc_step, sample.step))
        if control is not None:
            control.read_gc_profile(gc_profile_filename)
    elif params['use_gc']:
        raise ValueError('a GC profile is required for GC-content normalization')

    if params['targeted']:
        regions = ploidyfit.readcounts.read_capture_regions(params['capture_regions'])
        min_region_length = sample.focus_on_capture(regions)
        control.focus_on_capture(regions)
        params['telocentromeric'] = min_region_length
        logger.info('telomeric and centromeric flanks set to the shortest capture region, {}'.format(min_region_length))

    if control is not None:
        sample.remove_low_readcount_windows(control, params['read_count_threshold'])
        control.remove_low_readcount_windows_from_control(params['read_count_threshold'])

    return params


def write_results(result, params, filenames):
    """ Write ratio, CNV and score tables for the chosen model
    """

    sample = result.sample
    control = result.control

    if control is not None and params['baf_available']:
        if ploidyfit.ploidy.segments_control(params):
            ploidyfit.ploidy.annotate_profile(control, params)
        sample.annotate_somatic(control.get_cnvs())

        control.write_ratio(filenames['normal_ratio'], print_na=params['print_na'])
        if params['bedgraph_output']:
            control.write_ratio_bedgraph(filenames['normal_ratio_bedgraph'])
        control.write_cnvs(filenames['normal_cnvs'])

    sample.write_ratio(filenames['ratio'], print_na=params['print_na'])
    if params['bedgraph_output']:
        sample.write_ratio_bedgraph(filenames['ratio_bedgraph'])
    sample.write_cnvs(filenames['cnvs'])

    ploidyfit.readcounts.write_scores(filenames['scores'], result.records)


def run_analysis(name, sample_counts_filename, filenames, output_dir, config,
                 control_counts_filename=None, gc_profile_filename=None):
    """ Fit copy number and ploidy of a sample and write the results

    Args:
        name (str): sample name used for logs and subclone output
        sample_counts_filename (str): sample window read counts
        filenames (dict): output filenames, see get_output_filenames
        output_dir (str): directory for additional output
        config (dict): user configuration

    KwArgs:
        control_counts_filename (str): control window read counts
        gc_profile_filename (str): GC content profile

    Returns:
        PloidySearchResult: chosen ploidy, scores and fitted profiles

    """

    params = ploidyfit.config.resolve_params(config, control_counts_filename is not None)

    pool = ploidyfit.workers.WorkerPool(params['max_threads'])

    sample, control = read_profiles(pool, name, sample_counts_filename, control_counts_filename, params)

    params = prepare_profiles(sample, control, params, gc_profile_filename=gc_profile_filename)

    search = ploidyfit.ploidy.PloidySearch(sample, control, params, pool, output_dir=output_dir)
    logger.info('normalization strategy {}'.format(search.strategy))

    result = search.search()

    logger.info('ploidy set to {}'.format(result.ploidy))

    write_results(result, params, filenames)

    return result


def run(sample_counts_filename, output_dir, config=None, control_counts_filename=None, gc_profile_filename=None):
    """ Run the analysis writing all outputs to output_dir
    """

    if config is None:
        config = {}

    prefix = get_prefix(sample_counts_filename, ploidyfit.config.get_full_config(config))
    filenames = get_output_filenames(output_dir, prefix)

    if not os.path.exists(output_dir):
        os.makedirs(output_dir)

    return run_analysis(
        prefix, sample_counts_filename, filenames, output_dir, config,
        control_counts_filename=control_counts_filename,
        gc_profile_filename=gc_profile_filename)


def run_task(ratio_filename, cnvs_filename, scores_filename, sample_counts_filename, output_dir, config,
             control_counts_filename=None, gc_profile_filename=None):
    """ Run the analysis with explicit filenames for the managed outputs
    """

    prefix = get_prefix(sample_counts_filename, ploidyfit.config.get_full_config(config))
    filenames = get_output_filenames(output_dir, prefix)
    filenames['ratio'] = ratio_filename
    filenames['cnvs'] = cnvs_filename
    filenames['scores'] = scores_filename

    if not os.path.exists(output_dir):
        os.makedirs(output_dir)

    run_analysis(
        prefix, sample_counts_filename, filenames, output_dir, config,
        control_counts_filename=control_counts_filename,
        gc_profile_filename=gc_profile_filename)
