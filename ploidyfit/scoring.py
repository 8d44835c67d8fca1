import numpy as np


def calculate_rss(profile, ploidy):
    """ Residual sum of squares of copy number calls against the observed ratio

    Args:
        profile (CopyNumberProfile): annotated profile
        ploidy (int): ploidy hypothesis

    Returns:
        float: sum over called windows of squared residuals in copy number units

    """

    windows = profile.windows
    called = (windows['ratio'].notnull() & windows['copy_number'].notnull()).values

    c = profile.normal_contamination
    normal = profile.normal_copies()[called]
    copy_number = windows['copy_number'].values[called]
    ratio = windows['ratio'].values[called]

    residual = ratio * ploidy - ((1. - c) * copy_number + c * normal)

    return float((residual * residual).sum())


def calculate_percent_explained(profile):
    """ Percentage of the genome explained and chromosomes not fully explained
    """
    return profile.percentage_genome_explained()
