import unittest
import numpy as np
import pandas as pd

import ploidyfit.profile
import ploidyfit.segalg
import ploidyfit.simulations.simple


def create_profile(ratios, window_size=1000, ploidy=2):
    """ Profile with a given ratio for each window, keyed by chromosome
    """

    counts = []
    for chromosome, ratio in ratios.items():
        counts.append(pd.DataFrame({
            'chromosome': chromosome,
            'start': np.arange(len(ratio)) * window_size,
            'readcount': 100.,
        }))

    profile = ploidyfit.profile.CopyNumberProfile('test')
    profile.set_window_counts(pd.concat(counts, ignore_index=True), window_size=window_size)
    profile.set_ploidy(ploidy)
    profile.windows['ratio'] = np.concatenate([np.asarray(a, dtype=float) for a in ratios.values()])

    return profile


class profile_unittest(unittest.TestCase):


    def test_set_window_counts(self):

        counts = pd.DataFrame({
            'chromosome': ['2', '1', '1', '10'],
            'start': [0, 5000, 0, 0],
            'readcount': [10, 20, 30, 40],
        })

        profile = ploidyfit.profile.CopyNumberProfile('test')
        profile.set_window_counts(counts)

        self.assertEqual(profile.window_size, 5000)
        self.assertEqual(list(profile.windows['chromosome']), ['1', '1', '2', '10'])
        self.assertEqual(list(profile.windows['end']), [5000, 10000, 5000, 5000])
        self.assertTrue((profile.windows['segment'] == -1).all())


    def test_calculate_ratio_mismatch(self):

        sample = create_profile({'1': np.ones(10)})
        control = create_profile({'1': np.ones(12)})

        with self.assertRaises(ValueError):
            sample.calculate_ratio(control, 1, 0)


    def test_calculate_ratio_using_gc_missing(self):

        profile = create_profile({'1': np.ones(10)})

        with self.assertRaises(ValueError):
            profile.calculate_ratio_using_gc(None, 1, 0.35, 0.55)


    def test_calculate_ratio_using_gc(self):

        random_state = np.random.RandomState(2014)

        windows = ploidyfit.simulations.simple.create_windows(num_chromosomes=2)
        gc_profile = ploidyfit.simulations.simple.simulate_gc(windows, random_state)
        copy_number = ploidyfit.simulations.simple.simulate_copy_number(windows, 2)
        counts = ploidyfit.simulations.simple.simulate_counts(
            windows, copy_number, random_state, depth=1000., gc=gc_profile['gc'].values)

        profile = ploidyfit.profile.CopyNumberProfile('test')
        profile.set_window_counts(counts)
        profile.set_gc_profile(gc_profile)
        profile.calculate_ratio_using_gc(None, 1, 0.35, 0.55)

        ratio = profile.windows['ratio']

        self.assertAlmostEqual(ratio.median(), 1.)
        self.assertLess(ratio.std(), 0.1)
        self.assertLess(abs(np.corrcoef(ratio.values, gc_profile['gc'].values)[0, 1]), 0.2)


    def test_recalculate_ratio(self):

        profile = create_profile({'1': [1., 1.35, 0.65, 0.1]})
        profile.recalculate_ratio(0.3)

        np.testing.assert_array_almost_equal(profile.windows['ratio'].values, [1., 1.5, 0.5, 0.])

        with self.assertRaises(ValueError):
            profile.recalculate_ratio(1.)


    def test_segmentation_and_calls(self):

        profile = create_profile({'1': [1.] * 10 + [np.nan] * 3 + [1.5] * 10})

        profile.calculate_breakpoints(0.8, ploidyfit.segalg.UNKNOWN_TO_RIGHT)
        profile.calculate_copy_number_medians(1)
        profile.calculate_copy_number_probs(ploidyfit.segalg.UNKNOWN_TO_RIGHT)

        windows = profile.windows

        self.assertEqual(windows.loc[windows['segment'] >= 0, 'segment'].nunique(), 2)
        self.assertTrue((windows['segment'].values[10:13] == -1).all())

        np.testing.assert_array_equal(windows['copy_number'].values[:10], 2)
        np.testing.assert_array_equal(windows['copy_number'].values[10:], 3)
        self.assertTrue(windows.loc[windows['segment'] >= 0, 'explained'].all())

        cnvs = profile.get_cnvs()

        self.assertEqual(cnvs.shape[0], 1)
        self.assertEqual(cnvs['start'].iloc[0], 10000)
        self.assertEqual(cnvs['end'].iloc[0], 23000)
        self.assertEqual(cnvs['status'].iloc[0], 'gain')


    def test_unknown_run_breakpoint_types(self):

        expected = {
            ploidyfit.segalg.UNKNOWN_TO_LONGER: 2.,
            ploidyfit.segalg.NORMAL_LEVEL: 2.,
        }

        for breakpoint_type, copy_number in expected.items():
            profile = create_profile({'1': [1.] * 10 + [np.nan] * 3 + [1.5] * 10})
            profile.calculate_breakpoints(0.8, breakpoint_type)
            profile.calculate_copy_number_medians(1)
            profile.calculate_copy_number_probs(breakpoint_type)

            np.testing.assert_array_equal(profile.windows['copy_number'].values[10:13], copy_number)

        profile = create_profile({'1': [1.] * 10 + [np.nan] * 3 + [1.5] * 10})
        profile.calculate_breakpoints(0.8, ploidyfit.segalg.UNKNOWN_SEPARATE)
        profile.calculate_copy_number_medians(1)
        profile.calculate_copy_number_probs(ploidyfit.segalg.UNKNOWN_SEPARATE)

        self.assertTrue(profile.windows['copy_number'].iloc[10:13].isnull().all())

        profile = create_profile({'1': [1.] * 10 + [np.nan] * 3 + [1.5] * 10})
        profile.calculate_breakpoints(0.8, ploidyfit.segalg.UNKNOWN_TO_RIGHT)
        profile.calculate_copy_number_medians(1)
        profile.calculate_copy_number_probs(ploidyfit.segalg.UNKNOWN_TO_RIGHT, exome=True)

        self.assertTrue(profile.windows['copy_number'].iloc[10:13].isnull().all())


    def test_merge_short_segments(self):

        profile = create_profile({'1': [1.] * 10 + [2.] * 3 + [1.4] * 10})

        profile.calculate_breakpoints(0.8, ploidyfit.segalg.NORMAL_LEVEL)
        self.assertEqual(profile.windows['segment'].nunique(), 3)

        profile.calculate_copy_number_medians(5)

        windows = profile.windows
        self.assertEqual(windows['segment'].nunique(), 2)
        np.testing.assert_array_almost_equal(windows['median_ratio'].values[10:], 1.4)
        np.testing.assert_array_almost_equal(windows['median_ratio'].values[:10], 1.)


    def test_noisy_data(self):

        ratio = [1.] * 10 + [1.05] * 10

        profile = create_profile({'1': ratio})
        profile.calculate_breakpoints(0.8, ploidyfit.segalg.NORMAL_LEVEL)
        profile.calculate_copy_number_medians(1)
        self.assertEqual(profile.windows['segment'].nunique(), 2)

        profile = create_profile({'1': ratio})
        profile.calculate_breakpoints(0.8, ploidyfit.segalg.NORMAL_LEVEL)
        profile.calculate_copy_number_medians(1, noisy_data=True)
        self.assertEqual(profile.windows['segment'].nunique(), 1)


    def test_recalc_flanks(self):

        profile = create_profile({'1': [1.5] * 3 + [1.] * 20})

        profile.calculate_breakpoints(0.8, ploidyfit.segalg.NORMAL_LEVEL)
        profile.calculate_copy_number_medians(1)
        self.assertEqual(profile.windows['segment'].nunique(), 2)

        profile.recalc_flanks(5000, 3)

        self.assertEqual(profile.windows['segment'].nunique(), 1)
        np.testing.assert_array_almost_equal(profile.windows['median_ratio'].values, 1.)


    def test_recalc_flanks_long_segment(self):

        profile = create_profile({'1': [1.5] * 10 + [1.] * 20})

        profile.calculate_breakpoints(0.8, ploidyfit.segalg.NORMAL_LEVEL)
        profile.calculate_copy_number_medians(1)
        profile.recalc_flanks(5000, 3)

        self.assertEqual(profile.windows['segment'].nunique(), 2)


    def test_percentage_genome_explained(self):

        profile = create_profile({
            '1': [1.] * 10 + [1.25] * 10,
            '2': [1.] * 20,
        })

        profile.calculate_breakpoints(0.8, ploidyfit.segalg.NORMAL_LEVEL)
        profile.calculate_copy_number_medians(1)
        profile.calculate_copy_number_probs(ploidyfit.segalg.NORMAL_LEVEL)

        percent, unexplained_chromosomes = profile.percentage_genome_explained()

        self.assertAlmostEqual(percent, 75.)
        self.assertEqual(unexplained_chromosomes, 1)


    def test_set_all_normal(self):

        profile = create_profile({'1': [1., 1.5, np.nan]})
        profile.set_all_normal()

        np.testing.assert_array_equal(profile.windows['copy_number'].values, 2)
        self.assertEqual(profile.get_cnvs().shape[0], 0)


    def test_male_sex_chromosomes(self):

        profile = create_profile({'1': [1.] * 4, 'X': [0.5] * 4}, ploidy=2)
        profile.set_sex('XY')

        np.testing.assert_array_equal(profile.normal_copies(), [2] * 4 + [1] * 4)
        np.testing.assert_array_equal(profile.neutral_copy_numbers(), [2] * 4 + [1] * 4)


    def test_annotate_somatic(self):

        profile = create_profile({'1': [1.] * 10 + [1.5] * 10 + [1.] * 10 + [0.5] * 10})

        profile.calculate_breakpoints(0.8, ploidyfit.segalg.NORMAL_LEVEL)
        profile.calculate_copy_number_medians(1)
        profile.calculate_copy_number_probs(ploidyfit.segalg.NORMAL_LEVEL)

        germline = pd.DataFrame({
            'chromosome': ['1'],
            'start': [12000],
            'end': [14000],
            'copy_number': [3],
            'status': ['gain'],
        })

        profile.annotate_somatic(germline)
        cnvs = profile.get_cnvs()

        self.assertEqual(list(cnvs['status']), ['gain', 'loss'])
        self.assertEqual(list(cnvs['somatic']), [False, True])


    def test_copy(self):

        profile = create_profile({'1': [1.] * 10})
        profile_copy = profile.copy()
        profile_copy.windows['ratio'] = 2.
        profile_copy.set_ploidy(4)

        self.assertEqual(profile.ploidy, 2)
        np.testing.assert_array_equal(profile.windows['ratio'].values, 1.)


if __name__ == '__main__':
    unittest.main()
