import os
import shutil
import tempfile
import unittest
from unittest import mock
import numpy as np
import pandas as pd

import ploidyfit.config
import ploidyfit.contamination
import ploidyfit.ploidy
import ploidyfit.profile
import ploidyfit.scoring
import ploidyfit.segalg
import ploidyfit.simulations.simple
import ploidyfit.subclones
import ploidyfit.workers

from ploidyfit.ploidy import ScoreRecord


class FixedScoreSearch(ploidyfit.ploidy.PloidySearch):
    """ Search returning predefined scores for each ploidy
    """
    def __init__(self, ploidies, scores):
        self.params = {'ploidy': ploidies}
        self.records = []
        self.scores = scores
        self.trials = []

    def run_trial(self, ploidy):
        self.trials.append(ploidy)
        rss, percent_explained, unexplained_chromosomes = self.scores[ploidy]
        record = ScoreRecord(ploidy, rss, percent_explained, unexplained_chromosomes, None)
        return record, 'sample_{}'.format(ploidy), None


def create_records(ploidies, rss, percent_explained, unexplained_chromosomes):
    return [ScoreRecord(*a, contamination=None) for a in zip(ploidies, rss, percent_explained, unexplained_chromosomes)]


class select_best_ploidy_unittest(unittest.TestCase):


    def test_empty(self):

        with self.assertRaises(ValueError):
            ploidyfit.ploidy.select_best_ploidy([])


    def test_override_explained(self):

        records = create_records([2, 3, 4], [10., 12., 9.5], [70., 65., 74.], [2, 3, 3])

        chosen, best_by_rss, best_by_explained, overridden = ploidyfit.ploidy.select_best_ploidy(records)

        self.assertEqual(best_by_rss, 4)
        self.assertEqual(best_by_explained, 4)
        self.assertEqual(chosen, 2)
        self.assertTrue(overridden)


    def test_override_unexplained_chromosomes(self):

        records = create_records([2, 3, 4], [10., 12., 9.5], [60., 65., 90.], [1, 3, 3])

        chosen, best_by_rss, best_by_explained, overridden = ploidyfit.ploidy.select_best_ploidy(records)

        self.assertEqual(chosen, 2)
        self.assertTrue(overridden)


    def test_no_override(self):

        records = create_records([2, 3, 4], [10., 12., 9.5], [60., 65., 90.], [2, 3, 3])

        chosen, best_by_rss, best_by_explained, overridden = ploidyfit.ploidy.select_best_ploidy(records)

        self.assertEqual(chosen, 4)
        self.assertFalse(overridden)


    def test_no_override_without_diploid(self):

        records = create_records([3, 4], [12., 9.5], [65., 66.], [0, 0])

        chosen, best_by_rss, best_by_explained, overridden = ploidyfit.ploidy.select_best_ploidy(records)

        self.assertEqual(chosen, 4)
        self.assertFalse(overridden)


    def test_no_override_other_winner(self):

        records = create_records([2, 3, 4], [10., 8., 9.5], [70., 65., 70.], [0, 0, 0])

        chosen, best_by_rss, best_by_explained, overridden = ploidyfit.ploidy.select_best_ploidy(records)

        self.assertEqual(chosen, 3)
        self.assertFalse(overridden)


    def test_first_on_ties(self):

        records = create_records([3, 2], [5., 5.], [50., 50.], [0, 0])

        chosen, best_by_rss, best_by_explained, overridden = ploidyfit.ploidy.select_best_ploidy(records)

        self.assertEqual(chosen, 3)


    def test_override_property(self):

        random_state = np.random.RandomState(2014)

        for i in range(200):
            ploidies = list(random_state.permutation([2, 3, 4])[:random_state.randint(1, 4)])
            n = len(ploidies)
            records = create_records(
                ploidies,
                random_state.uniform(0, 10, size=n),
                random_state.uniform(0, 100, size=n),
                random_state.randint(0, 4, size=n))

            chosen, best_by_rss, best_by_explained, overridden = ploidyfit.ploidy.select_best_ploidy(records)

            self.assertIn(chosen, ploidies)

            expected_override = False
            if n > 1 and best_by_rss == 4 and 2 in ploidies:
                diploid = records[ploidies.index(2)]
                tetraploid = records[ploidies.index(4)]
                expected_override = (
                    (tetraploid.percent_explained - diploid.percent_explained) / 100. < 0.05 or
                    diploid.unexplained_chromosomes <= 1)

            self.assertEqual(overridden, expected_override)
            self.assertEqual(chosen, 2 if overridden else best_by_rss)


class ploidy_search_unittest(unittest.TestCase):


    def test_override_and_rerun(self):

        search = FixedScoreSearch([2, 3, 4], {
            2: (10., 70., 2),
            3: (12., 65., 3),
            4: (9.5, 74., 3),
        })

        result = search.search()

        self.assertEqual(result.ploidy, 2)
        self.assertEqual(result.best_by_rss, 4)
        self.assertTrue(result.overridden)
        self.assertTrue(result.rerun)
        self.assertEqual(search.trials, [2, 3, 4, 2])
        self.assertEqual([a.ploidy for a in result.records], [2, 3, 4])
        self.assertEqual(result.sample, 'sample_2')


    def test_pinned(self):

        search = FixedScoreSearch([2], {2: (10., 70., 2)})

        result = search.search()

        self.assertEqual(result.ploidy, 2)
        self.assertFalse(result.overridden)
        self.assertFalse(result.rerun)
        self.assertEqual(search.trials, [2])
        self.assertEqual(len(result.records), 1)


    def test_last_candidate_reused(self):

        search = FixedScoreSearch([2, 3, 4], {
            2: (10., 60., 3),
            3: (12., 65., 3),
            4: (9.5, 90., 3),
        })

        result = search.search()

        self.assertEqual(result.ploidy, 4)
        self.assertFalse(result.rerun)
        self.assertEqual(search.trials, [2, 3, 4])
        self.assertEqual(result.sample, 'sample_4')


    def test_empty(self):

        search = FixedScoreSearch([], {})

        with self.assertRaises(ValueError):
            search.search()


    def test_search_simulated(self):

        random_state = np.random.RandomState(2014)

        dataset = ploidyfit.simulations.simple.simulate_dataset(
            random_state, ploidy=2, events=[('2', 2000000, 6000000, 3), ('3', 0, 3000000, 1)])

        params = ploidyfit.config.resolve_params({'ploidy': [2, 3, 4]}, False)

        sample = ploidyfit.profile.CopyNumberProfile('sample', min_mappability=params['min_mappability'])
        sample.set_window_counts(dataset['sample'])
        sample.set_gc_profile(dataset['gc_profile'])

        search = ploidyfit.ploidy.PloidySearch(sample, None, params, ploidyfit.workers.WorkerPool(2))
        result = search.search()

        self.assertEqual([a.ploidy for a in result.records], [2, 3, 4])
        self.assertEqual(result.ploidy, 2)
        self.assertTrue(result.rerun)
        self.assertEqual(result.sample.ploidy, 2)
        self.assertIsNone(result.control)

        # Trials work on copies
        self.assertTrue(sample.windows['ratio'].isnull().all())

        called = (result.sample.windows['copy_number'] == dataset['copy_number']).mean()
        self.assertGreater(called, 0.9)


class ploidy_search_contamination_unittest(unittest.TestCase):


    def setUp(self):
        random_state = np.random.RandomState(2015)

        self.dataset = ploidyfit.simulations.simple.simulate_dataset(
            random_state, ploidy=2, contamination=0.3,
            events=[('1', 2000000, 6000000, 3), ('2', 1000000, 5000000, 1), ('3', 4000000, 9000000, 4)])

    def create_search(self, config):
        params = ploidyfit.config.resolve_params(config, False)

        sample = ploidyfit.profile.CopyNumberProfile('sample', min_mappability=params['min_mappability'])
        sample.set_window_counts(self.dataset['sample'])
        sample.set_gc_profile(self.dataset['gc_profile'])

        return ploidyfit.ploidy.PloidySearch(sample, None, params, ploidyfit.workers.WorkerPool(2))

    def test_known_contamination(self):

        search = self.create_search({'ploidy': [2, 3], 'contamination_adjustment': True, 'contamination': 30})

        with mock.patch('ploidyfit.ploidy.adjust_for_contamination') as adjust_for_contamination:
            result = search.search()

        adjust_for_contamination.assert_not_called()

        self.assertEqual(len(result.records), 2)
        for record in result.records:
            self.assertAlmostEqual(record.contamination, 0.3)

        self.assertEqual(result.sample.normal_contamination, 0.)


    def test_estimated_contamination(self):

        search = self.create_search({'ploidy': [2, 3], 'contamination_adjustment': True})

        with mock.patch('ploidyfit.ploidy.adjust_for_contamination',
                        wraps=ploidyfit.ploidy.adjust_for_contamination) as adjust_for_contamination:
            result = search.search()

        num_trials = len(result.records) + (1 if result.rerun else 0)
        self.assertEqual(adjust_for_contamination.call_count, num_trials)

        for record in result.records:
            self.assertIsNotNone(record.contamination)
            self.assertGreaterEqual(record.contamination, 0.)
            self.assertLessEqual(record.contamination, ploidyfit.contamination.MAX_CONTAMINATION)

        self.assertEqual(result.sample.normal_contamination, 0.)


    def test_contamination_adjustment_disabled(self):

        search = self.create_search({'ploidy': [2, 3]})

        with mock.patch('ploidyfit.ploidy.adjust_for_contamination') as adjust_for_contamination:
            result = search.search()

        adjust_for_contamination.assert_not_called()

        for record in result.records:
            self.assertIsNone(record.contamination)


class scoring_unittest(unittest.TestCase):


    def test_calculate_rss(self):

        profile = ploidyfit.profile.CopyNumberProfile('test')
        profile.set_window_counts(pd.DataFrame({
            'chromosome': '1',
            'start': [0, 1000, 2000, 3000],
            'readcount': 100.,
        }))
        profile.windows['ratio'] = [1., 1.1, 1.5, np.nan]
        profile.windows['copy_number'] = [2., 2., 3., 2.]

        self.assertAlmostEqual(ploidyfit.scoring.calculate_rss(profile, 2), 0.04)


class subclones_unittest(unittest.TestCase):


    def setUp(self):
        self.output_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.output_dir)

    def test_seek_subclones(self):

        profile = ploidyfit.profile.CopyNumberProfile('test')
        profile.set_window_counts(pd.DataFrame({
            'chromosome': '1',
            'start': np.arange(40) * 1000,
            'readcount': 100.,
        }))
        profile.windows['ratio'] = [1.] * 20 + [1.25] * 20

        profile.calculate_breakpoints(0.8, ploidyfit.segalg.NORMAL_LEVEL)
        profile.calculate_copy_number_medians(1)
        profile.calculate_copy_number_probs(ploidyfit.segalg.NORMAL_LEVEL)

        subclones = ploidyfit.subclones.find_subclones(profile, 2, 0.2)

        self.assertEqual(subclones.shape[0], 1)
        self.assertEqual(subclones['subclonal_copy_number'].iloc[0], 3)
        self.assertAlmostEqual(subclones['presence'].iloc[0], 0.5)

        self.assertEqual(ploidyfit.subclones.find_subclones(profile, 2, 0.6).shape[0], 0)

        ploidyfit.subclones.seek_subclones(profile, 2, self.output_dir, 0.2)

        self.assertTrue(os.path.exists(os.path.join(self.output_dir, 'test_subclones.txt')))


if __name__ == '__main__':
    unittest.main()
