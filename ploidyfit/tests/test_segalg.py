import unittest
import numpy as np

import ploidyfit.segalg as segalg

np.random.seed(2014)


class segalg_unittest(unittest.TestCase):


    def random_non_overlapping(self, n=20, high=1000):

        start = np.sort(np.random.choice(high, size=n, replace=False))

        max_end = np.concatenate([start[1:], [high]])
        max_length = max_end - start

        end = start + 1 + (np.random.random(size=n) * (max_length - 1)).astype(int)

        segments = np.array([start, end]).T

        return segments


    def random_overlapping(self, n=100, l=10, high=1000):

        start = np.sort(np.random.randint(high, size=n))
        end = start + np.random.randint(1, l, size=n)

        segments = np.array([start, end]).T

        return segments


    def test_best_split_opt(self):

        for i in range(20):
            y = np.random.normal(size=np.random.randint(4, 50))
            min_size = np.random.randint(1, 3)

            unopt_split, unopt_gain = segalg.best_split_unopt(y, min_size=min_size)
            opt_split, opt_gain = segalg.best_split(y, min_size=min_size)

            self.assertEqual(unopt_split, opt_split)
            self.assertAlmostEqual(unopt_gain, opt_gain)


    def test_best_split_too_short(self):

        self.assertEqual(segalg.best_split(np.array([1.]))[0], None)
        self.assertEqual(segalg.best_split(np.array([1., 2., 3.]), min_size=2)[0], None)


    def test_binary_segmentation_constant(self):

        starts = segalg.binary_segmentation(np.ones(100), 0.8)

        self.assertEqual(starts, [0])


    def test_binary_segmentation_step(self):

        y = np.concatenate([np.ones(50), 1.5 * np.ones(50)])
        y += np.random.normal(scale=0.05, size=100)

        starts = segalg.binary_segmentation(y, 0.8)

        self.assertEqual(starts[0], 0)
        self.assertIn(50, starts)


    def test_binary_segmentation_threshold(self):

        y = np.concatenate([np.ones(30), 1.5 * np.ones(30), np.ones(30)])

        starts = segalg.binary_segmentation(y, 0.8)

        self.assertEqual(starts, [0, 30, 60])


    def test_find_runs(self):

        mask = np.array([False, True, True, False, True])

        runs = segalg.find_runs(mask)

        np.testing.assert_array_equal(runs, [[1, 3], [4, 5]])

        self.assertEqual(segalg.find_runs(np.zeros(4, dtype=bool)).shape, (0, 2))


    def test_overlapping_any(self):

        X = self.random_non_overlapping()
        Y = self.random_overlapping()

        result = segalg.overlapping_any(X, Y)

        expected = np.array([
            np.any((Y[:, 0] < end) & (Y[:, 1] > start))
            for start, end in X])

        np.testing.assert_array_equal(result, expected)


    def test_assign_unknown_run(self):

        left = (2, 10)
        right = (3, 5)

        self.assertEqual(segalg.assign_unknown_run(left, right, 4, segalg.UNKNOWN_TO_RIGHT, 2), 3)
        self.assertEqual(segalg.assign_unknown_run(left, right, 4, segalg.UNKNOWN_TO_LONGER, 2), 2)
        self.assertEqual(segalg.assign_unknown_run(right, left, 4, segalg.UNKNOWN_TO_LONGER, 2), 2)
        self.assertEqual(segalg.assign_unknown_run((4, 10), right, 4, segalg.NORMAL_LEVEL, 2), 4)
        self.assertEqual(segalg.assign_unknown_run((4, 1), (2, 1), 4, segalg.NORMAL_LEVEL, 2), 2)
        self.assertEqual(segalg.assign_unknown_run(left, right, 20, segalg.UNKNOWN_TO_LONGER_HALF, 2), 2)
        self.assertTrue(np.isnan(segalg.assign_unknown_run(left, right, 21, segalg.UNKNOWN_TO_LONGER_HALF, 2)))
        self.assertTrue(np.isnan(segalg.assign_unknown_run(left, right, 4, segalg.UNKNOWN_SEPARATE, 2)))
        self.assertTrue(np.isnan(segalg.assign_unknown_run(None, right, 4, segalg.UNKNOWN_TO_RIGHT, 2)))


if __name__ == '__main__':
    unittest.main()
