import contextlib
import logging
import threading

from joblib import Parallel, delayed


logger = logging.getLogger(__name__)


class WorkerBatch(object):
    """ Named group of independent tasks joined synchronously.

    Tasks must not share mutable state, each one should touch only its own
    profile. A batch is run at most once.
    """
    def __init__(self, name, num_workers):
        self.name = name
        self.num_workers = num_workers
        self.tasks = []
        self.finished = False

    def add(self, func, *args, **kwargs):
        if self.finished:
            raise RuntimeError('batch {} has already been run'.format(self.name))
        self.tasks.append((func, args, kwargs))

    def run(self):
        """ Run all tasks and wait for them to complete

        Returns:
            list: results in the order tasks were added

        The first task failure is raised once all tasks have been joined.
        """

        if self.finished:
            raise RuntimeError('batch {} has already been run'.format(self.name))
        self.finished = True

        if len(self.tasks) == 0:
            return []

        n_jobs = min(self.num_workers, len(self.tasks))

        logger.debug('running batch {} with {} tasks on {} workers'.format(
            self.name, len(self.tasks), n_jobs))

        results = Parallel(n_jobs=n_jobs, backend='threading')(
            delayed(func)(*args, **kwargs) for func, args, kwargs in self.tasks)

        logger.debug('finished batch {}'.format(self.name))

        return results


class WorkerPool(object):
    """ Fixed budget of worker threads shared by one-shot batches.

    Args:
        max_workers (int): maximum number of concurrent tasks

    """
    def __init__(self, max_workers=1):
        if max_workers < 1:
            raise ValueError('max_workers must be at least 1, got {}'.format(max_workers))
        self.max_workers = max_workers
        self._lock = threading.Lock()
        self._open_batch = None

    @contextlib.contextmanager
    def batch(self, name):
        """ Create a batch, destroyed when the context exits

        Only one batch may be open at a time.
        """
        with self._lock:
            if self._open_batch is not None:
                raise RuntimeError('cannot open batch {} while batch {} is open'.format(
                    name, self._open_batch.name))
            self._open_batch = WorkerBatch(name, self.max_workers)

        try:
            yield self._open_batch
        finally:
            with self._lock:
                self._open_batch = None

    def run_batch(self, name, tasks):
        """ Run a list of (func, args) tasks as one batch
        """
        with self.batch(name) as batch:
            for func, args in tasks:
                batch.add(func, *args)
            return batch.run()
