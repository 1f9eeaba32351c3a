"""Bounded retry for repository timeouts."""

import functools
import logging
import time

from lak.jobs.errors import RepositoryTimeout, RepositoryUnavailable

logger = logging.getLogger(__name__)


def retry_on_timeout(method):
    """Retry a repository method once after ``self.retry_backoff`` seconds.

    Only RepositoryTimeout is retried. A second timeout surfaces as
    RepositoryUnavailable; every other error propagates untouched.
    """

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except RepositoryTimeout as e:
            logger.warning(
                f"{type(self).__name__}.{method.__name__} timed out, retrying in "
                f"{self.retry_backoff}s: {e.format(client_safe=False)}"
            )
        time.sleep(self.retry_backoff)
        try:
            return method(self, *args, **kwargs)
        except RepositoryTimeout as e:
            raise RepositoryUnavailable(
                "Storage is temporarily unavailable. Please try again later.",
                context=e.format(client_safe=False),
            ) from e

    return wrapper
