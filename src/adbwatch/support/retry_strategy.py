"""
Retry policies expressed as tagged outcomes.

A workflow that tried an operation asks its strategy what to do next, passing the number of
retries made so far. The strategy answers with RetryAfter(delay) or GiveUp(reason). A workflow
that succeeded reports Success. Keeping the decision separate from the loop that acts on it
lets the policy be tested in isolation.
"""
from adbwatch.support.mixins import ValueObjectMixin


class Outcome(ValueObjectMixin):
    """ The result of one attempt of a retried operation. """


class Success(Outcome):
    def __init__(self, value=None):
        self.value = value


class RetryAfter(Outcome):
    def __init__(self, delay):
        """
        :param delay: seconds to wait before the next attempt
        """
        self.delay = delay


class GiveUp(Outcome):
    def __init__(self, reason=None):
        self.reason = reason


class RetryStrategy:
    """ Never retries. """
    max_retries = 0

    def __call__(self, retry_count, reason=None) -> Outcome:
        return GiveUp(reason)


class FixedRetryStrategy(RetryStrategy):
    """
    Retries after the same delay each time, up to max_retries times.
    """

    def __init__(self, delay, max_retries):
        self.delay = delay
        self.max_retries = max_retries

    def _delay(self, retry_count):
        return self.delay

    def __call__(self, retry_count, reason=None) -> Outcome:
        """
        :param retry_count: the number of retries already made. The first attempt is not a retry.
        :param reason: why the last attempt failed, carried through to GiveUp.
        """
        if retry_count < self.max_retries:
            return RetryAfter(self._delay(retry_count))
        return GiveUp(reason)


class BackoffRetryStrategy(FixedRetryStrategy):
    """
    Doubles the delay on each retry, starting from base and never exceeding cap.

    >>> s = BackoffRetryStrategy(1, 8, 3)
    >>> [s(n) for n in range(4)]
    [RetryAfter(delay=1), RetryAfter(delay=2), RetryAfter(delay=4), GiveUp(reason=None)]
    """

    def __init__(self, base, cap, max_retries):
        super().__init__(base, max_retries)
        self.cap = cap

    def _delay(self, retry_count):
        return min(self.delay * 2 ** retry_count, self.cap)
