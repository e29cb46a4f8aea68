import logging
import random
from dataclasses import dataclass

from .models import PlayMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueState:
    primary: tuple = ()
    secondary: tuple = ()
    cursor: int = 0


class QueuePlaybackEngine:
    """
    Decides which feed position comes next.

    In sequential mode this is just the following index. In randomized mode
    two look-ahead queues are kept: ``primary`` is being played through and
    ``secondary`` is promoted once primary runs out, so the upcoming few
    videos are always known in advance and can be preloaded.

    Indices shown during the current round are collected in ``played`` and
    excluded from new queues until too few candidates remain, at which point
    the round starts over and repeats are allowed again.
    """

    def __init__(self, queue_size=5, mode=PlayMode.SEQUENTIAL, rng=None):
        if queue_size < 1:
            raise ValueError('queue_size must be positive')
        self.queue_size = queue_size
        self.rng = rng or random.Random()
        self._mode = mode
        self.primary = []
        self.secondary = []
        self.cursor = 0
        self.played = set()

    @property
    def mode(self):
        return self._mode

    def set_mode(self, mode):
        if mode is self._mode:
            return
        self._mode = mode
        # 切り替え時はキューを作り直す
        self.reset()

    def reset(self):
        self.primary = []
        self.secondary = []
        self.cursor = 0
        self.played = set()

    def snapshot(self):
        return QueueState(tuple(self.primary), tuple(self.secondary), self.cursor)

    def mark_shown(self, index):
        if self._mode is PlayMode.RANDOMIZED:
            self.played.add(index)

    def rewind(self):
        """Restart the existing primary queue from its first entry."""
        if self.primary:
            self.cursor = -1

    def next_index(self, current, count):
        if count < 1:
            raise ValueError('next_index needs at least one video')
        if self._mode is PlayMode.SEQUENTIAL:
            return (current + 1) % count
        if count == 1:
            return 0

        if self.primary and max(self.primary + self.secondary) >= count:
            logger.debug('Queue refers past %d videos, rebuilding', count)
            self.primary = []
            self.secondary = []

        if not self.primary:
            self.primary = self.generate_queue(current, count, self.played)
            self.secondary = self.generate_queue(current, count, self.played | set(self.primary))
            self.cursor = 0
        elif self.cursor + 1 < len(self.primary):
            self.cursor += 1
        else:
            self.primary = self.secondary
            self.secondary = self.generate_queue(current, count, self.played | set(self.primary))
            self.cursor = 0
        return self.primary[self.cursor]

    def generate_queue(self, current, count, exclude=()):
        pool = [i for i in range(count) if i != current and i not in exclude]
        if len(pool) < self.queue_size:
            # 候補が足りない → ラウンドをやり直す
            self.played = {current}
            pool = [i for i in range(count) if i != current]

        if len(pool) >= self.queue_size:
            return self.rng.sample(pool, self.queue_size)
        queue = self.rng.sample(pool, len(pool))
        while len(queue) < self.queue_size:
            queue.append(self.rng.choice(pool))
        return queue
