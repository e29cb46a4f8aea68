import logging

from .models import PlayMode, ResourceState
from .playqueue import QueueState

logger = logging.getLogger(__name__)


def resources_to_warm(current, mode, queue_state, count, window=3):
    """Indices worth fetching ahead of time, nearest first."""
    if count < 2:
        return []
    if queue_state is None:
        queue_state = QueueState()

    if mode is PlayMode.SEQUENTIAL:
        candidates = [(current + step) % count for step in range(1, window + 1)]
    else:
        primary = list(queue_state.primary)
        start = queue_state.cursor + 1
        candidates = primary[start:start + 2]
        # primary の終わりが近い → secondary の先頭も温める
        if start + 2 >= len(primary):
            candidates.extend(queue_state.secondary[:1])

    order = []
    for index in candidates:
        if index != current and 0 <= index < count and index not in order:
            order.append(index)
    return order


class PreloadManager:
    """Tracks the fetch state of warmed resources for one loaded list."""

    def __init__(self, window=3):
        self.window = window
        self.states = {}

    def plan(self, current, mode, queue_state, count):
        return resources_to_warm(current, mode, queue_state, count, self.window)

    def state_of(self, index):
        return self.states.get(index, ResourceState.NOT_REQUESTED)

    def request(self, indices):
        """Mark the indices that still need a fetch as loading and return them."""
        # 計画から外れた読み込み中のものは取り消し扱い
        for index in [i for i, s in self.states.items() if s is ResourceState.LOADING and i not in indices]:
            del self.states[index]
        wanted = []
        for index in indices:
            if self.state_of(index) in (ResourceState.NOT_REQUESTED, ResourceState.FAILED):
                self.states[index] = ResourceState.LOADING
                wanted.append(index)
        return wanted

    def update(self, index, state):
        if state is ResourceState.FAILED:
            logger.debug('Preload of index %s failed, will fetch on demand', index)
        self.states[index] = state

    def cancel(self):
        self.states.clear()
