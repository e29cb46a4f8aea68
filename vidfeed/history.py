from collections import deque


class HistoryLog:
    """
    Bounded log of visited feed positions.

    ``cursor`` is -1 while the viewer sits on the live edge; otherwise it
    points at the entry currently being replayed. Only backward replay is
    supported, moving forward again always goes through the play queue.
    """

    def __init__(self, capacity=100):
        if capacity < 1:
            raise ValueError('capacity must be positive')
        self._log = deque(maxlen=capacity)
        self.cursor = -1

    def __len__(self):
        return len(self._log)

    @property
    def capacity(self):
        return self._log.maxlen

    def entries(self):
        return list(self._log)

    def record(self, index):
        if not self._log or self._log[-1] != index:
            self._log.append(index)
        self.cursor = -1

    def previous(self):
        if not self._log:
            return None
        if self.cursor == -1:
            self.cursor = len(self._log) - 1
        elif self.cursor > 0:
            self.cursor -= 1
        else:
            return None
        return self._log[self.cursor]

    def reset(self):
        self._log.clear()
        self.cursor = -1
