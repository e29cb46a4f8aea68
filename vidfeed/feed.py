"""
フィードの状態管理

FeedController is the only owner of the feed state. Every user or player
event goes through one of its methods, which run to completion and leave
the history log, the play queue and the preload tracker consistent.
"""

import logging
import random

from .errors import NetworkError, NotFoundError
from .history import HistoryLog
from .models import FeedState, FeedStatus, LastViewed, PlayMode, ResourceState
from .playqueue import QueuePlaybackEngine
from .preload import PreloadManager

logger = logging.getLogger(__name__)

NO_EARLIER_VIDEO = 'これ以上前の動画はありません'


class FeedController:

    def __init__(self, gateway=None, queue_size=5, history_capacity=100, preload_window=3, rng=None):
        self.gateway = gateway
        self.rng = rng or random.Random()
        self.engine = QueuePlaybackEngine(queue_size, rng=self.rng)
        self.history = HistoryLog(history_capacity)
        self.preloader = PreloadManager(preload_window)
        self.state = FeedState()
        self.status = FeedStatus.IDLE
        self.error = None
        self.videos = []
        self.category = None
        self.query = None
        self.generation = 0

    # --- 読み込み ---

    def begin_load(self, category, query=None):
        self.generation += 1
        self.status = FeedStatus.LOADING
        self.error = None
        self.category = category
        self.query = query
        self.preloader.cancel()
        return self.generation

    def finish_load(self, generation, videos, remembered=None):
        if generation != self.generation:
            logger.info('Discarding stale video list (generation %s, latest %s)', generation, self.generation)
            return False
        self.videos = list(videos)
        self.history.reset()
        self.engine.reset()
        self.preloader.cancel()
        self.state.current_index = self._starting_index(remembered)
        self.state.is_playing = False
        self.status = FeedStatus.READY
        if self.videos:
            self.engine.mark_shown(self.state.current_index)
        logger.info('Loaded %d videos for %s, starting at %d', len(self.videos), self.category, self.state.current_index)
        return True

    def fail_load(self, generation, message):
        if generation != self.generation:
            return False
        self.status = FeedStatus.ERROR
        self.error = message
        logger.error(f"Video list failed to load: {message}")
        return True

    def load_category(self, category, remembered=None):
        generation = self.begin_load(category)
        try:
            videos = self.gateway.fetch_videos(category)
        except NetworkError as e:
            self.fail_load(generation, e.message)
            return False
        return self.finish_load(generation, videos, remembered)

    def load_search(self, query, category=None, remembered=None):
        generation = self.begin_load(category, query)
        try:
            videos = self.gateway.search(query, category)
        except NetworkError as e:
            self.fail_load(generation, e.message)
            return False
        return self.finish_load(generation, videos, remembered)

    def _starting_index(self, remembered):
        if not self.videos:
            return 0
        if remembered is not None:
            for i, v in enumerate(self.videos):
                if v.file_name == remembered.file_name and v.category == remembered.category:
                    return i
            for i, v in enumerate(self.videos):
                if v.id == remembered.id and v.title == remembered.title:
                    return i
        return self.rng.randrange(len(self.videos))

    # --- ナビゲーション ---

    @property
    def ready(self):
        return self.status is FeedStatus.READY and bool(self.videos)

    @property
    def mode(self):
        return self.engine.mode

    @property
    def current_index(self):
        return self.state.current_index

    @property
    def current_video(self):
        if not self.videos:
            return None
        return self.videos[self.state.current_index]

    def swipe_forward(self):
        if not self.ready:
            return None
        current = self.state.current_index
        index = self.engine.next_index(current, len(self.videos))
        self.history.record(current)
        self._show(index)
        return self.current_video

    def swipe_backward(self):
        """Step back through the watch history; ``None`` means nothing earlier."""
        if not self.ready:
            return None
        index = self.history.previous()
        if index is None:
            return None
        self._show(index)
        if self.engine.mode is PlayMode.RANDOMIZED:
            self.engine.rewind()
        return self.current_video

    def video_ended(self):
        if not self.state.is_autoplay_on:
            return None
        return self.swipe_forward()

    def toggle_mode(self):
        self.set_mode(self.engine.mode.toggled())
        return self.engine.mode

    def set_mode(self, mode):
        self.engine.set_mode(mode)
        self.state.mode = mode
        if self.ready:
            self.engine.mark_shown(self.state.current_index)

    def set_autoplay(self, on):
        self.state.is_autoplay_on = bool(on)

    def set_playing(self, playing):
        self.state.is_playing = bool(playing)

    def select_from_search(self, video_id=None, url=None, file_name=None):
        """Jump to a search hit in the loaded list, leaving history and queues alone."""
        try:
            index = self.find_index(video_id, url, file_name)
        except NotFoundError as e:
            logger.debug(f"Search selection ignored: {e}")
            return False
        self.state.current_index = index
        return True

    def find_index(self, video_id=None, url=None, file_name=None):
        for field, value in (('id', video_id), ('url', url), ('file_name', file_name)):
            if value is None:
                continue
            for i, v in enumerate(self.videos):
                if getattr(v, field) == value:
                    return i
        raise NotFoundError(f'video not loaded (id={video_id}, url={url}, file_name={file_name})')

    def replace_video(self, video):
        for i, v in enumerate(self.videos):
            if v.id == video.id and v.category == video.category:
                self.videos[i] = video
                return True
        return False

    def _show(self, index):
        self.state.current_index = index
        self.engine.mark_shown(index)

    # --- プリロード ---

    def preload_plan(self):
        if not self.ready:
            return []
        return self.preloader.plan(self.state.current_index, self.engine.mode, self.engine.snapshot(), len(self.videos))

    def pending_preloads(self):
        return self.preloader.request(self.preload_plan())

    def report_resource(self, index, state):
        if not isinstance(state, ResourceState):
            state = ResourceState(state)
        self.preloader.update(index, state)

    # --- 状態 ---

    def last_viewed(self):
        video = self.current_video
        if video is None:
            return None
        return LastViewed.of(video)

    def snapshot(self):
        video = self.current_video
        return {
            'status': self.status.value,
            'error': self.error,
            'category': self.category,
            'query': self.query,
            'count': len(self.videos),
            'index': self.state.current_index,
            'video': video.to_json() if video else None,
            'mode': self.engine.mode.value,
            'autoplay': self.state.is_autoplay_on,
            'playing': self.state.is_playing,
            'history_cursor': self.history.cursor,
            'history_length': len(self.history),
        }
