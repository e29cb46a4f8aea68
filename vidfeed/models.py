from dataclasses import dataclass, asdict, replace
from enum import Enum


class PlayMode(Enum):
    SEQUENTIAL = 'sequential'
    RANDOMIZED = 'randomized'

    def toggled(self):
        if self is PlayMode.SEQUENTIAL:
            return PlayMode.RANDOMIZED
        return PlayMode.SEQUENTIAL


class FeedStatus(Enum):
    IDLE = 'idle'
    LOADING = 'loading'
    READY = 'ready'
    ERROR = 'error'


class ResourceState(Enum):
    NOT_REQUESTED = 'not_requested'
    LOADING = 'loading'
    READY = 'ready'
    FAILED = 'failed'


@dataclass(frozen=True)
class Video:
    """One catalogue entry as served by ``/api/videos``."""

    id: int
    url: str
    title: str
    likes: int
    category: str
    file_name: str

    @classmethod
    def from_json(cls, data):
        return cls(
            id=int(data['id']),
            url=data['url'],
            title=data.get('title', ''),
            likes=max(0, int(data.get('likes') or 0)),
            category=data.get('category', ''),
            file_name=data.get('file_name', ''),
        )

    def to_json(self):
        return asdict(self)

    def with_likes(self, likes):
        return replace(self, likes=max(0, int(likes)))


@dataclass(frozen=True)
class LastViewed:
    """Identity of the last watched video, kept across reloads."""

    id: int
    file_name: str
    title: str
    category: str

    @classmethod
    def of(cls, video):
        return cls(video.id, video.file_name, video.title, video.category)

    @classmethod
    def from_json(cls, data):
        if not data:
            return None
        try:
            return cls(int(data.get('id')), data.get('file_name') or '', data.get('title') or '', data.get('category') or '')
        except (TypeError, ValueError):
            return None

    def to_json(self):
        return asdict(self)


@dataclass
class FeedState:
    current_index: int = 0
    mode: PlayMode = PlayMode.SEQUENTIAL
    is_playing: bool = False
    is_autoplay_on: bool = False
