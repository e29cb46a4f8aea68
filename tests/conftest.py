import os
import random

import pytest

from vidfeed.errors import NetworkError
from vidfeed.models import Video


def make_videos(count, category='videos1'):
    return [
        Video(id=i + 1, url=f'/{category}/clip{i}.mp4', title=f'clip{i}', likes=i, category=category, file_name=f'clip{i}.mp4')
        for i in range(count)
    ]


class FakeGateway:
    """In-memory catalogue keyed by category."""

    def __init__(self, catalogue=None):
        self.catalogue = catalogue or {}
        self.fail = None
        self.calls = []

    def fetch_videos(self, category=None):
        self.calls.append(category)
        if self.fail:
            raise NetworkError(self.fail)
        return list(self.catalogue.get(category, []))

    def search(self, q, category=None):
        self.calls.append(('search', q, category))
        if self.fail:
            raise NetworkError(self.fail)
        hits = [v for vs in self.catalogue.values() for v in vs if q in v.title]
        return sorted(hits, key=lambda v: -v.likes)


@pytest.fixture
def gateway():
    return FakeGateway({'videos1': make_videos(10, 'videos1'), 'videos2': make_videos(3, 'videos2')})


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def media_root(tmp_path):
    root = tmp_path / 'media'
    for category, names in {'videos': ['a.mp4', 'b.mp4'], 'videos1': ['one.mp4', 'two.mp4', 'three.mp4'], 'videos2': []}.items():
        folder = root / category
        folder.mkdir(parents=True)
        for n, name in enumerate(names):
            p = folder / name
            p.write_bytes(bytes(range(256)) * 8)
            os.utime(p, (1000 + n, 1000 + n))
    (root / 'videos' / 'notes.txt').write_text('not a video')
    return root


@pytest.fixture
def client(media_root, tmp_path):
    from vidfeed import server
    server.app.config['TESTING'] = True
    server.configure(media_root=media_root, db_path=tmp_path / 'videos.db', categories=['videos', 'videos1', 'videos2'])
    with server.app.test_client() as c:
        yield c
