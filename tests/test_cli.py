"""Tests for vidfeed.cli: command handling of the terminal feed."""

import pytest

from vidfeed.cli import TerminalFeed, build_parser
from vidfeed.errors import NetworkError
from vidfeed.feed import NO_EARLIER_VIDEO
from vidfeed.models import PlayMode

from conftest import FakeGateway, make_videos


class FakeActions:

    def __init__(self):
        self.likes = {}
        self.fail = False
        self.comments_by_id = {}

    def like(self, video_id):
        if self.fail:
            raise NetworkError('offline')
        self.likes[video_id] = self.likes.get(video_id, 0) + 1
        return self.likes[video_id]

    def unlike(self, video_id):
        self.likes[video_id] = max(0, self.likes.get(video_id, 0) - 1)
        return self.likes[video_id]

    def add_comment(self, video_id, content):
        self.comments_by_id.setdefault(video_id, []).append({'content': content})
        return True

    def comments(self, video_id):
        return self.comments_by_id.get(video_id, [])


class FakeWarmer:

    def __init__(self):
        self.warmed = []

    def warm(self, index, video):
        self.warmed.append(index)

    def poll(self):
        return []

    def cancel(self):
        pass

    def close(self):
        pass


@pytest.fixture
def term(tmp_path):
    lines = []
    t = TerminalFeed('http://feed.local:3001', state_path=tmp_path / 'client.json', out=lines.append)
    t.gateway = FakeGateway({'videos1': make_videos(6)})
    t.controller.gateway = t.gateway
    t.gateway.media_url = lambda v: 'http://feed.local:3001' + v.url
    t.actions = FakeActions()
    t.warmer = FakeWarmer()
    t.lines = lines
    return t


def test_load_shows_video_and_preloads(term):
    term.load('videos1')
    assert term.lines[0].startswith(f'[{term.controller.current_index + 1}/6]')
    assert len(term.warmer.warmed) == 3
    assert term.state.last_viewed.file_name == term.controller.current_video.file_name


def test_resume_from_state_file(term, tmp_path):
    term.load('videos1')
    term.handle('n')
    expected = term.controller.current_index
    again = TerminalFeed('http://feed.local:3001', state_path=tmp_path / 'client.json', out=lambda s: None)
    again.gateway = term.gateway
    again.controller.gateway = term.gateway
    again.gateway.media_url = term.gateway.media_url
    again.warmer = FakeWarmer()
    again.load('videos1')
    assert again.controller.current_index == expected


def test_previous_without_history(term):
    term.load('videos1')
    term.handle('p')
    assert term.lines[-1] == NO_EARLIER_VIDEO


def test_mode_is_persisted(term):
    term.load('videos1')
    term.handle('m')
    assert term.controller.mode is PlayMode.RANDOMIZED
    assert term.state.mode is PlayMode.RANDOMIZED


def test_like_updates_loaded_video(term):
    term.load('videos1')
    vid = term.controller.current_video.id
    term.handle('l')
    assert term.controller.current_video.likes == 1
    assert term.actions.likes[vid] == 1


def test_like_failure_leaves_state(term):
    term.load('videos1')
    before = term.controller.current_video.likes
    term.actions.fail = True
    term.handle('l')
    assert term.controller.current_video.likes == before
    assert 'offline' in term.lines[-1]


def test_search_and_select(term):
    term.load('videos1')
    term.handle('s clip4')
    term.handle('g 0')
    assert term.controller.current_video.title == 'clip4'


def test_unbalanced_quote_in_comment(term):
    term.load('videos1')
    assert term.handle("c it's great") is True
    assert term.lines[-1] == "💬 it's great"


def test_unbalanced_quote_in_search(term):
    term.load('videos1')
    assert term.handle("s don't") is True
    assert term.lines[-1] == '見つかりませんでした'


def test_quit(term):
    assert term.handle('q') is False


def test_parser():
    args = build_parser().parse_args(['watch', '--category', 'videos2'])
    assert args.command == 'watch'
    assert args.category == 'videos2'
    args = build_parser().parse_args(['serve', '--port', '8000', '--no-browser'])
    assert args.port == 8000 and args.no_browser
