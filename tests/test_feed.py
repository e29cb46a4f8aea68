"""Tests for vidfeed.feed: the FeedController event handlers."""

import pytest

from vidfeed.feed import FeedController
from vidfeed.models import FeedStatus, LastViewed, PlayMode, ResourceState

from conftest import make_videos


@pytest.fixture
def feed(gateway, rng):
    c = FeedController(gateway, rng=rng)
    c.load_category('videos1')
    return c


class TestLoading:

    def test_load_picks_index_in_range(self, feed):
        assert feed.status is FeedStatus.READY
        assert 0 <= feed.current_index < 10
        assert feed.current_video is feed.videos[feed.current_index]

    def test_remembered_video_is_resumed(self, gateway, rng):
        c = FeedController(gateway, rng=rng)
        remembered = LastViewed(id=7, file_name='clip6.mp4', title='clip6', category='videos1')
        c.load_category('videos1', remembered)
        assert c.current_index == 6

    def test_remembered_video_from_other_category_is_ignored(self, gateway):
        c = FeedController(gateway)
        remembered = LastViewed(id=99, file_name='clip6.mp4', title='gone', category='videos2')
        c.load_category('videos1', remembered)
        assert 0 <= c.current_index < 10

    def test_empty_list(self, gateway):
        c = FeedController(gateway)
        c.load_category('nothing')
        assert c.status is FeedStatus.READY
        assert c.current_index == 0
        assert c.current_video is None
        assert c.swipe_forward() is None
        assert c.swipe_backward() is None

    def test_network_error_then_retry(self, gateway):
        c = FeedController(gateway)
        gateway.fail = 'connection refused'
        assert c.load_category('videos1') is False
        assert c.status is FeedStatus.ERROR
        assert c.error == 'connection refused'
        assert c.swipe_forward() is None
        gateway.fail = None
        assert c.load_category('videos1') is True
        assert c.status is FeedStatus.READY

    def test_category_switch_recomputes_index(self, feed):
        feed.state.current_index = 9
        feed.swipe_forward()
        feed.load_category('videos2')
        assert len(feed.videos) == 3
        assert 0 <= feed.current_index < 3
        assert len(feed.history) == 0

    def test_stale_load_is_discarded(self, gateway):
        c = FeedController(gateway)
        first = c.begin_load('videos1')
        second = c.begin_load('videos2')
        assert c.finish_load(first, make_videos(10)) is False
        assert c.status is FeedStatus.LOADING
        assert c.finish_load(second, make_videos(3, 'videos2')) is True
        assert len(c.videos) == 3
        assert c.fail_load(first, 'late failure') is False
        assert c.status is FeedStatus.READY

    def test_search_load(self, gateway):
        c = FeedController(gateway)
        c.load_search('clip1')
        assert [v.title for v in c.videos][0] == 'clip1'
        assert c.query == 'clip1'


class TestNavigation:

    def test_forward_sequential_records_history(self, feed):
        start = feed.current_index
        feed.swipe_forward()
        assert feed.current_index == (start + 1) % 10
        assert feed.history.entries() == [start]

    def test_history_never_has_consecutive_duplicates(self, gateway):
        c = FeedController(gateway)
        c.load_category('videos2')
        c.set_mode(PlayMode.RANDOMIZED)
        for _ in range(50):
            c.swipe_forward()
        entries = c.history.entries()
        assert all(a != b for a, b in zip(entries, entries[1:]))

    def test_backward_replays_in_reverse_then_stops(self, feed):
        visited = []
        for _ in range(4):
            visited.append(feed.current_index)
            feed.swipe_forward()
        results = [feed.swipe_backward() for _ in range(5)]
        assert [v.id for v in results[:4]] == [feed.videos[i].id for i in reversed(visited)]
        assert results[4] is None

    def test_backward_on_fresh_feed(self, feed):
        start = feed.current_index
        assert feed.swipe_backward() is None
        assert feed.history.cursor == -1
        assert feed.current_index == start

    def test_backward_in_randomized_rewinds_queue(self, feed):
        feed.set_mode(PlayMode.RANDOMIZED)
        feed.swipe_forward()
        feed.swipe_forward()
        primary = list(feed.engine.primary)
        feed.swipe_backward()
        feed.swipe_forward()
        assert feed.engine.primary == primary
        assert feed.current_index == primary[0]

    def test_randomized_forward_marks_shown_as_played(self, feed):
        feed.set_mode(PlayMode.RANDOMIZED)
        assert feed.current_index in feed.engine.played
        for _ in range(3):
            feed.swipe_forward()
            assert feed.current_index in feed.engine.played

    def test_randomized_backward_marks_shown_as_played(self, feed):
        feed.set_mode(PlayMode.RANDOMIZED)
        feed.swipe_forward()
        feed.swipe_forward()
        feed.engine.played.clear()
        video = feed.swipe_backward()
        assert video is not None
        assert feed.engine.played == {feed.current_index}

    def test_sequential_does_not_track_played(self, feed):
        feed.swipe_forward()
        feed.swipe_backward()
        assert feed.engine.played == set()

    def test_video_ended_respects_autoplay(self, feed):
        start = feed.current_index
        assert feed.video_ended() is None
        assert feed.current_index == start
        feed.set_autoplay(True)
        assert feed.video_ended() is not None
        assert feed.current_index == (start + 1) % 10

    def test_toggle_mode_regenerates_queues(self, feed):
        assert feed.toggle_mode() is PlayMode.RANDOMIZED
        feed.swipe_forward()
        assert feed.engine.primary
        assert feed.toggle_mode() is PlayMode.SEQUENTIAL
        assert feed.engine.primary == []
        feed.toggle_mode()
        feed.swipe_forward()
        assert feed.engine.cursor == 0
        assert feed.current_index == feed.engine.primary[0]
        assert feed.state.mode is PlayMode.RANDOMIZED


class TestSelection:

    def test_select_by_id(self, feed):
        feed.swipe_forward()
        history = feed.history.entries()
        assert feed.select_from_search(video_id=4) is True
        assert feed.current_video.id == 4
        assert feed.history.entries() == history

    def test_select_falls_back_to_file_name(self, feed):
        assert feed.select_from_search(video_id=999, file_name='clip8.mp4') is True
        assert feed.current_index == 8

    def test_select_unknown_is_noop(self, feed):
        start = feed.current_index
        assert feed.select_from_search(video_id=999, url='/x.mp4') is False
        assert feed.current_index == start

    def test_replace_video(self, feed):
        updated = feed.videos[2].with_likes(500)
        assert feed.replace_video(updated) is True
        assert feed.videos[2].likes == 500


class TestPreload:

    def test_pending_preloads_sequential(self, feed):
        start = feed.current_index
        assert feed.pending_preloads() == [(start + k) % 10 for k in (1, 2, 3)]
        assert feed.pending_preloads() == []

    def test_report_resource(self, feed):
        indices = feed.pending_preloads()
        feed.report_resource(indices[0], 'failed')
        assert feed.pending_preloads() == [indices[0]]
        feed.report_resource(indices[0], ResourceState.READY)
        assert feed.preloader.state_of(indices[0]) is ResourceState.READY

    def test_moved_past_preload_is_fetched_again_later(self, feed):
        start = feed.current_index
        feed.pending_preloads()
        feed.swipe_forward()
        feed.swipe_forward()
        feed.swipe_forward()
        feed.swipe_forward()
        feed.pending_preloads()
        assert feed.preloader.state_of((start + 2) % 10) is ResourceState.NOT_REQUESTED
        assert feed.preload_plan() == [(start + k) % 10 for k in (5, 6, 7)]

    def test_snapshot(self, feed):
        snap = feed.snapshot()
        assert snap['status'] == 'ready'
        assert snap['count'] == 10
        assert snap['video']['id'] == feed.current_video.id
        assert snap['mode'] == 'sequential'
