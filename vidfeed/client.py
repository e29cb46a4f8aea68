import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import requests

from .errors import NetworkError
from .models import ResourceState, Video

logger = logging.getLogger(__name__)

HEADERS = {
    'User-Agent': 'vidfeed-client/0.3',
    'Accept': 'application/json',
}


class ApiClient:
    """Thin wrapper around a requests session pointed at a vidfeed server."""

    def __init__(self, base_url, session=None, timeout=6):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout

    def media_url(self, video):
        return f"{self.base_url}{video.url}"

    def request(self, method, path, **kwargs):
        url = f"{self.base_url}{path}"
        kwargs.setdefault('timeout', self.timeout)
        kwargs.setdefault('headers', HEADERS)
        try:
            r = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise NetworkError(str(e)) from e
        if r.status_code >= 400:
            try:
                message = r.json().get('error') or r.reason
            except ValueError:
                message = r.reason
            raise NetworkError(f"{method} {path}: {r.status_code} {message}", status=r.status_code)
        try:
            return r.json()
        except ValueError as e:
            raise NetworkError(f"{method} {path}: invalid JSON response") from e


class VideoCatalogGateway(ApiClient):
    """Fetches video lists for a category or a search query."""

    def fetch_videos(self, category=None):
        if not category or category == 'all':
            data = self.request('GET', '/api/videos')
        else:
            data = self.request('GET', f"/api/videos/{category}")
        return [Video.from_json(v) for v in data]

    def fetch_top(self):
        return [Video.from_json(v) for v in self.request('GET', '/api/videos/top20')]

    def search(self, q, category=None):
        params = {'q': q}
        if category and category != 'all':
            params['category'] = category
        return [Video.from_json(v) for v in self.request('GET', '/api/search', params=params)]

    def categories(self):
        return self.request('GET', '/api/categories')


class VideoActions(ApiClient):
    """Likes, edits, captions and comments for single videos."""

    def like(self, video_id):
        return self.request('POST', f"/api/videos/{video_id}/like")['like_count']

    def unlike(self, video_id):
        return self.request('POST', f"/api/videos/{video_id}/unlike")['like_count']

    def set_title(self, video_id, title):
        return self.request('POST', f"/api/videos/{video_id}/title", json={'title': title}).get('success', False)

    def set_file_name(self, video_id, file_name):
        return self.request('POST', f"/api/videos/{video_id}/file_name", json={'file_name': file_name}).get('success', False)

    def danmaku(self, video_id):
        return self.request('GET', '/api/danmaku', params={'videoId': video_id})

    def send_danmaku(self, video_id, content, at):
        return self.request('POST', '/api/danmaku', json={'videoId': video_id, 'content': content, 'time': at})

    def comments(self, video_id):
        return self.request('GET', f"/api/videos/{video_id}/comment").get('comments', [])

    def add_comment(self, video_id, content):
        return self.request('POST', f"/api/videos/{video_id}/comment", json={'content': content}).get('success', False)


class Warmer:
    """
    Fetches the first bytes of upcoming videos in the background.

    Finished fetches are collected with ``poll`` on the caller's thread, so
    the feed state is only ever touched from there.
    """

    def __init__(self, client, warm_bytes=1000000, workers=2, session_factory=requests.Session):
        self.client = client
        self.warm_bytes = warm_bytes
        self.session_factory = session_factory
        self.local = threading.local()
        self.executor = ThreadPoolExecutor(max_workers=workers)
        self.pending = {}

    def warm(self, index, video):
        if index in self.pending:
            return
        self.pending[index] = self.executor.submit(self._fetch, self.client.media_url(video))

    def _session(self):
        # ワーカースレッドごとに専用のセッション
        session = getattr(self.local, 'session', None)
        if session is None:
            session = self.local.session = self.session_factory()
        return session

    def _fetch(self, url):
        headers = {'Range': f"bytes=0-{self.warm_bytes - 1}"}
        r = self._session().get(url, headers=headers, timeout=self.client.timeout, stream=True)
        try:
            r.raise_for_status()
            received = 0
            for chunk in r.iter_content(chunk_size=65536):
                received += len(chunk)
                if received >= self.warm_bytes:
                    break
            return min(received, self.warm_bytes)
        finally:
            r.close()

    def poll(self):
        done = []
        for index, future in list(self.pending.items()):
            if not future.done():
                continue
            del self.pending[index]
            try:
                future.result()
                done.append((index, ResourceState.READY))
            except requests.RequestException as e:
                logger.debug(f"Warm request for {index} failed: {e}")
                done.append((index, ResourceState.FAILED))
        return done

    def cancel(self):
        for future in self.pending.values():
            future.cancel()
        self.pending.clear()

    def close(self):
        self.cancel()
        self.executor.shutdown(wait=False)
