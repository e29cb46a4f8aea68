import logging
import sqlite3
import time
from threading import Lock
from pathlib import Path
from urllib.parse import quote

from .models import Video

BATCH_SIZE = 500


# --- DB ヘルパー ---

def get_db(db_path):
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path):
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_db(db_path)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("CREATE TABLE IF NOT EXISTS videos (id INTEGER PRIMARY KEY, category TEXT, file_name TEXT, title TEXT, likes INTEGER DEFAULT 0, modified INTEGER, UNIQUE(category, file_name))")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_videos_category ON videos(category)")
    conn.execute("CREATE TABLE IF NOT EXISTS danmaku (id INTEGER PRIMARY KEY, video_id INTEGER, content TEXT, time REAL, created INTEGER)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_danmaku_video ON danmaku(video_id)")
    conn.execute("CREATE TABLE IF NOT EXISTS comments (id INTEGER PRIMARY KEY, video_id INTEGER, content TEXT, created INTEGER)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_comments_video ON comments(video_id)")
    conn.commit()
    conn.close()


def video_url(category, file_name):
    return f"/{category}/{quote(file_name)}"


def row_to_video(row):
    return Video(
        id=row['id'],
        url=video_url(row['category'], row['file_name']),
        title=row['title'],
        likes=row['likes'] or 0,
        category=row['category'],
        file_name=row['file_name'],
    )


# --- スキャン ---

def sync_category(conn, media_root, category, extensions=('.mp4',)):
    """Bring the catalogue rows of one category in line with its directory."""
    folder = Path(media_root) / category
    seen = set()
    batch = []
    cur = conn.cursor()

    if folder.is_dir():
        for entry in folder.iterdir():
            try:
                if not entry.is_file() or entry.suffix.lower() not in extensions:
                    continue
                modified = int(entry.stat().st_mtime)
                seen.add(entry.name)
                batch.append((category, entry.name, entry.stem, modified, modified))
                if len(batch) >= BATCH_SIZE:
                    _upsert_files(cur, batch)
                    batch = []
            except PermissionError as pe:
                logging.warning(f"Permission denied: {entry} — {pe}")
            except FileNotFoundError:
                continue
        if batch:
            _upsert_files(cur, batch)
    else:
        logging.info(f"Directory {folder} does not exist")

    rows = cur.execute("SELECT id, file_name FROM videos WHERE category=?", (category,)).fetchall()
    removals = [(r['id'],) for r in rows if r['file_name'] not in seen]
    if removals:
        cur.executemany("DELETE FROM videos WHERE id=?", removals)
        cur.executemany("DELETE FROM danmaku WHERE video_id=?", removals)
        cur.executemany("DELETE FROM comments WHERE video_id=?", removals)
        logging.info(f"Removed {len(removals)} missing videos from {category}")
    conn.commit()
    return len(seen)


def _upsert_files(cur, batch):
    cur.executemany(
        "INSERT INTO videos (category, file_name, title, likes, modified) VALUES (?, ?, ?, 0, ?) "
        "ON CONFLICT(category, file_name) DO UPDATE SET modified=?",
        batch,
    )


# --- 問い合わせ ---

def list_videos(conn, categories):
    """Videos of the given categories, in category order, newest file first."""
    videos = []
    for category in categories:
        rows = conn.execute("SELECT * FROM videos WHERE category=? ORDER BY modified DESC, id ASC", (category,)).fetchall()
        videos.extend(row_to_video(r) for r in rows)
    return videos


def top_videos(conn, limit=20):
    rows = conn.execute("SELECT * FROM videos ORDER BY likes DESC, id ASC LIMIT ?", (limit,)).fetchall()
    return [row_to_video(r) for r in rows]


def search_videos(conn, q, category=None):
    # % と _ は文字として検索する
    pattern = '%' + q.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_') + '%'
    where_parts = ["(title LIKE ? ESCAPE '\\' OR file_name LIKE ? ESCAPE '\\')"]
    params = [pattern, pattern]
    if category:
        where_parts.append("category = ?")
        params.append(category)
    query = f"SELECT * FROM videos WHERE {' AND '.join(where_parts)} ORDER BY likes DESC, id ASC"
    return [row_to_video(r) for r in conn.execute(query, params).fetchall()]


def get_video(conn, vid):
    row = conn.execute("SELECT * FROM videos WHERE id=?", (vid,)).fetchone()
    return row_to_video(row) if row else None


def change_likes(conn, vid, delta):
    cur = conn.cursor()
    cur.execute("UPDATE videos SET likes = MAX(0, likes + ?) WHERE id=?", (delta, vid))
    if cur.rowcount == 0:
        return None
    conn.commit()
    return conn.execute("SELECT likes FROM videos WHERE id=?", (vid,)).fetchone()['likes']


def set_title(conn, vid, title):
    cur = conn.cursor()
    cur.execute("UPDATE videos SET title=? WHERE id=?", (title, vid))
    conn.commit()
    return cur.rowcount > 0


def rename_file(conn, media_root, vid, file_name):
    """
    Rename the file behind a video and keep its row (likes, captions, comments).

    Returns the updated Video, None when the id is unknown. Raises
    FileExistsError when the target name is taken.
    """
    video = get_video(conn, vid)
    if video is None:
        return None
    if file_name == video.file_name:
        return video
    folder = Path(media_root) / video.category
    target = folder / file_name
    if target.exists():
        raise FileExistsError(str(target))
    source = folder / video.file_name
    if source.exists():
        source.rename(target)
    conn.execute("UPDATE videos SET file_name=? WHERE id=?", (file_name, vid))
    conn.commit()
    return get_video(conn, vid)


def list_danmaku(conn, vid):
    rows = conn.execute("SELECT id, video_id, content, time FROM danmaku WHERE video_id=? ORDER BY time ASC, id ASC", (vid,)).fetchall()
    return [dict(r) for r in rows]


def add_danmaku(conn, vid, content, at):
    cur = conn.cursor()
    cur.execute("INSERT INTO danmaku (video_id, content, time, created) VALUES (?, ?, ?, ?)", (vid, content, at, int(time.time())))
    conn.commit()
    return {'id': cur.lastrowid, 'video_id': vid, 'content': content, 'time': at}


def list_comments(conn, vid):
    rows = conn.execute("SELECT id, video_id, content, created FROM comments WHERE video_id=? ORDER BY created ASC, id ASC", (vid,)).fetchall()
    return [dict(r) for r in rows]


def add_comment(conn, vid, content):
    cur = conn.cursor()
    cur.execute("INSERT INTO comments (video_id, content, created) VALUES (?, ?, ?)", (vid, content, int(time.time())))
    conn.commit()
    return cur.lastrowid


class ListingCache:
    """Video lists keyed by category, each kept for ``ttl`` seconds."""

    def __init__(self, ttl=300):
        self.ttl = ttl
        self._entries = {}
        self._lock = Lock()

    def get(self, key):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires, value = entry
            if expires < time.monotonic():
                del self._entries[key]
                return None
            return value

    def set(self, key, value):
        with self._lock:
            self._entries[key] = (time.monotonic() + self.ttl, value)

    def invalidate(self):
        with self._lock:
            self._entries.clear()


class LibraryGateway:
    """Catalogue gateway that reads the sqlite catalogue in-process."""

    def __init__(self, db_path, media_root, categories, cache=None):
        self.db_path = db_path
        self.media_root = media_root
        self.categories = list(categories)
        self.cache = cache

    def resolve(self, category):
        if not category or category == 'all':
            return self.categories
        if category not in self.categories:
            raise KeyError(category)
        return [category]

    def fetch_videos(self, category=None):
        key = category or 'all'
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return list(cached)
        categories = self.resolve(category)
        conn = get_db(self.db_path)
        try:
            for c in categories:
                sync_category(conn, self.media_root, c)
            videos = list_videos(conn, categories)
        finally:
            conn.close()
        if self.cache is not None:
            self.cache.set(key, videos)
        return list(videos)

    def search(self, q, category=None):
        conn = get_db(self.db_path)
        try:
            return search_videos(conn, q, None if category in (None, '', 'all') else category)
        finally:
            conn.close()
