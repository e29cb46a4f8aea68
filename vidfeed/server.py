#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
ローカル動画フィード サーバー
スマホ・タブレットから縦スワイプで視聴
"""

from flask import Flask, render_template_string, jsonify, request, send_from_directory, session, abort
import os
import logging
import socket
import uuid
import webbrowser
from collections import OrderedDict
from pathlib import Path
from threading import Thread, Lock

from . import config
from .feed import FeedController, NO_EARLIER_VIDEO
from .library import (
    LibraryGateway, ListingCache, get_db as open_db, init_db, get_video, top_videos,
    search_videos, change_likes, set_title, rename_file, list_danmaku, add_danmaku,
    list_comments, add_comment,
)
from .models import LastViewed, PlayMode, ResourceState

app = Flask(__name__)
app.secret_key = config.SECRET_KEY
app.config.update(
    DB_PATH=config.DB_PATH,
    MEDIA_ROOT=config.MEDIA_ROOT,
    CATEGORIES=list(config.CATEGORIES),
)

listing_cache = ListingCache(config.LIST_CACHE_TTL)

# ブラウザごとのフィード
feeds = OrderedDict()
feeds_lock = Lock()


def configure(media_root=None, db_path=None, categories=None):
    if media_root is not None:
        app.config['MEDIA_ROOT'] = Path(media_root)
    if db_path is not None:
        app.config['DB_PATH'] = Path(db_path)
    if categories is not None:
        app.config['CATEGORIES'] = list(categories)
    init_db(app.config['DB_PATH'])
    listing_cache.invalidate()
    with feeds_lock:
        feeds.clear()
    logging.info(f"Serving {app.config['CATEGORIES']} from {app.config['MEDIA_ROOT']}")


def get_db():
    return open_db(app.config['DB_PATH'])


def gateway():
    return LibraryGateway(app.config['DB_PATH'], app.config['MEDIA_ROOT'], app.config['CATEGORIES'], listing_cache)


@app.before_request
def log_request():
    logging.info(f"{request.method} {request.full_path.rstrip('?')}")


# --- 動画ストリーミング ---

@app.route('/<category>/<filename>')
def stream(category, filename):
    if category not in app.config['CATEGORIES']:
        abort(404)
    folder = Path(app.config['MEDIA_ROOT']) / category
    return send_from_directory(folder, filename, mimetype='video/mp4', conditional=True, max_age=config.STREAM_MAX_AGE)


# --- API ---

@app.route('/')
def index():
    return render_template_string(HTML_TEMPLATE)


@app.route('/api/categories')
def get_categories():
    return jsonify(app.config['CATEGORIES'])


@app.route('/api/videos')
def get_all_videos():
    return get_videos('all')


@app.route('/api/videos/top20')
def get_top_videos():
    conn = get_db()
    videos = top_videos(conn, config.TOP_LIMIT)
    conn.close()
    return jsonify([v.to_json() for v in videos])


@app.route('/api/videos/<category>')
def get_videos(category):
    try:
        videos = gateway().fetch_videos(category)
    except KeyError:
        return jsonify({'error': 'Invalid category'}), 404
    except Exception as e:
        logging.exception(f"Error reading {category} directory: {e}")
        return jsonify({'error': f'Failed to read {category}', 'details': str(e)}), 500
    logging.info(f"Total videos found in {category}: {len(videos)}")
    return jsonify([v.to_json() for v in videos])


@app.route('/api/search')
def search():
    q = request.args.get('q', '').strip()
    category = request.args.get('category', '').strip()
    if not q:
        return jsonify({'error': 'no query'}), 400
    if category and category != 'all' and category not in app.config['CATEGORIES']:
        return jsonify({'error': 'Invalid category'}), 404
    conn = get_db()
    videos = search_videos(conn, q, None if category in ('', 'all') else category)
    conn.close()
    return jsonify([v.to_json() for v in videos])


@app.route('/api/videos/<int:vid>/like', methods=['POST'])
def like(vid):
    return update_likes(vid, 1)


@app.route('/api/videos/<int:vid>/unlike', methods=['POST'])
def unlike(vid):
    return update_likes(vid, -1)


def update_likes(vid, delta):
    conn = get_db()
    likes = change_likes(conn, vid, delta)
    video = get_video(conn, vid)
    conn.close()
    if likes is None:
        return jsonify({'error': 'video not found'}), 404
    video_changed(video)
    return jsonify({'id': vid, 'like_count': likes})


@app.route('/api/videos/<int:vid>/title', methods=['POST'])
def update_title(vid):
    data = request.get_json(silent=True) or {}
    title = (data.get('title') or '').strip()
    if not title:
        return jsonify({'error': 'no title'}), 400
    conn = get_db()
    ok = set_title(conn, vid, title)
    video = get_video(conn, vid)
    conn.close()
    if not ok:
        return jsonify({'error': 'video not found'}), 404
    video_changed(video)
    return jsonify({'success': True})


@app.route('/api/videos/<int:vid>/file_name', methods=['POST'])
def update_file_name(vid):
    data = request.get_json(silent=True) or {}
    name = (data.get('file_name') or '').strip()
    if not name or '/' in name or '\\' in name or name.startswith('.'):
        return jsonify({'error': 'invalid file name'}), 400
    if not name.lower().endswith('.mp4'):
        name += '.mp4'
    conn = get_db()
    try:
        video = rename_file(conn, app.config['MEDIA_ROOT'], vid, name)
    except FileExistsError:
        return jsonify({'error': 'file name already in use'}), 409
    except OSError as e:
        logging.exception(f"Rename of {vid} to {name} failed: {e}")
        return jsonify({'error': 'rename failed', 'details': str(e)}), 500
    finally:
        conn.close()
    if video is None:
        return jsonify({'error': 'video not found'}), 404
    video_changed(video)
    return jsonify({'success': True})


@app.route('/api/danmaku', methods=['GET', 'POST'])
def danmaku():
    if request.method == 'GET':
        try:
            vid = int(request.args.get('videoId', ''))
        except ValueError:
            return jsonify({'error': 'no id'}), 400
        conn = get_db()
        rows = list_danmaku(conn, vid)
        conn.close()
        return jsonify(rows)

    data = request.get_json(silent=True) or {}
    content = (data.get('content') or '').strip()
    try:
        vid = int(data.get('videoId'))
        at = max(0.0, float(data.get('time') or 0))
    except (TypeError, ValueError):
        return jsonify({'error': 'invalid danmaku'}), 400
    if not content:
        return jsonify({'error': 'no content'}), 400
    conn = get_db()
    if get_video(conn, vid) is None:
        conn.close()
        return jsonify({'error': 'video not found'}), 404
    created = add_danmaku(conn, vid, content, at)
    conn.close()
    return jsonify(created), 201


@app.route('/api/videos/<int:vid>/comment', methods=['GET', 'POST'])
def comments(vid):
    conn = get_db()
    if get_video(conn, vid) is None:
        conn.close()
        return jsonify({'error': 'video not found'}), 404
    if request.method == 'GET':
        rows = list_comments(conn, vid)
        conn.close()
        return jsonify({'comments': rows})

    data = request.get_json(silent=True) or {}
    content = (data.get('content') or '').strip()
    if not content:
        conn.close()
        return jsonify({'error': 'no content'}), 400
    add_comment(conn, vid, content)
    conn.close()
    return jsonify({'success': True})


def video_changed(video):
    listing_cache.invalidate()
    with feeds_lock:
        entries = list(feeds.values())
    for entry in entries:
        with entry['lock']:
            entry['controller'].replace_video(video)


# --- フィード ---

def get_feed():
    fid = session.get('feed_id')
    if not fid:
        fid = uuid.uuid4().hex
        session['feed_id'] = fid
    with feeds_lock:
        entry = feeds.get(fid)
        if entry is None:
            controller = FeedController(
                queue_size=config.QUEUE_SIZE,
                history_capacity=config.HISTORY_CAPACITY,
                preload_window=config.PRELOAD_COUNT,
            )
            entry = {'controller': controller, 'lock': Lock()}
            feeds[fid] = entry
            while len(feeds) > config.MAX_FEED_SESSIONS:
                feeds.popitem(last=False)
        feeds.move_to_end(fid)
    return entry


def feed_response(entry, notice=None, status=200, **extra):
    c = entry['controller']
    with entry['lock']:
        data = c.snapshot()
        data['warm'] = c.preload_plan()
        data['preload'] = [{'index': i, 'url': c.videos[i].url} for i in c.pending_preloads()]
    data['notice'] = notice
    data.update(extra)
    return jsonify(data), status


@app.route('/api/feed')
def feed_state():
    return feed_response(get_feed())


@app.route('/api/feed/category', methods=['POST'])
def feed_category():
    data = request.get_json(silent=True) or {}
    category = data.get('category') or 'all'
    q = (data.get('q') or '').strip()
    remembered = None if q else LastViewed.from_json(data.get('remembered'))
    entry = get_feed()
    c = entry['controller']
    with entry['lock']:
        if data.get('mode'):
            try:
                c.set_mode(PlayMode(data['mode']))
            except ValueError:
                return jsonify({'error': 'invalid mode'}), 400
        generation = c.begin_load(category, q or None)

    # 一覧の取得はロック外で行う
    try:
        gw = gateway()
        videos = gw.search(q, category) if q else gw.fetch_videos(category)
    except KeyError:
        with entry['lock']:
            c.fail_load(generation, f'Invalid category: {category}')
        return feed_response(entry, status=404)
    except Exception as e:
        logging.exception(f"Feed load for {category} failed: {e}")
        with entry['lock']:
            c.fail_load(generation, str(e))
        return feed_response(entry, status=500)

    with entry['lock']:
        c.finish_load(generation, videos, remembered)
    return feed_response(entry)


@app.route('/api/feed/next', methods=['POST'])
def feed_next():
    entry = get_feed()
    with entry['lock']:
        entry['controller'].swipe_forward()
    return feed_response(entry)


@app.route('/api/feed/previous', methods=['POST'])
def feed_previous():
    entry = get_feed()
    with entry['lock']:
        c = entry['controller']
        moved = c.swipe_backward()
        notice = NO_EARLIER_VIDEO if moved is None and c.ready else None
    return feed_response(entry, notice)


@app.route('/api/feed/ended', methods=['POST'])
def feed_ended():
    entry = get_feed()
    with entry['lock']:
        entry['controller'].video_ended()
    return feed_response(entry)


@app.route('/api/feed/mode', methods=['POST'])
def feed_mode():
    data = request.get_json(silent=True) or {}
    entry = get_feed()
    with entry['lock']:
        c = entry['controller']
        if data.get('mode'):
            try:
                c.set_mode(PlayMode(data['mode']))
            except ValueError:
                return jsonify({'error': 'invalid mode'}), 400
        else:
            c.toggle_mode()
    return feed_response(entry)


@app.route('/api/feed/autoplay', methods=['POST'])
def feed_autoplay():
    data = request.get_json(silent=True) or {}
    entry = get_feed()
    with entry['lock']:
        entry['controller'].set_autoplay(data.get('on'))
    return feed_response(entry)


@app.route('/api/feed/playing', methods=['POST'])
def feed_playing():
    data = request.get_json(silent=True) or {}
    entry = get_feed()
    with entry['lock']:
        entry['controller'].set_playing(data.get('playing'))
    return feed_response(entry)


@app.route('/api/feed/select', methods=['POST'])
def feed_select():
    data = request.get_json(silent=True) or {}
    try:
        vid = int(data['id']) if data.get('id') is not None else None
    except (TypeError, ValueError):
        return jsonify({'error': 'invalid id'}), 400
    entry = get_feed()
    with entry['lock']:
        selected = entry['controller'].select_from_search(
            video_id=vid,
            url=data.get('url'),
            file_name=data.get('file_name'),
        )
    return feed_response(entry, selected=selected)


@app.route('/api/feed/resource', methods=['POST'])
def feed_resource():
    data = request.get_json(silent=True) or {}
    try:
        index = int(data.get('index'))
        state = ResourceState(data.get('state'))
    except (TypeError, ValueError):
        return jsonify({'error': 'invalid resource report'}), 400
    entry = get_feed()
    with entry['lock']:
        entry['controller'].report_resource(index, state)
    return jsonify({'ok': True})


# --- HTML テンプレート ---
HTML_TEMPLATE = r"""
<!DOCTYPE html>
<html lang="ja">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0, maximum-scale=1.0, user-scalable=no">
<meta name="apple-mobile-web-app-capable" content="yes">
<meta name="apple-mobile-web-app-status-bar-style" content="black-translucent">
<link rel="icon" href="data:,">
<title>Video Feed</title>
<style>
* { box-sizing: border-box; -webkit-tap-highlight-color: transparent; margin: 0; padding: 0; }
body {
    font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
    background: #000;
    color: #e0e0e0;
    height: 100vh;
    overflow: hidden;
    position: fixed;
    inset: 0;
}
.top-bar {
    position: fixed; top: 0; left: 0; right: 0; height: 56px; z-index: 1001;
    display: flex; align-items: center; gap: 8px; padding: 0 12px;
    background: rgba(0,0,0,0.8); backdrop-filter: blur(10px);
}
.top-bar select, .top-bar input {
    background: #1a1a1a; border: 1px solid #333; border-radius: 8px; color: #fff; padding: 8px; font-size: 14px;
}
.top-bar input { flex: 1; min-width: 0; }
#feed { width: 100%; height: 100%; display: flex; align-items: center; justify-content: center; }
#mainVideo { width: 100%; height: 100%; object-fit: contain; background: #000; }
.preload-pool { display: none; }
.short-overlay {
    position: absolute; bottom: 0; left: 0; width: 100%; padding: 20px;
    background: linear-gradient(transparent, rgba(0,0,0,0.9));
    display: flex; justify-content: space-between; align-items: flex-end;
}
.short-info { max-width: 70%; }
.short-folder-name { font-size: 11px; color: #00aaff; margin-bottom: 6px; font-weight: 600; }
.short-title { font-size: 16px; margin-bottom: 12px; font-weight: 600; }
.short-actions { display: flex; flex-direction: column; gap: 12px; align-items: center; }
.action-btn {
    width: 48px; height: 48px; background: rgba(255,255,255,0.12); border-radius: 50%;
    display: flex; align-items: center; justify-content: center; cursor: pointer;
    backdrop-filter: blur(10px); font-size: 20px; border: none; color: #fff;
}
.action-btn:active { transform: scale(0.9); }
.action-btn.on { background: #ff4081; }
.action-label { font-size: 11px; color: #ccc; }
#danmakuLayer { position: absolute; top: 70px; left: 0; right: 0; height: 40%; overflow: hidden; pointer-events: none; }
.danmaku { position: absolute; white-space: nowrap; font-size: 18px; color: #fff; text-shadow: 0 0 4px #000; animation: fly 6s linear forwards; }
@keyframes fly { from { left: 100%; } to { left: -60%; } }
.panel {
    display: none; position: fixed; left: 0; right: 0; bottom: 0; max-height: 60%; overflow-y: auto; z-index: 2000;
    background: #111; border-top: 1px solid #222; border-radius: 16px 16px 0 0; padding: 16px;
}
.panel .row { padding: 10px 0; border-bottom: 1px solid #1e1e1e; font-size: 14px; cursor: pointer; }
.panel form { display: flex; gap: 8px; margin-top: 12px; }
.panel input { flex: 1; background: #1a1a1a; border: 1px solid #333; border-radius: 8px; color: #fff; padding: 8px; }
.ui-btn { background: #1a1a1a; border: 1px solid #333; border-radius: 8px; padding: 8px 12px; color: #fff; cursor: pointer; }
#status { position: absolute; inset: 0; display: none; align-items: center; justify-content: center; flex-direction: column; gap: 16px; color: #888; text-align: center; padding: 40px; }
#buffering { position: absolute; top: 50%; left: 50%; transform: translate(-50%, -50%); display: none; font-size: 32px; }
#toast {
    position: fixed; bottom: 120px; left: 50%; transform: translateX(-50%); display: none; z-index: 3000;
    background: rgba(0,0,0,0.85); padding: 10px 16px; border-radius: 20px; font-size: 14px;
}
</style>
</head>
<body>
<div class="top-bar">
    <select id="categorySelect" onchange="loadCategory(this.value)"></select>
    <input id="searchInput" placeholder="🔍 検索" onkeydown="if(event.key==='Enter') runSearch()">
    <button class="ui-btn" id="modeBtn" onclick="toggleMode()">🔁</button>
</div>

<div id="feed">
    <video id="mainVideo" playsinline preload="auto"></video>
    <div id="danmakuLayer"></div>
    <div id="buffering">⏳</div>
    <div id="status"></div>
    <div class="short-overlay">
        <div class="short-info">
            <div class="short-folder-name" id="videoCategory"></div>
            <div class="short-title" id="videoTitle"></div>
            <form onsubmit="sendDanmaku(event)" style="display:flex; gap:8px;">
                <input id="danmakuInput" class="ui-btn" placeholder="弾幕を送る" style="flex:1;">
            </form>
        </div>
        <div class="short-actions">
            <button class="action-btn" id="likeBtn" onclick="toggleLike()">🤍</button>
            <div class="action-label" id="likeCount">0</div>
            <button class="action-btn" onclick="openComments()">💬</button>
            <button class="action-btn" id="autoBtn" onclick="toggleAutoplay()">▶️</button>
            <button class="action-btn" onclick="togglePlay()">⏯</button>
        </div>
    </div>
</div>

<div class="preload-pool">
    <video class="preload-video" muted playsinline></video>
    <video class="preload-video" muted playsinline></video>
    <video class="preload-video" muted playsinline></video>
</div>

<div class="panel" id="commentPanel">
    <div style="display:flex; justify-content:space-between; margin-bottom:8px;">
        <strong>💬 コメント</strong><button class="ui-btn" onclick="closePanels()">✕</button>
    </div>
    <div id="commentList"></div>
    <form onsubmit="sendComment(event)"><input id="commentInput" placeholder="コメントを書く"><button class="ui-btn">送信</button></form>
</div>

<div class="panel" id="searchPanel">
    <div style="display:flex; justify-content:space-between; margin-bottom:8px;">
        <strong>🔍 検索結果</strong><button class="ui-btn" onclick="closePanels()">✕</button>
    </div>
    <div id="searchList"></div>
</div>

<div id="toast"></div>

<script>
const LAST_KEY = 'vidfeed:last_viewed';
const MODE_KEY = 'vidfeed:random_mode';
const video = document.getElementById('mainVideo');
const preloadEls = Array.from(document.querySelectorAll('.preload-video'));
let feed = null;
let danmakuList = [];
let shownDanmaku = new Set();
let likedVideos = new Set();
let touchStartY = 0;
let toastTimer = null;

async function api(path, body) {
    const opts = body === undefined ? { method: 'POST' } : { method: 'POST', headers: {'Content-Type': 'application/json'}, body: JSON.stringify(body) };
    const res = await fetch(path, opts);
    return res.json();
}

function toast(msg) {
    const el = document.getElementById('toast');
    el.innerText = msg;
    el.style.display = 'block';
    clearTimeout(toastTimer);
    toastTimer = setTimeout(() => el.style.display = 'none', 2000);
}

function escapeHtml(text) {
    return String(text ?? '').replace(/[&<>"']/g, ch => ({ '&': '&amp;', '<': '&lt;', '>': '&gt;', '"': '&quot;', "'": '&#39;' }[ch]));
}

function showStatus(html) {
    const el = document.getElementById('status');
    el.innerHTML = html;
    el.style.display = html ? 'flex' : 'none';
}

async function init() {
    const res = await fetch('/api/categories');
    const cats = await res.json();
    const sel = document.getElementById('categorySelect');
    sel.innerHTML = '<option value="all">すべて</option>' + cats.map(c => `<option value="${escapeHtml(c)}">${escapeHtml(c)}</option>`).join('');
    const last = JSON.parse(localStorage.getItem(LAST_KEY) || 'null');
    if (last && last.category && cats.includes(last.category)) sel.value = last.category;
    loadCategory(sel.value);
}

async function loadCategory(category, q) {
    releaseWarm();
    showStatus('🔥 動画を探しています...');
    const remembered = JSON.parse(localStorage.getItem(LAST_KEY) || 'null');
    const mode = localStorage.getItem(MODE_KEY) === 'true' ? 'randomized' : 'sequential';
    render(await api('/api/feed/category', { category, q, remembered, mode }));
}

function render(s) {
    feed = s;
    document.getElementById('modeBtn').innerText = s.mode === 'randomized' ? '🔀' : '🔁';
    document.getElementById('autoBtn').classList.toggle('on', s.autoplay);
    if (s.notice) toast(s.notice);
    if (s.status === 'error') {
        showStatus(`<div>⚠️ ${escapeHtml(s.error)}</div><button class="ui-btn" onclick="loadCategory(document.getElementById('categorySelect').value)">再読み込み</button>`);
        return;
    }
    if (s.status === 'ready' && s.count === 0) {
        video.removeAttribute('src');
        showStatus('📭 動画がありません');
        return;
    }
    if (!s.video) return;
    showStatus('');
    const v = s.video;
    if (video.dataset.id !== String(v.id) || video.dataset.url !== v.url) {
        video.dataset.id = String(v.id);
        video.dataset.url = v.url;
        video.src = v.url;
        video.load();
        if (s.autoplay) video.play().catch(() => { video.muted = true; video.play().catch(() => {}); });
        loadDanmaku(v.id);
    }
    document.getElementById('videoCategory').innerText = '📂 ' + v.category;
    document.getElementById('videoTitle').innerText = v.title;
    document.getElementById('likeCount').innerText = v.likes;
    document.getElementById('likeBtn').innerText = likedVideos.has(v.id) ? '❤️' : '🤍';
    localStorage.setItem(LAST_KEY, JSON.stringify({ id: v.id, file_name: v.file_name, title: v.title, category: v.category }));
    preload(s.preload || [], s.warm || []);
}

function preload(items, plan) {
    // 計画から外れた動画のスロットだけ空ける
    preloadEls.forEach(el => {
        if (el._index !== undefined && !plan.includes(el._index)) releaseSlot(el);
    });
    items.forEach(p => {
        let el = preloadEls.find(e => e._index === undefined);
        if (!el) {
            el = preloadEls.reduce((a, b) => (a._since <= b._since ? a : b));
            if (!el._done) report(el._index, 'failed');
            releaseSlot(el);
        }
        el._index = p.index;
        el._done = false;
        el._since = Date.now();
        el.oncanplaythrough = () => { el.oncanplaythrough = null; el._done = true; report(p.index, 'ready'); };
        el.onerror = () => { el.onerror = null; el._done = true; report(p.index, 'failed'); };
        el.preload = 'auto';
        el.src = p.url;
        el.load();
    });
}

function releaseSlot(el) {
    el.oncanplaythrough = null;
    el.onerror = null;
    el._index = undefined;
    el._done = false;
    el.removeAttribute('src');
    el.load();
}

function releaseWarm() {
    preloadEls.forEach(releaseSlot);
}

function report(index, state) {
    fetch('/api/feed/resource', { method: 'POST', headers: {'Content-Type': 'application/json'}, body: JSON.stringify({ index, state }) }).catch(() => {});
}

async function next() { render(await api('/api/feed/next')); }
async function previous() { render(await api('/api/feed/previous')); }

async function toggleMode() {
    const s = await api('/api/feed/mode');
    localStorage.setItem(MODE_KEY, s.mode === 'randomized' ? 'true' : 'false');
    toast(s.mode === 'randomized' ? '🔀 ランダム再生' : '🔁 順番に再生');
    render(s);
}

async function toggleAutoplay() {
    render(await api('/api/feed/autoplay', { on: !(feed && feed.autoplay) }));
}

function togglePlay() {
    if (video.paused) video.play().catch(() => {}); else video.pause();
}

video.addEventListener('play', () => api('/api/feed/playing', { playing: true }));
video.addEventListener('pause', () => api('/api/feed/playing', { playing: false }));
video.addEventListener('ended', async () => render(await api('/api/feed/ended')));
video.addEventListener('waiting', () => document.getElementById('buffering').style.display = 'block');
video.addEventListener('playing', () => document.getElementById('buffering').style.display = 'none');
video.addEventListener('canplay', () => document.getElementById('buffering').style.display = 'none');
video.addEventListener('click', togglePlay);
video.addEventListener('timeupdate', showDanmaku);

document.getElementById('feed').addEventListener('touchstart', e => { touchStartY = e.touches[0].clientY; });
document.getElementById('feed').addEventListener('touchend', e => {
    const deltaY = e.changedTouches[0].clientY - touchStartY;
    if (Math.abs(deltaY) > 50) { if (deltaY < 0) next(); else previous(); }
});
document.getElementById('feed').addEventListener('wheel', e => {
    if (Math.abs(e.deltaY) > 40) { e.preventDefault(); if (e.deltaY > 0) next(); else previous(); }
}, { passive: false });
document.addEventListener('keydown', e => {
    if (e.target.tagName === 'INPUT') return;
    if (e.key === 'ArrowDown') next();
    else if (e.key === 'ArrowUp') previous();
    else if (e.key === ' ') { e.preventDefault(); togglePlay(); }
});

async function toggleLike() {
    if (!feed || !feed.video) return;
    const v = feed.video;
    const action = likedVideos.has(v.id) ? 'unlike' : 'like';
    try {
        const res = await fetch(`/api/videos/${v.id}/${action}`, { method: 'POST' });
        if (!res.ok) throw new Error(res.statusText);
        const data = await res.json();
        if (action === 'like') likedVideos.add(v.id); else likedVideos.delete(v.id);
        v.likes = data.like_count;
        document.getElementById('likeCount').innerText = data.like_count;
        document.getElementById('likeBtn').innerText = likedVideos.has(v.id) ? '❤️' : '🤍';
    } catch (e) {
        toast('⚠️ いいねに失敗しました');
    }
}

async function loadDanmaku(id) {
    danmakuList = [];
    shownDanmaku = new Set();
    document.getElementById('danmakuLayer').innerHTML = '';
    try {
        const res = await fetch(`/api/danmaku?videoId=${id}`);
        if (feed && feed.video && feed.video.id === id) danmakuList = await res.json();
    } catch (e) {}
}

function showDanmaku() {
    const t = video.currentTime;
    danmakuList.forEach(d => {
        if (shownDanmaku.has(d.id) || d.time > t || d.time < t - 1) return;
        shownDanmaku.add(d.id);
        flyDanmaku(d.content);
    });
}

function flyDanmaku(text) {
    const el = document.createElement('div');
    el.className = 'danmaku';
    el.innerText = text;
    el.style.top = Math.floor(Math.random() * 80) + '%';
    document.getElementById('danmakuLayer').appendChild(el);
    setTimeout(() => el.remove(), 6500);
}

async function sendDanmaku(e) {
    e.preventDefault();
    const input = document.getElementById('danmakuInput');
    const content = input.value.trim();
    if (!content || !feed || !feed.video) return;
    const res = await fetch('/api/danmaku', { method: 'POST', headers: {'Content-Type': 'application/json'}, body: JSON.stringify({ videoId: feed.video.id, content, time: video.currentTime }) });
    if (!res.ok) { toast('⚠️ 送信に失敗しました'); return; }
    const d = await res.json();
    danmakuList.push(d);
    shownDanmaku.add(d.id);
    flyDanmaku(d.content);
    input.value = '';
}

async function openComments() {
    if (!feed || !feed.video) return;
    closePanels();
    document.getElementById('commentPanel').style.display = 'block';
    const res = await fetch(`/api/videos/${feed.video.id}/comment`);
    const data = await res.json();
    document.getElementById('commentList').innerHTML = (data.comments || []).map(c => `
        <div class="row"><div>${escapeHtml(c.content)}</div><div style="font-size:11px; color:#666;">${new Date(c.created * 1000).toLocaleString()}</div></div>
    `).join('') || '<div style="color:#666;">まだコメントはありません</div>';
}

async function sendComment(e) {
    e.preventDefault();
    const input = document.getElementById('commentInput');
    const content = input.value.trim();
    if (!content || !feed || !feed.video) return;
    const res = await fetch(`/api/videos/${feed.video.id}/comment`, { method: 'POST', headers: {'Content-Type': 'application/json'}, body: JSON.stringify({ content }) });
    if (!res.ok) { toast('⚠️ 送信に失敗しました'); return; }
    input.value = '';
    openComments();
}

async function runSearch() {
    const q = document.getElementById('searchInput').value.trim();
    if (!q) return;
    const category = document.getElementById('categorySelect').value;
    const res = await fetch(`/api/search?q=${encodeURIComponent(q)}&category=${encodeURIComponent(category)}`);
    if (!res.ok) { toast('⚠️ 検索に失敗しました'); return; }
    const results = await res.json();
    closePanels();
    document.getElementById('searchPanel').style.display = 'block';
    document.getElementById('searchList').innerHTML = results.map((v, i) => `
        <div class="row" onclick="selectResult(${i})">❤️ ${v.likes} · ${escapeHtml(v.title)}</div>
    `).join('') || '<div style="color:#666;">見つかりませんでした</div>';
    window.searchResults = results;
}

async function selectResult(i) {
    const v = window.searchResults[i];
    const s = await api('/api/feed/select', { id: v.id, url: v.url, file_name: v.file_name });
    closePanels();
    render(s);
}

function closePanels() {
    document.querySelectorAll('.panel').forEach(p => p.style.display = 'none');
}

init();
</script>
</body>
</html>
"""


def open_browser(url):
    try:
        webbrowser.open(url)
    except webbrowser.Error as e:
        logging.warning(f"Could not open browser: {e}")


def get_local_ip():
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
    except OSError:
        ip = '127.0.0.1'
    finally:
        s.close()
    return ip


def main(media_root=None, host=None, port=None, browser=True, debug=False):
    configure(media_root=media_root)
    host = host or config.HOST
    port = port or config.PORT
    local_ip = get_local_ip()
    logging.info(f"Server running at http://{host}:{port}")
    logging.info(f"Local network access: http://{local_ip}:{port}")
    for category in app.config['CATEGORIES']:
        folder = Path(app.config['MEDIA_ROOT']) / category
        if folder.is_dir():
            logging.info(f"Videos in {category}: {len(os.listdir(folder))}")
        else:
            logging.info(f"Directory {category} does not exist")
    if browser:
        Thread(target=open_browser, args=(f'http://{local_ip}:{port}',), daemon=True).start()

    app.run(
        host=host,
        port=port,
        debug=debug,
        use_reloader=False,
        threaded=True,
    )
