import os
import logging
from pathlib import Path

# --- 設定 ---
DATA_DIR = Path(os.environ.get('VIDFEED_HOME', Path.home() / '.video_feed'))
DB_PATH = DATA_DIR / 'videos.db'
LOG_PATH = DATA_DIR / 'server.log'
CLIENT_STATE_PATH = DATA_DIR / 'client.json'

MEDIA_ROOT = Path(os.environ.get('VIDFEED_MEDIA_ROOT', os.getcwd()))
CATEGORIES = [c.strip() for c in os.environ.get('VIDFEED_CATEGORIES', 'videos,videos1,videos2').split(',') if c.strip()]
VIDEO_EXTENSIONS = {'.mp4'}

HOST = os.environ.get('VIDFEED_HOST', '0.0.0.0')
PORT = int(os.environ.get('VIDFEED_PORT', 3001))
SECRET_KEY = os.environ.get('SECRET_KEY', 'vidfeed_local_secret')

# フィード
QUEUE_SIZE = 5
HISTORY_CAPACITY = 100
PRELOAD_COUNT = 3
MAX_FEED_SESSIONS = 64

# キャッシュ・ネットワーク
LIST_CACHE_TTL = 300
STREAM_MAX_AGE = 3600
TOP_LIMIT = 20
WARM_BYTES = 1000000
REQUEST_TIMEOUT = 6


def setup_logging(log_path=None, level=logging.INFO):
    log_path = Path(log_path or LOG_PATH)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(filename=str(log_path), level=level, format='%(asctime)s %(levelname)s %(message)s')
    console = logging.StreamHandler()
    console.setLevel(level)
    logging.getLogger('').addHandler(console)
