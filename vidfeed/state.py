import json
import logging
from pathlib import Path

from .models import LastViewed, PlayMode


class ClientState:
    """Resume information of the terminal client, stored as a JSON file."""

    def __init__(self, path):
        self.path = Path(path)
        self.data = {}
        self.load()

    def load(self):
        if not self.path.exists():
            return
        try:
            self.data = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, ValueError) as e:
            logging.warning(f"Client state unreadable, starting fresh: {e}")
            self.data = {}

    def save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(self.data, f, ensure_ascii=False, indent=2)

    @property
    def last_viewed(self):
        return LastViewed.from_json(self.data.get('last_viewed'))

    @last_viewed.setter
    def last_viewed(self, value):
        self.data['last_viewed'] = value.to_json() if value else None

    @property
    def mode(self):
        if self.data.get('random_mode'):
            return PlayMode.RANDOMIZED
        return PlayMode.SEQUENTIAL

    @mode.setter
    def mode(self, value):
        self.data['random_mode'] = value is PlayMode.RANDOMIZED
