import argparse
import logging
import shlex
import webbrowser

from . import config
from .client import VideoCatalogGateway, VideoActions, Warmer
from .errors import NetworkError
from .feed import FeedController, NO_EARLIER_VIDEO
from .models import FeedStatus, LastViewed, PlayMode
from .state import ClientState

HELP = """n 次  p 前  e 再生終了  m モード切替  a 自動再生
l いいね  u いいね解除  c コメント  c <text> コメント投稿  d 弾幕
s <q> 検索  g <n> 検索結果へ  k <cat> カテゴリ  o ブラウザで開く  q 終了"""


class TerminalFeed:
    """Line-oriented feed player that drives a FeedController over HTTP."""

    def __init__(self, server, state_path=None, out=print):
        self.gateway = VideoCatalogGateway(server, timeout=config.REQUEST_TIMEOUT)
        self.actions = VideoActions(server, session=self.gateway.session, timeout=config.REQUEST_TIMEOUT)
        self.warmer = Warmer(self.gateway, warm_bytes=config.WARM_BYTES)
        self.controller = FeedController(
            self.gateway,
            queue_size=config.QUEUE_SIZE,
            history_capacity=config.HISTORY_CAPACITY,
            preload_window=config.PRELOAD_COUNT,
        )
        self.state = ClientState(state_path or config.CLIENT_STATE_PATH)
        self.controller.set_mode(self.state.mode)
        self.results = []
        self.out = out

    def load(self, category):
        self.warmer.cancel()
        remembered = self.state.last_viewed
        if remembered and category not in (None, 'all') and remembered.category != category:
            remembered = None
        self.controller.load_category(category, remembered)
        self.show()

    def show(self):
        c = self.controller
        if c.status is FeedStatus.ERROR:
            self.out(f"⚠️  {c.error}  (k <cat> で再読み込み)")
            return
        video = c.current_video
        if video is None:
            self.out('📭 動画がありません')
            return
        self.out(f"[{c.current_index + 1}/{len(c.videos)}] {video.title}  ❤️ {video.likes}  📂 {video.category}  ({c.mode.value})")
        self.out(f"    {self.gateway.media_url(video)}")
        self.state.last_viewed = LastViewed.of(video)
        self.state.save()
        self.preload()

    def preload(self):
        for index, state in self.warmer.poll():
            self.controller.report_resource(index, state)
        for index in self.controller.pending_preloads():
            self.warmer.warm(index, self.controller.videos[index])

    def handle(self, line):
        """Run one command line; returns False when the user quits."""
        if not line.strip():
            parts = ['n']
        else:
            try:
                parts = shlex.split(line)
            except ValueError:
                # 閉じていない引用符 ("it's" など)
                parts = line.split()
        cmd, args = parts[0], parts[1:]
        c = self.controller
        if cmd == 'q':
            return False
        if cmd == 'n':
            c.swipe_forward()
            self.show()
        elif cmd == 'p':
            if c.swipe_backward() is None:
                self.out(NO_EARLIER_VIDEO)
            else:
                self.show()
        elif cmd == 'e':
            if c.video_ended() is not None:
                self.show()
        elif cmd == 'm':
            mode = c.toggle_mode()
            self.state.mode = mode
            self.state.save()
            self.out('🔀 ランダム再生' if mode is PlayMode.RANDOMIZED else '🔁 順番に再生')
        elif cmd == 'a':
            c.set_autoplay(not c.state.is_autoplay_on)
            self.out(f"自動再生: {'ON' if c.state.is_autoplay_on else 'OFF'}")
        elif cmd in ('l', 'u'):
            self.like(cmd == 'l')
        elif cmd == 'c':
            self.comments(' '.join(args))
        elif cmd == 'd':
            self.danmaku()
        elif cmd == 's' and args:
            self.search(' '.join(args))
        elif cmd == 'g' and args:
            self.select(args[0])
        elif cmd == 'k':
            self.load(args[0] if args else 'all')
        elif cmd == 'o' and c.current_video is not None:
            webbrowser.open(self.gateway.media_url(c.current_video))
        else:
            self.out(HELP)
        return True

    def like(self, liked):
        video = self.controller.current_video
        if video is None:
            return
        try:
            count = self.actions.like(video.id) if liked else self.actions.unlike(video.id)
        except NetworkError as e:
            self.out(f"⚠️  いいねに失敗しました: {e.message}")
            return
        self.controller.replace_video(video.with_likes(count))
        self.out(f"❤️ {count}")

    def comments(self, text):
        video = self.controller.current_video
        if video is None:
            return
        try:
            if text:
                self.actions.add_comment(video.id, text)
            rows = self.actions.comments(video.id)
        except NetworkError as e:
            self.out(f"⚠️  コメントの取得に失敗しました: {e.message}")
            return
        for row in rows:
            self.out(f"💬 {row['content']}")
        if not rows:
            self.out('まだコメントはありません')

    def danmaku(self):
        video = self.controller.current_video
        if video is None:
            return
        try:
            rows = self.actions.danmaku(video.id)
        except NetworkError as e:
            self.out(f"⚠️  弾幕の取得に失敗しました: {e.message}")
            return
        for row in rows:
            self.out(f"{row['time']:7.1f}s  {row['content']}")

    def search(self, q):
        try:
            self.results = self.gateway.search(q, self.controller.category)
        except NetworkError as e:
            self.out(f"⚠️  検索に失敗しました: {e.message}")
            return
        for i, v in enumerate(self.results):
            self.out(f"{i:3d}  ❤️ {v.likes:<5d} {v.title}")
        if not self.results:
            self.out('見つかりませんでした')

    def select(self, position):
        try:
            video = self.results[int(position)]
        except (ValueError, IndexError):
            self.out(HELP)
            return
        if self.controller.select_from_search(video.id, video.url, video.file_name):
            self.show()

    def run(self, category):
        self.load(category)
        self.out(HELP)
        try:
            while True:
                try:
                    line = input('> ')
                except EOFError:
                    break
                if not self.handle(line):
                    break
        finally:
            self.warmer.close()


def build_parser():
    parser = argparse.ArgumentParser(prog='vidfeed', description='Local short-video feed')
    sub = parser.add_subparsers(dest='command')

    serve = sub.add_parser('serve', help='run the feed server')
    serve.add_argument('--media-root', default=None, help='directory holding the category folders')
    serve.add_argument('--host', default=None)
    serve.add_argument('--port', type=int, default=None)
    serve.add_argument('--no-browser', action='store_true')
    serve.add_argument('--debug', action='store_true')

    watch = sub.add_parser('watch', help='browse a running server from the terminal')
    watch.add_argument('--server', default=f'http://127.0.0.1:{config.PORT}')
    watch.add_argument('--category', default='all')
    watch.add_argument('--state', default=None, help='client state file')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    config.setup_logging(level=logging.DEBUG if getattr(args, 'debug', False) else logging.INFO)
    if args.command == 'watch':
        TerminalFeed(args.server, args.state).run(args.category)
        return 0
    from .server import main as serve
    serve(
        media_root=getattr(args, 'media_root', None),
        host=getattr(args, 'host', None),
        port=getattr(args, 'port', None),
        browser=not getattr(args, 'no_browser', False),
        debug=getattr(args, 'debug', False),
    )
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
