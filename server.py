"""
HTTP front end for the stock tracker.

Serves the JSON API from tracker.api and static files from the web
directory, optionally bulk-loads a ticker list, and runs until SIGINT or
SIGTERM.
"""
from __future__ import annotations

import argparse
import logging
import mimetypes
import signal
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import List, Optional

from integrations.slack import SlackNotifier, load_slack_config
from tracker.api import Response, TrackerAPI, error, resolve_static
from tracker.config import get_server_port, get_slack_config_path, get_slack_settings, get_web_dir
from tracker.store import SymbolStore

logger = logging.getLogger(__name__)


def make_handler(api: TrackerAPI, web_dir: str) -> type:
    class _Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            if self.path.startswith('/static'):
                self._send_static()
            else:
                self._dispatch()

        def do_POST(self):
            self._dispatch()

        def do_DELETE(self):
            self._dispatch()

        def log_message(self, format, *args):
            logger.debug(f"{self.address_string()} {format % args}")

        def _dispatch(self):
            try:
                length = int(self.headers.get('Content-Length') or 0)
            except ValueError:
                self._send_json(error(400, "Invalid Content-Length header"))
                return
            body = self.rfile.read(length) if length > 0 else b''
            resp = api.handle(self.command, self.path, body)
            if resp.status >= 400:
                logger.error(f"ERROR: {resp.payload.get('error')}")
            self._send_json(resp)

        def _send_json(self, resp: Response):
            self.send_response(resp.status)
            for key, value in resp.headers.items():
                self.send_header(key, value)
            data = resp.body() if resp.status != 302 else b''
            if data:
                self.send_header('Content-Type', 'application/json')
            self.send_header('Content-Length', str(len(data)))
            self.end_headers()
            self.wfile.write(data)
            logger.info(f"{self.client_address[0]} {self.command} {self.path} {resp.status}")

        def _send_static(self):
            target = resolve_static(web_dir, self.path)
            if target is None:
                self._send_json(error(404, f"{self.path} not found"))
                return
            data = target.read_bytes()
            ctype = mimetypes.guess_type(str(target))[0] or 'application/octet-stream'
            self.send_response(200)
            self.send_header('Content-Type', ctype)
            self.send_header('Content-Length', str(len(data)))
            self.end_headers()
            self.wfile.write(data)

    return _Handler


def build_notifier(slack_config: Optional[str]) -> Optional[SlackNotifier]:
    """Return a Slack notifier from a config file or the environment, if any."""
    if slack_config:
        return load_slack_config(slack_config)
    settings = get_slack_settings()
    if settings:
        token, channel = settings
        return SlackNotifier(token=token, channel=channel)
    return None


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Track stocks and serve their technical analysis")
    parser.add_argument('--port', type=int, default=get_server_port(),
                        help="The port to serve off of")
    parser.add_argument('--web', default=get_web_dir(),
                        help="The directory of static files for the web to serve")
    parser.add_argument('--csv', default='',
                        help="A list of stock tickers to watch, one per line")
    parser.add_argument('--slack-config', default=get_slack_config_path(),
                        help="JSON file with the Slack Token and Channel for alerts")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s %(filename)s:%(lineno)d %(levelname)s %(message)s')
    args = parse_args(argv)

    notifier = build_notifier(args.slack_config)
    store = SymbolStore(on_result=notifier.notify_result if notifier else None)

    if args.csv:
        try:
            store.load_file(args.csv)
        except OSError as e:
            logger.error(f"Failed to load {args.csv}: {e}")
            return 1

    server = ThreadingHTTPServer(('', args.port), make_handler(TrackerAPI(store), args.web))
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    logger.info(f"Serving on :{args.port}")

    stop = threading.Event()

    def _on_signal(signum, frame):
        logger.info(f"Received signal '{signal.Signals(signum).name}', shutting down")
        stop.set()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)
    stop.wait()

    server.shutdown()
    server.server_close()
    store.shutdown(timeout=5)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
