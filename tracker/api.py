"""
JSON routes over a SymbolStore, independent of any HTTP server.

    GET    /stocks                 tracked tickers
    GET    /stocks/{ticker}        ticker config
    POST   /stocks/{ticker}        start tracking, body {"tolerance": x}
    DELETE /stocks/{ticker}        stop tracking
    GET    /stocks/{ticker}/info   latest analysis
"""
from __future__ import annotations

import json
import logging
import math
import urllib.parse
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from tracker.config import get_default_tolerance
from tracker.errors import AlreadyTrackedError, NotTrackedError
from tracker.store import SymbolStore

logger = logging.getLogger(__name__)


@dataclass
class Response:
    status: int
    payload: Any = None
    headers: Dict[str, str] = field(default_factory=dict)

    def body(self) -> bytes:
        return json.dumps(self.payload).encode('utf-8')


def error(status: int, message: str) -> Response:
    return Response(status, {'error': message})


class TrackerAPI:
    def __init__(self, store: SymbolStore):
        self.store = store

    def handle(self, method: str, path: str, body: bytes = b'') -> Response:
        """Route one request and return its response. Never raises."""
        parts = _split_path(path)
        method = method.upper()

        if not parts:
            return Response(302, None, {'Location': '/static/'})
        if parts[0] != 'stocks' or len(parts) > 3:
            return error(404, f"No route for {path}")

        try:
            if len(parts) == 1:
                if method != 'GET':
                    return error(405, f"{method} not allowed on /stocks")
                return Response(200, sorted(self.store.list_tracked()))

            ticker = parts[1].strip()
            if not ticker:
                return error(400, "No stock specified")

            if len(parts) == 3:
                if parts[2] != 'info':
                    return error(404, f"No route for {path}")
                if method != 'GET':
                    return error(405, f"{method} not allowed on {path}")
                return Response(200, self.store.get_info(ticker).to_dict())

            if method == 'GET':
                return Response(200, self.store.get_config(ticker).to_dict())
            if method == 'POST':
                return self._add_stock(ticker, body)
            if method == 'DELETE':
                self.store.deregister(ticker)
                return Response(200, "Stock Removed")
            return error(405, f"{method} not allowed on {path}")
        except NotTrackedError as e:
            return error(404, str(e))
        except AlreadyTrackedError as e:
            return error(409, str(e))
        except ValueError as e:
            return error(400, str(e))

    def _add_stock(self, ticker: str, body: bytes) -> Response:
        tolerance = parse_tolerance(body)
        self.store.register(ticker, tolerance)
        payload = {'tolerance': tolerance}
        logger.info(f"Tracking {ticker} with {payload} settings")
        return Response(200, payload)


def parse_tolerance(body: bytes) -> float:
    """Read the tolerance from a POST body, falling back to the default.

    A missing body, a missing field or a zero value all mean "use the
    default".
    """
    default = get_default_tolerance()
    if not body or not body.strip():
        return default
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise ValueError(f"Invalid JSON body: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Body must be a JSON object")

    raw = data.get('tolerance', data.get('Tolerance'))
    if raw is None:
        return default
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError(f"Tolerance must be a number, got {raw!r}")
    try:
        tolerance = float(raw)
    except OverflowError as e:
        raise ValueError(f"Tolerance is too large: {e}") from e
    if not math.isfinite(tolerance) or tolerance < 0:
        raise ValueError(f"Tolerance must be a non-negative number, got {raw!r}")
    if tolerance == 0:
        return default
    return tolerance


def _split_path(path: str) -> List[str]:
    parsed = urllib.parse.urlparse(path)
    return [urllib.parse.unquote(p) for p in parsed.path.split('/') if p]


def resolve_static(web_dir: str, path: str) -> Optional[Path]:
    """Map a /static/... request path to a file under ``web_dir``.

    Returns None when the path escapes the directory or names no file.
    A directory resolves to its index.html.
    """
    root = Path(web_dir).resolve()
    rel = urllib.parse.unquote(urllib.parse.urlparse(path).path)
    if rel.startswith('/static'):
        rel = rel[len('/static'):]
    target = (root / rel.lstrip('/')).resolve()
    if target != root and root not in target.parents:
        return None
    if target.is_dir():
        target = target / 'index.html'
    if not target.is_file():
        return None
    return target
