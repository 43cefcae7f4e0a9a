"""
Outbound Slack messages through the chat.postMessage Web API.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import requests

from analysis.models import AnalysisResult

logger = logging.getLogger(__name__)

API_ENDPOINT = 'https://slack.com/api/'
MESSAGE_URL = API_ENDPOINT + 'chat.postMessage'


@dataclass
class SlackNotifier:
    token: str
    channel: str
    timeout: float = 10.0

    def send_message(self, channel: Optional[str], message: str) -> bool:
        """Post ``message`` to ``channel`` (the default channel when None).

        Returns True when Slack accepted the message. Failures are logged and
        never raised.
        """
        params = {
            'token': self.token,
            'channel': channel or self.channel,
            'text': message,
        }
        try:
            resp = requests.get(MESSAGE_URL, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Failed to send Slack message: {e}")
            return False

        if resp.status_code != 200:
            logger.error(
                f"Slack returned {resp.status_code}: {resp.text}")
            return False
        try:
            ok = bool(resp.json().get('ok'))
        except ValueError:
            ok = False
        if not ok:
            logger.warning(f"Slack rejected message: {resp.text}")
        return ok

    def notify_result(self, ticker: str, result: AnalysisResult) -> bool:
        """Send a one-line summary of a fresh analysis."""
        return self.send_message(None, format_summary(ticker, result))


def format_summary(ticker: str, result: AnalysisResult) -> str:
    best_support = max((t.hits for t in result.supports), default=0)
    best_resistance = max((t.hits for t in result.resistances), default=0)
    return (
        f"{ticker}: last close {result.last_close:.2f} (open {result.last_open:.2f}), "
        f"{len(result.supports)} support lines (best {best_support} hits), "
        f"{len(result.resistances)} resistance lines (best {best_resistance} hits)"
    )


def load_slack_config(filename: Union[str, Path]) -> SlackNotifier:
    """Load a notifier from a JSON file holding ``Channel`` and ``Token``."""
    with open(filename, 'r') as f:
        data = json.load(f)
    token = data.get('Token') or data.get('token')
    channel = data.get('Channel') or data.get('channel')
    if not token or not channel:
        raise ValueError(f"Slack config {filename} needs Token and Channel")
    return SlackNotifier(token=str(token), channel=str(channel))
