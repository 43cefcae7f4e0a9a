"""Slack notifications."""

from integrations.slack.notifier import SlackNotifier, format_summary, load_slack_config

__all__ = [
    'SlackNotifier',
    'format_summary',
    'load_slack_config',
]
