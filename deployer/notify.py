"""
Operator notifications (Slack webhook).
"""

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)


def send_slack_message(webhook: Optional[str], message: str) -> bool:
    """
    Post message to a Slack webhook.

    Returns:
        True when the message was delivered; failures are logged, never raised
    """
    if not webhook:
        return False

    payload = {"text": message}
    try:
        response = requests.post(webhook, json=payload, timeout=10)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to send Slack notification: {e}")
        return False
    return True
