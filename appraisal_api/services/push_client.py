"""
OneSignal push delivery.

Push is a best-effort companion to in-app notifications: when credentials are
not configured nothing is sent, and delivery failures are logged, never raised.
"""
import logging
from typing import Dict, List, Optional

import requests

from appraisal_api.core.config import settings

logger = logging.getLogger(__name__)


def build_payload(
    title: str,
    message: str,
    user_ids: Optional[List[str]] = None,
    segments: Optional[List[str]] = None,
    data: Optional[Dict[str, str]] = None,
) -> Dict:
    payload = {
        "app_id": settings.push.onesignal_app_id,
        "headings": {"en": title},
        "contents": {"en": message},
        "data": data or {},
    }
    # Target specific users, then segments, then everyone subscribed
    if user_ids:
        payload["include_external_user_ids"] = user_ids
    elif segments:
        payload["included_segments"] = segments
    else:
        payload["included_segments"] = ["Subscribed Users"]
    return payload


def send_push(
    title: str,
    message: str,
    user_ids: Optional[List[str]] = None,
    segments: Optional[List[str]] = None,
    data: Optional[Dict[str, str]] = None,
) -> bool:
    if not settings.push.enabled:
        logger.debug("Push delivery skipped: OneSignal credentials not configured")
        return False

    payload = build_payload(title, message, user_ids, segments, data)
    try:
        response = requests.post(
            settings.push.api_url,
            json=payload,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Basic {settings.push.onesignal_rest_api_key}",
            },
            timeout=settings.push.timeout_seconds,
        )
        response.raise_for_status()
        logger.info(f"Push notification sent: {title}")
        return True
    except requests.RequestException as e:
        logger.error(f"Push notification failed: {e}")
        return False


def deliver_pushes(pushes: List[Dict]) -> int:
    """Sends queued pushes one by one; returns how many were delivered."""
    return sum(1 for push in pushes if send_push(**push))
