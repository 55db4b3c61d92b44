"""
Send push notifications to a device token.

Expo tokens ("ExponentPushToken[...]") go through the Expo push API (EXPO_ACCESS_TOKEN optional).
Any other token is an APNs device token; APNs needs APNS_KEY_ID, APNS_TEAM_ID, APNS_BUNDLE_ID
and APNS_KEY_P8_PATH or APNS_KEY_P8_BASE64. Without them APNs sends are skipped.
Sending is best-effort: every send_* returns a bool and never raises.
"""
import base64
import logging
import os
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx
import jwt

logger = logging.getLogger(__name__)

APNS_HOSTS = {True: "https://api.sandbox.push.apple.com", False: "https://api.push.apple.com"}
EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"
PUSH_TIMEOUT_SECONDS = 10.0
# APNs rejects provider tokens older than an hour
APNS_TOKEN_TTL_SECONDS = 50 * 60


@dataclass
class PushMessage:
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)


def is_expo_token(device_token: str) -> bool:
    return device_token.startswith(("ExponentPushToken[", "ExpoPushToken["))


@dataclass(frozen=True)
class ApnsCredentials:
    key_id: str
    team_id: str
    bundle_id: str
    signing_key: str
    sandbox: bool = True

    @classmethod
    def from_env(cls) -> "ApnsCredentials | None":
        key_id = os.getenv("APNS_KEY_ID", "").strip()
        team_id = os.getenv("APNS_TEAM_ID", "").strip()
        bundle_id = os.getenv("APNS_BUNDLE_ID", "").strip()
        if not (key_id and team_id and bundle_id):
            return None
        signing_key = _read_signing_key()
        if not signing_key:
            return None
        sandbox = os.getenv("APNS_USE_SANDBOX", "true").lower() in ("1", "true", "yes")
        return cls(key_id, team_id, bundle_id, signing_key, sandbox)


def _read_signing_key() -> str | None:
    """The .p8 contents, inline (base64) or from a file path."""
    encoded = os.getenv("APNS_KEY_P8_BASE64")
    if encoded:
        try:
            return base64.b64decode(encoded).decode("utf-8")
        except ValueError as e:
            logger.warning("APNS_KEY_P8_BASE64 is not valid base64: %s", e)
            return None
    path = os.getenv("APNS_KEY_P8_PATH")
    if not path:
        return None
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as e:
        logger.warning("Could not read APNS_KEY_P8_PATH %s: %s", path, e)
        return None


class _ProviderTokenCache:
    """ES256 provider token, re-signed when it gets close to the one-hour limit."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._token: str | None = None
        self._key_id: str | None = None
        self._expires_at = 0.0

    def get(self, creds: ApnsCredentials) -> str | None:
        now = time.time()
        with self._lock:
            if self._token and self._key_id == creds.key_id and now < self._expires_at:
                return self._token
            try:
                token = jwt.encode(
                    {"iss": creds.team_id, "iat": int(now)},
                    creds.signing_key,
                    algorithm="ES256",
                    headers={"kid": creds.key_id},
                )
            except Exception as e:
                logger.warning("Could not sign APNs provider token: %s", e, exc_info=True)
                return None
            self._token, self._key_id, self._expires_at = token, creds.key_id, now + APNS_TOKEN_TTL_SECONDS
            return token


_token_cache = _ProviderTokenCache()


def send_apns(device_token: str, message: PushMessage) -> bool:
    """True if APNs accepted the notification (HTTP 200)."""
    creds = ApnsCredentials.from_env()
    if creds is None:
        logger.debug("APNs not configured; skipping push")
        return False
    provider_token = _token_cache.get(creds)
    if not provider_token:
        return False
    headers = {
        "authorization": f"bearer {provider_token}",
        "apns-topic": creds.bundle_id,
        "apns-push-type": "alert",
        "apns-priority": "10",
    }
    payload = {
        "aps": {"alert": {"title": message.title, "body": message.body}, "sound": "default"},
        "data": message.data,
    }
    url = f"{APNS_HOSTS[creds.sandbox]}/3/device/{device_token}"
    try:
        with httpx.Client(http2=True, timeout=PUSH_TIMEOUT_SECONDS) as client:
            resp = client.post(url, json=payload, headers=headers)
    except httpx.HTTPError as e:
        logger.warning("APNs request failed: %s", e)
        return False
    if resp.status_code != 200:
        logger.warning("APNs rejected token %s...: %s %s", device_token[:16], resp.status_code, resp.text[:200])
        return False
    return True


def send_expo(device_token: str, message: PushMessage) -> bool:
    """True if Expo accepted the ticket."""
    headers = {"Accept": "application/json", "Content-Type": "application/json"}
    access_token = os.getenv("EXPO_ACCESS_TOKEN")
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"
    body = {
        "to": device_token,
        "sound": "default",
        "title": message.title,
        "body": message.body,
        "data": message.data,
        "priority": "high",
    }
    try:
        with httpx.Client(timeout=PUSH_TIMEOUT_SECONDS) as client:
            resp = client.post(EXPO_PUSH_URL, json=body, headers=headers)
        resp.raise_for_status()
        ticket = (resp.json() or {}).get("data") or {}
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Expo push failed: %s", e)
        return False
    if isinstance(ticket, dict) and ticket.get("status") == "error":
        logger.warning("Expo push error for token %s...: %s", device_token[:24], ticket.get("message"))
        return False
    return True


def send_push(device_token: str, message: PushMessage) -> bool:
    """Route to Expo or APNs by token format."""
    if is_expo_token(device_token):
        return send_expo(device_token, message)
    return send_apns(device_token, message)
