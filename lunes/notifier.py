"""
LUNES AUTOLOGIN - WeChat Work Notifications

Group-robot webhook client: text, markdown and image messages. Images are
uploaded first (upload_media) and then sent by media_id.

Notifications are best effort. A missing WECHAT_KEY, HTTP failures and API
errors (errcode != 0) are logged and never raised, so a notification problem
cannot abort a login run.
"""

import os

import requests

from lunes.utils import log


WECHAT_WEBHOOK_BASE = "https://qyapi.weixin.qq.com/cgi-bin/webhook"

# Upload limit enforced by the webhook API
MAX_IMAGE_BYTES = 2 * 1024 * 1024

SEND_TIMEOUT_S = 30
UPLOAD_TIMEOUT_S = 60


class WechatNotifier:
    """WeChat Work group-robot client.

    Usage:
        notifier = WechatNotifier()
        notifier.send_text("Login OK")
        media_id = notifier.upload_image(png_bytes, "servers_list.png")
        notifier.send_image(media_id)
    """

    def __init__(self, key=None):
        """Initialize with a webhook key (default: WECHAT_KEY from .env)."""
        self._key = key if key is not None else os.getenv("WECHAT_KEY", "")
        if not self._key:
            log("[NOTIFY] WARNING: WECHAT_KEY not set - notifications disabled")

    @property
    def enabled(self):
        return bool(self._key)

    def _post(self, endpoint, action, timeout, **kwargs):
        """POST to a webhook endpoint and return the decoded body on errcode 0.

        Args:
            endpoint: Path under WECHAT_WEBHOOK_BASE, with query string.
            action: Label for log lines (e.g. "text send").
            timeout: Request timeout in seconds.
            **kwargs: Passed to requests.post (json=..., files=...).

        Returns:
            dict or None: Response body, or None on any failure.
        """
        url = f"{WECHAT_WEBHOOK_BASE}/{endpoint}"
        try:
            response = requests.post(url, timeout=timeout, **kwargs)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout:
            log(f"[NOTIFY] {action} timeout ({timeout}s)")
            return None
        # requests.JSONDecodeError is also a RequestException
        except requests.exceptions.JSONDecodeError as e:
            log(f"[NOTIFY] {action} response parse error: {type(e).__name__}: {e}")
            return None
        except requests.exceptions.RequestException as e:
            log(f"[NOTIFY] {action} HTTP error: {type(e).__name__}: {e}")
            return None
        except ValueError as e:
            log(f"[NOTIFY] {action} response parse error: {type(e).__name__}: {e}")
            return None

        if not isinstance(data, dict):
            log(f"[NOTIFY] {action} unexpected response: {type(data).__name__}")
            return None

        if data.get("errcode") != 0:
            log(f"[NOTIFY] {action} failed: errcode={data.get('errcode')}, "
                f"errmsg={data.get('errmsg')}")
            return None

        return data

    def _send(self, payload, action):
        if not self.enabled:
            log(f"[NOTIFY] WECHAT_KEY not set, skipping {action}")
            return False

        data = self._post(f"send?key={self._key}", action, SEND_TIMEOUT_S, json=payload)
        if data is None:
            return False

        log(f"[NOTIFY] {action} OK")
        return True

    def send_text(self, text):
        """Send a plain text message.

        Returns:
            bool: True if the API accepted the message.
        """
        return self._send({"msgtype": "text", "text": {"content": text}}, "text send")

    def send_markdown(self, markdown):
        return self._send(
            {"msgtype": "markdown", "markdown": {"content": markdown}},
            "markdown send",
        )

    def send_image(self, media_id):
        """Send a previously uploaded image. A missing media_id is a no-op."""
        if not media_id:
            return False
        return self._send({"msgtype": "image", "image": {"media_id": media_id}}, "image send")

    def upload_image(self, data, filename="screenshot.png"):
        """Upload PNG bytes as temporary media.

        Args:
            data: PNG image bytes.
            filename: File name reported to the API.

        Returns:
            str or None: media_id, or None if skipped or failed.
        """
        if not self.enabled:
            log("[NOTIFY] WECHAT_KEY not set, skipping image upload")
            return None

        if not data:
            return None

        if len(data) > MAX_IMAGE_BYTES:
            log(f"[NOTIFY] Image too large ({len(data) / 1024 / 1024:.2f}MB), "
                f"limit is {MAX_IMAGE_BYTES // (1024 * 1024)}MB")
            return None

        result = self._post(
            f"upload_media?key={self._key}&type=image",
            "image upload",
            UPLOAD_TIMEOUT_S,
            files={"media": (filename, data, "image/png")},
        )
        if result is None:
            return None

        media_id = result.get("media_id")
        log(f"[NOTIFY] Image uploaded: media_id={media_id}")
        return media_id

    def send_screenshot(self, data, filename="screenshot.png"):
        """Upload and send a screenshot in one step."""
        return self.send_image(self.upload_image(data, filename))
