"""Push gateway (ntfy-style) target resolution & delivery.

A ``NotificationTarget`` is derived from the current settings on every use
and never cached, since settings may change between sweeps. Delivery is one
POST with a plain-text body; there is no retry here. The orchestrator treats
the next scheduled sweep as the retry.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol
from urllib.parse import quote, urlsplit, urlunsplit

import aiohttp

from quifin.config import GATEWAY_SETTINGS, NOTIFICATION_SETTING_KEYS
from quifin.utils import get_logger

logger = get_logger(__name__)


class GatewayConfigError(ValueError):
    """Gateway URL/topic missing or unusable."""


class DeliveryError(RuntimeError):
    """Non-2xx answer or transport failure while posting to the gateway."""

    def __init__(self, message: str, *, status: Optional[int] = None, response_text: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.response_text = response_text


@dataclass(frozen=True, slots=True)
class NotificationSettings:
    """Raw gateway settings; ``None`` means the value is absent."""
    url: Optional[str] = None
    topic: Optional[str] = None
    token: Optional[str] = None

    @classmethod
    def from_mapping(cls, settings: Mapping[str, str]) -> "NotificationSettings":
        """Read the gateway fields out of the settings store using the configured key aliases."""
        def pick(field: str) -> Optional[str]:
            for key in NOTIFICATION_SETTING_KEYS[field]:
                value = settings.get(key)
                if isinstance(value, str) and value.strip():
                    return value
            return None

        return cls(url=pick("url"), topic=pick("topic"), token=pick("token"))


@dataclass(frozen=True, slots=True)
class NotificationTarget:
    url: str
    bearer_token: Optional[str] = None


def _clean(value: object, name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise GatewayConfigError(f"{name} must be a string.")
    return value.strip()


def resolve_target(raw_url: Optional[str], raw_topic: Optional[str], raw_token: Optional[str]) -> NotificationTarget:
    """Merge URL, topic and token into a ready-to-send target.

    A topic, when given, becomes the URL path (each segment percent-encoded).
    Without a topic the URL itself must already name one in its path.

    Raises:
        GatewayConfigError: URL missing or not absolute, or no topic anywhere.
    """
    url = _clean(raw_url, "ntfy_url")
    topic = _clean(raw_topic, "ntfy_topic").strip("/")
    token = _clean(raw_token, "ntfy_bearer_token")

    if not url:
        raise GatewayConfigError("ntfy configuration is missing: ntfy_url is required. Reminder send skipped.")

    try:
        parts = urlsplit(url)
        parts.port  # invalid ports only surface on access
    except ValueError:
        raise GatewayConfigError(f"ntfy_url is not a valid URL ({url}). Reminder send skipped.") from None
    if not parts.scheme or not parts.netloc:
        raise GatewayConfigError(f"ntfy_url is not a valid URL ({url}). Reminder send skipped.")

    has_topic_in_url = any(segment for segment in parts.path.split("/"))
    if not topic and not has_topic_in_url:
        raise GatewayConfigError(
            "ntfy configuration is incomplete: provide ntfy_topic or include topic in ntfy_url. Reminder send skipped."
        )

    path = parts.path
    if topic:
        path = "/" + "/".join(quote(segment, safe="!~*'()") for segment in topic.split("/") if segment)

    return NotificationTarget(
        url=urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment)),
        bearer_token=token or None,
    )


def notification_settings_from(settings: Mapping[str, str]) -> NotificationSettings:
    return NotificationSettings.from_mapping(settings)


def resolve_settings(settings: NotificationSettings) -> NotificationTarget:
    return resolve_target(settings.url, settings.topic, settings.token)


class NotificationGateway(Protocol):
    async def send(self, target: NotificationTarget, title: str, body: str) -> None: ...


class NtfyGatewayClient:
    """Posts plain-text messages to an ntfy-compatible topic URL."""

    def __init__(self, *, timeout_seconds: Optional[float] = None) -> None:
        self.timeout_seconds = float(
            timeout_seconds if timeout_seconds is not None else GATEWAY_SETTINGS["timeout_seconds"]
        )

    async def send(self, target: NotificationTarget, title: str, body: str) -> None:
        headers = {
            "Content-Type": str(GATEWAY_SETTINGS["content_type"]),
            "Title": title,
            "X-Title": title,
        }
        if target.bearer_token:
            headers["Authorization"] = f"Bearer {target.bearer_token}"

        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(target.url, data=body.encode("utf-8"), headers=headers) as response:
                    if not 200 <= response.status < 300:
                        payload = await response.text()
                        logger.warning(
                            "Gateway rejected notification",
                            url=target.url,
                            status_code=response.status,
                        )
                        raise DeliveryError(
                            f"ntfy request failed ({response.status} {response.reason or ''}".rstrip()
                            + ")"
                            + (f": {payload}" if payload else ""),
                            status=response.status,
                            response_text=payload,
                        )
        except aiohttp.ClientError as exc:
            raise DeliveryError(f"ntfy request failed: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise DeliveryError(f"ntfy request timed out after {self.timeout_seconds:g}s") from exc

        logger.debug("Notification delivered", url=target.url, title=title)


__all__ = [
    "GatewayConfigError",
    "DeliveryError",
    "NotificationSettings",
    "NotificationTarget",
    "NotificationGateway",
    "NtfyGatewayClient",
    "resolve_target",
    "resolve_settings",
    "notification_settings_from",
]
