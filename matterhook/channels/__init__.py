"""Relay endpoints: the Matterbridge stream reader and the webhook worker."""

from matterhook.channels.base import BaseChannel
from matterhook.channels.matterbridge import MatterbridgeChannel, build_stream_url
from matterhook.channels.webhook import WebhookChannel

__all__ = ["BaseChannel", "MatterbridgeChannel", "WebhookChannel", "build_stream_url"]
