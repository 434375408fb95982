"""Signal feed factory."""
from __future__ import annotations

from typing import Callable

from launchgate.channel import SignalChannel
from launchgate.config import SignalConfig

from .base import BaseFeed, ManualFeed


FEED_TYPES: dict[str, Callable[..., BaseFeed]] = {}


def register(feed_type: str, factory: Callable[..., BaseFeed]) -> None:
    FEED_TYPES[feed_type] = factory


def create_feed(cfg: SignalConfig, channel: SignalChannel) -> BaseFeed:
    if cfg.type not in FEED_TYPES:
        raise ValueError(f"unknown signal feed type '{cfg.type}'")
    return FEED_TYPES[cfg.type](cfg.type, channel, cfg.options)


from .http import HTTPFeed
from .mqtt import MQTTFeed

register("manual", lambda feed_id, channel, options: ManualFeed(feed_id, channel, options))
register("mqtt", lambda feed_id, channel, options: MQTTFeed(feed_id, channel, options))
register("http", lambda feed_id, channel, options: HTTPFeed(feed_id, channel, options))
