"""
Cross-process fan-out over Redis pub/sub.

Each process broadcasts to its own connections first and then publishes the
same frame here; peers re-broadcast frames that did not originate from them.
Delivery is at-least-once and unordered across processes, so clients dedupe
on message ids.
"""

import json
import logging
import os
import uuid

import redis

logger = logging.getLogger(__name__)


class FanoutRelay:
    """Publish/subscribe by topic; disabled when no broker URL is configured."""

    def __init__(self, url='', channels=(), timeout=5.0):
        self.url = url
        self.channels = list(channels)
        self.timeout = timeout
        self.origin = f"{os.getpid()}-{uuid.uuid4().hex[:8]}"
        self._client = None
        self._running = False

    @property
    def enabled(self):
        return bool(self.url)

    @property
    def client(self):
        if self._client is None and self.enabled:
            self._client = redis.Redis.from_url(
                self.url,
                socket_timeout=self.timeout,
                socket_connect_timeout=self.timeout,
            )
        return self._client

    def publish(self, channel, frame):
        # Raises on broker failure; callers map that to `<operation>_failed`
        if not self.enabled:
            return 0
        envelope = json.dumps({'origin': self.origin, 'frame': frame})
        return self.client.publish(channel, envelope)

    def decode(self, raw):
        # Returns the relayed frame, or None for our own or unreadable envelopes
        if isinstance(raw, bytes):
            raw = raw.decode('utf-8')
        try:
            envelope = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("[RELAY] Dropping undecodable envelope")
            return None
        if not isinstance(envelope, dict) or envelope.get('origin') == self.origin:
            return None
        frame = envelope.get('frame')
        return frame if isinstance(frame, dict) else None

    def listen(self, handler, sleep):
        """Blocking consume loop; run it as a background task.

        ``handler(channel, frame)`` is called for every foreign frame and
        ``sleep`` yields to the event loop between polls.
        """
        if not self.enabled or not self.channels:
            return
        pubsub = self.client.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(*self.channels)
        self._running = True
        logger.info("[RELAY] Subscribed to %s as %s", ', '.join(self.channels), self.origin)
        try:
            while self._running:
                try:
                    message = pubsub.get_message(timeout=1.0)
                except redis.RedisError:
                    logger.exception("[RELAY] Broker read failed, retrying")
                    sleep(1)
                    continue
                if message is None:
                    sleep(0)
                    continue
                self.dispatch(message, handler)
        finally:
            pubsub.close()

    def dispatch(self, message, handler):
        channel = message.get('channel')
        if isinstance(channel, bytes):
            channel = channel.decode('utf-8')
        frame = self.decode(message.get('data'))
        if frame is None:
            return
        try:
            handler(channel, frame)
        except Exception:
            logger.exception("[RELAY] Handler failed for %s", channel)

    def stop(self):
        self._running = False

    def ping(self):
        return bool(self.client.ping())
