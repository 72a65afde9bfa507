#!/usr/bin/env python3
# TrailTrack - GPS track filtering and activity statistics
# Copyright (C) 2024 TrailTrack Contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""
Fire-and-forget delivery of accepted fixes to subscribers.

Each subscriber gets its own bounded queue drained by a daemon thread, so
publish() never waits on a subscriber. When a subscriber falls a full queue
behind, new fixes for it are dropped and logged; delivery order per
subscriber is preserved.
"""
import logging
import threading
from queue import Queue, Full, Empty

from .errors import StateError

try:
    from .. import config
except ImportError:
    import config

logger = logging.getLogger(__name__)

_STOP = object()


class _Subscription:
    def __init__(self, callback, max_queue_size):
        self.callback = callback
        self.queue = Queue(maxsize=max_queue_size)
        self.dropped = 0
        self.thread = threading.Thread(target=self._drain, daemon=True,
                                       name=f"fix-subscriber-{id(self):x}")
        self.thread.start()

    def _drain(self):
        while True:
            item = self.queue.get()
            if item is _STOP:
                return
            try:
                self.callback(item)
            except Exception:
                logger.exception("Fix subscriber %r failed", self.callback)

    def offer(self, fix):
        try:
            self.queue.put_nowait(fix)
        except Full:
            self.dropped += 1
            logger.warning("Subscriber %r is %d fixes behind, dropping fix at %s",
                           self.callback, self.queue.maxsize, fix.timestamp)

    def stop(self, timeout):
        """
        Queues the stop marker and waits up to timeout for the backlog to drain.

        Returns:
            int: fixes still queued when the wait ran out
        """
        try:
            self.queue.put(_STOP, timeout=timeout or 0.01)
        except Full:
            # Subscriber is stuck: discard backlog until the stop marker fits
            while True:
                try:
                    self.queue.get_nowait()
                    self.dropped += 1
                except Empty:
                    pass
                try:
                    self.queue.put_nowait(_STOP)
                    break
                except Full:
                    continue
        self.thread.join(timeout)
        if not self.thread.is_alive():
            return 0
        return max(self.queue.qsize() - 1, 0)


class FixPublisher:
    """
    Publish/subscribe channel for accepted fixes.

    Drops are counted per subscriber and kept after unsubscribe and
    close(), so dropped_count reports every fix a subscriber never got.

    Args:
        max_queue_size: per-subscriber backlog (default: config.PUBLISHER_QUEUE_SIZE)
    """

    def __init__(self, max_queue_size=None):
        if max_queue_size is None:
            max_queue_size = getattr(config, 'PUBLISHER_QUEUE_SIZE', 1000)
        self.max_queue_size = max_queue_size
        self._subscriptions = []
        self._retired = []
        self._lock = threading.Lock()
        self._closed = False

    def subscribe(self, callback):
        """
        Registers a callback(fix).

        Returns:
            callable: unsubscribe function

        Raises:
            StateError: if the publisher is closed
        """
        subscription = _Subscription(callback, self.max_queue_size)
        with self._lock:
            if self._closed:
                subscription.stop(0)
                raise StateError("Cannot subscribe to a closed publisher")
            self._subscriptions.append(subscription)

        def unsubscribe():
            with self._lock:
                if subscription not in self._subscriptions:
                    return
                self._subscriptions.remove(subscription)
                self._retired.append(subscription)
            subscription.stop(0)

        return unsubscribe

    def publish(self, fix):
        """Queues a fix for every subscriber without waiting for delivery."""
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.offer(fix)

    @property
    def dropped_count(self):
        with self._lock:
            return sum(s.dropped for s in self._subscriptions + self._retired)

    def close(self, wait=True, timeout=None):
        """
        Stops every subscriber thread.

        With wait, fixes a subscriber has not consumed within the timeout
        are abandoned, counted as dropped and logged.

        Args:
            wait: block until queued fixes are delivered (up to timeout)
            timeout: seconds per subscriber (default: config.PUBLISHER_CLOSE_TIMEOUT)
        """
        if timeout is None:
            timeout = getattr(config, 'PUBLISHER_CLOSE_TIMEOUT', 5.0)
        with self._lock:
            subscriptions = self._subscriptions
            self._subscriptions = []
            self._retired.extend(subscriptions)
            self._closed = True
        for subscription in subscriptions:
            pending = subscription.stop(timeout if wait else 0)
            if wait and pending:
                subscription.dropped += pending
                logger.warning("Subscriber %r did not drain within %.1f s, abandoning %d fixes",
                               subscription.callback, timeout, pending)
