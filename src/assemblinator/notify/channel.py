"""Client for the push-style change channel keyed by assembly id.

Two communication channels:
- JSON-RPC (POST <url>/rpc) - Broadcasting change events
- SSE (GET <url>/events?channel=assembly:<id>) - Receiving them in real time

Events are invalidation signals only; receivers re-read authoritative state.
"""

import json
import os
import threading
import time
from typing import Callable, Generator, List, Optional

import requests
import sseclient

from ..logging import get_logger
from .notifier import ChangeEvent

logger = get_logger(__name__)


class RealtimeChannelError(Exception):
    """Exception raised for realtime channel errors."""

    pass


class RealtimeChannel:
    """Publishes change events to, and streams them from, the realtime hub.

    Example:
        channel = RealtimeChannel("http://realtime:4000")
        notifier.subscribe_all(channel.forward)

        def refresh(event: ChangeEvent):
            reload_assembly(event.assembly_id)

        channel.add_handler(refresh)
        channel.start_streaming(assembly_id)
    """

    def __init__(self, base_url: str = None, timeout: int = 10):
        """Initialize the channel client.

        Args:
            base_url: Hub URL (default from REALTIME_URL env)
            timeout: Seconds to wait for a publish request
        """
        self.base_url = (base_url or os.getenv("REALTIME_URL", "")).rstrip("/")
        if not self.base_url:
            raise RealtimeChannelError("REALTIME_URL environment variable is required")
        self.rpc_url = f"{self.base_url}/rpc"
        self.events_url = f"{self.base_url}/events"
        self.timeout = timeout
        self._handlers: List[Callable[[ChangeEvent], None]] = []
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._request_id = 0
        self._rpc_lock = threading.Lock()

    # =========================================================================
    # JSON-RPC (publishing)
    # =========================================================================

    def _call_rpc(self, method: str, params: dict = None):
        """Make a JSON-RPC 2.0 call to the hub.

        Raises:
            RealtimeChannelError: If the request fails or the hub returns an error
        """
        with self._rpc_lock:
            self._request_id += 1
            request_id = self._request_id

        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "id": request_id
        }
        if params:
            payload["params"] = params

        try:
            response = requests.post(self.rpc_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            result = response.json()
        except requests.exceptions.RequestException as e:
            raise RealtimeChannelError(f"Network error: {e}")
        except ValueError as e:
            raise RealtimeChannelError(f"Invalid hub response: {e}")

        if "error" in result:
            error = result["error"]
            raise RealtimeChannelError(f"RPC error {error.get('code')}: {error.get('message')}")
        return result.get("result")

    def publish(self, event: ChangeEvent) -> None:
        """Broadcast an event on the assembly's channel.

        Raises:
            RealtimeChannelError: On delivery failure
        """
        self._call_rpc("broadcast", {
            "channel": event.channel,
            "event": event.to_dict(),
        })
        logger.debug(f"Broadcast {event.kind.value} on {event.channel}")

    def forward(self, event: ChangeEvent) -> None:
        """Notifier handler: publish, logging instead of raising on failure."""
        try:
            self.publish(event)
        except RealtimeChannelError as e:
            logger.warning(f"Change event not broadcast: {e}")

    # =========================================================================
    # SSE streaming (receiving)
    # =========================================================================

    def add_handler(self, handler: Callable[[ChangeEvent], None]) -> None:
        """Add a handler for incoming change events."""
        self._handlers.append(handler)

    def _parse_event(self, data: str) -> Optional[ChangeEvent]:
        """Parse an SSE data field into a ChangeEvent."""
        try:
            payload = json.loads(data)
            return ChangeEvent.from_dict(payload.get("event", payload))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Failed to decode change event: {e}")
            return None

    def stream_events(self, assembly_id: str) -> Generator[ChangeEvent, None, None]:
        """Stream change events for one assembly via SSE.

        Yields:
            ChangeEvent objects as they arrive
        """
        channel = f"assembly:{assembly_id}"
        logger.info(f"Connecting to change stream for {channel}")

        response = requests.get(
            self.events_url,
            params={"channel": channel},
            stream=True,
            timeout=None,
        )
        try:
            response.raise_for_status()

            client = sseclient.SSEClient(response)
            logger.info("Change stream connected")

            for event in client.events():
                if not self._running:
                    break
                if event.data:
                    change = self._parse_event(event.data)
                    if change:
                        yield change
        finally:
            response.close()

    def start_streaming(self, assembly_id: str) -> None:
        """Start SSE streaming in a background thread, reconnecting on errors."""
        if self._running:
            return

        self._running = True

        def stream_loop():
            reconnect_delay = 1
            while self._running:
                try:
                    for change in self.stream_events(assembly_id):
                        if not self._running:
                            break
                        for handler in self._handlers:
                            try:
                                handler(change)
                            except Exception as e:
                                logger.error(f"Handler error: {e}")
                    reconnect_delay = 1
                except Exception as e:
                    logger.error(f"Change stream error: {e}")
                    if self._running:
                        time.sleep(reconnect_delay)
                        reconnect_delay = min(reconnect_delay * 2, 60)

        self._thread = threading.Thread(target=stream_loop, daemon=True)
        self._thread.start()
        logger.info("Change streaming started")

    def stop_streaming(self) -> None:
        """Stop SSE streaming."""
        self._running = False
        if self._thread:
            self._thread.join(timeout=5)
        logger.info("Change streaming stopped")
