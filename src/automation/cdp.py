"""Chrome DevTools Protocol transport.

Drives the agent panel of a Chromium-based editor launched with
--remote-debugging-port. HTTP endpoints (/json/version, /json/list) go
through requests; Runtime.evaluate round trips go through a synchronous
websockets connection, one connection per call.

Activity is measured in-page: a capture-phase click listener stamps
lastActivity and a MutationObserver stamps lastDomChange. poll()
installs the observer (idempotent) and folds the page timestamps into
a cached ActivitySample that get_stats() returns without I/O.

Usage:
    from src.automation.cdp import CDPClient

    client = CDPClient(port=9004)
    if client.is_available():
        client.start(None)
        result = client.send_prompt("Run the test suite")
"""

import itertools
import json
import threading
from typing import Any, Optional

import requests  # type: ignore[import-untyped]
from websockets.exceptions import WebSocketException
from websockets.sync.client import connect

from src.automation.client import ActivitySample, AutomationClient, SendResult
from src.core.exceptions import CDPError
from src.core.logging import get_logger, preview

logger = get_logger(__name__)

DEFAULT_CDP_PORT = 9004
DEFAULT_TIMEOUT_SECONDS = 5.0

OBSERVER_SCRIPT = """
(() => {
  const g = window.__graviAgent || (window.__graviAgent = {
    lastActivity: 0, lastDomChange: 0, installed: false
  });
  if (!g.installed) {
    document.addEventListener('click', () => { g.lastActivity = Date.now(); }, true);
    new MutationObserver(() => { g.lastDomChange = Date.now(); }).observe(
      document.body || document.documentElement,
      {childList: true, subtree: true, characterData: true}
    );
    g.installed = true;
  }
  return {lastActivity: g.lastActivity, lastDomChange: g.lastDomChange};
})()
"""

SEND_SCRIPT = """
(async (text) => {
  const selectors = [
    '[contenteditable="true"][role="textbox"]',
    'textarea',
    '[contenteditable="true"]'
  ];
  let input = null;
  for (const sel of selectors) {
    const found = Array.from(document.querySelectorAll(sel))
      .filter(el => el.offsetParent !== null);
    if (found.length) { input = found[found.length - 1]; break; }
  }
  if (!input) return {success: false, error: 'chat input not found'};
  input.focus();
  if (input.tagName === 'TEXTAREA') {
    const setter = Object.getOwnPropertyDescriptor(HTMLTextAreaElement.prototype, 'value').set;
    setter.call(input, text);
    input.dispatchEvent(new Event('input', {bubbles: true}));
  } else {
    document.execCommand('selectAll', false, null);
    document.execCommand('insertText', false, text);
  }
  await new Promise(r => setTimeout(r, 100));
  const opts = {key: 'Enter', code: 'Enter', keyCode: 13, which: 13, bubbles: true, cancelable: true};
  input.dispatchEvent(new KeyboardEvent('keydown', opts));
  input.dispatchEvent(new KeyboardEvent('keyup', opts));
  return {success: true};
})(__TEXT__)
"""


class CDPClient(AutomationClient):
    """AutomationClient over the Chrome DevTools Protocol.

    Attributes:
        host: Remote-debugging host
        port: Remote-debugging port
        timeout: Per-request timeout in seconds
        dry_run: Log prompts instead of delivering them
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = DEFAULT_CDP_PORT,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        dry_run: bool = False,
    ):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.dry_run = dry_run
        self._running = False
        self._stats = ActivitySample()
        self._stats_lock = threading.Lock()
        self._message_ids = itertools.count(1)

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def is_available(self) -> bool:
        """Check if the remote-debugging endpoint answers.

        Returns:
            True if /json/version responds with 200
        """
        try:
            response = requests.get(f"{self.base_url}/json/version", timeout=self.timeout)
            return bool(response.status_code == 200)
        except requests.RequestException:
            return False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, config: Any = None) -> None:
        """Begin a session and install the activity observer."""
        self._running = True
        logger.info("CDP session started", extra={"context": {"endpoint": self.base_url}})
        self.poll(config)

    def poll(self, config: Any = None) -> None:
        """Refresh cached activity timestamps from every page."""
        if not self._running:
            return
        try:
            pages = self._page_targets()
        except CDPError as e:
            logger.debug(f"Poll skipped: {e}")
            return

        for page in pages:
            try:
                value = self._evaluate(page["webSocketDebuggerUrl"], OBSERVER_SCRIPT)
            except CDPError as e:
                logger.debug(
                    f"Observer evaluation failed: {e}",
                    extra={"context": {"page": page.get("title", "")}},
                )
                continue
            if isinstance(value, dict):
                self._record(
                    ActivitySample(
                        last_activity=float(value.get("lastActivity") or 0),
                        last_dom_change=float(value.get("lastDomChange") or 0),
                    )
                )

    def stop(self) -> None:
        """End the session and forget cached activity."""
        self._running = False
        with self._stats_lock:
            self._stats = ActivitySample()
        logger.info("CDP session stopped")

    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Prompts and stats
    # ------------------------------------------------------------------

    def send_prompt(self, text: str) -> SendResult:
        """Deliver a prompt to the first page that accepts it.

        Args:
            text: Prompt text

        Returns:
            SendResult; transport errors are reported, never raised
        """
        if self.dry_run:
            logger.info(
                "Dry run: prompt not delivered",
                extra={"context": {"prompt": preview(text)}},
            )
            return SendResult.ok()

        try:
            pages = self._page_targets()
        except CDPError as e:
            return SendResult.failed(str(e))

        if not pages:
            return SendResult.failed("no page targets available")

        expression = SEND_SCRIPT.replace("__TEXT__", json.dumps(text))
        last_error = "chat input not found"
        for page in pages:
            try:
                value = self._evaluate(page["webSocketDebuggerUrl"], expression)
            except CDPError as e:
                last_error = str(e)
                continue
            if isinstance(value, dict) and value.get("success"):
                logger.debug(
                    "Prompt delivered",
                    extra={"context": {"page": page.get("title", "")}},
                )
                return SendResult.ok()
            if isinstance(value, dict) and value.get("error"):
                last_error = str(value["error"])

        return SendResult.failed(last_error)

    def get_stats(self) -> ActivitySample:
        """Return cached activity timestamps."""
        with self._stats_lock:
            return self._stats

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _record(self, sample: ActivitySample) -> None:
        with self._stats_lock:
            self._stats = self._stats.merge(sample)

    def _page_targets(self) -> list[dict[str, Any]]:
        """List debuggable page targets.

        Raises:
            CDPError: If the target list cannot be fetched
        """
        try:
            response = requests.get(f"{self.base_url}/json/list", timeout=self.timeout)
            response.raise_for_status()
            targets = response.json()
        except (requests.RequestException, ValueError) as e:
            raise CDPError(f"Cannot list CDP targets: {e}") from e

        if not isinstance(targets, list):
            raise CDPError("Unexpected /json/list payload")

        return [
            t
            for t in targets
            if isinstance(t, dict) and t.get("type") == "page" and t.get("webSocketDebuggerUrl")
        ]

    def _evaluate(self, ws_url: str, expression: str) -> Optional[Any]:
        """Run Runtime.evaluate on one page and return the value.

        Raises:
            CDPError: On connection failure, protocol error or page exception
        """
        message_id = next(self._message_ids)
        request = {
            "id": message_id,
            "method": "Runtime.evaluate",
            "params": {
                "expression": expression,
                "returnByValue": True,
                "awaitPromise": True,
            },
        }

        try:
            with connect(
                ws_url,
                open_timeout=self.timeout,
                close_timeout=self.timeout,
                max_size=None,
            ) as ws:
                ws.send(json.dumps(request))
                while True:
                    reply = json.loads(ws.recv(timeout=self.timeout))
                    # Skip protocol events and replies to other requests
                    if reply.get("id") == message_id:
                        break
        except (WebSocketException, OSError, TimeoutError, ValueError) as e:
            raise CDPError(f"Runtime.evaluate failed: {e}") from e

        if "error" in reply:
            error = reply["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise CDPError(f"CDP error: {message}")

        result = reply.get("result", {})
        if "exceptionDetails" in result:
            details = result["exceptionDetails"]
            raise CDPError(f"Page exception: {details.get('text', 'unknown')}")

        return result.get("result", {}).get("value")
