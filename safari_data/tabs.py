"""Safari window and tab control through osascript (JavaScript for Automation).

Each operation runs a small JXA script with /usr/bin/osascript:

  list_windows  -> JSON array of windows, each with its tabs
  activate      <win> [<tab>]
  close         <target> <win> [<tab>]

Windows and tabs are numbered from 1, front to back and left to right.
Talking to Safari through the Scripting Bridge is slow (around half a second
per call), so callers that poll should cache the results.
"""
import asyncio
import json
import sys
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

from safari_data.errors import AutomationError, AutomationTimeout

OSASCRIPT = "/usr/bin/osascript"
DEFAULT_TIMEOUT = 5.0  # seconds

JS_GET_WINDOWS = """
function run(argv) {
  var safari = Application('Safari')
  var results = []
  var wins = safari.windows

  for (var i = 0; i < wins.length; i++) {
    var w = wins[i]
    var data = {'index': i + 1, 'tabs': []}

    // Not a browser window (e.g. Preferences)
    try {
      data['activeTab'] = w.currentTab().index()
    } catch (e) {
      continue
    }

    var tabs = w.tabs
    for (var j = 0; j < tabs.length; j++) {
      data.tabs.push({
        'title': tabs[j].name(),
        'url': tabs[j].url(),
        'index': j + 1,
        'windowIndex': i + 1
      })
    }
    results.push(data)
  }
  return JSON.stringify(results)
}
"""

JS_ACTIVATE = """
ObjC.import('stdlib')

function run(argv) {
  var safari = Application('Safari')
  var winIdx = parseInt(argv[0], 10)
  var tabIdx = argv.length > 1 ? parseInt(argv[1], 10) : 0
  var win, tab

  try {
    win = safari.windows[winIdx - 1]()
  } catch (e) {
    console.log('Invalid window: ' + argv[0])
    $.exit(1)
  }

  if (tabIdx > 0) {
    try {
      tab = win.tabs[tabIdx - 1]()
    } catch (e) {
      console.log('Invalid tab for window ' + winIdx + ': ' + argv[1])
      $.exit(1)
    }
  }

  safari.activate()
  win.visible = false
  win.visible = true

  if (tab && !tab.visible()) {
    win.currentTab = tab
  }
}
"""

JS_CLOSE = """
ObjC.import('stdlib')

function run(argv) {
  var safari = Application('Safari')
  var what = argv[0]
  var winIdx = parseInt(argv[1], 10)
  var win

  try {
    win = safari.windows[winIdx - 1]()
  } catch (e) {
    console.log('Invalid window: ' + argv[1])
    $.exit(1)
  }

  if (what == 'win') {
    win.close()
    return
  }

  var tabIdx = argv.length > 2 ? parseInt(argv[2], 10) : win.currentTab().index()
  var keep = {
    'tab': function(i) { return i !== tabIdx },
    'tabs-other': function(i) { return i === tabIdx },
    'tabs-left': function(i) { return i >= tabIdx },
    'tabs-right': function(i) { return i <= tabIdx }
  }[what]

  if (!keep) {
    console.log('Invalid target: ' + what)
    $.exit(1)
  }

  // Backwards, so indices don't shift while closing
  var tabs = win.tabs
  for (var i = tabs.length; i > 0; i--) {
    if (!keep(i)) {
      tabs[i - 1].close()
    }
  }
}
"""


class CloseTarget(Enum):
    """What close() should close."""
    WINDOW = "win"
    TAB = "tab"
    TABS_OTHER = "tabs-other"
    TABS_LEFT = "tabs-left"
    TABS_RIGHT = "tabs-right"


@dataclass
class Tab:
    """A tab in a Safari window."""
    index: int
    window_index: int
    title: str
    url: str


@dataclass
class Window:
    """A Safari browser window."""
    index: int
    active_tab: int
    tabs: List[Tab] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Window":
        """Build a Window from the JSON produced by JS_GET_WINDOWS."""
        return cls(
            index=data["index"],
            active_tab=data.get("activeTab", 0),
            tabs=[
                Tab(
                    index=t["index"],
                    window_index=t.get("windowIndex", data["index"]),
                    title=t.get("title") or "",
                    url=t.get("url") or "",
                )
                for t in data.get("tabs", [])
            ],
        )

    def to_dict(self) -> dict:
        return asdict(self)


class SafariAutomation:
    """Runs JXA scripts against Safari via osascript."""

    def __init__(self, osascript: str = OSASCRIPT, timeout: float = DEFAULT_TIMEOUT):
        self.osascript = osascript
        self.timeout = timeout

    async def run_script(self, script: str, *argv: str) -> str:
        """Run a JXA script and return its stdout.

        Raises:
            AutomationError: osascript could not be started or exited non-zero
            AutomationTimeout: The script did not finish within the timeout
        """
        try:
            process = await asyncio.create_subprocess_exec(
                self.osascript, "-l", "JavaScript", "-e", script, *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise AutomationError(f"Could not run {self.osascript}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise AutomationTimeout(f"osascript did not finish within {self.timeout}s")

        if process.returncode != 0:
            # console.log() in JXA writes to stderr
            message = stderr.decode("utf-8", "replace").strip()
            raise AutomationError(message or f"osascript exited with status {process.returncode}")

        return stdout.decode("utf-8", "replace")

    async def list_windows(self) -> List[Window]:
        """Get Safari's browser windows and their tabs."""
        output = await self.run_script(JS_GET_WINDOWS)
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise AutomationError(f"Unexpected output from Safari: {output[:200]!r}") from e
        return [Window.from_dict(w) for w in data]

    async def activate(self, win: int, tab: int = 0) -> None:
        """Bring a window (and optionally one of its tabs) to the front.

        Args:
            win: Window number, starting at 1
            tab: Tab number, starting at 1. 0 leaves the current tab alone.
        """
        args = [str(win)]
        if tab > 0:
            args.append(str(tab))
        print(f"[Automation] Activating window {win}, tab {tab}", file=sys.stderr)
        await self.run_script(JS_ACTIVATE, *args)

    async def activate_window(self, win: int) -> None:
        await self.activate(win, 0)

    async def close(self, target: CloseTarget, win: int = 0, tab: int = 0) -> None:
        """Close a window or some of its tabs.

        Args:
            target: What to close
            win: Window number. 0 means the frontmost window.
            tab: Reference tab number. 0 means the window's current tab.
        """
        target = CloseTarget(target)
        if win == 0:
            win = 1
        args = [target.value, str(win)]
        if tab > 0 and target is not CloseTarget.WINDOW:
            args.append(str(tab))
        print(f"[Automation] Closing {target.value} in window {win}, tab {tab}", file=sys.stderr)
        await self.run_script(JS_CLOSE, *args)

    async def close_window(self, win: int = 0) -> None:
        await self.close(CloseTarget.WINDOW, win)

    async def close_tab(self, win: int = 0, tab: int = 0) -> None:
        await self.close(CloseTarget.TAB, win, tab)

    async def close_tabs_other(self, win: int = 0, tab: int = 0) -> None:
        await self.close(CloseTarget.TABS_OTHER, win, tab)

    async def close_tabs_left(self, win: int = 0, tab: int = 0) -> None:
        await self.close(CloseTarget.TABS_LEFT, win, tab)

    async def close_tabs_right(self, win: int = 0, tab: int = 0) -> None:
        await self.close(CloseTarget.TABS_RIGHT, win, tab)


# Global automation instance
_automation: Optional[SafariAutomation] = None


def get_automation() -> SafariAutomation:
    """Get or create the global automation instance."""
    global _automation
    if _automation is None:
        from safari_data.config import get_config
        _automation = SafariAutomation(timeout=get_config().osascript_timeout)
    return _automation
