"""Spotify artwork lookup on macOS via AppleScript."""

import asyncio
import logging
import subprocess
from typing import Optional

from config import CALL_TIMEOUT

logger = logging.getLogger(__name__)

NOT_RUNNING = "not-running"

ARTWORK_SCRIPT = """
if application "Spotify" is running then
  tell application "Spotify"
    return current track's artwork url
  end tell
else
  return "not-running"
end if
"""

# Values osascript prints when the player is up but has no artwork
EMPTY_RESULTS = ("", NOT_RUNNING, "missing value")


class ArtworkSource:
    """Reads the current track's artwork URL from the Spotify desktop app."""

    def __init__(self, timeout: float = CALL_TIMEOUT):
        self.timeout = timeout

    def _run_script(self) -> Optional[str]:
        try:
            result = subprocess.run(
                ["osascript", "-e", ARTWORK_SCRIPT],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            logger.debug("osascript not available")
            return None
        except subprocess.TimeoutExpired:
            logger.debug("osascript timed out after %gs", self.timeout)
            return None

        if result.returncode != 0:
            logger.debug("osascript failed (%d): %s", result.returncode, result.stderr.strip())
            return None

        return result.stdout.strip()

    async def fetch_current_artwork(self) -> Optional[str]:
        """Return the artwork locator, or None when nothing is playing."""
        state = await asyncio.to_thread(self._run_script)
        if state is None or state in EMPTY_RESULTS:
            return None
        return state
