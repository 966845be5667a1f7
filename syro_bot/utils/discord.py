"""
Discord Utilities
Helper functions for replying to invocations and formatting durations
"""

import math
import re
from typing import Any

from syro_bot.utils.logger import get_logger

logger = get_logger("DiscordUtils")

NUMBER_FORMAT = re.compile(r"\B(?=(\d{3})+(?!\d))")


class DiscordUtils:
    """Utility class for Discord-related helper functions."""

    @staticmethod
    async def safe_reply(target: Any, content: str) -> bool:
        """
        Reply to an invocation or message, logging instead of raising.

        Args:
            target: Anything with an async reply(content)
            content: Message content

        Returns:
            True if the reply was sent
        """
        if target is None or not hasattr(target, "reply"):
            return False
        try:
            await target.reply(content)
            return True
        except Exception as e:
            logger.error(f"Failed to send reply: {e}")
            return False

    @staticmethod
    def seconds_left(remaining_ms: float) -> int:
        """Whole seconds to show for a remaining wait, never below 1."""
        return max(1, math.ceil(remaining_ms / 1000))

    @staticmethod
    def format_duration(seconds: int) -> str:
        """
        Format duration in human readable format.

        Args:
            seconds: Duration in seconds

        Returns:
            Formatted duration string
        """
        if seconds < 60:
            return f"{seconds}s"
        if seconds < 3600:
            mins = seconds // 60
            secs = seconds % 60
            return f"{mins}m {secs}s"
        hours = seconds // 3600
        mins = (seconds % 3600) // 60
        return f"{hours}h {mins}m"

    @staticmethod
    def format_number(num: Any) -> str:
        if not isinstance(num, (int, float)):
            return str(num)
        return NUMBER_FORMAT.sub(",", str(num))
