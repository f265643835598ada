"""
Volume bot package.

This package contains the paired-order loop and its injectable clock and
random source.
"""

from perpbot.bot.clock import Clock, RandomSource, SystemClock
from perpbot.bot.volume_bot import BotConfig, BotRunState, BotStats, VolumeBot

__all__ = [
    "Clock",
    "RandomSource",
    "SystemClock",
    "BotConfig",
    "BotRunState",
    "BotStats",
    "VolumeBot",
]
