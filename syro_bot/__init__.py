"""
Syro command dispatch core.
"""

__version__ = "1.0.0"
__description__ = "Command dispatch and execution core for a Discord bot"
