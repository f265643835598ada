"""
perpbot: signed-session client and volume bot for a perpetual-futures venue.
"""

__version__ = "0.1.0"
