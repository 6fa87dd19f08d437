"""
protodice - Client-side resilience for the ProtoDice game client

Request correlation over the game server channel, process-wide fault
interception, fault presentation and best-effort scene recovery.
"""

__version__ = "0.1.0"
