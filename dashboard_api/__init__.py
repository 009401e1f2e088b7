"""Dashboard API for the stream engine.

FastAPI backend exposing stream registration, start/stop/restart control,
asset deletion and a WebSocket feed of status and progress events.
"""

__version__ = "1.0.0"
