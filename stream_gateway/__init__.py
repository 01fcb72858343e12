"""
Realtime streaming gateway.

Accepts WebSocket connections, groups them into sessions, classifies
inbound frames into data chunks or control messages and delivers
outbound messages to a connection, a session or everyone.
"""

__version__ = "0.1.0"
