"""Realtime infrastructure: the channel-layer event bus, the WebSocket
endpoint that streams bus events to browsers and a reconnecting client.
"""
