"""Websocket endpoint for realtime notification delivery."""
