"""Realtime (Socket.IO) layer: presence, rooms, admin fan-out and event handlers."""
