"""Domain-specific realtime publishers.

These modules contain *publish* helpers only (build payload + emit): async
``deliver_*`` coroutines used by the Socket.IO handlers and sync ``publish_*``
wrappers used by Django views, tasks and signals. They must not define
Socket.IO server instances or connection handlers.
"""
