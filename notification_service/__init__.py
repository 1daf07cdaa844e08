"""Event-driven notification service.

Consumes domain events from the event bus, fans them out into per-recipient
notification records and pushes them to connected clients.
"""
