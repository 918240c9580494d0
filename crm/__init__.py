"""CRM notification core.

Fans business events (orders, stock levels, customers, announcements) out to
per-user delivery records and pushes them to connected websocket clients.
"""
