"""Race domain services: store, room registry, fan-out and lifecycle engine.

Transport concerns (Socket.IO handlers, HTTP routes) import from here; nothing
in this package talks to Flask request objects directly.
"""
