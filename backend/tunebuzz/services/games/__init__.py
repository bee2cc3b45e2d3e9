"""Game domain services: answer matching, playlist sampling, scoring and
the game state machine.

This package holds the game mechanics imported by HTTP routes and socket
handlers, keeping transport concerns out of the core rules.
"""
