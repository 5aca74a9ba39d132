"""Session coordination services: store, PINs, roster, lifecycle and scoring.

This package contains the domain logic imported by HTTP routes and socket
handlers, keeping transport concerns separated from game mechanics.
"""
