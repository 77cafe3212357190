"""Game domain services: catalogue, payoffs, rounds and tournaments.

This package contains pure domain logic that should be imported by
the session service, keeping persistence and transport concerns separated
from core game mechanics.
"""
