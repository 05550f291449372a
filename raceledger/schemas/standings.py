# raceledger/schemas/standings.py
"""Standings schemas."""
from pydantic import BaseModel


class StandingSchema(BaseModel):
    """One member's season aggregate."""
    member_id: int
    member_name: str
    races: int
    total_points: int
    wins: int
    podiums: int
    fastest_laps: int
    pole_positions: int
    best_finish: int | None
    total_penalties: int
    total_warnings: int
