from pickem import db  # noqa: F401 - imported for model imports

from .game import Game
from .league import League
from .league_membership import LeagueMembership
from .pick import Pick
from .reconciliation_lease import ReconciliationLease
from .team import Team

__all__ = [
    "Team",
    "Game",
    "League",
    "LeagueMembership",
    "Pick",
    "ReconciliationLease",
]
