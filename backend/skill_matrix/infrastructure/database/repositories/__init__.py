from .access import TeamAccessRepository, UserRepository
from .base import BaseRepository
from .organization import (
    DepartmentRepository,
    EmployeeRepository,
    ProductionLineRepository,
    StationRepository,
    TeamRepository,
)
from .skills import RatingWrite, SkillRatingRepository

__all__ = [
    "BaseRepository",
    "DepartmentRepository",
    "EmployeeRepository",
    "ProductionLineRepository",
    "RatingWrite",
    "SkillRatingRepository",
    "StationRepository",
    "TeamAccessRepository",
    "TeamRepository",
    "UserRepository",
]
