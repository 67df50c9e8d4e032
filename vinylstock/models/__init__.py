from .user import User
from .material import Material
from .roll import Roll, ROLL_STATUSES
from .roll_usage import RollUsage

__all__ = [
    "User", "Material", "Roll", "ROLL_STATUSES", "RollUsage",
]
