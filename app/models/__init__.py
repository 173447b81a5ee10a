from app.models.check import SchoolClass, CheckItem, CheckRecord
from app.models.analytics import AiAnalysis, AiModuleConfig

__all__ = [
    "SchoolClass",
    "CheckItem",
    "CheckRecord",
    "AiAnalysis",
    "AiModuleConfig",
]
