"""
SQLAlchemy models for the tables the reminder reads
"""
from reminder.models.entity import EntityInstance, EntityType
from reminder.models.evaluation import (EvaluationRuleEntity, EvaluationStatus,
                                        LatestEvaluationStatus)

__all__ = [
    "EntityInstance",
    "EntityType",
    "EvaluationRuleEntity",
    "EvaluationStatus",
    "LatestEvaluationStatus",
]
