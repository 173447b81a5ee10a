"""Caller scope resolved once per request and passed to every component."""

import enum
from dataclasses import dataclass


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    GRADE_LEADER = "GRADE_LEADER"
    DUTY_TEACHER = "DUTY_TEACHER"
    CLASS_TEACHER = "CLASS_TEACHER"
    SUBJECT_TEACHER = "SUBJECT_TEACHER"


@dataclass(frozen=True)
class Scope:
    role: Role
    grade: int | None = None
    class_id: int | None = None

    @property
    def cache_key(self) -> str:
        """Analysis cache scope string for this caller.

        Duty teachers share one analysis per grade (or the whole school);
        class teachers get one per class.
        """
        if self.role == Role.CLASS_TEACHER and self.class_id is not None:
            return f"class-summary-{self.class_id}"
        if self.role == Role.DUTY_TEACHER:
            return f"duty-grade-{self.grade}" if self.grade is not None else "duty"
        if self.grade is not None:
            return f"grade-{self.grade}"
        return "global"

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
