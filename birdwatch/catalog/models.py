"""Immutable catalog snapshot models.

The upstream data file is a list of departments, each with courses, each with
sections. Field names follow the upstream keys through aliases (``sec``,
``cap``, ``rem``, ``crse``); unknown keys are ignored.
"""

from datetime import datetime
from typing import Iterator, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

_FROZEN = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class Section(BaseModel):
    """One section of a course and its seat counts."""

    model_config = _FROZEN

    crn: int = Field(..., description="Course registration number")
    label: str = Field(..., alias="sec", description="Section label, e.g. '01'")
    capacity: int = Field(..., alias="cap", description="Total seats")
    remaining: int = Field(..., alias="rem", description="Seats still available")

    @field_validator("label", mode="before")
    @classmethod
    def coerce_label(cls, v):
        return str(v) if isinstance(v, int) else v


class Course(BaseModel):
    """A course offered by a department."""

    model_config = _FROZEN

    code: str = Field(..., alias="crse", description="Course number within the department")
    id: str = Field("", description="Department-qualified course id, e.g. 'CSCI-1200'")
    title: str = Field(..., description="Course title")
    sections: Tuple[Section, ...] = Field(default_factory=tuple)

    @field_validator("code", "id", mode="before")
    @classmethod
    def coerce_code(cls, v):
        return str(v) if isinstance(v, int) else v


class Department(BaseModel):
    """A department and its courses."""

    model_config = _FROZEN

    code: str = Field(..., description="Department code, e.g. 'CSCI'")
    courses: Tuple[Course, ...] = Field(default_factory=tuple)


class Snapshot(BaseModel):
    """The full catalog for one release, as fetched at ``fetched_at``.

    Snapshots are never mutated; a newer fetch produces a new object.
    """

    model_config = _FROZEN

    release: str = Field(..., description="Release path the data was read from")
    fetched_at: datetime = Field(..., description="When the snapshot was fetched (UTC)")
    departments: Tuple[Department, ...] = Field(default_factory=tuple)

    def iter_sections(self) -> Iterator[Tuple[Department, Course, Section]]:
        """Yield every section in department, course, section order."""
        for department in self.departments:
            for course in department.courses:
                for section in course.sections:
                    yield department, course, section

    def find_section(self, crn: int) -> Optional[Tuple[Course, Section]]:
        """Return the first ``(course, section)`` whose CRN matches, or None."""
        for _, course, section in self.iter_sections():
            if section.crn == crn:
                return course, section
        return None

    @property
    def section_count(self) -> int:
        return sum(1 for _ in self.iter_sections())
