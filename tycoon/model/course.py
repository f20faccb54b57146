import enum

from pydantic import EmailStr

from .base import WithTimestamps
from .id import CourseID, UserID


class EnrollmentRole(enum.Enum):
    Student = "student"
    Instructor = "instructor"


class EnrollmentStatus(enum.Enum):
    Active = "active"
    Inactive = "inactive"


class User(WithTimestamps):
    user_id: UserID
    email: EmailStr
    name: str


class Course(WithTimestamps):
    course_id: CourseID
    title: str
    code: str


class Enrollment(WithTimestamps):
    course_id: CourseID
    user_id: UserID
    role: EnrollmentRole = EnrollmentRole.Student
    status: EnrollmentStatus = EnrollmentStatus.Active
