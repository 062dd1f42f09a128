# app/models/enums.py

from enum import Enum

# --- User Related Enums ---

class Role(str, Enum):
    """Roles a portal user can hold. Governs every authorization decision."""
    USER = "user"
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"

class Shift(str, Enum):
    """Teaching shift a teacher is assigned to."""
    MORNING = "Morning"
    AFTERNOON = "Afternoon"

# --- Admission Related Enums ---

class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"

class Stream(str, Enum):
    """Study stream chosen in the senior grades."""
    SCIENCE = "Science"
    COMMERCE = "Commerce"
    ARTS = "Arts"

class AdmissionStatus(str, Enum):
    PENDING = "pending"

# --- Class catalog ---

# Fixed set of grade levels, in ascending order. Seeded into the classes collection.
CLASS_CATALOG = (
    "Play",
    "Nursery",
    "KG-1",
    "KG-2",
    "Class 1",
    "Class 2",
    "Class 3",
    "Class 4",
    "Class 5",
    "Class 6",
    "Class 7",
    "Class 8",
    "Class 9",
    "Class 10",
    "Class 11",
    "Class 12",
)

# The four most senior grades require a stream
SENIOR_CLASSES = CLASS_CATALOG[-4:]
