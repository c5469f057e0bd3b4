from app.models.activity_log import ActivityLog  # noqa: F401
from app.models.classroom import Classroom, RoomType  # noqa: F401
from app.models.course import Course, CourseSection  # noqa: F401
from app.models.enrollment import Enrollment, EnrollmentStatus  # noqa: F401
from app.models.schedule import Schedule, ScheduleStatus  # noqa: F401
from app.models.user import User, UserRole  # noqa: F401
