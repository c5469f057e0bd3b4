class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class ValidationError(AppError):
    """Raised when a semester, year or batch identifier is missing or malformed."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )

class ConflictError(AppError):
    """Raised when a committed timetable would double-book a classroom or instructor.

    The solver never produces such a timetable, so this always points at a bug
    or at concurrent tampering with the schedule table.
    """
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=500, details=details)

class GenerationInProgressError(AppError):
    """Raised when a generation run for the same term is already executing."""
    def __init__(self, semester: str, year: int):
        super().__init__(
            f"Schedule generation for {semester} {year} is already in progress",
            status_code=409,
            details={"semester": semester, "year": year},
        )

class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""
    def __init__(self, message: str):
        super().__init__(message, status_code=500)

class TimetableClashError(AppError):
    """Raised when a draft batch would double-book against the approved timetable it was meant to join."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)
