class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class SchedulerError(AppError):
    """Raised when the scheduler encounters a logical error or invalid state."""
    reason_code = "scheduler_error"

    def __init__(self, message: str, details: dict = None, status_code: int = 400):
        super().__init__(message, status_code=status_code, details=details)

class InvalidTemplateError(SchedulerError):
    """Raised when a grid template cannot be turned into a weekly slot grid."""
    reason_code = "invalid_template"

class InvalidAssignmentError(SchedulerError):
    """Raised when a class assignment references missing data or asks for nothing."""
    reason_code = "invalid_assignment"

class SchedulingInfeasibleError(SchedulerError):
    """Raised when no placement satisfies the hard constraints for a class."""
    reason_code = "infeasible"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, details=details, status_code=422)

class SchedulingTimeoutError(SchedulerError):
    """Raised when the backtracking search exhausts its attempt ceiling."""
    reason_code = "timeout"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, details=details, status_code=422)

class DoubleBookingError(SchedulerError):
    """Raised when a faculty member would hold the same period in two classes."""
    reason_code = "double_booking"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, details=details, status_code=409)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)
