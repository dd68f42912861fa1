from enum import StrEnum


class ProjectStatus(StrEnum):
    PLANNING = "Planning"
    DEVELOPMENT = "Development"
    TESTING = "Testing"
    LIVE = "Live"
    MAINTENANCE = "Maintenance"
    ON_HOLD = "On Hold"


class IssuePriority(StrEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class IssueStatus(StrEnum):
    OPEN = "Open"
    CLOSED = "Closed"
