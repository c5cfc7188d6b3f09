from enum import Enum


class BaseEnum(Enum):
    @classmethod
    def choices(cls):
        return [(item.value, item.name) for item in cls]

    @classmethod
    def values(cls):
        return [item.value for item in cls]


class TokenType(BaseEnum):
    ACCESS = "access"
    REFRESH = "refresh"


class VideoSortField(BaseEnum):
    CREATED_AT = "created_at"
    VIEWS = "views"
    DURATION = "duration"
    TITLE = "title"


class SortType(BaseEnum):
    ASC = "asc"
    DESC = "desc"
