from vidnet.utils.base.enums import BaseEnum, SortType, TokenType, VideoSortField

__all__ = ["BaseEnum", "SortType", "TokenType", "VideoSortField"]
