"""
Redis 键名集中管理，缓存写入与失效两侧使用同一套键
"""

from __future__ import annotations

from typing import Iterable

LEADERBOARD_PREFIX = "event:{event_id}:leaderboard"


def leaderboard_key(event_id: int, board_type: str) -> str:
    """排行榜缓存键：board_type 为 team / submission"""
    return f"{LEADERBOARD_PREFIX.format(event_id=event_id)}:{board_type}"


def leaderboard_keys(event_id: int, board_types: Iterable[str]) -> list[str]:
    """同一活动下所有类型的排行榜键，得分变化时一并失效"""
    return [leaderboard_key(event_id, board_type) for board_type in board_types]
