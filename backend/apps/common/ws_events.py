# -*- coding: utf-8 -*-
"""
WebSocket 事件规范（供前后端对齐）：
- 列出推送事件、data 内必选字段、可选字段与说明，避免魔法字符串
- 推送外层结构统一为 {"event": <事件名>, "seq": <自增序号>, "data": {...}}
- 如需新增事件，请在此处补充，保持中文说明
"""

from __future__ import annotations

LEADERBOARD_UPDATE = "leaderboard:update"
NOTIFICATION_NEW = "notification:new"

EVENT_SCHEMAS: list[dict] = [
    {
        "event": LEADERBOARD_UPDATE,
        "required": ["event", "reason"],
        "optional": [],
        "desc": "活动排行榜有变动，仅作刷新提示，不携带分数，前端收到后重新拉取排行榜",
    },
    {
        "event": NOTIFICATION_NEW,
        "required": ["id", "title", "message", "type", "link", "event_id", "created_at"],
        "optional": [],
        "desc": "新的站内通知，仅推送给接收人的个人频道",
    },
]


def missing_fields(event: str, data: dict) -> list[str]:
    """返回 data 中缺失的必选字段，未登记的事件返回空列表"""
    for schema in EVENT_SCHEMAS:
        if schema["event"] == event:
            return [name for name in schema["required"] if name not in data]
    return []
