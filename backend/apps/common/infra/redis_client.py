"""
Redis 客户端封装：
- 统一读取 settings 中的 Redis 配置，提供基础的 get/set/delete/json 存取方法
- Redis 不可用时记录警告并返回空结果，由上层回退到数据库查询
"""

from __future__ import annotations

import json
import os
from typing import Any, Optional

import redis
from django.conf import settings

from apps.common.infra.logger import get_logger

_logger = get_logger(__name__)
_client: Optional[redis.Redis] = None


def _get_client() -> redis.Redis:
    """
    获取（并缓存）Redis 客户端；构造本身不发起连接，首次读写时才建立
    """
    global _client
    if _client is None:
        _client = redis.Redis(
            host=getattr(settings, "REDIS_HOST", "127.0.0.1"),
            port=int(getattr(settings, "REDIS_PORT", 6379)),
            db=int(getattr(settings, "REDIS_DB_CACHE", 0)),
            password=os.getenv("REDIS_PASSWORD") or None,
            decode_responses=True,
            socket_connect_timeout=float(os.getenv("REDIS_CONNECT_TIMEOUT", 0.2)),
            socket_timeout=float(os.getenv("REDIS_SOCKET_TIMEOUT", 0.5)),
        )
    return _client


def set(key: str, value: Any, ex: Optional[int] = None) -> None:
    """
    设置键值，可选过期时间（秒）
    """
    try:
        _get_client().set(key, value, ex=ex)
    except redis.RedisError:
        _logger.warning("Redis 写入失败，已跳过", extra={"key": key}, exc_info=True)


def get(key: str) -> Optional[Any]:
    """
    获取键值，若过期、不存在或 Redis 不可用返回 None
    """
    try:
        return _get_client().get(key)
    except redis.RedisError:
        _logger.warning("Redis 读取失败，已跳过", extra={"key": key}, exc_info=True)
        return None


def delete(*keys: str) -> None:
    """删除键，失败时跳过"""
    if not keys:
        return
    try:
        _get_client().delete(*keys)
    except redis.RedisError:
        _logger.warning("Redis 删除键失败，已跳过", extra={"keys": list(keys)})


def set_json(key: str, data: Any, ex: Optional[int] = None) -> None:
    """以 JSON 序列化存储数据，datetime 等按字符串写入"""
    set(key, json.dumps(data, default=str), ex=ex)


def get_json(key: str) -> Optional[Any]:
    """获取 JSON 数据并反序列化，失败返回 None"""
    raw = get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return None
