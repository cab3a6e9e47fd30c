from __future__ import annotations

from typing import Iterable

from rest_framework.test import APIClient

from apps.common.broadcaster import Broadcaster
from apps.common.infra.jwt_provider import issue_access_token


class RecordingBroadcaster(Broadcaster):
    """
    记录型推送实现：只把调用追加到列表里，供测试断言推送内容与次数
    """

    def __init__(self):
        self.leaderboard_calls: list[tuple[int, str]] = []
        self.notification_calls: list[tuple[tuple[int, ...], dict]] = []

    def broadcast_leaderboard_change(self, event_id: int, reason: str) -> None:
        self.leaderboard_calls.append((event_id, reason))

    def broadcast_notification(self, recipient_ids: Iterable[int], payload: dict) -> None:
        self.notification_calls.append((tuple(recipient_ids), payload))

    def reset(self) -> None:
        self.leaderboard_calls.clear()
        self.notification_calls.clear()


class AuthenticatedAPIMixin:
    """
    提供统一的认证客户端构造工具，减少各测试用例的重复代码

    登录接口不在本服务内，这里直接给用户颁发 JWT，走真实的认证类
    """

    client: APIClient  # 由 APITestCase 提供

    def auth_client(self, user) -> APIClient:
        """
        构造附带 Authorization 头的 APIClient
        """
        token = issue_access_token(user)
        client = APIClient()
        client.raise_request_exception = False
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        return client

    def anon_client(self) -> APIClient:
        client = APIClient()
        client.raise_request_exception = False
        return client
