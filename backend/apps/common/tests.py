# -*- coding: utf-8 -*-
"""
公共模块单测：
- 推送分发（提交后执行、失败不外抛、消息结构）
- 全局异常处理器的统一响应结构
- 通用校验工具与 WebSocket 通道
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest import mock

from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.test import SimpleTestCase, TestCase
from rest_framework.exceptions import ValidationError as DRFValidationError

from apps.common.broadcaster import (
    Broadcaster,
    ChannelLayerBroadcaster,
    LeaderboardUpdate,
    NotificationDelivery,
    NullBroadcaster,
    dispatch_after_commit,
)
from django.contrib.auth.models import AnonymousUser

from apps.common.consumers import EventLeaderboardConsumer, NotifyConsumer
from apps.common.exception_handler import custom_exception_handler
from apps.common.exceptions import JudgeNotAssignedError, PermissionDeniedError, ScoreOutOfRangeError, ValidationError
from apps.common.tests_utils import RecordingBroadcaster
from apps.common.utils.validators import parse_positive_int, parse_score
from apps.common.ws_auth import _extract_token
from apps.common.ws_events import LEADERBOARD_UPDATE, NOTIFICATION_NEW, missing_fields


class ExplodingBroadcaster(Broadcaster):
    def broadcast_leaderboard_change(self, event_id: int, reason: str) -> None:
        raise RuntimeError("channel down")

    def broadcast_notification(self, recipient_ids, payload: dict) -> None:
        raise RuntimeError("channel down")


class DispatchAfterCommitTests(TestCase):
    """事件在事务提交后才分发，分发失败只记日志"""

    def test_events_dispatched_on_commit(self):
        recorder = RecordingBroadcaster()
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            dispatch_after_commit(
                [LeaderboardUpdate(event_id=3, reason="evaluation_updated"),
                 NotificationDelivery(recipient_ids=(1, 2), payload={"id": 9})],
                recorder,
            )
            self.assertEqual(recorder.leaderboard_calls, [])

        self.assertEqual(len(callbacks), 2)
        self.assertEqual(recorder.leaderboard_calls, [(3, "evaluation_updated")])
        self.assertEqual(recorder.notification_calls, [((1, 2), {"id": 9})])

    def test_null_broadcaster_accepts_everything(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            dispatch_after_commit(
                [LeaderboardUpdate(event_id=1, reason="x"), NotificationDelivery(recipient_ids=(1,), payload={})],
                NullBroadcaster(),
            )
        self.assertEqual(len(callbacks), 2)

    def test_dispatch_failure_is_logged_not_raised(self):
        with self.assertLogs("apps.common.broadcaster", level="WARNING"):
            with self.captureOnCommitCallbacks(execute=True):
                dispatch_after_commit([LeaderboardUpdate(event_id=1, reason="x")], ExplodingBroadcaster())


class ChannelLayerBroadcasterTests(SimpleTestCase):
    """group_send 消息结构：{type, event, seq, data}"""

    def _layer(self, **kwargs):
        layer = mock.MagicMock()
        layer.group_send = mock.AsyncMock(**kwargs)
        return layer

    def test_leaderboard_message_shape(self):
        layer = self._layer()
        with mock.patch("apps.common.broadcaster.get_channel_layer", return_value=layer):
            ChannelLayerBroadcaster().broadcast_leaderboard_change(5, "submission_scored")

        group, message = layer.group_send.await_args.args
        self.assertEqual(group, "event_5")
        self.assertEqual(message["type"], "broadcast")
        self.assertEqual(message["event"], LEADERBOARD_UPDATE)
        self.assertEqual(message["data"], {"event": 5, "reason": "submission_scored"})
        self.assertIsInstance(message["seq"], int)
        self.assertEqual(missing_fields(LEADERBOARD_UPDATE, message["data"]), [])

    def test_notification_sent_once_per_recipient(self):
        layer = self._layer()
        with mock.patch("apps.common.broadcaster.get_channel_layer", return_value=layer):
            ChannelLayerBroadcaster().broadcast_notification([1, 2, 1], {"id": 9})

        groups = [call.args[0] for call in layer.group_send.await_args_list]
        self.assertEqual(groups, ["user_1", "user_2"])
        self.assertEqual(layer.group_send.await_args.args[1]["event"], NOTIFICATION_NEW)

    def test_send_failure_swallowed(self):
        layer = self._layer(side_effect=RuntimeError("redis down"))
        with mock.patch("apps.common.broadcaster.get_channel_layer", return_value=layer):
            with self.assertLogs("apps.common.broadcaster", level="WARNING"):
                ChannelLayerBroadcaster().broadcast_leaderboard_change(5, "x")

    def test_no_channel_layer_is_noop(self):
        with mock.patch("apps.common.broadcaster.get_channel_layer", return_value=None):
            ChannelLayerBroadcaster().broadcast_notification([1], {"id": 1})


class ExceptionHandlerTests(SimpleTestCase):
    """统一错误结构 {code, message, data, extra?}"""

    def test_permission_error_carries_no_data(self):
        resp = custom_exception_handler(PermissionDeniedError(), {})
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.data["code"], 40300)
        self.assertIsNone(resp.data["data"])
        self.assertNotIn("extra", resp.data)

    def test_judge_not_assigned_is_forbidden(self):
        resp = custom_exception_handler(JudgeNotAssignedError(), {})
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.data["code"], 40301)

    def test_drf_validation_error_mapped(self):
        resp = custom_exception_handler(DRFValidationError({"score": ["必须为数字"]}), {})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["code"], 40002)
        self.assertEqual(resp.data["message"], "必须为数字")

    def test_unexpected_error_returns_500(self):
        with self.assertLogs("apps.common.exception_handler", level="ERROR"):
            resp = custom_exception_handler(KeyError("boom"), {})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.data["code"], 50000)
        self.assertNotIn("boom", resp.data["message"])


class ValidatorTests(SimpleTestCase):
    def test_parse_score(self):
        self.assertEqual(parse_score("7.5", field_name="innovation", minimum=0, maximum=10), 7.5)
        self.assertEqual(parse_score(0, field_name="innovation", minimum=0, maximum=10), 0.0)
        with self.assertRaises(ScoreOutOfRangeError):
            parse_score(10.01, field_name="innovation", minimum=0, maximum=10)
        with self.assertRaises(ScoreOutOfRangeError):
            parse_score(-1, field_name="score", minimum=0, maximum=100)
        for bad in (True, "abc", float("nan"), None):
            with self.assertRaises(ValidationError):
                parse_score(bad, field_name="score", minimum=0, maximum=100)

    def test_parse_positive_int(self):
        self.assertEqual(parse_positive_int("12", field_name="limit"), 12)
        self.assertIsNone(parse_positive_int(None, field_name="limit", required=False))
        for bad in ("0", "-3", "x", True):
            with self.assertRaises(ValidationError):
                parse_positive_int(bad, field_name="limit")
        with self.assertRaises(ValidationError):
            parse_positive_int("", field_name="event_id")

    def test_missing_fields(self):
        self.assertEqual(missing_fields(NOTIFICATION_NEW, {"id": 1, "title": "t"}),
                         ["message", "type", "link", "event_id", "created_at"])
        self.assertEqual(missing_fields("unknown:event", {}), [])


class WebSocketTests(SimpleTestCase):
    """个人通知通道需登录；排行榜通道公开，匿名订阅者也能收到刷新"""

    def test_extract_token(self):
        self.assertEqual(_extract_token({"headers": [(b"authorization", b"Bearer abc")]}), "abc")
        self.assertEqual(_extract_token({"headers": [], "query_string": b"token=xyz"}), "xyz")
        self.assertIsNone(_extract_token({"headers": [], "query_string": b""}))

    async def test_anonymous_rejected(self):
        communicator = WebsocketCommunicator(NotifyConsumer.as_asgi(), "/ws/notify/")
        connected, code = await communicator.connect()
        self.assertFalse(connected)
        self.assertEqual(code, 4401)

    async def test_user_receives_group_broadcast(self):
        communicator = WebsocketCommunicator(NotifyConsumer.as_asgi(), "/ws/notify/")
        communicator.scope["user"] = SimpleNamespace(id=7, is_authenticated=True)
        connected, _ = await communicator.connect()
        self.assertTrue(connected)

        await get_channel_layer().group_send(
            "user_7", {"type": "broadcast", "event": NOTIFICATION_NEW, "seq": 1, "data": {"id": 1}}
        )
        self.assertEqual(
            await communicator.receive_json_from(),
            {"event": NOTIFICATION_NEW, "seq": 1, "data": {"id": 1}},
        )

        await communicator.send_json_to({"type": "ping"})
        pong = await communicator.receive_json_from()
        self.assertEqual(pong["event"], "pong")
        await communicator.disconnect()

    def _leaderboard_communicator(self, event_id: int):
        communicator = WebsocketCommunicator(
            EventLeaderboardConsumer.as_asgi(), f"/ws/events/{event_id}/leaderboard/"
        )
        communicator.scope["user"] = AnonymousUser()
        communicator.scope["url_route"] = {"args": (), "kwargs": {"event_id": str(event_id)}}
        return communicator

    async def test_anonymous_viewer_receives_leaderboard_update(self):
        communicator = self._leaderboard_communicator(11)
        with mock.patch("apps.common.consumers._event_exists", mock.AsyncMock(return_value=True)):
            connected, _ = await communicator.connect()
        self.assertTrue(connected)

        await get_channel_layer().group_send(
            "event_11",
            {"type": "broadcast", "event": LEADERBOARD_UPDATE, "seq": 3,
             "data": {"event": 11, "reason": "evaluation_updated"}},
        )
        self.assertEqual(
            await communicator.receive_json_from(),
            {"event": LEADERBOARD_UPDATE, "seq": 3, "data": {"event": 11, "reason": "evaluation_updated"}},
        )
        await communicator.disconnect()

    async def test_unknown_event_leaderboard_rejected(self):
        communicator = self._leaderboard_communicator(404)
        with mock.patch("apps.common.consumers._event_exists", mock.AsyncMock(return_value=False)):
            connected, code = await communicator.connect()
        self.assertFalse(connected)
        self.assertEqual(code, 4404)


class HealthCheckTests(TestCase):
    def test_health_reports_database_and_layer(self):
        resp = self.client.get("/health/")
        self.assertEqual(resp.status_code, 200)
        data = resp.json()["data"]
        self.assertEqual(data["status"], "ok")
        self.assertTrue(data["database"])
        self.assertEqual(data["channel_layer"], "InMemoryChannelLayer")

    def test_request_id_echoed(self):
        resp = self.client.get("/health/", HTTP_X_REQUEST_ID="trace-123")
        self.assertEqual(resp["X-Request-ID"], "trace-123")
        self.assertTrue(self.client.get("/health/")["X-Request-ID"])
