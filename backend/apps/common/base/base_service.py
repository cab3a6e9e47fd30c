# apps/common/base/base_service.py

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from django.db import transaction

from apps.common.exceptions import BizError
from apps.common.infra.logger import get_logger, logger_extra

logger = get_logger(__name__)

ServiceReturn = TypeVar("ServiceReturn")


class BaseService(ABC, Generic[ServiceReturn]):
    """
    Service 层业务逻辑基类

    约束：
        - 只编排业务，不接触 request/response，也不直接推送消息
        - 通过仓储访问持久化层
        - 写操作默认在事务中执行 perform；只读服务设置 atomic_enabled = False
        - 预期内的失败抛 BizError；系统异常原样向上抛出，由全局处理器返回 500

    标准流程：validate(...) -> perform(...) -> handle_error(...)
    """

    atomic_enabled: bool = True

    def validate(self, *args, **kwargs) -> None:
        """
        可选的前置检查（角色、状态等），在事务开启前执行
        """
        return None

    @abstractmethod
    def perform(self, *args, **kwargs) -> ServiceReturn:
        """
        子类必须实现的业务核心逻辑
        """

    def execute(self, *args, **kwargs) -> ServiceReturn:
        try:
            self.validate(*args, **kwargs)
            if self.atomic_enabled:
                with transaction.atomic():
                    return self.perform(*args, **kwargs)
            return self.perform(*args, **kwargs)
        except Exception as exc:
            return self.handle_error(exc)

    def handle_error(self, exc: Exception) -> ServiceReturn:
        """
        BizError 记一条 INFO 后继续抛出；其余异常记录完整堆栈后抛出
        """
        service = type(self).__name__
        if isinstance(exc, BizError):
            logger.info(
                "业务校验未通过",
                extra=logger_extra({"service": service, "code": exc.code, "reason": exc.message}),
            )
            raise exc
        logger.exception(
            "Service 层出现未捕获的系统异常",
            extra=logger_extra({"service": service}),
            exc_info=exc,
        )
        raise exc
