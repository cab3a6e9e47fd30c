# apps/common/base/base_repo.py

from __future__ import annotations

from abc import ABC
from typing import Any, Generic, Optional, TypeVar

from django.db.models import Model, QuerySet

from apps.common.exceptions import NotFoundError

T = TypeVar("T", bound=Model)


class BaseRepo(ABC, Generic[T]):
    """
    仓储基类：服务层只通过仓储访问业务表
    - 子类声明 model；需要联表预取时覆写 get_queryset
    - get_by_id 未命中统一抛 NotFoundError，提示语由 not_found_message 指定
    - 用法示例：class EventRepo(BaseRepo[Event]): model = Event
    """

    #: 子类必须指定对应的模型
    model: type[T]
    #: get_by_id 未命中时的提示
    not_found_message: str = "资源不存在"

    def get_queryset(self) -> QuerySet[T]:
        if not getattr(self, "model", None):
            raise NotImplementedError("BaseRepo 子类必须声明 model 属性")
        return self.model._default_manager.all()

    def filter(self, *, queryset: Optional[QuerySet[T]] = None, **filters) -> QuerySet[T]:
        """
        通用过滤入口，允许注入自定义 QuerySet（空 QuerySet 也按传入值使用）
        """
        qs = queryset if queryset is not None else self.get_queryset()
        return qs.filter(**filters)

    def get_by_id(self, pk: Any, *, queryset: Optional[QuerySet[T]] = None) -> T:
        try:
            return self.filter(queryset=queryset).get(pk=pk)
        except self.model.DoesNotExist as exc:  # type: ignore[attr-defined]
            raise NotFoundError(message=self.not_found_message) from exc

    def get_or_none(self, **filters) -> Optional[T]:
        return self.filter(**filters).first()

    def exists(self, **filters) -> bool:
        return self.filter(**filters).exists()

    def create(self, data: dict) -> T:
        return self.model._default_manager.create(**data)
