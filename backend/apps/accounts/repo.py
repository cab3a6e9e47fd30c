"""账户模块的数据访问层"""

from __future__ import annotations

from typing import Iterable

from django.contrib.auth import get_user_model
from django.db.models import QuerySet
from django.db.models.functions import Lower

from apps.common.base.base_repo import BaseRepo

User = get_user_model()


class UserRepo(BaseRepo[User]):
    """
    用户仓储：按 ID / 邮箱定位账户
    """

    model = User
    not_found_message = "用户不存在"

    def get_active(self, user_id: int) -> User:
        """获取启用中的用户，不存在或已停用抛 NotFoundError"""
        return self.get_by_id(user_id, queryset=self.filter(is_active=True))

    def ids_by_emails(self, emails: Iterable[str]) -> set[int]:
        """
        按邮箱批量查找启用账户 ID，两侧均转小写后比较
        """
        lowered = {e.strip().lower() for e in emails if e and e.strip()}
        if not lowered:
            return set()
        qs: QuerySet = (
            self.get_queryset()
            .filter(is_active=True)
            .annotate(email_lower=Lower("email"))
            .filter(email_lower__in=lowered)
        )
        return set(qs.values_list("id", flat=True))

    def existing_ids(self, user_ids: Iterable[int]) -> set[int]:
        """过滤掉不存在或已停用的用户 ID"""
        ids = {int(i) for i in user_ids}
        if not ids:
            return set()
        return set(self.filter(pk__in=ids, is_active=True).values_list("id", flat=True))
