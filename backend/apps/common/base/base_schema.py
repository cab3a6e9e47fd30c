# apps/common/base/base_schema.py

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, fields
from typing import Any, ClassVar, Dict, Generic, Iterable, Mapping, Optional, TypeVar

T = TypeVar("T")
SchemaType = TypeVar("SchemaType", bound="BaseSchema[Any]")


@dataclass
class BaseSchema(ABC, Generic[T]):
    """
    入参 Schema 基类：把请求体/查询参数整理成有类型的结构，校验失败抛 BizError

    子类示例：
        @dataclass
        class TrendQuerySchema(BaseSchema[None]):
            auto_validate: ClassVar[bool] = True
            timeframe: str = "7d"

            def validate(self):
                if self.timeframe not in TIMEFRAMES:
                    raise ValidationError(message="timeframe 不合法")
    """

    #: 构造后是否立即执行 validate
    auto_validate: ClassVar[bool] = False
    #: 外部字段名 -> 内部字段名（如 camelCase 的 eventId -> event_id）
    ALIASES: ClassVar[dict[str, str]] = {}

    def __post_init__(self):
        if self.auto_validate:
            self.validate()

    @abstractmethod
    def validate(self) -> None:
        """
        子类实现字段校验与规范化（去空格、转小写、类型转换），出错时抛 BizError
        """

    def to_dict(self, *, exclude_none: bool = False, exclude: Iterable[str] | None = None) -> Dict[str, Any]:
        data = asdict(self)
        if exclude_none:
            data = {key: value for key, value in data.items() if value is not None}
        for key in exclude or ():
            data.pop(key, None)
        return data

    @classmethod
    def normalize_keys(cls, data: Mapping[str, Any]) -> Dict[str, Any]:
        """
        应用别名并丢弃未声明的字段；别名与正式字段同时出现时以正式字段为准
        """
        declared = {f.name for f in fields(cls)}
        normalized: Dict[str, Any] = {}
        for key, value in data.items():
            target = cls.ALIASES.get(key, key)
            if target not in declared:
                continue
            if target != key and target in data:
                continue
            normalized[target] = value
        return normalized

    @classmethod
    def from_dict(
            cls: type[SchemaType],
            data: Mapping[str, Any],
            *,
            auto_validate: Optional[bool] = None,
    ) -> SchemaType:
        """
        将外部 payload 转为 Schema

        auto_validate=None 时沿用类上的设置（在 __post_init__ 中校验一次）；
        显式传 True 时对未开启自动校验的 Schema 补做一次校验
        """
        if not isinstance(data, Mapping):
            data = dict(data)
        instance = cls(**cls.normalize_keys(data))  # type: ignore[arg-type]
        if auto_validate and not cls.auto_validate:
            instance.validate()
        return instance
