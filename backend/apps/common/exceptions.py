"""
业务异常体系（BizError）

约定与作用：
- 所有“预期内的业务错误”都继承 BizError，避免直接抛框架异常
- 统一错误码/HTTP 状态/提示语，便于前后端对齐
- 系统级错误（代码 bug、数据库故障等）由全局异常处理器按 500 处理

错误码规范：
- 0                : 成功（只出现在正常响应里）
- 40000~40099      : 通用请求 / 参数错误（Validation、BadRequest）
- 40100~40199      : 认证错误（未登录、Token 无效等）
- 40300~40399      : 权限错误（无权限访问某活动/评审等）
- 40400~40499      : 资源不存在（活动、队伍、评审记录等）
- 46000~46099      : 活动状态相关错误（草稿活动不可报名等）
- 47000~47099      : 评审相关错误（评分越界、评审未分配等）
- 50300~50399      : 基础设施/依赖不可用（缓存、聚合查询等）

使用方式：
- 业务层抛 BizError 或子类；全局异常处理器读取 exc.code/message/http_status/extra 构造统一响应
"""


class BizError(Exception):
    """
    所有业务异常的基类

    设计要点：
    - 不耦合 DRF / Response，只是纯数据和语义；
    - 子类只需覆盖 default_code / default_message / http_status；
    - 也可以在 __init__ 时传入自定义 message / code / extra 做覆盖
    """

    #: 子类可覆盖的默认错误码
    default_code: int = 40000

    #: 子类可覆盖的默认提示信息
    default_message: str = "业务错误"

    #: 子类可覆盖的建议 HTTP 状态码（交给异常处理器用）
    http_status: int = 400

    def __init__(self, message: str | None = None, code: int | None = None, *, extra: dict | None = None):
        self.code = code if code is not None else self.default_code
        self.message = message if message is not None else self.default_message
        self.extra = extra or {}
        super().__init__(self.message)

    def __str__(self) -> str:  # 方便日志输出
        return f"[{self.code}] {self.message}"


# ======================
# 通用类错误
# ======================

class BadRequestError(BizError):
    """
    通用的 400 错误：
    - 无法解析的请求
    - 请求格式错误/缺少头信息等
    """
    default_code = 40001
    default_message = "错误的请求"
    http_status = 400


class ValidationError(BizError):
    """
    参数校验 / 请求数据不合法：
    - 缺少必要字段
    - 字段格式或取值范围错误
    """
    default_code = 40002
    default_message = "请求参数不合法"
    http_status = 400


class NotFoundError(BizError):
    """
    通用资源不存在：
    - 活动 / 队伍 / 作品不存在
    - 某个 ID 对应的资源未找到
    """
    default_code = 40400
    default_message = "资源不存在"
    http_status = 404


# ======================
# 认证 / 授权相关
# ======================

class AuthError(BizError):
    """
    认证相关错误（未登录、Token 等）：
    - 统一归类为 401xx
    """
    default_code = 40100
    default_message = "认证失败"
    http_status = 401


class TokenError(AuthError):
    """
    Token 无效 / 过期 / 被吊销
    """
    default_code = 40102
    default_message = "登录状态已失效，请重新登录"


class AccountInactiveError(AuthError):
    """
    账户处于停用状态
    """
    default_code = 40103
    default_message = "账户失效，请联系管理员"


class PermissionDeniedError(BizError):
    """
    权限不足：
    - 角色不够（参赛者访问主办方接口）
    - 不是资源拥有者（访问他人主办的活动）
    - 评委访问未分配的活动

    message 保持通用，不在 extra 中回显资源数据
    """
    default_code = 40300
    default_message = "无权限进行该操作"
    http_status = 403


# ======================
# 活动领域错误
# ======================

class EventError(BizError):
    """活动相关通用错误基类"""
    default_code = 46000
    default_message = "活动相关错误"
    http_status = 400


class EventNotOpenError(EventError):
    """草稿活动不接受报名"""
    default_code = 46001
    default_message = "活动尚未发布，暂不可报名"


class TeamNotInEventError(EventError):
    """队伍不属于该活动"""
    default_code = 46002
    default_message = "队伍不属于当前活动"


# ======================
# 评审领域错误
# ======================

class JudgingError(BizError):
    """评审相关通用错误基类"""
    default_code = 47000
    default_message = "评审相关错误"
    http_status = 400


class ScoreOutOfRangeError(JudgingError):
    """评分超出允许范围"""
    default_code = 47001
    default_message = "评分超出允许范围"


class JudgeNotAssignedError(PermissionDeniedError):
    """评委未被分配到该活动"""
    default_code = 40301
    default_message = "无权限进行该操作"


# ======================
# 基础设施 / 依赖错误
# ======================

class InfrastructureError(BizError):
    """
    基础设施或依赖不可用：
    - 缓存 / 数据库 / 推送通道故障
    """
    default_code = 50300
    default_message = "系统服务暂时不可用，请稍后重试"
    http_status = 503


class AggregationDegradedError(InfrastructureError):
    """
    统计聚合查询失败：
    - 仪表盘/趋势读取时底层存储异常
    - Service 层捕获后返回零值并标记 degraded，不直接暴露给调用方
    """
    default_code = 50305
    default_message = "统计数据暂时不可用"
    http_status = 503

