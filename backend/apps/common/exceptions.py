"""
业务异常体系（BizError）

约定：
- 评分、晋级、轮次、平局裁决中可预期的失败都抛 BizError 子类
- 错误码与 HTTP 状态随类声明，extra 携带待评数量、非法候选等上下文
- 未预期的异常由全局异常处理器记录堆栈并按 500 返回

错误码规范：
- 0                : 成功（只出现在正常响应里）
- 40000~40099      : 通用请求 / 参数错误（Validation、BadRequest）
- 40100~40199      : 认证错误（未登录、身份无效等）
- 40300~40399      : 权限错误（无权限访问某资源/操作）
- 40400~40499      : 资源不存在（用户、作品、轮次等）
- 40900~40999      : 资源冲突（重复创建、状态冲突等）
- 42900~42999      : 频率限制（节流 / 风控）
- 46000~46009      : 赛事晋级/轮次相关错误（配额缺失、评委未完成、状态非法等）
- 46010~46019      : 平局裁决相关错误
- 46020~46029      : 评分相关错误

使用方式：
- 业务层抛 BizError 或子类；全局异常处理器读取 exc.code/message/http_status/extra 构造统一响应
"""


class BizError(Exception):
    """
    所有业务异常的基类

    - 与 DRF 解耦，服务层和调度器（无请求上下文）都可直接抛出
    - 子类声明 default_code / default_message / http_status，实例可覆盖 message / code / extra
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
    - 字段格式错误
    """
    default_code = 40002
    default_message = "请求参数不合法"
    http_status = 400


class NotFoundError(BizError):
    """
    通用资源不存在：
    - 用户不存在
    - 作品/轮次/平局裁决不存在
    """
    default_code = 40400
    default_message = "资源不存在"
    http_status = 404


class ConflictError(BizError):
    """
    资源冲突：
    - 已存在相同范围的对象
    - 当前状态下不允许重复操作
    """
    default_code = 40900
    default_message = "资源冲突"
    http_status = 409


class RateLimitError(BizError):
    """触发频率限制 / 风控"""
    default_code = 42900
    default_message = "请求过于频繁，请稍后再试"
    http_status = 429


# ======================
# 认证 / 授权相关
# ======================

class AuthError(BizError):
    """
    认证相关错误：
    - 统一归类为 401xx
    """
    default_code = 40100
    default_message = "认证失败"
    http_status = 401


class AccountInactiveError(AuthError):
    """账户处于停用或失效状态"""
    default_code = 40103
    default_message = "账户失效，请联系管理员"
    http_status = 403


class PermissionDeniedError(BizError):
    """
    权限不足：
    - 角色不够（教师访问管理员接口）
    - 不是资源拥有者（评审未分配给自己的作品等）
    """
    default_code = 40300
    default_message = "无权限进行该操作"
    http_status = 403


# ======================
# 赛事晋级 / 轮次领域错误
# ======================

class CompetitionError(BizError):
    """赛事晋级相关通用错误基类"""
    default_code = 46000
    default_message = "赛事晋级相关错误"
    http_status = 400


class QuotaMissingError(CompetitionError):
    """
    晋级配额缺失：
    - 某年度/层级未配置配额时禁止晋级，绝不按 0 处理
    """
    default_code = 46001
    default_message = "未配置该年度与层级的晋级配额，请先设置配额"
    http_status = 409


class JudgesIncompleteError(CompetitionError):
    """
    评委尚未完成评审：
    - 手动关闭轮次时评委门禁未通过
    - extra 中携带 pending_count / reason
    """
    default_code = 46002
    default_message = "仍有评委未完成评审，暂不能关闭轮次"
    http_status = 409


class RoundStateError(CompetitionError):
    """轮次状态不允许当前操作"""
    default_code = 46003
    default_message = "当前轮次状态不允许该操作"
    http_status = 409


class TopLevelReachedError(CompetitionError):
    """已经处于最高层级，不存在下一层级"""
    default_code = 46004
    default_message = "已处于最高层级，无法继续晋级"


# ======================
# 平局裁决领域错误
# ======================

class TieBreakError(BizError):
    """平局裁决相关通用错误基类"""
    default_code = 46010
    default_message = "平局裁决相关错误"
    http_status = 400


class TieBreakResolvedError(TieBreakError):
    """平局裁决已结束"""
    default_code = 46011
    default_message = "平局裁决已结束，不能继续操作"
    http_status = 409


class DuplicateVoteError(TieBreakError):
    """同一评委重复投票"""
    default_code = 46012
    default_message = "你已在本次平局裁决中投过票"
    http_status = 409


class InvalidCandidateError(TieBreakError):
    """投票对象不在候选名单中"""
    default_code = 46013
    default_message = "所选作品不在候选名单中"


class NoVotesError(TieBreakError):
    """尚无投票，无法裁决"""
    default_code = 46014
    default_message = "尚无评委投票，无法裁决"


# ======================
# 评分领域错误
# ======================

class EvaluationError(BizError):
    """评分相关通用错误基类"""
    default_code = 46020
    default_message = "评分相关错误"
    http_status = 400


class DuplicateEvaluationError(EvaluationError):
    """评委已对该作品评分"""
    default_code = 46021
    default_message = "你已对该作品评分，不能重复提交"
    http_status = 409


class SubmissionDisqualifiedError(EvaluationError):
    """作品已被取消资格"""
    default_code = 46022
    default_message = "该作品已被取消资格"
    http_status = 409


# ======================
# 工具函数
# ======================

def require(condition: bool, error: BizError) -> None:
    """
    小工具：用于在业务代码中快速断言业务条件

    用法：
        require(round.status == "pending", RoundStateError("只有待开始的轮次可以激活"))
    """
    if not condition:
        raise error
