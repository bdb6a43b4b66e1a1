"""
自定义全局异常处理器（DRF 入口）：
- 统一前端收到的错误结构，区分业务错误与系统异常
- 处理策略：
  1) BizError 及子类 → 直接转换为 {code, message, data, extra}
  2) DRF / Django 内置异常（校验/认证/权限/不存在/节流）→ 映射为 BizError，再统一输出
  3) 未知/系统异常 → 记录完整日志，返回 500 标准格式，避免泄露内部信息
"""

from typing import Any

from django.core.exceptions import ObjectDoesNotExist, ValidationError as DjangoValidationError
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    AuthenticationFailed,
    NotAuthenticated,
    NotFound as DRFNotFound,
    ParseError,
    PermissionDenied as DRFPermissionDenied,
    Throttled,
    ValidationError as DRFValidationError,
)
from rest_framework.response import Response

from .exceptions import (
    AuthError,
    BadRequestError,
    BizError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ValidationError as BizValidationError,
)
from .infra.logger import get_logger, logger_extra
from .response import api_response, payload_from_biz_error
from .utils.request_context import get_request_context

logger = get_logger(__name__)


def _extract_message(detail: Any) -> str:
    """
    从 DRF 的 detail 结构中提取第一条可读错误信息
    detail 可能是 str / list / dict / 其他结构
    """
    if isinstance(detail, str):
        return detail
    if isinstance(detail, list) and detail:
        return _extract_message(detail[0])
    if isinstance(detail, dict) and detail:
        return _extract_message(next(iter(detail.values())))
    return str(detail)


def _map_to_biz(exc: Exception) -> BizError | None:
    """把框架内置异常映射为 BizError 子类，映射不到返回 None"""
    if isinstance(exc, DRFValidationError):
        return BizValidationError(message=_extract_message(exc.detail), extra={"raw_detail": exc.detail})
    if isinstance(exc, DjangoValidationError):
        return BizValidationError(message=_extract_message(exc.messages))
    if isinstance(exc, ParseError):
        return BadRequestError(message=_extract_message(exc.detail))
    if isinstance(exc, (AuthenticationFailed, NotAuthenticated)):
        return AuthError(message=_extract_message(exc.detail))
    if isinstance(exc, DRFPermissionDenied):
        return PermissionDeniedError(message=_extract_message(exc.detail))
    if isinstance(exc, (DRFNotFound, Http404, ObjectDoesNotExist)):
        return NotFoundError()
    if isinstance(exc, Throttled):
        return RateLimitError(
            message=_extract_message(exc.detail),
            extra={"wait": getattr(exc, "wait", None)},
        )
    return None


def _handle_unexpected_exception(exc: Exception, context: dict) -> Response:
    """
    非 BizError、非框架异常的程序错误：记录完整堆栈，返回统一 500
    """
    ctx = get_request_context()
    req = context.get("request")
    view = context.get("view")
    logger.exception(
        "接口出现未处理的系统异常",
        exc_info=exc,
        extra=logger_extra(
            {
                "path": getattr(req, "path", None),
                "method": getattr(req, "method", None),
                "view": view.__class__.__name__ if view else None,
            }
        ),
    )
    return api_response(
        code=50000,
        message="内部服务器错误，请联系管理员或稍后重试",
        data=None,
        http_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        extra={"request_id": ctx.get("request_id")},
    )


def custom_exception_handler(exc: Exception, context: dict) -> Response | None:
    """
    DRF 入口函数：全局异常处理器

    处理顺序：
    1. 业务异常（BizError） → 直接按统一格式返回；
    2. 内置异常 → 映射为 BizError 子类后返回；
    3. 其余 APIException → 保留原状态码包一层统一结构；
    4. 其它异常 → 视为系统异常，返回 500
    """
    if isinstance(exc, BizError):
        return Response(payload_from_biz_error(exc), status=exc.http_status)

    mapped = _map_to_biz(exc)
    if mapped is not None:
        return Response(payload_from_biz_error(mapped), status=mapped.http_status)

    if isinstance(exc, APIException):
        status_code = exc.status_code
        return api_response(
            code=40000 if status_code < 500 else 50000,
            message=_extract_message(exc.detail),
            data=None,
            http_status=status_code,
        )

    return _handle_unexpected_exception(exc, context)
