"""
统一 API 响应封装（common.response）

约定返回结构：
{
    "code": 0,            # 0 表示成功；非 0 表示业务错误
    "message": "OK",      # 提示信息
    "data": {...},        # 业务数据（列表、字典、None 均可）
    "extra": {...}        # 可选，附加元信息（如门禁未通过时的待评数量）
}
"""

from typing import Any, Mapping, Optional

from rest_framework import status
from rest_framework.response import Response

from .exceptions import BizError

SUCCESS_CODE = 0  # 约定：成功永远是 0

Payload = dict[str, Any]


def build_payload(
        *,
        code: int = SUCCESS_CODE,
        message: str = "OK",
        data: Any = None,
        extra: Optional[Mapping[str, Any]] = None,
) -> Payload:
    """构造统一的响应字典，不涉及 HTTP/DRF"""
    payload: Payload = {
        "code": code,
        "message": message,
        "data": data,
    }
    if extra:
        payload["extra"] = dict(extra)
    return payload


def payload_from_biz_error(exc: BizError, data: Any = None) -> Payload:
    """异常处理器将 BizError 转换为对外响应"""
    return build_payload(code=exc.code, message=exc.message, data=data, extra=exc.extra)


def api_response(
        *,
        code: int = SUCCESS_CODE,
        message: str = "OK",
        data: Any = None,
        http_status: int = status.HTTP_200_OK,
        extra: Optional[Mapping[str, Any]] = None,
) -> Response:
    """统一构造 DRF Response，所有接口/异常的最终出口"""
    return Response(build_payload(code=code, message=message, data=data, extra=extra), status=http_status)


def success(data: Any = None, message: str = "OK", *, extra: Optional[Mapping[str, Any]] = None) -> Response:
    """业务成功返回：HTTP 200，code 0"""
    return api_response(data=data, message=message, extra=extra)


def created(data: Any = None, message: str = "Created") -> Response:
    """新建资源成功：HTTP 201，code 0"""
    return api_response(data=data, message=message, http_status=status.HTTP_201_CREATED)
