# apps/common/schema_utils.py
from __future__ import annotations

from rest_framework import serializers
from drf_spectacular.utils import inline_serializer


def api_response_schema(name: str, data_fields: dict) -> serializers.Serializer:
    """
    构造统一响应 Schema：code/message/data/extra
    - name 用于生成唯一的响应/数据命名
    - data_fields 为 data 内部的字段定义
    """
    normalized_fields = {}
    for key, value in data_fields.items():
        if isinstance(value, type) and issubclass(value, serializers.Serializer):
            normalized_fields[key] = value()
        else:
            normalized_fields[key] = value
    return inline_serializer(
        name=f"{name}Response",
        fields={
            "code": serializers.IntegerField(help_text="业务状态码，0 表示成功"),
            "message": serializers.CharField(help_text="提示信息"),
            "data": inline_serializer(name=f"{name}Data", fields=normalized_fields),
            "extra": serializers.DictField(required=False, allow_null=True, help_text="附加信息"),
        },
    )


def list_response(name: str, item_fields: dict) -> serializers.Serializer:
    """列表响应：data.items 为数组"""
    item = inline_serializer(name=f"{name}Item", fields=item_fields)
    return api_response_schema(name, {"items": serializers.ListField(child=item)})


def round_fields() -> dict:
    """轮次常用字段，供多个接口文档复用"""
    return {
        "id": serializers.IntegerField(),
        "year": serializers.IntegerField(),
        "level": serializers.CharField(),
        "region": serializers.CharField(allow_null=True),
        "council": serializers.CharField(allow_null=True),
        "status": serializers.CharField(),
        "timing_type": serializers.CharField(),
        "start_time": serializers.DateTimeField(allow_null=True),
        "end_time": serializers.DateTimeField(allow_null=True),
        "ended_at": serializers.DateTimeField(allow_null=True),
        "closed_at": serializers.DateTimeField(allow_null=True),
        "leaderboard_visibility": serializers.CharField(),
        "countdown_duration_ms": serializers.IntegerField(allow_null=True),
        "auto_advance": serializers.BooleanField(),
        "wait_for_all_judges": serializers.BooleanField(),
    }
