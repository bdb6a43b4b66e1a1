# -*- coding: utf-8 -*-
"""
公共模块单测：
- 时间工具与 Schema 基类
- Redis 关闭时的降级行为
- 统一异常响应
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any, ClassVar

from django.http import QueryDict
from django.test import TestCase, override_settings

from apps.common.base.base_schema import BaseSchema
from apps.common.exceptions import BizError, QuotaMissingError, ValidationError
from apps.common.infra import redis_client
from apps.common.response import payload_from_biz_error
from apps.common.tests_utils import TEST_SETTINGS
from apps.common.utils.time import ensure_aware, ms_to_timedelta, parse_datetime_value, timedelta_to_ms


@dataclass
class _SampleSchema(BaseSchema[None]):
    ALIASES: ClassVar[dict[str, str]] = {"areaOfFocus": "area_of_focus"}
    area_of_focus: str = ""
    year: Any = None

    def validate(self) -> None:
        if not self.area_of_focus:
            raise ValidationError(message="请指定领域")


class TimeUtilTests(TestCase):
    def test_ms_conversion(self):
        self.assertEqual(ms_to_timedelta(1500), timedelta(seconds=1.5))
        self.assertEqual(ms_to_timedelta("60000"), timedelta(minutes=1))
        self.assertEqual(timedelta_to_ms(timedelta(hours=1)), 3600000)
        self.assertIsNone(timedelta_to_ms(None))

    def test_parse_datetime(self):
        parsed = parse_datetime_value("2025-03-01T08:00:00Z")
        self.assertEqual(parsed, datetime(2025, 3, 1, 8, 0, tzinfo=dt_timezone.utc))
        self.assertIsNone(parse_datetime_value(""))
        self.assertIsNotNone(ensure_aware(datetime(2025, 3, 1)).tzinfo)
        with self.assertRaises(ValueError):
            parse_datetime_value("not a date")


class BaseSchemaTests(TestCase):
    def test_aliases_and_unknown_fields(self):
        schema = _SampleSchema.from_dict({"areaOfFocus": "Science", "year": 2025, "unknown": 1})
        self.assertEqual(schema.area_of_focus, "Science")
        self.assertEqual(schema.to_dict(exclude=["year"]), {"area_of_focus": "Science"})

    def test_query_dict_and_explicit_validation(self):
        params = QueryDict("areaOfFocus=History")
        self.assertEqual(_SampleSchema.from_dict(params).area_of_focus, "History")
        with self.assertRaises(ValidationError):
            _SampleSchema.from_dict({}, auto_validate=True)


@override_settings(**TEST_SETTINGS)
class RedisDisabledTests(TestCase):
    """REDIS_ENABLED=False 时所有操作降级为空操作"""

    def test_operations_degrade(self):
        redis_client.set_json("k", {"a": 1})
        self.assertIsNone(redis_client.get_json("k"))
        self.assertIsNone(redis_client.acquire_lock("lock", ex=5))
        self.assertEqual(redis_client.delete_prefix("k"), 0)
        redis_client.release_lock("lock")


class BizErrorTests(TestCase):
    def test_defaults_and_payload(self):
        exc = QuotaMissingError(extra={"year": 2025})
        self.assertEqual(exc.http_status, 409)
        payload = payload_from_biz_error(exc)
        self.assertEqual(payload["code"], QuotaMissingError.default_code)
        self.assertEqual(payload["extra"], {"year": 2025})
        self.assertIsInstance(exc, BizError)
