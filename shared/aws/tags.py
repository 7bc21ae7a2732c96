"""
shared/aws/tags.py - 태그 기반 리소스 선택

Resource Groups Tagging API(GetResources)로 규칙의 태그 조건에 맞는
리소스를 찾고, ARN에서 CloudWatch 차원 값으로 쓰일 리소스 ID를 추출합니다.

흐름:
    rule.aws_tag_select
        → TagFilters + ResourceTypeFilters
        → GetResources (페이지 단위, 페이지마다 카운터 증가)
        → ResourceTagMapping 목록 + ARN 정규식으로 추출한 리소스 ID 목록

ARN 리소스 ID 추출:
    정규식의 캡처 그룹 중 처음으로 비어 있지 않은 그룹을 사용합니다.
    매칭되지 않으면 빈 문자열입니다.

    arn:aws:dynamodb:us-east-1:123:table/orders  → "orders"
    arn:aws:sqs:us-east-1:123:my-queue            → "my-queue"
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from shared.aws.metrics.instrumentation import NoopRequestCounters, RequestCounters

if TYPE_CHECKING:
    from core.config.rules import MetricRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceTagMapping:
    """리소스 ARN과 태그

    Attributes:
        arn: 리소스 ARN
        tags: {태그 키: 태그 값} (응답 순서 유지, 키 대소문자 유지)
    """

    arn: str
    tags: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> ResourceTagMapping:
        """GetResources 응답의 ResourceTagMappingList 항목으로 생성"""
        return cls(
            arn=item.get("ResourceARN", ""),
            tags={t["Key"]: t["Value"] for t in item.get("Tags", [])},
        )


def extract_resource_id_from_arn(arn: str, pattern: re.Pattern[str]) -> str:
    """ARN에서 리소스 ID 추출 (첫 번째로 비어 있지 않은 캡처 그룹)"""
    match = pattern.search(arn)
    if match is None:
        return ""
    for group in match.groups():
        if group:
            return group
    return ""


def build_tag_filters(tag_selections: dict[str, list[str] | None] | None) -> list[dict[str, Any]]:
    """GetResources TagFilters 생성 (값 목록이 None이면 키만 일치)"""
    filters: list[dict[str, Any]] = []
    for key, values in (tag_selections or {}).items():
        tag_filter: dict[str, Any] = {"Key": key}
        if values is not None:
            tag_filter["Values"] = list(values)
        filters.append(tag_filter)
    return filters


class TagResolver:
    """규칙의 태그 조건에 맞는 리소스 조회

    Args:
        tagging_client: boto3 resourcegroupstaggingapi client
        counters: API 요청 카운터
    """

    def __init__(self, tagging_client: Any, counters: RequestCounters | None = None):
        self.tagging_client = tagging_client
        self.counters = counters or NoopRequestCounters()

    def resolve(self, rule: MetricRule) -> tuple[list[ResourceTagMapping], list[str] | None]:
        """태그 매핑과 리소스 ID 목록 반환

        태그 선택 블록이 없는 규칙은 API를 호출하지 않고 ([], None)을 반환합니다.
        페이지 조회 중 에러는 그대로 전파되며, 일부 페이지만 반영한 결과는 반환하지 않습니다.

        Returns:
            (ResourceTagMapping 목록, 리소스 ID 목록 또는 None)
        """
        tag_select = rule.aws_tag_select
        if tag_select is None:
            return [], None

        mappings = self.get_resource_tag_mappings(
            tag_select.resource_type_selection,
            tag_select.tag_selections,
        )
        pattern = tag_select.arn_regexp
        resource_ids = [extract_resource_id_from_arn(m.arn, pattern) for m in mappings]

        logger.debug(f"{rule} 태그 조회: 리소스 {len(mappings)}개 ({tag_select.resource_type_selection})")
        return mappings, resource_ids

    def get_resource_tag_mappings(
        self,
        resource_type_selection: str,
        tag_selections: dict[str, list[str] | None] | None,
    ) -> list[ResourceTagMapping]:
        """GetResources 전체 페이지 조회"""
        params: dict[str, Any] = {"ResourceTypeFilters": [resource_type_selection]}
        tag_filters = build_tag_filters(tag_selections)
        if tag_filters:
            params["TagFilters"] = tag_filters

        mappings: list[ResourceTagMapping] = []
        paginator = self.tagging_client.get_paginator("get_resources")
        for page in paginator.paginate(**params):
            self.counters.tagging_request("getResources", resource_type_selection)
            for item in page.get("ResourceTagMappingList", []):
                mappings.append(ResourceTagMapping.from_api(item))

        return mappings
