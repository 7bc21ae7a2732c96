"""
tests/shared/aws/test_tags.py - 태그 기반 리소스 선택 테스트
"""

from __future__ import annotations

import re
from unittest.mock import call

import boto3
from botocore.exceptions import ClientError
import pytest
from conftest import create_mock_client_error, tag_mapping

from core.config import DEFAULT_ARN_RESOURCE_ID_REGEXP, AWSTagSelect
from shared.aws.tags import (
    ResourceTagMapping,
    TagResolver,
    build_tag_filters,
    extract_resource_id_from_arn,
)


@pytest.fixture
def ec2_tag_rule(make_rule):
    return make_rule(
        aws_namespace="AWS/EC2",
        aws_metric_name="CPUUtilization",
        aws_dimensions=("InstanceId",),
        aws_tag_select=AWSTagSelect(
            resource_type_selection="ec2:instance",
            resource_id_dimension="InstanceId",
            tag_selections={"Monitoring": ["enabled"], "Team": None},
        ),
    )


class TestExtractResourceId:
    """ARN 리소스 ID 추출 테스트"""

    @pytest.mark.parametrize(
        "arn,expected",
        [
            ("arn:aws:dynamodb:us-east-1:123:table/orders", "orders"),
            ("arn:aws:ec2:us-east-1:123:instance/i-0abc", "i-0abc"),
            ("arn:aws:sqs:us-east-1:123:my-queue", "my-queue"),
            ("arn:aws:s3:::my-bucket", "my-bucket"),
            ("arn:aws:elasticloadbalancing:us-east-1:123:loadbalancer/app/web/50dc6c", "app/web/50dc6c"),
        ],
    )
    def test_default_pattern(self, arn, expected):
        assert extract_resource_id_from_arn(arn, DEFAULT_ARN_RESOURCE_ID_REGEXP) == expected

    def test_custom_pattern_first_non_empty_group(self):
        """캡처 그룹 중 처음으로 비어 있지 않은 그룹 사용"""
        pattern = re.compile(r"loadbalancer/(net/[^/]+)?(app/[^/]+)?")
        arn = "arn:aws:elasticloadbalancing:us-east-1:123:loadbalancer/app/web/50dc6c"
        assert extract_resource_id_from_arn(arn, pattern) == "app/web"

    def test_no_match(self):
        assert extract_resource_id_from_arn("arn:aws:sqs:x", re.compile(r"table/(\w+)")) == ""


class TestBuildTagFilters:
    """TagFilters 생성 테스트"""

    def test_none_values_match_any(self):
        filters = build_tag_filters({"Env": ["prod", "stage"], "Team": None})
        assert filters == [{"Key": "Env", "Values": ["prod", "stage"]}, {"Key": "Team"}]

    def test_empty(self):
        assert build_tag_filters(None) == []


class TestTagResolver:
    """TagResolver 테스트"""

    def test_no_tag_select_makes_no_calls(self, mock_tagging_client, make_rule):
        """태그 선택 블록이 없으면 API 호출 없음"""
        mappings, resource_ids = TagResolver(mock_tagging_client).resolve(make_rule())

        assert mappings == []
        assert resource_ids is None
        mock_tagging_client.get_paginator.assert_not_called()

    def test_pagination_and_filters(self, mock_tagging_client, recording_counters, ec2_tag_rule):
        """모든 페이지 누적 + 페이지마다 카운터 증가"""
        paginator = mock_tagging_client.get_paginator.return_value
        paginator.paginate.return_value = [
            {
                "ResourceTagMappingList": [
                    tag_mapping("arn:aws:ec2:us-east-1:123:instance/i-1", {"Monitoring": "enabled"}),
                ],
                "PaginationToken": "next",
            },
            {
                "ResourceTagMappingList": [
                    tag_mapping("arn:aws:ec2:us-east-1:123:instance/i-2", {"Monitoring": "enabled", "Team": "a"}),
                ],
                "PaginationToken": "",
            },
        ]

        mappings, resource_ids = TagResolver(mock_tagging_client, recording_counters).resolve(ec2_tag_rule)

        mock_tagging_client.get_paginator.assert_called_once_with("get_resources")
        paginator.paginate.assert_called_once_with(
            ResourceTypeFilters=["ec2:instance"],
            TagFilters=[{"Key": "Monitoring", "Values": ["enabled"]}, {"Key": "Team"}],
        )
        assert [m.arn for m in mappings] == [
            "arn:aws:ec2:us-east-1:123:instance/i-1",
            "arn:aws:ec2:us-east-1:123:instance/i-2",
        ]
        assert mappings[1].tags == {"Monitoring": "enabled", "Team": "a"}
        assert resource_ids == ["i-1", "i-2"]
        assert recording_counters.tagging_request.call_args_list == [
            call("getResources", "ec2:instance"),
            call("getResources", "ec2:instance"),
        ]

    def test_page_error_propagates(self, mock_tagging_client, ec2_tag_rule):
        """페이지 조회 에러는 전파 (일부 결과 사용 안 함)"""

        def pages(**kwargs):
            yield {"ResourceTagMappingList": [tag_mapping("arn:aws:ec2:us-east-1:123:instance/i-1")]}
            raise create_mock_client_error("ThrottlingException", "slow down", "GetResources")

        mock_tagging_client.get_paginator.return_value.paginate.side_effect = pages

        with pytest.raises(ClientError) as exc_info:
            TagResolver(mock_tagging_client).resolve(ec2_tag_rule)
        assert exc_info.value.response["Error"]["Code"] == "ThrottlingException"

    def test_resource_tag_mapping_from_api(self):
        mapping = ResourceTagMapping.from_api(tag_mapping("arn:x", {"Name": "web"}))
        assert mapping == ResourceTagMapping(arn="arn:x", tags={"Name": "web"})


class TestTagResolverWithMoto:
    """moto 통합 테스트 (S3 버킷 태그)"""

    def test_s3_bucket_tags(self, moto_aws, make_rule):
        s3 = boto3.client("s3", region_name="us-east-1")
        s3.create_bucket(Bucket="tagged-bucket")
        s3.put_bucket_tagging(
            Bucket="tagged-bucket",
            Tagging={"TagSet": [{"Key": "Exporter", "Value": "yes"}, {"Key": "Owner", "Value": "data"}]},
        )
        s3.create_bucket(Bucket="untagged-bucket")

        rule = make_rule(
            aws_namespace="AWS/S3",
            aws_metric_name="BucketSizeBytes",
            aws_dimensions=("BucketName", "StorageType"),
            aws_tag_select=AWSTagSelect(
                resource_type_selection="s3",
                resource_id_dimension="BucketName",
                tag_selections={"Exporter": ["yes"]},
            ),
        )
        tagging = boto3.client("resourcegroupstaggingapi", region_name="us-east-1")

        mappings, resource_ids = TagResolver(tagging).resolve(rule)

        assert resource_ids == ["tagged-bucket"]
        assert mappings[0].arn == "arn:aws:s3:::tagged-bucket"
        assert mappings[0].tags["Owner"] == "data"
