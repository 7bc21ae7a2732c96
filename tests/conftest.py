"""
tests/conftest.py - pytest 공통 픽스처

CloudWatch / Tagging API 모킹과 테스트 헬퍼를 제공합니다.

Usage:
    def test_something(mock_cloudwatch_client, make_rule):
        rule = make_rule(aws_dimensions=("LoadBalancerName",))
        ...
"""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

# 프로젝트 루트를 sys.path에 추가
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from core.config import MetricRule  # noqa: E402
from core.parallel import WorkerPool  # noqa: E402
from shared.aws.metrics.instrumentation import NoopRequestCounters  # noqa: E402

# 테스트 기준 시각
FIXED_NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# 환경 설정
# =============================================================================


@pytest.fixture(autouse=True)
def setup_test_environment():
    """테스트 환경 설정"""
    os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

    yield


# =============================================================================
# AWS 모킹 픽스처
# =============================================================================


@pytest.fixture
def mock_cloudwatch_client():
    """CloudWatch 클라이언트 모킹 (기본: 빈 응답)"""
    mock_client = MagicMock()
    mock_client.list_metrics.return_value = {"Metrics": []}
    mock_client.get_metric_statistics.return_value = {"Datapoints": []}
    mock_client.get_metric_data.return_value = {"MetricDataResults": []}
    yield mock_client


@pytest.fixture
def mock_tagging_client():
    """Resource Groups Tagging API 클라이언트 모킹 (기본: 리소스 없음)"""
    mock_client = MagicMock()
    mock_paginator = MagicMock()
    mock_paginator.paginate.return_value = [{"ResourceTagMappingList": []}]
    mock_client.get_paginator.return_value = mock_paginator
    yield mock_client


@pytest.fixture
def counters():
    """기록하지 않는 요청 카운터"""
    return NoopRequestCounters()


@pytest.fixture
def recording_counters():
    """호출 내역을 기록하는 요청 카운터"""
    return MagicMock(spec=NoopRequestCounters)


@pytest.fixture
def worker_pool():
    """테스트용 워커 풀 (테스트 종료 시 정리)"""
    pool = WorkerPool(max_workers=4)
    yield pool
    pool.shutdown()


@pytest.fixture
def make_rule():
    """MetricRule 팩토리 (ELB RequestCount 기본값)"""

    def _make(**overrides: Any) -> MetricRule:
        params: Dict[str, Any] = {
            "aws_namespace": "AWS/ELB",
            "aws_metric_name": "RequestCount",
        }
        params.update(overrides)
        return MetricRule(**params)

    return _make


# =============================================================================
# 응답 헬퍼
# =============================================================================


def list_metrics_page(
    combinations: List[Dict[str, str]],
    namespace: str = "AWS/ELB",
    metric_name: str = "RequestCount",
    next_token: Optional[str] = None,
) -> Dict[str, Any]:
    """ListMetrics 응답 생성"""
    response: Dict[str, Any] = {
        "Metrics": [
            {
                "Namespace": namespace,
                "MetricName": metric_name,
                "Dimensions": [{"Name": k, "Value": v} for k, v in combination.items()],
            }
            for combination in combinations
        ]
    }
    if next_token:
        response["NextToken"] = next_token
    return response


def tag_mapping(arn: str, tags: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """ResourceTagMappingList 항목 생성"""
    return {
        "ResourceARN": arn,
        "Tags": [{"Key": k, "Value": v} for k, v in (tags or {}).items()],
    }


def create_mock_client_error(
    code: str = "AccessDenied",
    message: str = "Access Denied",
    operation: str = "TestOperation",
):
    """ClientError 생성 헬퍼"""
    from botocore.exceptions import ClientError

    error_response = {
        "Error": {
            "Code": code,
            "Message": message,
        }
    }
    return ClientError(error_response, operation)


# =============================================================================
# moto 통합
# =============================================================================


@pytest.fixture
def aws_credentials(monkeypatch):
    """moto 사용 시 AWS 자격 증명 설정"""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def moto_aws(aws_credentials):
    """moto를 사용한 AWS 모킹"""
    from moto import mock_aws

    with mock_aws():
        yield
