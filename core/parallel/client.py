"""
core/parallel/client.py - CloudWatch / Tagging 클라이언트 생성

수집 사이클에는 별도의 전체 타임아웃이 없으므로, 모든 AWS 호출의 상한은
여기서 설정하는 botocore 연결/읽기 타임아웃과 adaptive retry가 결정합니다.
연결 풀은 워커 풀보다 작으면 스레드가 연결을 기다리게 되므로
collector는 max(25, parallelism) 으로 생성합니다.

Example:
    session = build_session(region="eu-west-1", role_arn=None)
    cloudwatch = get_client(session, "cloudwatch", region_name="eu-west-1")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, cast

from botocore.config import Config
from botocore.exceptions import ClientError

from core.exceptions import APICallError

if TYPE_CHECKING:
    import boto3

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5
RETRY_MODE = "adaptive"
CONNECT_TIMEOUT = 10  # 초
READ_TIMEOUT = 30  # 초
DEFAULT_MAX_POOL_CONNECTIONS = 25

ROLE_SESSION_NAME = "cloudwatch_exporter"


def build_session(region: str | None = None, role_arn: str | None = None) -> boto3.Session:
    """boto3 Session 생성

    role_arn이 있으면 STS AssumeRole 로 받은 임시 자격 증명을 사용합니다.
    자격 증명은 설정 로드(리로드) 시 한 번 발급됩니다.

    Args:
        region: AWS 리전 (None이면 boto3 기본 체인)
        role_arn: 수임할 IAM Role ARN

    Raises:
        APICallError: AssumeRole 실패
    """
    import boto3

    session = boto3.Session(region_name=region)
    if not role_arn:
        return session

    sts = get_client(session, "sts", region_name=region)
    try:
        credentials = sts.assume_role(RoleArn=role_arn, RoleSessionName=ROLE_SESSION_NAME)["Credentials"]
    except ClientError as e:
        raise APICallError.from_client_error("sts", "AssumeRole", e) from e
    logger.info(f"역할 수임 완료: {role_arn} (만료: {credentials['Expiration']})")

    return boto3.Session(
        aws_access_key_id=credentials["AccessKeyId"],
        aws_secret_access_key=credentials["SecretAccessKey"],
        aws_session_token=credentials["SessionToken"],
        region_name=region,
    )


def get_client(
    session: boto3.Session,
    service_name: str,
    region_name: str | None = None,
    max_pool_connections: int = DEFAULT_MAX_POOL_CONNECTIONS,
    config: Config | None = None,
) -> Any:
    """타임아웃/retry가 적용된 boto3 client 생성

    Args:
        session: boto3 Session
        service_name: cloudwatch, resourcegroupstaggingapi, sts
        region_name: 리전 (None이면 세션 기본값)
        max_pool_connections: HTTP 연결 풀 크기
        config: 추가 botocore Config (기본 설정 위에 병합)
    """
    client_config = Config(
        retries={"max_attempts": MAX_ATTEMPTS, "mode": RETRY_MODE},  # pyright: ignore[reportArgumentType]
        connect_timeout=CONNECT_TIMEOUT,
        read_timeout=READ_TIMEOUT,
        max_pool_connections=max_pool_connections,
    )
    if config is not None:
        client_config = client_config.merge(config)

    return session.client(cast(Any, service_name), region_name=region_name, config=client_config)
