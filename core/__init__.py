# core/__init__.py
"""
core - CloudWatch Exporter 인프라

설정, 예외, 병렬 처리, 수집기를 포함하는 최상위 패키지입니다.

아키텍처:
    core/
    ├── config/         # 규칙 모델 + YAML 설정 로더
    ├── parallel/       # boto3 client, 워커 풀, 에러 수집
    ├── cloudwatch/     # 수집기 (CloudWatchCollector)
    └── exceptions.py   # 통합 예외 계층

Usage:
    # 설정 로드
    from core.config import load_config
    config = load_config(Path("config.yml"))

    # 수집
    from core.cloudwatch import CloudWatchCollector
    collector = CloudWatchCollector(config)
    families = collector.scrape()

    # 예외 처리
    from core.exceptions import ConfigError
    try:
        collector.reload(Path("config.yml"))
    except ConfigError as e:
        print(f"설정 오류: {e}")
"""
