"""
cli/app.py - 메인 CLI 엔트리포인트

Click 기반의 CLI 애플리케이션 진입점입니다.

명령어 구조:
    cloudwatch-exporter serve --config config.yml        # /metrics HTTP 서버
    cloudwatch-exporter scrape --config config.yml       # 1회 수집 결과 출력
    cloudwatch-exporter check-config --config config.yml # 설정 검증
    cloudwatch-exporter --log-level DEBUG ...            # 로그 레벨 지정

서버 시그널:
    SIGHUP          설정 리로드 (실패 시 기존 설정 유지)
    SIGINT/SIGTERM  종료 (워커 풀 정리)

설정 파일 경로는 CLOUDWATCH_EXPORTER_CONFIG 환경변수로도 지정할 수 있습니다.

Usage:
    $ cloudwatch-exporter serve --config config.yml --port 9106
    $ python -m cli.app scrape --config config.yml
"""

import logging
import signal
import threading
from pathlib import Path

import click
from prometheus_client import REGISTRY, CollectorRegistry, generate_latest, start_http_server

from cli.ui import console, print_error, print_success, print_table, setup_logging
from core.cloudwatch import CloudWatchCollector
from core.config import ExporterConfig, load_config
from core.exceptions import ExporterError
from core.parallel import shutdown_worker_pool

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9106
ENV_CONFIG = "CLOUDWATCH_EXPORTER_CONFIG"

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

config_option = click.option(
    "-c",
    "--config",
    "config_path",
    required=True,
    envvar=ENV_CONFIG,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="설정 파일 경로 (YAML/JSON)",
)


def _load_or_exit(config_path: Path) -> ExporterConfig:
    """설정 로드 (실패 시 에러 출력 후 종료 코드 1)"""
    try:
        return load_config(config_path)
    except ExporterError as e:
        print_error(str(e))
        raise SystemExit(1) from e


def _collector_or_exit(config: ExporterConfig) -> CloudWatchCollector:
    """수집기 생성 (역할 수임 실패 등은 에러 출력 후 종료 코드 1)"""
    try:
        return CloudWatchCollector(config)
    except ExporterError as e:
        print_error(str(e))
        raise SystemExit(1) from e


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="INFO",
    show_default=True,
    help="로그 레벨",
)
def cli(log_level: str) -> None:
    """CloudWatch 메트릭을 Prometheus 형식으로 노출합니다."""
    setup_logging(log_level)


@cli.command("serve")
@config_option
@click.option("-p", "--port", default=DEFAULT_PORT, show_default=True, type=int, help="HTTP 포트")
@click.option("-a", "--address", default="0.0.0.0", show_default=True, help="바인드 주소")
def serve_command(config_path: Path, port: int, address: str) -> None:
    """/metrics HTTP 서버 실행"""
    config = _load_or_exit(config_path)
    collector = _collector_or_exit(config)
    REGISTRY.register(collector)

    start_http_server(port, addr=address)
    logger.info(f"서버 시작: http://{address}:{port}/metrics (규칙 {len(config.rules)}개)")

    stop = threading.Event()

    def _reload(signum, frame) -> None:
        logger.info(f"설정 리로드 요청: {config_path}")
        try:
            collector.reload(config_path)
        except Exception as e:
            # reload()가 상세 로그를 남기므로 요약만 출력
            print_error(f"설정 리로드 실패, 기존 설정 유지: {e}")

    def _stop(signum, frame) -> None:
        logger.info(f"종료 시그널 수신: {signal.Signals(signum).name}")
        stop.set()

    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, _reload)
    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)

    try:
        while not stop.wait(1.0):
            pass
    finally:
        REGISTRY.unregister(collector)
        shutdown_worker_pool()
        logger.info("서버 종료")


@cli.command("scrape")
@config_option
def scrape_command(config_path: Path) -> None:
    """수집 1회 실행 후 Prometheus 텍스트 형식으로 출력"""
    config = _load_or_exit(config_path)

    registry = CollectorRegistry()
    registry.register(_collector_or_exit(config))
    try:
        click.echo(generate_latest(registry).decode("utf-8"), nl=False)
    finally:
        shutdown_worker_pool()


@cli.command("check-config")
@config_option
def check_config_command(config_path: Path) -> None:
    """설정 파일 검증 및 규칙 목록 출력"""
    config = _load_or_exit(config_path)

    rows = []
    for rule in config.rules:
        tag_select = rule.aws_tag_select
        rows.append(
            [
                rule.aws_namespace,
                rule.aws_metric_name,
                ", ".join(rule.aws_dimensions) or "-",
                ", ".join(rule.all_statistics),
                "GetMetricData" if rule.use_get_metric_data else "GetMetricStatistics",
                str(config.cache_config.get_ttl(rule)),
                tag_select.resource_type_selection if tag_select else "-",
            ]
        )

    print_table(
        f"{config_path.name} (region={config.region or 'default'}, parallelism={config.parallelism})",
        ["Namespace", "Metric", "Dimensions", "Statistics", "API", "Cache TTL", "Tag Select"],
        rows,
    )
    console.print()
    print_success(f"설정 검증 완료: 규칙 {len(config.rules)}개")


if __name__ == "__main__":
    cli()
