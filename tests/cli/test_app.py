"""
tests/cli/test_app.py - CLI 명령어 테스트
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from cli.app import ENV_CONFIG, cli
from conftest import FIXED_NOW, list_metrics_page
from core.cloudwatch import CloudWatchCollector

VALID_CONFIG = """
region: us-east-1
metrics:
  - aws_namespace: AWS/ELB
    aws_metric_name: RequestCount
    aws_dimensions: [AvailabilityZone, LoadBalancerName]
    aws_statistics: [Sum]
  - aws_namespace: AWS/EC2
    aws_metric_name: CPUUtilization
    aws_dimensions: [InstanceId]
    use_get_metric_data: true
    list_metrics_cache_ttl: 300
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text(VALID_CONFIG, encoding="utf-8")
    return path


class TestCheckConfig:
    """check-config 명령어 테스트"""

    def test_valid(self, runner, config_file):
        result = runner.invoke(cli, ["check-config", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "설정 검증 완료: 규칙 2개" in result.output

    def test_env_var(self, runner, config_file):
        """설정 경로를 환경변수로 지정"""
        result = runner.invoke(cli, ["check-config"], env={ENV_CONFIG: str(config_file)})
        assert result.exit_code == 0

    def test_invalid(self, runner, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("region: us-east-1\n", encoding="utf-8")

        result = runner.invoke(cli, ["check-config", "--config", str(path)])

        assert result.exit_code == 1
        assert "metrics" in result.output

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["check-config", "--config", str(tmp_path / "missing.yml")])
        assert result.exit_code == 2


class TestScrape:
    """scrape 명령어 테스트"""

    def test_prints_exposition(
        self, runner, config_file, mock_cloudwatch_client, mock_tagging_client, counters, worker_pool
    ):
        mock_cloudwatch_client.list_metrics.return_value = list_metrics_page(
            [{"LoadBalancerName": "lb1", "AvailabilityZone": "us-east-1a"}]
        )
        mock_cloudwatch_client.get_metric_statistics.return_value = {
            "Datapoints": [{"Timestamp": FIXED_NOW - timedelta(minutes=10), "Sum": 42.0, "Unit": "Count"}]
        }

        def build_collector(config):
            return CloudWatchCollector(
                config,
                cloudwatch_client=mock_cloudwatch_client,
                tagging_client=mock_tagging_client,
                counters=counters,
                pool=worker_pool,
                clock=lambda: FIXED_NOW,
            )

        with patch("cli.app.CloudWatchCollector", side_effect=build_collector):
            result = runner.invoke(cli, ["--log-level", "WARNING", "scrape", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "# TYPE aws_elb_request_count_sum gauge" in result.output
        assert (
            'aws_elb_request_count_sum{availability_zone="us-east-1a",instance="",job="aws_elb",'
            'load_balancer_name="lb1"} 42.0' in result.output
        )
        assert "cloudwatch_exporter_scrape_error 0.0" in result.output
