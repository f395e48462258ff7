"""Shared test fixtures."""

import boto3
import pytest
from moto import mock_aws

DATA_LAKE_TEMPLATE = """{
    "AWSTemplateFormatVersion": "2010-09-09",
    "Resources": {
        "DataLakeBucket": {
            "Type": "AWS::S3::Bucket",
            "Properties": {
                "BucketName": "iceberg-datalake-test"
            }
        }
    }
}"""


@pytest.fixture
def aws_credentials(monkeypatch):
    """Set dummy AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def cfn_client(aws_credentials):
    """Create a moto-mocked CloudFormation boto3 client."""
    with mock_aws():
        yield boto3.client("cloudformation", region_name="us-east-1")


@pytest.fixture
def data_lake_stack(cfn_client):
    """Deploy a minimal data lake stack into the mocked account."""
    cfn_client.create_stack(StackName="IcebergCdkStack", TemplateBody=DATA_LAKE_TEMPLATE)
    return "IcebergCdkStack"


@pytest.fixture(autouse=True)
def clean_lakedrift_env(monkeypatch):
    """Keep a developer's LAKEDRIFT_* settings out of the tests."""
    for name in (
        "LAKEDRIFT_STACK_NAME",
        "LAKEDRIFT_POLL_INTERVAL",
        "LAKEDRIFT_MAX_POLL_ATTEMPTS",
        "LAKEDRIFT_DEPLOY_COMMAND",
        "LAKEDRIFT_AUTO_APPROVE",
        "LAKEDRIFT_SLACK_WEBHOOK",
        "AWS_REGION",
    ):
        monkeypatch.delenv(name, raising=False)
