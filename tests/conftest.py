"""Pytest configuration and fixtures."""

import base64
import json
import os
from datetime import datetime, timedelta, timezone

import pytest

# Set environment variables before imports
os.environ["TABLE_NAME"] = "visitortrack-test"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"

TABLE_NAME = "visitortrack-test"


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


def _index(name: str) -> dict:
    return {
        "IndexName": name,
        "KeySchema": [
            {"AttributeName": f"{name}PK", "KeyType": "HASH"},
            {"AttributeName": f"{name}SK", "KeyType": "RANGE"},
        ],
        "Projection": {"ProjectionType": "ALL"},
    }


@pytest.fixture
def dynamodb_table(aws_credentials):
    """Create mocked DynamoDB table with the visitor, lead and contact indexes."""
    import boto3
    from moto import mock_aws

    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")

        attribute_names = ["PK", "SK"]
        for index in ("GSI1", "GSI2", "GSI3"):
            attribute_names += [f"{index}PK", f"{index}SK"]

        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": name, "AttributeType": "S"} for name in attribute_names
            ],
            GlobalSecondaryIndexes=[_index("GSI1"), _index("GSI2"), _index("GSI3")],
            BillingMode="PAY_PER_REQUEST",
        )

        table.wait_until_exists()

        yield table


class FakeClock:
    """Controllable clock for time-window tests."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    """A clock fixed at 2024-03-01 12:00 UTC."""
    return FakeClock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def tracking_settings():
    """Default settings (30 minute window, explicit close is terminal)."""
    from visitortrack.settings import TrackingSettings

    return TrackingSettings()


@pytest.fixture
def tracking_service(dynamodb_table, clock, tracking_settings):
    """ActivityTrackingService wired to the mocked table and fake clock."""
    from visitortrack.services.tracking_service import ActivityTrackingService
    from visitortrack.utils.locks import KeyedLock

    return ActivityTrackingService(
        table_name=TABLE_NAME,
        settings=tracking_settings,
        clock=clock,
        locks=KeyedLock(),
    )


@pytest.fixture
def api_gateway_event():
    """Create a sample API Gateway proxy event."""
    def _create_event(
        method: str = "GET",
        path: str = "/",
        path_params: dict = None,
        query_params: dict = None,
        body=None,
        headers: dict = None,
        source_ip: str = "203.0.113.7",
        base64_body: bool = False,
    ):
        if body is None or isinstance(body, str):
            raw_body = body
        else:
            raw_body = json.dumps(body)

        if base64_body and raw_body is not None:
            raw_body = base64.b64encode(raw_body.encode("utf-8")).decode("ascii")

        return {
            "httpMethod": method,
            "path": path,
            "pathParameters": path_params or {},
            "queryStringParameters": query_params or {},
            "body": raw_body,
            "isBase64Encoded": base64_body,
            "headers": headers if headers is not None else {
                "Content-Type": "application/json",
                "User-Agent": "Mozilla/5.0 (test)",
            },
            "requestContext": {
                "identity": {"sourceIp": source_ip},
            },
        }

    return _create_event


class LambdaContext:
    """Mock Lambda context."""

    def __init__(self):
        self.function_name = "test-function"
        self.memory_limit_in_mb = 128
        self.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789:function:test"
        self.aws_request_id = "test-request-id"

    def get_remaining_time_in_millis(self):
        return 30000


@pytest.fixture
def lambda_context():
    """Create a mock Lambda context."""
    return LambdaContext()
