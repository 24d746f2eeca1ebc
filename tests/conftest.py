"""Pytest configuration and fixtures for the labpay test suite.

This module provides reusable fixtures for testing:
- Environment defaults applied before the app is imported
- Settings and service cache resets between tests
- A CMS router preloaded with a payable flight lab
- DynamoDB tables under moto for the shared-state backends
"""

import os
from typing import Any, Callable, Generator

import boto3
import pytest
from moto import mock_aws

# === Environment Setup ===

# Set environment variables for testing before imports
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ.setdefault("DYNAMODB_TABLE_PREFIX", "test-labpay")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_labpay_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret_for_testing")
os.environ.setdefault("WEBFLOW_TOKEN", "wf_test_token")
os.environ.setdefault("WEBFLOW_COLLECTION_ID", "labs_collection")
os.environ.setdefault("COACH_COLLECTION_ID", "coach_collection")
os.environ.setdefault("PUBLIC_SITE_URL", "https://www.example.com")
os.environ.setdefault("MAKE_WEBHOOK_URL", "https://hook.make.test/abc123")
os.environ.setdefault("MAKE_FORWARDING_SECRET", "bridge_secret")

# Only set fake credentials for moto if no real credentials are present
if not os.environ.get("AWS_PROFILE") and not os.environ.get("AWS_ACCESS_KEY_ID"):
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

from labpay.config import Settings  # noqa: E402
from tests.helpers import (  # noqa: E402
    COACH_COLLECTION,
    LAB_COLLECTION,
    VALID_ACCOUNT_ID,
    CMSRouter,
    make_coach_item,
    make_lab_item,
)


# === Singleton Reset ===


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Clear cached settings and services before and after each test."""
    from labpay.services.ssm_service import get_ssm_service
    from labpay.utils.logging import clear_correlation_id
    from labpay_api.dependencies import reset_services

    reset_services()
    get_ssm_service.cache_clear()
    yield
    reset_services()
    get_ssm_service.cache_clear()
    clear_correlation_id()


# === Settings ===


@pytest.fixture
def settings() -> Settings:
    """Explicit settings independent of the process environment."""
    return Settings(
        environment="test",
        stripe_secret_key="sk_test_labpay_123",
        stripe_webhook_secret="whsec_test_secret_for_testing",
        webflow_token="wf_test_token",
        webflow_collection_id=LAB_COLLECTION,
        coach_collection_id=COACH_COLLECTION,
        public_site_url="https://www.example.com",
        make_webhook_url="https://hook.make.test/abc123",
        make_forwarding_secret="bridge_secret",
        retry_base_delay_seconds=0,
    )


# === CMS Fixtures ===


@pytest.fixture
def cms() -> CMSRouter:
    """CMS router preloaded with lab_1 (1 seat, $150) and a payable coach_1."""
    router = CMSRouter()
    router.add(LAB_COLLECTION, make_lab_item())
    router.add(COACH_COLLECTION, make_coach_item(**{"coach-stripe-account-id": VALID_ACCOUNT_ID}))
    return router


@pytest.fixture
def content_store_factory(cms: CMSRouter) -> Callable[..., Any]:
    """Build ContentStoreClient instances bound to the CMS router."""
    from labpay.services.cache import TTLCache
    from labpay.services.content_store import ContentStoreClient

    def factory(**kwargs: Any) -> ContentStoreClient:
        kwargs.setdefault("cache", TTLCache(300))
        kwargs.setdefault("sleep", lambda _seconds: None)
        return ContentStoreClient("wf_test_token", transport=cms.transport(), **kwargs)

    return factory


# === DynamoDB Fixtures ===


@pytest.fixture
def dynamodb_tables() -> Generator[Any, None, None]:
    """Create the seat-holds and processed-events tables under moto."""
    from labpay.services.dynamodb import reset_dynamodb_service

    with mock_aws():
        reset_dynamodb_service()
        client = boto3.client("dynamodb")
        prefix = os.environ["DYNAMODB_TABLE_PREFIX"]
        client.create_table(
            TableName=f"{prefix}-seat-holds",
            KeySchema=[{"AttributeName": "listing_id", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "listing_id", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )
        client.create_table(
            TableName=f"{prefix}-processed-events",
            KeySchema=[{"AttributeName": "event_id", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "event_id", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )
        yield client
        reset_dynamodb_service()
