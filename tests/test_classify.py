"""Tests for identifier classification."""

import pytest

from trailprobe.discovery.classify import KIND_ARN, KIND_RESOURCE_ID, classify, classify_kind


@pytest.mark.parametrize(
    "value",
    [
        "arn:aws:iam::123:role/x",
        "arn:aws:s3:::my-bucket",
        "arn:",
        "sg-0a1b2c3d",
        "i-0123456789abcdef0",
        "vpc-12345678",
        "subnet-0123456789abcdef0",
    ],
)
def test_identifiers(value):
    assert classify(value) is True


@pytest.mark.parametrize(
    "value",
    [
        "hello-world",
        "just a string",
        "",
        "sg-0a1b2c3",  # 7 chars
        "sg-0a1b2c3d4",  # 9 chars
        "i-0123456789abcdef",  # 16 chars
        "i-0123456789abcdef01",  # 18 chars
        "sg-0a1b2c3d ",
        " sg-0a1b2c3d",
        "sg-0a1b2c3d\n",
        "123-0a1b2c3d",
        "-0a1b2c3d",
        "sg_0a1b2c3d",
        "ARN:aws:iam::123:role/x",
        "xarn:aws",
        "my-sg-0a1b2c3d",
    ],
)
def test_non_identifiers(value):
    assert classify(value) is False


def test_arn_wins_over_resource_id():
    assert classify_kind("arn:aws:ec2:eu-west-1:123:instance/i-0123456789abcdef0") == KIND_ARN


def test_resource_id_kind():
    assert classify_kind("sg-0a1b2c3d") == KIND_RESOURCE_ID
    assert classify_kind("nothing") is None


@pytest.mark.parametrize("value", [None, 12345678, True, 1.5, ["arn:x"]])
def test_non_strings_never_classified(value):
    assert classify(value) is False
