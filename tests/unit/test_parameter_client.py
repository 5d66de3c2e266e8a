#!/usr/bin/env python3
"""Test SSM parameter source client with a mocked boto3 client."""

import asyncio
import os
import sys
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

# Add project root and tests directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from aws_infra_catalog.core.error_handling import (
    NotFoundError,
    ParameterSourceError,
    ThrottledError,
    TransportError,
    ValidationError,
)
from aws_infra_catalog.data_sources.parameter_client import (
    ParameterSourceClient,
    translate_error,
)
from fakes import RecordingSleep

REGIONS = "/aws/service/global-infrastructure/regions"


def client_error(code, message="error", operation="GetParameter"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def create_client(mock_ssm, sleep=None, max_results=10, pagination_delay=0.04):
    return ParameterSourceClient(
        region="us-east-1",
        max_results=max_results,
        pagination_delay=pagination_delay,
        client=mock_ssm,
        sleep=sleep or RecordingSleep(),
    )


def page(names, next_token=None):
    response = {
        "Parameters": [
            {"Name": name, "Value": name.rsplit("/", 1)[-1]} for name in names
        ]
    }
    if next_token:
        response["NextToken"] = next_token
    return response


def test_get_parameter():
    mock_ssm = Mock()
    mock_ssm.get_parameter.return_value = {
        "Parameter": {
            "Name": f"{REGIONS}/us-east-1/longName",
            "Value": "US East (N. Virginia)",
        }
    }
    client = create_client(mock_ssm)

    entry = asyncio.run(client.get_parameter(f"{REGIONS}/us-east-1/longName"))

    assert entry.value == "US East (N. Virginia)"
    assert entry.path == f"{REGIONS}/us-east-1/longName"
    mock_ssm.get_parameter.assert_called_once_with(
        Name=f"{REGIONS}/us-east-1/longName"
    )


def test_get_parameter_without_value():
    mock_ssm = Mock()
    mock_ssm.get_parameter.return_value = {"Parameter": {"Name": "/a/b"}}
    client = create_client(mock_ssm)

    with pytest.raises(ValidationError):
        asyncio.run(client.get_parameter("/a/b"))


@pytest.mark.parametrize("path", ["", "   ", "relative/path"])
def test_invalid_path_rejected_before_call(path):
    mock_ssm = Mock()
    client = create_client(mock_ssm)

    with pytest.raises(ValidationError):
        asyncio.run(client.get_parameter(path))
    with pytest.raises(ValidationError):
        asyncio.run(client.list_parameters_by_prefix(path))

    mock_ssm.get_parameter.assert_not_called()
    mock_ssm.get_paginator.assert_not_called()


def mock_paginator(mock_ssm, pages):
    """Route get_paginator("get_parameters_by_path") to the given pages."""
    paginator = Mock()
    paginator.paginate.return_value = pages
    mock_ssm.get_paginator.return_value = paginator
    return paginator


def test_listing_walks_every_page():
    mock_ssm = Mock()
    paginator = mock_paginator(
        mock_ssm,
        [
            page([f"{REGIONS}/af-south-1", f"{REGIONS}/ap-east-1"], "token-1"),
            page([f"{REGIONS}/eu-west-1"], "token-2"),
            page([f"{REGIONS}/us-east-1"]),
        ],
    )
    sleep = RecordingSleep()
    client = create_client(mock_ssm, sleep=sleep)

    entries = asyncio.run(client.list_parameters_by_prefix(REGIONS))

    assert [entry.value for entry in entries] == [
        "af-south-1",
        "ap-east-1",
        "eu-west-1",
        "us-east-1",
    ]
    mock_ssm.get_paginator.assert_called_once_with("get_parameters_by_path")
    paginator.paginate.assert_called_once_with(
        Path=REGIONS, Recursive=False, MaxResults=10
    )
    # Pause between pages only
    assert sleep.delays == [0.04, 0.04]


def test_recursive_listing_flag():
    mock_ssm = Mock()
    paginator = mock_paginator(mock_ssm, [page([f"{REGIONS}/us-east-1/services/ec2"])])
    client = create_client(mock_ssm)

    asyncio.run(
        client.list_parameters_by_prefix(
            f"{REGIONS}/us-east-1/services", recursive=True
        )
    )

    assert paginator.paginate.call_args.kwargs["Recursive"] is True


def test_empty_listing():
    mock_ssm = Mock()
    mock_paginator(mock_ssm, [])
    sleep = RecordingSleep()
    client = create_client(mock_ssm, sleep=sleep)

    assert asyncio.run(client.list_parameters_by_prefix(REGIONS)) == []
    assert sleep.delays == []


def test_page_failure_aborts_listing():
    def pages():
        yield page([f"{REGIONS}/us-east-1"], "token-1")
        raise client_error(
            "ThrottlingException", "Rate exceeded", "GetParametersByPath"
        )

    mock_ssm = Mock()
    mock_paginator(mock_ssm, pages())
    client = create_client(mock_ssm)

    with pytest.raises(ThrottledError):
        asyncio.run(client.list_parameters_by_prefix(REGIONS))


def test_malformed_listing_entry():
    mock_ssm = Mock()
    mock_paginator(mock_ssm, [{"Parameters": [{"Name": "/a/b"}]}])
    client = create_client(mock_ssm)

    with pytest.raises(ValidationError):
        asyncio.run(client.list_parameters_by_prefix("/a"))


def test_client_errors_are_translated():
    mock_ssm = Mock()
    mock_ssm.get_parameter.side_effect = client_error("ParameterNotFound")
    client = create_client(mock_ssm)

    with pytest.raises(NotFoundError) as exc_info:
        asyncio.run(client.get_parameter("/missing"))

    assert exc_info.value.path == "/missing"
    assert exc_info.value.code == "ParameterNotFound"


@pytest.mark.parametrize(
    "code,message,expected",
    [
        ("ParameterNotFound", "not found", NotFoundError),
        ("ThrottlingException", "Rate exceeded", ThrottledError),
        ("TooManyRequestsException", "slow down", ThrottledError),
        ("ValidationException", "Rate exceeded", ThrottledError),
        ("InternalServerError", "oops", TransportError),
        ("ServiceUnavailable", "later", TransportError),
        ("AccessDeniedException", "denied", ParameterSourceError),
    ],
)
def test_translate_client_error(code, message, expected):
    error = translate_error(client_error(code, message), "/p")

    assert type(error) is expected
    assert error.path == "/p"


def test_translate_connection_error():
    error = translate_error(EndpointConnectionError(endpoint_url="https://ssm"), "/p")

    assert isinstance(error, TransportError)


def test_translate_leaves_other_errors_untouched():
    original = ValueError("unrelated")

    assert translate_error(original, "/p") is original
