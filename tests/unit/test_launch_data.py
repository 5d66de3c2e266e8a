#!/usr/bin/env python3
"""Test region launch data parsing from the regions RSS feed."""

import os
import sys
from unittest.mock import Mock

import requests

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from aws_infra_catalog.data_sources.launch_data import LaunchDataSource

SAMPLE_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>AWS Regions</title>
    <link>https://docs.aws.amazon.com/global-infrastructure/latest/regions/</link>
    <description>New AWS Regions</description>
    <item>
      <title>Asia Pacific (Taipei)</title>
      <link>https://aws.amazon.com/new/taipei/</link>
      <description>Region &lt;code class="code"&gt;ap-east-2&lt;/code&gt; opens.</description>
      <pubDate>Tue, 10 Jun 2025 00:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Mexico (Central) mx-central-1</title>
      <link>https://aws.amazon.com/new/mexico/</link>
      <description>The new Region is generally available.</description>
      <pubDate>Tue, 14 Jan 2025 00:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Documentation update</title>
      <description>No region mentioned here.</description>
      <pubDate>Mon, 06 Jan 2025 00:00:00 GMT</pubDate>
    </item>
  </channel>
</rss>
"""


def test_parse_feed():
    source = LaunchDataSource()

    launch_data = source.parse_feed(SAMPLE_FEED)

    assert set(launch_data) == {"ap-east-2", "mx-central-1"}
    assert launch_data["ap-east-2"] == {
        "launch_date": "2025-06-10",
        "announcement_url": "https://aws.amazon.com/new/taipei/",
    }
    assert launch_data["mx-central-1"]["launch_date"] == "2025-01-14"


def test_parse_invalid_feed():
    source = LaunchDataSource()

    assert source.parse_feed(b"this is not a feed") == {}


def test_fetch_uses_session_and_parses():
    response = Mock()
    response.content = SAMPLE_FEED
    session = Mock()
    session.get.return_value = response
    source = LaunchDataSource(url="https://example.com/regions.rss", session=session)

    launch_data = source.fetch_launch_data()

    session.get.assert_called_once_with("https://example.com/regions.rss", timeout=30)
    response.raise_for_status.assert_called_once()
    assert "ap-east-2" in launch_data


def test_fetch_failure_returns_empty_mapping():
    session = Mock()
    session.get.side_effect = requests.exceptions.ConnectionError("unreachable")
    source = LaunchDataSource(session=session)

    assert source.fetch_launch_data() == {}


def test_http_error_returns_empty_mapping():
    response = Mock()
    response.raise_for_status.side_effect = requests.exceptions.HTTPError("503")
    session = Mock()
    session.get.return_value = response
    source = LaunchDataSource(session=session)

    assert source.fetch_launch_data() == {}


def test_default_session_mounts_retry_adapter():
    source = LaunchDataSource(max_retries=2)

    session = source._get_session()

    adapter = session.get_adapter("https://docs.aws.amazon.com")
    assert adapter.max_retries.total == 2
    assert "User-Agent" in session.headers
    assert source._get_session() is session
