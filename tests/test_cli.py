"""Tests for command line parsing."""

from ws_relay.__main__ import build_config, parse_args
from ws_relay.config import DEFAULT_PORT, DEFAULT_UPSTREAM_URL, RelayConfig


def test_defaults():
    args = parse_args([])
    config = build_config(args)

    assert config == RelayConfig()
    assert config.upstream_url == DEFAULT_UPSTREAM_URL
    assert config.port == DEFAULT_PORT
    assert config.max_message_size is None
    assert config.max_sessions == 0
    assert not args.verbose
    assert not args.no_dashboard


def test_overrides():
    args = parse_args(
        [
            "ws://backend:9000/stream",
            "--host",
            "127.0.0.1",
            "--port",
            "9001",
            "--max-message-size",
            "65536",
            "--max-sessions",
            "8",
            "--open-timeout",
            "2.5",
            "--no-dashboard",
            "-v",
        ]
    )
    config = build_config(args)

    assert config.upstream_url == "ws://backend:9000/stream"
    assert config.listen_url == "ws://127.0.0.1:9001"
    assert config.max_message_size == 65536
    assert config.max_sessions == 8
    assert config.open_timeout == 2.5
    assert args.no_dashboard
    assert args.verbose


def test_non_positive_limits_disable():
    config = build_config(
        parse_args(["--max-message-size", "0", "--open-timeout", "0", "--max-sessions", "-3"])
    )

    assert config.max_message_size is None
    assert config.open_timeout is None
    assert config.max_sessions == 0
