"""Unit tests for the CLI entry point."""

from unittest.mock import patch

import pytest

from feeder.main import apply_overrides, build_parser, main


class TestApplyOverrides:
    """Test CLI precedence over the environment."""

    def test_cli_wins(self) -> None:
        """Passed options replace environment values."""
        args = build_parser().parse_args(["--chain", "sapphire", "--frequency", "30"])
        env = apply_overrides(args, {"CHAIN_NAME": "soroban", "ASSETS": "x"})

        assert env["CHAIN_NAME"] == "sapphire"
        assert env["FREQUENCY_SECONDS"] == "30.0"
        assert env["ASSETS"] == "x"

    def test_unset_options_keep_environment(self) -> None:
        """Options not passed leave the environment untouched."""
        args = build_parser().parse_args([])
        environ = {"DEVIATION_PERMILLE": "5"}

        assert apply_overrides(args, environ) == environ

    def test_unknown_chain_rejected(self) -> None:
        """Only registered chains are accepted."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--chain", "kadena"])


class TestMain:
    """Test startup failure handling."""

    def test_config_error_exits_1(self) -> None:
        """Invalid configuration terminates with status 1."""
        with patch("sys.argv", ["price-feeder"]), patch.dict("os.environ", {}, clear=True):
            with pytest.raises(SystemExit) as exc_info:
                main()
        assert exc_info.value.code == 1
