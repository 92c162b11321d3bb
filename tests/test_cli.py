import pytest
from click.testing import CliRunner

from nethermind.flashpool.cli import flashpool_cli

from .utils import get_max_tick, get_min_tick


@pytest.fixture(name="cli_runner")
def fixture_cli_runner():
    return CliRunner()


@pytest.fixture(name="state_file")
def fixture_state_file(initialize_pool, tmp_path):
    harness = initialize_pool(protocol_fee=100_000)
    harness.mint(get_min_tick(60), get_max_tick(60), 10**21)
    harness.mint(-120, 120, 10**20)
    harness.swap(True, 10**18)

    path = tmp_path / "core_state.json"
    with open(path, "w") as state_json:
        harness.core.save_state(state_json)
    return path, harness


class TestMathCommands:
    def test_tick_to_price_at_zero(self, cli_runner):
        result = cli_runner.invoke(flashpool_cli, ["math", "tick-to-price", "0"])

        assert result.exit_code == 0, result.output
        assert "Sqrt Ratio: 79228162514264337593543950336" in result.output
        assert "Price: 1" in result.output

    def test_tick_to_price_negative_tick(self, cli_runner):
        result = cli_runner.invoke(flashpool_cli, ["math", "tick-to-price", "--", "-60"])

        assert result.exit_code == 0, result.output
        assert "Tick: -60" in result.output
        assert "Price: 0.994" in result.output

    def test_tick_to_price_out_of_range(self, cli_runner):
        result = cli_runner.invoke(flashpool_cli, ["math", "tick-to-price", "900000"])
        assert result.exit_code == 2

    def test_price_to_tick(self, cli_runner):
        result = cli_runner.invoke(flashpool_cli, ["math", "price-to-tick", "1"])

        assert result.exit_code == 0, result.output
        assert "Tick: 0" in result.output

    def test_price_to_tick_adjusts_decimals(self, cli_runner):
        result = cli_runner.invoke(
            flashpool_cli, ["math", "price-to-tick", "1", "--decimals-0", "6", "--decimals-1", "18"]
        )

        assert result.exit_code == 0, result.output
        assert "Tick: 276324" in result.output

    @pytest.mark.parametrize("price", ["abc", "0", "-5"])
    def test_price_to_tick_rejects_bad_prices(self, cli_runner, price):
        result = cli_runner.invoke(flashpool_cli, ["math", "price-to-tick", "--", price])
        assert result.exit_code == 2


class TestInspectCommand:
    def test_inspect_core(self, cli_runner, state_file):
        path, harness = state_file
        result = cli_runner.invoke(flashpool_cli, ["inspect", str(path)])

        assert result.exit_code == 0, result.output
        assert "Pools" in result.output
        assert "Saved Balances" in result.output
        assert "Initialized Ticks" not in result.output

    def test_inspect_pool(self, cli_runner, state_file):
        path, harness = state_file
        result = cli_runner.invoke(flashpool_cli, ["inspect", str(path), "--pool-id", harness.pool_id])

        assert result.exit_code == 0, result.output
        assert "Initialized Ticks" in result.output
        assert "Positions" in result.output
        assert "-120" in result.output

    def test_inspect_unknown_pool(self, cli_runner, state_file):
        path, _ = state_file
        result = cli_runner.invoke(flashpool_cli, ["inspect", str(path), "-p", "0x" + "00" * 32])
        assert result.exit_code == 2

    def test_missing_state_file(self, cli_runner, tmp_path):
        result = cli_runner.invoke(flashpool_cli, ["inspect", str(tmp_path / "missing.json")])
        assert result.exit_code == 2
