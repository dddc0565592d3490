"""Tests for the priority power balancer."""

import pytest

from plantsim.flow.balancer import SourceType, balance_island, normalize_priority
from plantsim.resources.battery import BatteryLimits
from plantsim.topology.islands import Island


def _conserved(balance):
    supplied = balance.solar_used + balance.battery_discharged + balance.grid_import
    return supplied + balance.deficit == pytest.approx(balance.total_load)


class TestNormalizePriority:

    def test_names_and_enums(self):
        assert normalize_priority(["grid", SourceType.SOLAR]) == [SourceType.GRID, SourceType.SOLAR]

    def test_unknown_and_repeats_dropped(self):
        assert normalize_priority(["Wind", "Solar", "solar"]) == [SourceType.SOLAR]

    def test_empty(self):
        assert normalize_priority([]) == []


class TestBalanceIsland:

    def test_solar_then_grid(self):
        island = Island(index=0, has_grid=True, total_load_kw=1.0, total_solar_kw=0.55)
        balance = balance_island(island, {})
        assert balance.solar_used == pytest.approx(0.55)
        assert balance.grid_import == pytest.approx(0.45)
        assert balance.deficit == 0.0
        assert _conserved(balance)

    def test_surplus_exported_with_grid(self):
        island = Island(index=0, has_grid=True, total_load_kw=1.0, total_solar_kw=3.0)
        balance = balance_island(island, {})
        assert balance.grid_import == 0.0
        assert balance.grid_export == pytest.approx(2.0)
        assert balance.solar_curtailed == 0.0

    def test_surplus_curtailed_without_grid(self):
        island = Island(index=0, total_load_kw=1.0, total_solar_kw=3.0)
        balance = balance_island(island, {})
        assert balance.grid_export == 0.0
        assert balance.solar_curtailed == pytest.approx(2.0)

    def test_battery_discharge_greedy_in_order(self):
        island = Island(index=0, total_load_kw=3.0, battery_ids=["b1", "b2"])
        limits = {"b1": BatteryLimits(2.0, 2.0), "b2": BatteryLimits(2.0, 2.0)}
        balance = balance_island(island, limits)
        assert balance.battery_flows == {"b1": pytest.approx(2.0), "b2": pytest.approx(1.0)}
        assert balance.deficit == 0.0
        assert _conserved(balance)

    def test_deficit_off_grid(self):
        island = Island(index=0, total_load_kw=3.0, battery_ids=["b1"])
        balance = balance_island(island, {"b1": BatteryLimits(1.0, 1.0)})
        assert balance.deficit == pytest.approx(2.0)
        assert _conserved(balance)

    def test_missing_limits_mean_idle(self):
        island = Island(index=0, total_load_kw=1.0, battery_ids=["b1"])
        balance = balance_island(island, {})
        assert balance.battery_flows == {"b1": 0.0}
        assert balance.deficit == pytest.approx(1.0)

    def test_surplus_charges_batteries(self):
        island = Island(index=0, has_grid=True, total_load_kw=1.0, total_solar_kw=4.0,
                        battery_ids=["b1", "b2"])
        limits = {"b1": BatteryLimits(0.0, 1.0), "b2": BatteryLimits(0.0, 5.0)}
        balance = balance_island(island, limits)
        assert balance.battery_flows == {"b1": pytest.approx(-1.0), "b2": pytest.approx(-2.0)}
        assert balance.battery_charged == pytest.approx(3.0)
        assert balance.grid_export == 0.0

    def test_discharging_battery_does_not_charge(self):
        # Battery first: b1 covers the load, then surplus solar may only go to b2
        island = Island(index=0, total_load_kw=1.0, total_solar_kw=2.0, battery_ids=["b1", "b2"])
        limits = {"b1": BatteryLimits(2.0, 2.0), "b2": BatteryLimits(0.0, 0.5)}
        balance = balance_island(island, limits, ["Battery", "Solar"])
        assert balance.battery_flows["b1"] == pytest.approx(1.0)
        assert balance.battery_flows["b2"] == pytest.approx(-0.5)
        assert balance.solar_used == 0.0
        assert balance.solar_curtailed == pytest.approx(1.5)

    def test_grid_first(self):
        island = Island(index=0, has_grid=True, total_load_kw=1.0, total_solar_kw=1.0)
        balance = balance_island(island, {}, ["Grid", "Solar"])
        assert balance.grid_import == pytest.approx(1.0)
        assert balance.solar_used == 0.0
        assert balance.grid_export == pytest.approx(1.0)

    @pytest.mark.parametrize("priority", [
        ["Solar"], ["Battery"], ["Grid"], ["Battery", "Grid"], ["Grid", "Battery", "Solar"], [],
    ])
    def test_conservation_for_any_priority(self, priority):
        island = Island(index=0, has_grid=True, total_load_kw=2.0, total_solar_kw=0.7,
                        battery_ids=["b1"])
        balance = balance_island(island, {"b1": BatteryLimits(0.6, 0.6)}, priority)
        assert _conserved(balance)
        assert balance.deficit >= 0

    def test_solar_only_leaves_deficit_even_with_grid(self):
        island = Island(index=0, has_grid=True, total_load_kw=2.0, total_solar_kw=0.5)
        balance = balance_island(island, {}, ["Solar"])
        assert balance.grid_import == 0.0
        assert balance.deficit == pytest.approx(1.5)

    def test_zero_load(self):
        island = Island(index=0, has_grid=True, total_solar_kw=1.0)
        balance = balance_island(island, {})
        assert balance.served_load == 0.0
        assert balance.grid_export == pytest.approx(1.0)
