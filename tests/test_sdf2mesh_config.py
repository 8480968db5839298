"""Tests for sdf2mesh/config.py: configuration and bounds value types."""

import dataclasses
import math

import numpy.testing as npt
import pytest

from sdf2mesh import Calibration, DecimalBounds, GridBounds, MergeConfig, SurfacingConfig


class TestSurfacingConfig:
    def test_defaults(self):
        config = SurfacingConfig()
        assert config.cell_size == 1.0
        assert config.sub_cells == 4
        assert config.calibration == Calibration()

    def test_derived_values(self):
        config = SurfacingConfig(cell_size=2.0, sub_cells=4)
        assert config.sub_step == 0.5
        assert config.grid_length == 6
        assert config.distance_tolerance == pytest.approx(1.0)
        assert config.snap_tolerance == pytest.approx(0.045)
        assert config.max_cell_range == pytest.approx(math.sqrt(3.0))
        assert config.sub_cell_range == pytest.approx(math.sqrt(3.0) / 2.0)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"cell_size": 0.0},
            {"cell_size": -1.0},
            {"sub_cells": 1},
            {"sub_cells": 2.5},
            {"tolerance": -0.1},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            SurfacingConfig(**kwargs)

    def test_calibration_is_configurable(self):
        calibration = Calibration(distance_tolerance_scale=3.0)
        config = SurfacingConfig(calibration=calibration)
        assert config.distance_tolerance == pytest.approx(0.75)

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            SurfacingConfig().cell_size = 2.0


class TestMergeConfig:
    def test_from_surfacing(self):
        merge = MergeConfig.from_surfacing(SurfacingConfig(cell_size=1.0, sub_cells=4))
        assert merge.axis == 0
        assert merge.distance_tolerance == pytest.approx(0.625)
        assert merge.boundary_range == pytest.approx(0.5)
        assert merge.cell_size == 1.0
        assert merge.alignment == pytest.approx(0.8)

    def test_retarget_axis(self):
        merge = MergeConfig.from_surfacing(SurfacingConfig())
        assert dataclasses.replace(merge, axis=2).axis == 2


# ===========================================================================
# Bounds
# ===========================================================================

class TestGridBounds:
    def test_dimensions_and_count(self):
        bounds = GridBounds(start=(-2, -1, 0), end=(2, 1, 3))
        assert bounds.dimensions == (4, 2, 3)
        assert bounds.cell_count == 24

    def test_cell_start_is_x_fastest(self):
        bounds = GridBounds(start=(-1, -1, -1), end=(1, 1, 1))
        assert bounds.cell_start(0) == (-1, -1, -1)
        assert bounds.cell_start(1) == (0, -1, -1)
        assert bounds.cell_start(2) == (-1, 0, -1)
        assert bounds.cell_start(4) == (-1, -1, 0)
        assert bounds.cell_start(7) == (0, 0, 0)

    def test_pad(self):
        bounds = GridBounds(start=(0, 0, 0), end=(1, 2, 3)).pad(1)
        assert bounds.start == (-1, -1, -1)
        assert bounds.end == (2, 3, 4)

    def test_end_before_start(self):
        with pytest.raises(ValueError):
            GridBounds(start=(0, 0, 0), end=(1, -1, 1))

    def test_to_decimal(self):
        decimal = GridBounds(start=(-1, 0, 1), end=(1, 2, 3)).to_decimal(0.5)
        npt.assert_allclose(decimal.start, (-0.5, 0.0, 0.5))
        npt.assert_allclose(decimal.end, (0.5, 1.0, 1.5))


class TestDecimalBounds:
    def test_contains_is_end_exclusive(self):
        bounds = DecimalBounds(start=(0.0, 0.0, 0.0), end=(1.0, 1.0, 1.0))
        assert bounds.contains((0.0, 0.5, 0.99))
        assert not bounds.contains((1.0, 0.5, 0.5))
        assert not bounds.contains((-0.1, 0.5, 0.5))
