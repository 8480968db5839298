"""Tests for sdf2mesh/_logging.py and the warnings the pipeline emits."""

import logging

import numpy as np
import pytest

from sdf2mesh import SubSample, SurfacingConfig, diff_samples
from sdf2mesh._logging import log_once, reset_log_once


@pytest.fixture(autouse=True)
def _fresh_keys():
    reset_log_once()
    yield
    reset_log_once()


def _sample(position, normal):
    p = np.asarray(position, dtype=float)
    return SubSample(position=p, center=p, normal=np.asarray(normal, dtype=float), distance=0.0)


class TestLogOnce:
    def test_emits_once_per_key(self, caplog):
        logger = logging.getLogger("sdf2mesh.test")
        with caplog.at_level(logging.WARNING, logger="sdf2mesh.test"):
            assert log_once(logger, "k", logging.WARNING, "value %d", 1)
            assert not log_once(logger, "k", logging.WARNING, "value %d", 2)
            assert log_once(logger, "other", logging.WARNING, "value %d", 3)
        messages = [r.getMessage() for r in caplog.records]
        assert messages == ["value 1", "value 3"]

    def test_reset(self, caplog):
        logger = logging.getLogger("sdf2mesh.test")
        with caplog.at_level(logging.WARNING, logger="sdf2mesh.test"):
            log_once(logger, "k", logging.WARNING, "first")
            reset_log_once()
            log_once(logger, "k", logging.WARNING, "again")
        assert [r.getMessage() for r in caplog.records] == ["first", "again"]


class TestDegenerateWarning:
    def test_opposite_normals_warn_once(self, caplog):
        config = SurfacingConfig()

        def plane(p):
            return p[..., 2]

        a = _sample((0.0, 0.0, 0.0), (0.0, 0.0, 1.0))
        b = _sample((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        with caplog.at_level(logging.WARNING, logger="sdf2mesh.contours"):
            assert diff_samples(plane, config, a, b) is None
            assert diff_samples(plane, config, b, a) is None
        warnings = [r for r in caplog.records if r.name == "sdf2mesh.contours"]
        assert len(warnings) == 1
        assert "opposite normals" in warnings[0].getMessage()
