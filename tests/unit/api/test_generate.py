"""
Tests for the one-call generate_tree API.
"""

import pytest

from vascular_cco import generate_tree
from vascular_cco.cco.config import CCOConfig
from vascular_cco.cco.progress import NullProgress
from vascular_cco.core.domain import BoxDomain, EllipsoidDomain
from vascular_cco.core.errors import ConfigurationError


def _config(**kwargs):
    params = dict(number_of_terminals=20, root_position=(0.0, 0.0, -0.01), seed=3)
    params.update(kwargs)
    return CCOConfig(**params)


class TestGenerateTree:
    """Tests for generate_tree."""

    def test_generates_valid_tree(self):
        domain = EllipsoidDomain(0.01, 0.01, 0.01)

        tree, report = generate_tree(domain, _config(), progress=NullProgress())

        assert tree.terminal_count == 21
        assert len(tree) == 41
        assert report.passed
        assert tree.root.proximal.z == pytest.approx(-0.01)

    def test_dict_inputs(self):
        domain = {
            "type": "box",
            "x_min": -0.005, "x_max": 0.005,
            "y_min": -0.005, "y_max": 0.005,
            "z_min": 0.0, "z_max": 0.01,
        }
        config = _config(number_of_terminals=5, root_position=(0.0, 0.0, 0.0)).to_dict()

        tree, report = generate_tree(domain, config, progress=NullProgress())

        assert tree.terminal_count == 6
        assert report.passed

    def test_skip_integrity(self):
        domain = BoxDomain(-0.005, 0.005, -0.005, 0.005, 0.0, 0.01)

        _, report = generate_tree(
            domain,
            _config(number_of_terminals=3, root_position=(0.0, 0.0, 0.0)),
            progress=NullProgress(),
            check_integrity=False,
        )

        assert report is None

    def test_reproducible(self):
        config = _config(number_of_terminals=8)

        first, _ = generate_tree(EllipsoidDomain(0.01, 0.01, 0.01), config, NullProgress())
        second, _ = generate_tree(EllipsoidDomain(0.01, 0.01, 0.01), config, NullProgress())

        assert first.to_dict() == second.to_dict()

    def test_fixed_root_radius(self):
        config = _config(number_of_terminals=6, root_radius=5e-4)

        tree, report = generate_tree(EllipsoidDomain(0.01, 0.01, 0.01), config, NullProgress())

        assert tree.root.radius == pytest.approx(5e-4)
        assert report.passed

    def test_invalid_config(self):
        with pytest.raises(ConfigurationError):
            generate_tree(EllipsoidDomain(0.01, 0.01, 0.01), _config(number_of_terminals=0))
