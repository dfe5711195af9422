"""
Unit tests for phase-plane analysis and the ready-made systems.
"""

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from analysis.vector_field import VectorField, has_converged, vector_field
from core.descriptor import EquationFamily, Entry, ODESpec, SDESpec, SystemDescriptor
from models import BrownianMotion, DelayedDecay, KuramotoNet, LinearDecay, validate
from sim.dispatch import solve
from sim.result import Solution
from solvers.registry import solver_catalog


def rotation_rhs(t, y, A):
    return A @ y


class TestVectorField:
    """Tests for vector fields on a 2-D slice."""

    def setup_method(self):
        self.desc = validate(SystemDescriptor(
            parameters=[Entry('A', [[0.0, 1.0], [-1.0, 0.0]])],
            variables=[Entry('x', 1.0), Entry('v', 0.0)],
            time_span=(0.0, 1.0),
            ode=ODESpec(rhs=rotation_rhs)))
        self.sol, _ = solve(self.desc)

    def test_harmonic_oscillator(self):
        """Test the rotation field is (v, -x) on every grid node."""
        field = vector_field(self.desc, self.sol, 0, 1, (-1.0, 1.0), (-2.0, 2.0),
                             resolution=5)

        assert field.x.shape == (5, 5)
        np.testing.assert_allclose(field.dx, field.y)
        np.testing.assert_allclose(field.dy, -field.x)
        assert not field.is_empty

    def test_dde_field_is_empty(self):
        """Test DDE systems have no instantaneous vector field."""
        desc = validate(DelayedDecay(time_span=(0.0, 2.0)).build())
        sol, _ = solve(desc)
        field = vector_field(desc, sol, 0, 0, (-1.0, 1.0), (-1.0, 1.0))

        assert field.is_empty

    def test_sde_uses_drift(self):
        """Test SDE fields use the drift only."""
        desc = validate(SystemDescriptor(
            parameters=[Entry('a', 0.5)],
            variables=[Entry('x', 1.0), Entry('v', 2.0)],
            time_span=(0.0, 1.0),
            sde=SDESpec(drift=lambda t, y, a: -a * y,
                        diffusion=lambda t, y, a: 0.1 * y)))
        sol, _ = solve(desc, rng=np.random.default_rng(0))
        field = vector_field(desc, sol, 0, 1, (1.0, 3.0), (-1.0, 1.0), resolution=3)

        np.testing.assert_allclose(field.dx, -0.5 * field.x)
        np.testing.assert_allclose(field.dy, -0.5 * field.y)

    def test_undeclared_family(self):
        """Test requesting an undeclared family raises ValueError."""
        with pytest.raises(ValueError):
            vector_field(self.desc, self.sol, 0, 1, (-1.0, 1.0), (-1.0, 1.0),
                         family=EquationFamily.SDE)

    def test_empty(self):
        """Test the empty field reports itself empty."""
        assert VectorField.empty().is_empty


class TestConvergence:
    """Tests for the fixed-point heuristic."""

    def make(self, values):
        return Solution(times=np.arange(len(values), dtype=float),
                        values=np.asarray([values], dtype=float),
                        family=EquationFamily.ODE, solver='manual')

    def test_flat_tail(self):
        """Test a constant tail counts as converged."""
        assert has_converged(self.make([3.0, 1.0, 1.0, 1.0]))

    def test_curved_tail(self):
        """Test a growing tail does not count as converged."""
        assert not has_converged(self.make([0.0, 1.0, 4.0]))

    def test_too_short(self):
        """Test fewer than three samples never converge."""
        assert not has_converged(self.make([1.0, 1.0]))

    def test_decay_settles(self):
        """Test strong linear decay settles by t = 50."""
        sol, _ = solve(validate(LinearDecay(mu=-1.0, time_span=(0.0, 50.0)).build()))

        assert has_converged(sol)


class TestModels:
    """Tests for the ready-made systems."""

    @pytest.mark.parametrize('model', [LinearDecay(), BrownianMotion(), DelayedDecay(),
                                       KuramotoNet(Kij=np.ones((4, 4)), seed=3)])
    def test_descriptor_validates(self, model):
        """Test each ready-made descriptor validates and has a catalog."""
        desc = model.descriptor()

        assert len(solver_catalog(desc)) >= 1
        assert desc.self_constructor is not None

    def test_brownian_catalog(self):
        """Test Brownian motion offers both SDE schemes."""
        names = [e.name for e in solver_catalog(BrownianMotion().descriptor())]

        assert names == ['Euler-Maruyama', 'Stratonovich-Heun']

    def test_kuramoto_panels_pass_through(self):
        """Test display hints and declared lengths survive validation."""
        desc = KuramotoNet(seed=0).descriptor()

        assert set(desc.panels) == {'TimePortrait', 'PhasePortrait'}
        assert desc.variables[0].length == 20

    def test_default_descriptor(self):
        """Test the class-level default descriptor."""
        desc = LinearDecay.default_descriptor()

        assert desc.time_span == (0.0, 10.0)
        assert desc.ode is not None


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
