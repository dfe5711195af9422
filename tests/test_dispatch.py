"""
Unit tests for the solve dispatcher.

Tests verify:
1. Family resolution from the candidate lists
2. End-to-end solves for each equation family
3. Reproducible noise injection for SDEs
4. Failures surface as IntegrationError without touching the descriptor
5. Auxiliary solutions
"""

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.descriptor import (DDESpec, Entry, EquationFamily, ODESpec, SolverOptions,
                             SystemDescriptor)
from core.exceptions import (AmbiguousSolverError, IntegrationError,
                             UnknownSolverError)
from models.validation import validate
from models.linear import LinearDecay, linear_rhs
from models.brownian import BrownianMotion
from models.delay import DelayedDecay
from models.kuramoto import KuramotoNet
from sim.dispatch import resolve_family, solve
from solvers.base import IntegrationOutput
from solvers.ode import ClassicalRK4, ForwardEuler
from solvers.registry import DDE_RK4, EULER, RK4, RK45


def two_family_descriptor(ode_solvers, dde_solvers):
    return validate(SystemDescriptor(
        parameters=[Entry('a', 1.0)],
        variables=[Entry('Y', 1.0)],
        time_span=(0.0, 2.0),
        ode=ODESpec(rhs=lambda t, y, a: -a * y, solvers=ode_solvers),
        dde=DDESpec(rhs=lambda t, y, Z, a: -a * Z[:, 0], lags=[1.0],
                    solvers=dde_solvers, options=SolverOptions(initial_step=0.1))))


class TestFamilyResolution:
    """Tests for resolving a solver to its equation family."""

    def test_dde_only_solver(self):
        """Test a DDE-only solver resolves to the DDE family."""
        desc = two_family_descriptor([RK45], [DDE_RK4])

        assert resolve_family(desc, DDE_RK4) is EquationFamily.DDE
        assert resolve_family(desc, DDE_RK4).value == 'ddesolver'

    def test_solve_uses_resolved_family(self):
        """Test solve without a family uses the resolved one."""
        desc = two_family_descriptor([RK45], [DDE_RK4])
        sol, _ = solve(desc, solver=DDE_RK4)

        assert sol.family is EquationFamily.DDE
        assert sol.values[0, -1] == pytest.approx(-0.5, abs=1e-9)

    def test_ambiguous_solver(self):
        """Test a solver listed under two families needs an explicit family."""
        shared = ClassicalRK4(name='shared')
        desc = two_family_descriptor([shared], [DDE_RK4, shared])

        with pytest.raises(AmbiguousSolverError):
            solve(desc, solver=shared)

    def test_ambiguity_resolved_by_family(self):
        """Test an explicit family settles an ambiguous solver."""
        shared = ClassicalRK4(name='shared')
        desc = two_family_descriptor([shared], [DDE_RK4, shared])
        sol, _ = solve(desc, solver=shared, family='odesolver')

        assert sol.family is EquationFamily.ODE
        assert sol.values[0, -1] == pytest.approx(np.exp(-2.0), rel=1e-6)

    def test_unknown_solver(self):
        """Test a solver outside every candidate list is rejected."""
        desc = two_family_descriptor([RK45], [DDE_RK4])

        with pytest.raises(UnknownSolverError):
            solve(desc, solver=EULER)

    def test_family_mismatch(self):
        """Test a solver used with the wrong family is rejected."""
        desc = two_family_descriptor([RK45], [DDE_RK4])

        with pytest.raises(UnknownSolverError):
            solve(desc, solver=DDE_RK4, family=EquationFamily.ODE)

    def test_unknown_family_name(self):
        """Test an unknown family name is rejected."""
        desc = two_family_descriptor([RK45], [DDE_RK4])

        with pytest.raises(UnknownSolverError):
            solve(desc, solver=RK45, family='pdesolver')

    def test_family_without_solver(self):
        """Test an explicit family picks that family's first candidate."""
        desc = two_family_descriptor([RK45], [DDE_RK4])
        sol, _ = solve(desc, family='ddesolver')

        assert sol.family is EquationFamily.DDE
        assert sol.solver == 'DDE-RK4'

    def test_undeclared_family_without_solver(self):
        """Test an explicit family the descriptor does not declare is rejected."""
        desc = validate(LinearDecay().build())

        with pytest.raises(UnknownSolverError):
            solve(desc, family=EquationFamily.SDE)


class TestODESolve:
    """End-to-end tests on dY/dt = -0.1 Y, Y(0) = 5."""

    def setup_method(self):
        self.desc = validate(LinearDecay(mu=-0.1, y0=5.0, time_span=(0.0, 10.0)).build())

    def test_default_solver(self):
        """Test the first catalog entry is used by default."""
        sol, aux = solve(self.desc)

        assert sol.solver == 'RK45'
        assert sol.times[0] == 0.0
        assert sol.times[-1] == 10.0
        assert sol.values[0, -1] == pytest.approx(5.0 * np.exp(-1.0), rel=5e-3)
        assert aux is None

    @pytest.mark.parametrize('solver', [RK45, RK4, EULER])
    def test_all_solvers_reach_final_value(self, solver):
        """Test every ODE solver reaches Y(10) = 5 exp(-1)."""
        desc = validate(SystemDescriptor(
            parameters=[Entry('mu', -0.1)],
            variables=[Entry('Y', 5.0)],
            time_span=(0.0, 10.0),
            ode=ODESpec(rhs=linear_rhs, solvers=[RK45, RK4, EULER])))
        sol, _ = solve(desc, solver=solver)

        assert sol.values[0, -1] == pytest.approx(1.839, abs=2e-2)
        assert sol.family is EquationFamily.ODE

    def test_time_span_override(self):
        """Test an explicit time span replaces the default."""
        sol, _ = solve(self.desc, time_span=(2.0, 4.0))

        assert sol.time_span == (2.0, 4.0)
        assert sol.metadata['time_span'] == (2.0, 4.0)

    def test_malformed_time_span(self):
        """Test empty and reversed spans are rejected."""
        for span in [(5.0, 5.0), (10.0, 0.0)]:
            with pytest.raises(IntegrationError):
                solve(self.desc, time_span=span)

    def test_descriptor_unchanged(self):
        """Test solving leaves the descriptor untouched."""
        before = self.desc.copy()
        solve(self.desc)

        assert self.desc == before

    def test_rhs_failure(self):
        """Test an exception inside the rhs is wrapped."""
        def rhs(t, y, mu):
            if t > 1.0:
                raise ZeroDivisionError("singular")
            return mu * y

        desc = validate(SystemDescriptor(
            parameters=[Entry('mu', -0.1)],
            variables=[Entry('Y', 5.0)],
            time_span=(0.0, 10.0),
            ode=ODESpec(rhs=rhs)))

        with pytest.raises(IntegrationError) as excinfo:
            solve(desc)
        assert 'singular' in str(excinfo.value)

    def test_output_hook(self):
        """Test the output hook halts the integration."""
        desc = validate(SystemDescriptor(
            parameters=[Entry('mu', -0.1)],
            variables=[Entry('Y', 5.0)],
            time_span=(0.0, 10.0),
            ode=ODESpec(rhs=linear_rhs, solvers=[RK4],
                        options=SolverOptions(initial_step=0.5,
                                              output_fcn=lambda t, y: y[0] < 4.0))))
        sol, _ = solve(desc)

        assert sol.metadata['halted']
        assert sol.values[0, -1] < 4.0
        assert sol.values[0, -2] >= 4.0
        assert sol.times[-1] < 10.0


class TestDDESolve:
    """End-to-end tests on dY/dt = -Y(t - 1)."""

    def test_method_of_steps(self):
        """Test the delayed decay reaches Y(2) = -1/2."""
        desc = validate(DelayedDecay(a=1.0, tau=1.0, y0=1.0, time_span=(0.0, 2.0),
                                     step=0.1).build())
        sol, _ = solve(desc)

        assert sol.solver == 'DDE-RK4'
        assert sol.values[0, -1] == pytest.approx(-0.5, abs=1e-9)
        assert sol.history(0.5)[0] == pytest.approx(0.5)


class TestSDESolve:
    """Tests for noise injection."""

    def test_fixed_noise_is_reproducible(self):
        """Test pre-generated noise gives identical paths."""
        noise = np.random.default_rng(0).standard_normal((1, 1000))
        desc = validate(BrownianMotion(step=0.01, noise_samples=noise).build())
        first, _ = solve(desc)
        second, _ = solve(desc)

        np.testing.assert_array_equal(first.times, second.times)
        np.testing.assert_array_equal(first.values, second.values)
        np.testing.assert_array_equal(first.noise_increments, second.noise_increments)
        np.testing.assert_allclose(first.noise_increments[:, :-1], 0.1 * noise)

    def test_fresh_noise_differs(self):
        """Test fresh noise gives different paths on the same grid."""
        desc = validate(BrownianMotion(step=0.01).build())
        first, _ = solve(desc)
        second, _ = solve(desc)

        np.testing.assert_array_equal(first.times, second.times)
        assert not np.array_equal(first.values, second.values)

    def test_seeded_generator(self):
        """Test equal seeds give identical paths."""
        desc = validate(BrownianMotion(step=0.01).build())
        first, _ = solve(desc, rng=np.random.default_rng(42))
        second, _ = solve(desc, rng=np.random.default_rng(42))

        np.testing.assert_array_equal(first.values, second.values)

    def test_not_enough_noise_samples(self):
        """Test too few noise columns are rejected."""
        desc = validate(BrownianMotion(step=0.01, noise_samples=np.ones((1, 10))).build())

        with pytest.raises(IntegrationError):
            solve(desc)

    def test_noise_rows_must_match_sources(self):
        """Test noise rows must match the noise sources."""
        desc = validate(BrownianMotion(step=0.01).build())
        desc.sde.options.noise_samples = np.ones((2, 1000))

        with pytest.raises(IntegrationError):
            solve(desc)


class TestAuxiliary:
    """Tests for auxiliary solutions."""

    def test_kuramoto_order_parameter(self):
        """Test the order parameter stays within [0, 1]."""
        desc = validate(KuramotoNet(Kij=np.ones((3, 3)), seed=0,
                                    time_span=(0.0, 10.0)).build())
        sol, aux = solve(desc)

        assert aux is not None
        assert aux.n_rows == 4
        np.testing.assert_array_equal(aux.times, sol.times)
        R = aux.values[-1]
        assert np.all(R >= 0.0)
        assert np.all(R <= 1.0 + 1e-12)
        np.testing.assert_allclose(aux.values[:3], np.sin(sol.values))

    def test_auxiliary_own_times(self):
        """Test an auxiliary function may return its own sample times."""
        def aux(times, values, mu):
            return times[::2], values[:, ::2]

        desc = validate(SystemDescriptor(
            parameters=[Entry('mu', -0.1)],
            variables=[Entry('Y', 5.0)],
            time_span=(0.0, 10.0),
            ode=ODESpec(rhs=linear_rhs, solvers=[RK4]),
            auxdef=[Entry('Ycoarse', 0.0)],
            auxfun=aux))
        sol, aux_sol = solve(desc)

        assert aux_sol.times.size == (sol.times.size + 1) // 2
        np.testing.assert_array_equal(aux_sol.values[0], sol.values[0, ::2])

    def test_auxiliary_tuple_of_wrong_length(self):
        """Test an auxiliary tuple that is not a (times, values) pair is rejected."""
        desc = validate(KuramotoNet(Kij=np.ones((3, 3)), seed=0,
                                    time_span=(0.0, 1.0)).build())
        desc.auxfun = lambda times, values, *params: (times, values, values)

        with pytest.raises(IntegrationError):
            solve(desc)

    def test_auxiliary_non_numeric(self):
        """Test non-numeric auxiliary values surface as IntegrationError."""
        desc = validate(KuramotoNet(Kij=np.ones((3, 3)), seed=0,
                                    time_span=(0.0, 1.0)).build())
        desc.auxfun = lambda times, values, *params: [['high'] * times.size] * 4

        with pytest.raises(IntegrationError):
            solve(desc)


class TestIntegratorOutput:
    """Tests for checking what a plug-in integrator hands back."""

    def linear(self, solver):
        return validate(SystemDescriptor(
            parameters=[Entry('mu', -0.1)],
            variables=[Entry('Y', 5.0)],
            time_span=(0.0, 1.0),
            ode=ODESpec(rhs=linear_rhs, solvers=[solver])))

    def test_bare_pair_rejected(self):
        """Test a (t, y) pair instead of IntegrationOutput is rejected."""
        class PairEuler(ForwardEuler):
            def integrate(self, fun, t_span, y0, options, should_stop=None):
                output = super().integrate(fun, t_span, y0, options, should_stop)
                return output.t, output.y

        with pytest.raises(IntegrationError):
            solve(self.linear(PairEuler(name='pair')))

    def test_wrong_row_count_rejected(self):
        """Test output with more state rows than the layout is rejected."""
        class DoubledEuler(ForwardEuler):
            def integrate(self, fun, t_span, y0, options, should_stop=None):
                output = super().integrate(fun, t_span, y0, options, should_stop)
                return IntegrationOutput(output.t, np.vstack([output.y, output.y]))

        with pytest.raises(IntegrationError):
            solve(self.linear(DoubledEuler(name='doubled')))

    def test_missing_stats_tolerated(self):
        """Test None stats and extras become empty dicts."""
        class BareEuler(ForwardEuler):
            def integrate(self, fun, t_span, y0, options, should_stop=None):
                output = super().integrate(fun, t_span, y0, options, should_stop)
                return IntegrationOutput(output.t, output.y, stats=None, extras=None)

        sol, _ = solve(self.linear(BareEuler(name='bare')))

        assert sol.stats == {}
        assert sol.extras == {}


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
