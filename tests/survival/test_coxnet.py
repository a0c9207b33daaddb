"""
Tests for the public penalized Cox API: coxnet, coxnet_paths and
lambda_max, and the CoxnetSolution wrapper.
"""

import warnings

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

import pycoxnet
from pycoxnet.core.exceptions import (
    ConfigError,
    ConvergenceError,
    ConvergenceWarning,
    DataError,
)
from pycoxnet.survival import CoxnetSolution, coxnet, coxnet_paths, lambda_max


class TestCoxnet:

    def test_default_path(self, cox_data):
        y, X, _ = cox_data
        fit = coxnet(y, X)
        assert isinstance(fit, CoxnetSolution)
        assert len(fit.lambdas) == 100
        assert np.all(np.diff(fit.lambdas) < 0)
        assert fit.lambdas[0] == pytest.approx(fit.lambda_max)
        assert fit.path.shape == (100, 5)
        assert_allclose(fit.path[0], 0.0, atol=1e-8)
        assert np.all(fit.converged)
        assert fit.backend_name == "cpu_proxgrad"
        assert fit.warnings == ()

    def test_lamfract_truncates(self, cox_data):
        y, X, _ = cox_data
        assert len(coxnet(y, X, lamfract=0.5).lambdas) == 50
        assert len(coxnet(y, X, nlambdas=10, lamfract=0.25).lambdas) == 3

    def test_user_lambdas_sorted(self, cox_data):
        y, X, _ = cox_data
        fit = coxnet(y, X, lambdas=[0.01, 0.1, 0.05])
        assert_allclose(fit.lambdas, [0.1, 0.05, 0.01])

    def test_lambda_max_only(self, cox_data):
        y, X, _ = cox_data
        value = coxnet(y, X, alpha=0.5, lambda_max_only=True)
        assert isinstance(value, float)
        assert value == pytest.approx(lambda_max(y, X, alpha=0.5))

    def test_lambda_max_ridge_floor(self, cox_data):
        y, X, _ = cox_data
        assert lambda_max(y, X, alpha=0.0) == pytest.approx(
            lambda_max(y, X, alpha=1.0) / 1e-3
        )

    def test_alpha_sequence_rejected(self, cox_data):
        y, X, _ = cox_data
        with pytest.raises(ConfigError, match="alpha"):
            coxnet(y, X, alpha=[0.5, 1.0])

    def test_no_events(self, cox_data):
        y, X, _ = cox_data
        y = y.copy()
        y[:, 1] = 0
        with pytest.raises(DataError, match="no events"):
            coxnet(y, X)

    def test_max_iter_warns(self, cox_data):
        y, X, _ = cox_data
        with pytest.warns(ConvergenceWarning, match="failed to converge"):
            fit = coxnet(y, X, nlambdas=10, max_iter=1)
        assert not np.all(fit.converged)
        assert len(fit.warnings) == 1
        assert "Warning:" in fit.summary()

    def test_strict_raises(self, cox_data):
        y, X, _ = cox_data
        with pytest.raises(ConvergenceError):
            coxnet(y, X, nlambdas=10, max_iter=1, strict=True)

    def test_feature_names(self, cox_data):
        y, X, _ = cox_data
        names = ["age", "bmi", "sbp", "ldl", "hdl"]
        fit = coxnet(y, X, nlambdas=20, feature_names=names)
        assert list(fit.coefficients) == names
        assert fit.feature_names == tuple(names)

    def test_unpenalized_coordinate(self, cox_data):
        y, X, _ = cox_data
        fit = coxnet(y, X, nlambdas=10, penalty_factor=[0, 1, 1, 1, 1])
        assert np.all(fit.path[:, 0] != 0)

    def test_penalty_factor_length(self, cox_data):
        y, X, _ = cox_data
        with pytest.raises(ConfigError, match="penalty_factor"):
            coxnet(y, X, penalty_factor=[1, 1])

    def test_weights_replicate_rows(self, cox_data):
        y, X, _ = cox_data
        weights = np.ones(len(y))
        weights[:10] = 2.0
        weighted = coxnet(y, X, lambdas=[0.05, 0.01], weights=weights, tol=1e-8)
        replicated = coxnet(
            np.vstack([y, y[:10]]), np.vstack([X, X[:10]]),
            lambdas=[0.05, 0.01], tol=1e-8,
        )
        assert_allclose(weighted.path, replicated.path, atol=1e-6)

    def test_coef_nearest_lambda(self, cox_data):
        y, X, _ = cox_data
        fit = coxnet(y, X, nlambdas=20)
        assert fit.lambda_index() == 19
        assert fit.lambda_index(fit.lambdas[4] * 1.001) == 4
        assert_array_equal(fit.coef(fit.lambdas[4]), fit.path[4])

    def test_summary_and_repr(self, cox_data):
        y, X, _ = cox_data
        fit = coxnet(y, X, nlambdas=25)
        text = fit.summary()
        assert "Call: coxnet()" in text
        assert "n= 120" in text
        assert "(5 more lambdas)" in text
        assert repr(fit).startswith("CoxnetSolution(alpha=1, lambdas=25")

    def test_timing_sections(self, cox_data):
        y, X, _ = cox_data
        fit = coxnet(y, X, nlambdas=5)
        assert 'path' in fit.timing
        assert fit.timing['total_seconds'] >= fit.timing['path']


class TestCoxnetPaths:

    def test_one_path_per_alpha(self, cox_data):
        y, X, _ = cox_data
        fits = coxnet_paths(y, X, alphas=[1.0, 0.5, 0.1], nlambdas=15)
        assert [f.alpha for f in fits] == [1.0, 0.5, 0.1]
        assert all(len(f.lambdas) == 15 for f in fits)
        # smaller alpha -> larger lambda_max
        assert fits[0].lambda_max < fits[1].lambda_max < fits[2].lambda_max

    def test_matches_single_fits(self, cox_data):
        y, X, _ = cox_data
        fits = coxnet_paths(y, X, alphas=[1.0, 0.5], nlambdas=15)
        single = coxnet(y, X, alpha=0.5, nlambdas=15)
        assert_array_equal(fits[1].path, single.path)

    def test_parallel_identical(self, cox_data):
        y, X, _ = cox_data
        kwargs = dict(alphas=[1.0, 0.7, 0.3], nlambdas=15)
        sequential = coxnet_paths(y, X, n_jobs=1, **kwargs)
        parallel = coxnet_paths(y, X, n_jobs=3, **kwargs)
        for a, b in zip(sequential, parallel):
            assert_array_equal(a.path, b.path)
            assert_array_equal(a.n_iter, b.n_iter)

    def test_n_jobs_zero(self, cox_data):
        y, X, _ = cox_data
        with pytest.raises(ConfigError, match="n_jobs"):
            coxnet_paths(y, X, n_jobs=0)

    def test_warnings_once_per_alpha(self, cox_data):
        y, X, _ = cox_data
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            coxnet_paths(y, X, alphas=[1.0, 0.5], nlambdas=10, max_iter=1)
        messages = [str(w.message) for w in caught if w.category is ConvergenceWarning]
        assert len(messages) == 2
        assert "alpha=0.5" in messages[1]


def test_package_exports():
    assert pycoxnet.coxnet is coxnet
    assert pycoxnet.__version__ == "0.1.0"
