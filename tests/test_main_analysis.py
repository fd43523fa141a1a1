"""
Integration tests for the complete analysis pipeline and settings.
"""

import importlib.util
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from rental_econometrics.core.config import Settings
from rental_econometrics.core.exceptions import InvalidRecordError, SingularDesignError
from rental_econometrics.main_analysis import fit_with_reduction, run_complete_analysis
from rental_econometrics.models.formula import INTERCEPT, Formula

SCRIPT_PATH = Path(__file__).resolve().parent.parent / "scripts" / "run_analysis.py"


def load_run_analysis_script():
    spec = importlib.util.spec_from_file_location("run_analysis", SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestCompleteAnalysis:
    """Test the end-to-end pipeline."""

    def setup_method(self):
        """Set up settings for the synthetic region."""
        self.settings = Settings(region="reno / tahoe", log_file=None)

    def test_pipeline_produces_every_stage(self, raw_listings):
        results = run_complete_analysis(raw_listings, self.settings)

        assert set(results.models) == {"control", "full", "stepwise", "log"}
        assert set(results.diagnostics) == {"stepwise", "log"}
        assert (results.data["beds"] > 0).all()
        assert (results.data["baths"] > 0).all()
        assert results.cleaning_summary["output_rows"] == len(results.data)

    def test_stepwise_model_relative_to_control_and_full(self, raw_listings):
        results = run_complete_analysis(raw_listings, self.settings)
        models = results.models

        assert models["stepwise"].n_terms <= models["full"].n_terms
        assert models["stepwise"].adj_r_squared >= models["control"].adj_r_squared - 0.01
        assert models["log"].formula.terms == models["stepwise"].formula.terms
        assert models["log"].formula.response.lmbda == 0.0

    def test_boxcox_profile_exposed_not_applied(self, raw_listings):
        results = run_complete_analysis(raw_listings, self.settings)

        assert "boxcox" not in results.models
        assert len(results.boxcox.to_frame()) == 41
        assert list(results.transformations.index) == ["log", "identity", "profile_max"]

    def test_chosen_boxcox_lambda_is_fitted(self, raw_listings):
        results = run_complete_analysis(raw_listings, self.settings, boxcox_lambda=-0.6)

        assert results.models["boxcox"].formula.response.lmbda == pytest.approx(-0.6)
        assert "boxcox" in results.diagnostics
        assert "chosen" in results.transformations.index

    def test_coefficient_report_from_log_model(self, raw_listings):
        results = run_complete_analysis(raw_listings, self.settings)
        report = results.coefficient_report

        assert INTERCEPT not in report.index
        magnitudes = report["percent_change"].abs().tolist()
        assert magnitudes == sorted(magnitudes, reverse=True)

    def test_comparison_table(self, raw_listings):
        results = run_complete_analysis(raw_listings, self.settings)
        comparison = results.comparison

        assert list(comparison.index) == ["control", "full", "stepwise", "log"]
        assert comparison.loc["stepwise", "aic"] <= comparison.loc["full", "aic"]

    def test_missing_column_aborts(self, raw_listings):
        with pytest.raises(InvalidRecordError):
            run_complete_analysis(raw_listings.drop(columns=["price"]), self.settings)


    def test_single_level_flag_is_not_selected(self, raw_listings):
        raw = raw_listings.copy()
        raw["electric_vehicle_charge"] = 0

        results = run_complete_analysis(raw, self.settings)

        assert results.models["full"].excluded_terms == ("electric_vehicle_charge",)
        assert "electric_vehicle_charge" not in results.models["stepwise"].formula.term_names
        assert "electric_vehicle_charge" not in results.models["log"].formula.term_names


class TestFitWithReduction:
    """Test recovery from rank-deficient designs."""

    def test_duplicated_flag_is_dropped_from_full_model(self, raw_listings):
        raw = raw_listings.copy()
        raw["dogs_allowed"] = raw["cats_allowed"]

        results = run_complete_analysis(raw, Settings(region="reno / tahoe", log_file=None))
        full_terms = results.models["full"].formula.term_names

        assert "dogs_allowed" not in full_terms
        assert "cats_allowed" in full_terms
        assert "stepwise" in results.models

    def test_full_rank_formula_is_fitted_unchanged(self, clean_listings):
        formula = Formula.from_terms("price", ["sqfeet", "beds"])

        assert fit_with_reduction(formula, clean_listings).formula == formula

    def test_original_error_when_no_single_drop_helps(self):
        rng = np.random.default_rng(7)
        n = 80
        data = pd.DataFrame({"a": rng.normal(size=n), "b": rng.normal(size=n)})
        data["a_twice"] = 2 * data["a"]
        data["b_thrice"] = 3 * data["b"]
        data["price"] = 1000 + 50 * data["a"] + 20 * data["b"] + rng.normal(size=n)
        formula = Formula.from_terms("price", ["a", "a_twice", "b", "b_thrice"])

        with pytest.raises(SingularDesignError) as excinfo:
            fit_with_reduction(formula, data)

        assert excinfo.value.n_columns == 5
        assert excinfo.value.rank == 3


class TestRunAnalysisScript:
    """Test the command-line entry point."""

    def setup_method(self):
        """Load the script module."""
        self.script = load_run_analysis_script()

    def write_listings(self, raw_listings, tmp_path):
        path = tmp_path / "listings.csv"
        raw_listings.to_csv(path, index=False)
        return str(path)

    def test_successful_run_exits_zero(self, raw_listings, tmp_path):
        path = self.write_listings(raw_listings, tmp_path)

        assert self.script.main([path]) == 0
        assert self.script.main([path, "-0.5"]) == 0

    def test_non_numeric_lambda_exits_one(self, raw_listings, tmp_path):
        path = self.write_listings(raw_listings, tmp_path)

        assert self.script.main([path, "log"]) == 1

    def test_missing_file_exits_one(self, tmp_path):
        assert self.script.main([str(tmp_path / "missing.csv")]) == 1

    def test_invalid_reference_level_exits_one(self, raw_listings, tmp_path, monkeypatch):
        path = self.write_listings(raw_listings, tmp_path)
        monkeypatch.setattr(
            self.script, "settings", Settings(reference_levels={"cats_allowed": "yes"}, log_file=None)
        )

        assert self.script.main([path]) == 1

class TestSettings:
    """Test settings parsing."""

    def test_defaults(self):
        settings = Settings(log_file=None)

        assert settings.confidence_level == 0.95
        assert settings.control_terms == ["sqfeet", "beds", "baths", "type"]

    def test_comma_separated_values(self):
        settings = Settings(control_terms="sqfeet, beds", reference_levels="type=house, laundry_options=w/d in unit")

        assert settings.control_terms == ["sqfeet", "beds"]
        assert settings.reference_levels == {"type": "house", "laundry_options": "w/d in unit"}

    def test_invalid_confidence_level(self):
        with pytest.raises(ValueError):
            Settings(confidence_level=1.5)

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("RENTAL_REGION", "boise")
        monkeypatch.setenv("RENTAL_VIF_THRESHOLD", "10")

        settings = Settings()

        assert settings.region == "boise"
        assert settings.vif_threshold == 10.0

    def test_environment_comma_lists(self, monkeypatch):
        monkeypatch.setenv("RENTAL_CONTROL_TERMS", "sqfeet,beds,baths")
        monkeypatch.setenv("RENTAL_REFERENCE_LEVELS", "type=house")

        settings = Settings()

        assert settings.control_terms == ["sqfeet", "beds", "baths"]
        assert settings.reference_levels == {"type": "house"}
