import math

import numpy as np
import pytest

from sensible_mcmc import DataField, ModelSpec, SchemaError, ValidationError
from sensible_mcmc.models import batting, irt
from sensible_mcmc.params import ParameterSpec


def test_from_function_splits_params_and_data(normal_model):
    assert normal_model.param_names == ("mu", "sigma")
    assert normal_model.data_names == ("N", "y")
    assert normal_model.param("sigma").bounds == (0.0, None)
    assert normal_model.param("sigma").describe() == "sigma in (0, inf)"
    assert not normal_model.has_gradient


def test_builders_return_new_specs(normal_model):
    bounded = normal_model.bound(mu=(-5.0, 5.0))
    assert bounded is not normal_model
    assert normal_model.param("mu").bounds == (None, None)
    assert bounded.param("mu").bounds == (-5.0, 5.0)


def test_contradictory_bounds_raise_schema_error(normal_model):
    with pytest.raises(SchemaError, match="sigma"):
        normal_model.bound(sigma=(2.0, 1.0))
    with pytest.raises(SchemaError, match="Degenerate"):
        normal_model.bound(mu=(1.0, 1.0))


def test_infinite_bounds_mean_unbounded():
    p = ParameterSpec("x", bounds=(-np.inf, np.inf))
    assert p.bounds == (None, None)


def test_undeclared_names_raise_schema_error(normal_model):
    with pytest.raises(SchemaError, match="undeclared parameter 'tau'"):
        normal_model.bound(tau=(0.0, 1.0))
    with pytest.raises(SchemaError, match="'z' is not an argument"):
        normal_model.data(z=DataField.real())


def test_log_density_referencing_unknown_name_raises():
    def lp(a, *, y):
        return 0.0

    spec = ModelSpec.from_function(lp)
    with pytest.raises(SchemaError, match="undeclared name 'y'"):
        ModelSpec(
            name="broken",
            params=spec.params,
            data_fields=(),
            log_density_func=lp,
        )


def test_declared_parameter_not_taken_by_log_density():
    def lp(a, *, y):
        return 0.0

    spec = ModelSpec.from_function(lp)
    with pytest.raises(SchemaError, match="do not match"):
        ModelSpec(
            name="broken",
            params=spec.params + (ParameterSpec("b"),),
            data_fields=spec.data_fields,
            log_density_func=lp,
        )


def test_shape_must_reference_integer_field(normal_model):
    with pytest.raises(SchemaError, match="not a declared integer data field"):
        normal_model.shape(mu="y")
    with pytest.raises(SchemaError, match="not a declared integer data field"):
        normal_model.shape(mu="M")


def test_data_bound_must_reference_declared_field(normal_model):
    with pytest.raises(SchemaError, match="undeclared field 'K'"):
        normal_model.data(y=DataField.real(shape="N", upper="K"))


def test_derived_name_clash(normal_model):
    with pytest.raises(SchemaError, match="conflicts"):
        normal_model.derive("mu", lambda d: d["mu"])
    spec = normal_model.derive("cv", lambda d: d["sigma"] / d["mu"])
    with pytest.raises(SchemaError, match="conflicts"):
        spec.derive("cv", lambda d: 0.0)


def test_varargs_are_rejected():
    def lp(*args, y):
        return 0.0

    with pytest.raises(TypeError, match=r"\*args"):
        ModelSpec.from_function(lp)


def test_hits_exceeding_at_bats_names_the_player_index():
    spec = batting.batting_model()
    data = dict(batting.EFRON_MORRIS)
    spec.validate(data)

    for player in (0, 7, 17):
        y = np.array(data["y"])
        y[player] = 46
        with pytest.raises(ValidationError) as err:
            spec.validate(dict(data, y=y))
        msg = str(err.value)
        assert "'y'" in msg
        assert f"index {player}" in msg
        assert "'K'" in msg


def test_negative_counts_are_rejected():
    spec = batting.batting_model()
    K = np.array(batting.EFRON_MORRIS["K"])
    K[3] = -1
    with pytest.raises(ValidationError, match="'K' violates lower bound 0 at index 3"):
        spec.validate(dict(batting.EFRON_MORRIS, K=K))


@pytest.mark.parametrize(
    "change, pattern",
    [
        ({"y": np.arange(17)}, r"shape \(17,\); expected \(18,\)"),
        ({"y": np.full(18, 10.5)}, "must be integral"),
        ({"N": 18.0, "y": np.r_[np.full(17, 10.0), np.nan]}, "non-finite value at index 17"),
    ],
)
def test_validation_errors_name_field_and_constraint(change, pattern):
    spec = batting.batting_model()
    with pytest.raises(ValidationError, match=pattern):
        spec.validate(dict(batting.EFRON_MORRIS, **change))


def test_missing_field():
    spec = batting.batting_model()
    data = {k: v for k, v in batting.EFRON_MORRIS.items() if k != "y"}
    with pytest.raises(ValidationError, match="Missing data field 'y'"):
        spec.validate(data)


def test_cross_field_check_on_item_indices():
    spec = irt.irt_model()
    data, _ = irt.simulate(I=3, J=4, rng=np.random.default_rng(0))
    spec.validate(data)
    ii = np.array(data["ii"])
    ii[5] = 3
    with pytest.raises(ValidationError, match="'ii'.*index 5"):
        spec.validate(dict(data, ii=ii))


def test_dataset_is_read_only(normal_model, normal_data):
    ds = normal_model.dataset(**normal_data)
    with pytest.raises(ValueError):
        ds["y"][0] = 0.0
    normal_data["y"][0] = 123.0
    assert ds["y"][0] != 123.0
    assert ds.replace(N=3)["N"] == 3
    assert set(ds.as_dict()) == {"N", "y"}


def test_log_density_is_minus_inf_outside_bounds(normal_model, normal_data):
    ds = normal_model.dataset(**normal_data)
    assert normal_model.log_density({"mu": 0.0, "sigma": -1.0}, ds) == -math.inf
    assert math.isfinite(normal_model.log_density({"mu": 0.0, "sigma": 1.0}, ds))


def test_parameter_shapes_resolve_against_data():
    spec = irt.irt_model()
    data, _ = irt.simulate(I=5, J=7, rng=np.random.default_rng(1))
    shapes = spec.parameter_shapes(data)
    assert shapes == {
        "theta": (7,),
        "log_alpha": (5,),
        "beta": (5,),
        "mu": (2,),
        "tau": (2,),
        "rho": (),
    }


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), 2.5, -1])
def test_non_integer_dimension_is_a_validation_error(bad):
    spec = irt.irt_model()
    with pytest.raises(ValidationError, match="'J' is used as a dimension"):
        spec.parameter_shapes({"I": 3, "J": bad})
