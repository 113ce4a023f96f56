import logging

import pytest

from partint import (
    CacheError,
    Category,
    ConfigurationError,
    Constant,
    Function,
    IntegrationConfig,
    IntegrationError,
    Integral,
    Polynomial,
    Product,
    RealTerm,
    RealVariable,
)


def _xy(name, x, y):
    return Function(name, lambda x, y: x * y, {"x": x, "y": y})


def test_value_multiplies_real_terms(x, y, f, g):
    prod = Product("p", [f, g])
    # f(0.5) = 2, g(1) = 3
    assert prod.get_value() == pytest.approx(6.0)
    x.value = 1.0
    assert prod.get_value() == pytest.approx(9.0)


def test_category_contributes_index():
    cat = Category("c", {"A": 1, "B": 3}, label="B")
    prod = Product("p", [Constant("a", 2.5), cat])
    assert prod.get_value() == pytest.approx(7.5)
    assert prod.real_terms[0].name == "a"
    assert prod.category_terms == (cat,)
    cat.label = "A"
    assert prod.get_value() == pytest.approx(2.5)


def test_category_index_zero_zeroes_product():
    cat = Category("c", ["off", "on"])
    assert Product("p", [Constant("a", 4.0), cat]).get_value() == 0.0


class _NsetSpy(RealTerm):
    def __init__(self, name):
        super().__init__(name)
        self.seen = []

    def get_value(self, nset=None):
        self.seen.append(nset)
        return 1.0


def test_real_terms_see_product_normalization_set(x):
    spy = _NsetSpy("spy")
    prod = Product("p", [spy])
    prod.normalization_set = (x,)
    prod.get_value()
    assert spy.seen == [(x,)]
    prod.get_value((x, x))
    assert spy.seen[-1] == (x, x)


def test_rejects_foreign_components(f):
    with pytest.raises(ConfigurationError):
        Product("p", [f, "not-a-term"])


def test_rejects_missing_name(f):
    with pytest.raises(ConfigurationError):
        Product("", [f])


def test_rejects_duplicate_names():
    with pytest.raises(ConfigurationError):
        Product("p", [Constant("a", 1.0), Constant("a", 2.0)])


def test_same_component_twice_is_kept_once(f):
    assert Product("p", [f, f]).real_terms == (f,)


def test_force_analytical_integral(x, y, z, f, g):
    prod = Product("p", [f, g])
    assert prod.force_analytical_integral(x)
    assert prod.force_analytical_integral(y)
    assert not prod.force_analytical_integral(z)


def test_independent_term_stays_unintegrated(x, y, f, g):
    prod = Product("p", [f, g])
    code = prod.get_partial_integral_list([x])
    assert code == 0
    element = prod.cache.get_obj_by_index(code)
    assert element.product_list[0] is g
    integral = element.product_list[1]
    assert isinstance(integral, Integral)
    assert integral.name == "f_Int[x]"
    assert element.owned_list == [integral]
    # g(1) * int_0^1 (1 + 2x) dx
    assert prod.analytical_integral(code + 1) == pytest.approx(6.0)
    y.value = 2.0
    assert prod.analytical_integral(code + 1) == pytest.approx(24.0)


def test_get_analytical_integral_claims_all_variables(x, y, f, g):
    prod = Product("p", [f, g])
    code, anal_vars = prod.get_analytical_integral([x, y])
    assert code == 1
    assert anal_vars == (x, y)
    # int (1 + 2x) dx over [0, 1] times int 3y^2 dy over [0, 2]
    assert prod.analytical_integral(code) == pytest.approx(16.0)


def test_fully_coupled_product_is_not_cached(x, y, f, g):
    h = _xy("h", x, y)
    prod = Product("p", [f, g, h])
    assert len(prod.groups([x, y])) == 1
    assert prod.get_partial_integral_list([x, y]) == -1
    assert prod.get_analytical_integral([x, y]) == (0, ())
    assert len(prod.cache) == 0

    integral = prod.create_integral([x, y])
    assert integral.analytic_code == 0
    assert set(var.name for var in integral.numeric_vars) == {"x", "y"}
    # (int x + 2x^2 dx) * (int 3y^3 dy) = 7/6 * 12
    assert integral.get_value() == pytest.approx(14.0, rel=1e-10)


def test_single_term_has_no_factorization(x, f):
    prod = Product("p", [f])
    assert prod.get_partial_integral_list([x]) == -1
    assert prod.get_analytical_integral([x]) == (0, ())
    assert len(prod.cache) == 0


def test_force_numeric_declines_factorization(x, y, f, g):
    prod = Product("p", [f, g], config=IntegrationConfig(force_numeric=True))
    assert prod.get_analytical_integral([x, y]) == (0, ())
    assert len(prod.cache) == 0


def test_normalized_analytic_integral_is_rejected(x, f, g):
    prod = Product("p", [f, g])
    with pytest.raises(ConfigurationError):
        prod.get_analytical_integral([x], nset=[x])


def test_sub_product_for_merged_group(x, y, z, f):
    h = _xy("h", x, y)
    k = Polynomial("k", z, [1.0])
    prod = Product("p", [h, f, k])
    code = prod.get_partial_integral_list([x, y, z])
    element = prod.cache.get_obj_by_index(code)
    names = [term.name for term in element.product_list]
    assert names == ["SUBPROD_f_X_h_Int[x,y]", "k_Int[z]"]
    owned = [term.name for term in element.owned_list]
    assert owned == ["SUBPROD_f_X_h", "SUBPROD_f_X_h_Int[x,y]", "k_Int[z]"]
    sub_product = element.owned_list[0]
    assert isinstance(sub_product, Product)
    assert sub_product.real_terms == (h, f)
    # (int (1 + 2x) x dx)(int y dy) * 3 = 7/6 * 2 * 3
    assert prod.analytical_integral(code + 1) == pytest.approx(7.0, rel=1e-10)


def test_factorized_matches_brute_force(x, y, z, f, g):
    h = _xy("h", x, z)
    factorized = Product("p", [f, g, h])
    brute = Product("p", [f, g, h], config=IntegrationConfig(force_numeric=True, quadrature_points=12))

    fast = factorized.create_integral([x, y, z])
    slow = brute.create_integral([x, y, z])
    assert fast.analytic_code == 1
    assert slow.analytic_code == 0
    assert fast.get_value() == pytest.approx(slow.get_value(), rel=1e-9)


def test_factorized_integral_keeps_category_factor(x, y, f, g):
    cat = Category("c", {"A": 1, "B": 3}, label="B")
    factorized = Product("p", [f, g, cat])
    brute = Product("p", [f, g, cat], config=IntegrationConfig(force_numeric=True, quadrature_points=8))

    fast = factorized.create_integral([x, y])
    slow = brute.create_integral([x, y])
    assert fast.analytic_code == 1
    assert slow.analytic_code == 0
    # int (1 + 2x) dx * int 3y^2 dy * 3
    assert fast.get_value() == pytest.approx(48.0)
    assert fast.get_value() == pytest.approx(slow.get_value(), rel=1e-9)

    cat.label = "A"
    assert fast.get_value() == pytest.approx(16.0)
    factorized.sterilize()
    assert fast.get_value() == pytest.approx(slow.get_value(), rel=1e-9)


def test_variable_without_dependents_contributes_volume(x, z, f):
    prod = Product("p", [f])
    code = prod.get_partial_integral_list([x, z])
    assert code == 0
    element = prod.cache.get_obj_by_index(code)
    assert [term.name for term in element.product_list] == ["f_Int[x]", "VOLUME_z"]
    assert prod.analytical_integral(1) == pytest.approx(2.0 * 3.0)
    prod.sterilize()
    assert prod.analytical_integral(1) == pytest.approx(2.0 * 3.0)


def test_sub_product_names_are_stable(x, y, f):
    h = _xy("h", x, y)
    prod = Product("p", [h, f])
    assert prod.sub_product_name([h, f]) == prod.sub_product_name([f, h]) == "SUBPROD_f_X_h"
    custom = Product("p", [h, f], config=IntegrationConfig(name_prefix="GRP_"))
    assert custom.sub_product_name([h, f]) == "GRP_f_X_h"


def test_cache_lookup_uses_variable_values_not_order(x, y, f, g):
    prod = Product("p", [f, g])
    code = prod.get_partial_integral_list([x, y])
    assert prod.get_partial_integral_list([y, x]) == code
    assert prod.get_partial_integral_list((x, y)) == code
    assert len(prod.cache) == 1


def test_range_names_select_distinct_slots(x, y, f, g):
    x.set_range("low", 0.0, 0.5)
    prod = Product("p", [f, g])
    full = prod.get_partial_integral_list([x])
    low = prod.get_partial_integral_list([x], "low")
    assert full != low
    assert prod.get_partial_integral_list([x], "".join(["lo", "w"])) == low
    # g(1) * int_0^0.5 (1 + 2x) dx
    assert prod.analytical_integral(low + 1) == pytest.approx(2.25)
    assert prod.analytical_integral(full + 1) == pytest.approx(6.0)


def test_revival_after_sterilization(x, y, f, g):
    prod = Product("p", [f, g])
    code, _ = prod.get_analytical_integral([x, y])
    before = prod.analytical_integral(code)

    prod.sterilize()
    assert prod.cache.is_sterile(code - 1)
    assert prod.cache.live_count() == 0

    assert prod.analytical_integral(code) == pytest.approx(before)
    assert not prod.cache.is_sterile(code - 1)
    assert len(prod.cache) == 1


def test_revival_keeps_range(x, y, f, g):
    x.set_range("low", 0.0, 0.5)
    prod = Product("p", [f, g])
    code = prod.get_partial_integral_list([x], "low") + 1
    before = prod.analytical_integral(code, "low")
    prod.sterilize()
    assert prod.analytical_integral(code) == pytest.approx(before)


def test_eviction_sterilizes_least_recent_entry(x, y, f, g):
    prod = Product("p", [f, g], config=IntegrationConfig(cache_size=1))
    code_x = prod.get_partial_integral_list([x]) + 1
    code_y = prod.get_partial_integral_list([y]) + 1
    assert code_x != code_y
    assert prod.cache.is_sterile(code_x - 1)
    # g(1) * 2 and f(0.5) * 8
    assert prod.analytical_integral(code_x) == pytest.approx(6.0)
    assert prod.cache.is_sterile(code_y - 1)
    assert prod.analytical_integral(code_y) == pytest.approx(16.0)
    assert len(prod.cache) == 2


def test_revival_mismatch_is_fatal(x, y, f, g, monkeypatch):
    prod = Product("p", [f, g])
    code, _ = prod.get_analytical_integral([x, y])
    prod.sterilize()
    monkeypatch.setattr(prod, "get_partial_integral_list", lambda iset, range_name=None: 7)
    with pytest.raises(CacheError):
        prod.analytical_integral(code)


def test_unknown_code_is_fatal(x, f, g):
    prod = Product("p", [f, g])
    with pytest.raises(CacheError):
        prod.analytical_integral(3)
    with pytest.raises(IntegrationError):
        prod.analytical_integral(0)


class _Unintegrable(RealTerm):
    def __init__(self, name, var):
        super().__init__(name, servers=(var,))
        self.var = var

    def evaluate(self):
        return self.var.get_value()

    def create_integral(self, variables, range_name=None, *, config=None):
        return None


def test_unsupported_integral_aborts_build(x, y, g):
    bad = _Unintegrable("bad", x)
    prod = Product("p", [bad, g])
    with pytest.raises(IntegrationError):
        prod.get_partial_integral_list([x, y])
    assert len(prod.cache) == 0
    assert prod._integration_vars == {}


def test_describe_groups(x, y, f, g):
    prod = Product("p", [f, g])
    assert prod.describe_groups([x]) == "[ () -> (g) , (x) -> (f) ]"


def test_variables_lists_leaves(x, y, f, g):
    cat = Category("c", ["a", "b"])
    prod = Product("p", [f, g, cat])
    assert prod.variables() == (x, y, cat)
    assert prod.depends_on(x)
    assert not prod.depends_on(RealVariable("w", 0.0, 0.0, 1.0))


def test_debug_logging_reports_build(x, y, f, caplog):
    h = _xy("h", x, y)
    prod = Product("p", [f, h, Constant("c", 2.0)])
    with caplog.at_level(logging.DEBUG, logger="partint.core.product"):
        prod.get_partial_integral_list([x, y])
    messages = "\n".join(record.getMessage() for record in caplog.records)
    assert "created subexpression SUBPROD_f_X_h" in messages
    assert "adding simple factor c" in messages
    assert "with code 1" in messages
