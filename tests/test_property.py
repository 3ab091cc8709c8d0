#!/usr/bin/env python3
"""
Arbor Property-Based Tests — Hypothesis Fuzzing
Copyright (c) 2026 Alex P. Slaby — MIT License

Checks the engine's invariants on random grammars:
  1. Union sum:        count(U, n) = Σ count(item, n)
  2. Convolution:      count(Product(...), n) splits n across the items
  3. Absent iff zero:  generate(name, n) is None exactly when count = 0
  4. Exact size:       generated trees occupy exactly n units
  5. Rebuild:          build(env.defs()) reproduces env
  6. Uniformity:       samples of an enumerable grammar are uniform

Run:  pytest tests/test_property.py -v
"""

import sys, os, random
from collections import Counter
sys.setrecursionlimit(50000)
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import hypothesis
from hypothesis import given, settings, HealthCheck
from hypothesis import strategies as st

from arbor import Def, Product, Union, Value, Maybe, List
from arbor_build import build
from arbor_gen import make_gen
from arbor_tree import tree_size, freeze


# ═══════════════════════════════════════════════════════════════
# STRATEGIES — Random grammar generation
# ═══════════════════════════════════════════════════════════════

VALUE_TAGS = ["v_a", "v_b", "v_c"]


@st.composite
def grammars(draw, max_defs=4):
    """Random Defs whose unions and singletons only refer backwards.

    Products of two or more items may refer to any definition, so
    recursion is possible but alias cycles are not.
    """
    n_defs = draw(st.integers(min_value=1, max_value=max_defs))
    names = [f"t_h{i}" for i in range(n_defs)]

    def leaf(i):
        return draw(st.sampled_from(names[:i] + VALUE_TAGS))

    def any_ref():
        return draw(st.sampled_from(names + VALUE_TAGS))

    defs = []
    for i, name in enumerate(names):
        kind = draw(st.integers(min_value=0, max_value=4))
        if kind == 0:
            width = draw(st.integers(min_value=2, max_value=3))
            body = Product(*[any_ref() for _ in range(width)])
        elif kind == 1:
            body = Product(leaf(i))
        elif kind == 2:
            body = Maybe(leaf(i))
        elif kind == 3:
            body = List(leaf(i))
        else:
            alts = [leaf(i)]
            for _ in range(draw(st.integers(min_value=0, max_value=2))):
                if draw(st.booleans()):
                    alts.append(Product(any_ref(), any_ref()))
                else:
                    alts.append(leaf(i))
            body = Union(*alts)
        defs.append(Def(name, body))
    return defs


MAX_N = 7


def seq_count(gen, items, n):
    """Independent convolution over a product's items."""
    if len(items) == 1:
        return gen.count(items[0], n)
    return sum(gen.count(items[0], i) * seq_count(gen, items[1:], n - i)
               for i in range(1, n))


# ═══════════════════════════════════════════════════════════════
# PROPERTIES
# ═══════════════════════════════════════════════════════════════

class TestCountingProperties:
    @given(defs=grammars(), internal=st.booleans())
    @settings(max_examples=150, suppress_health_check=[HealthCheck.too_slow])
    def test_union_is_sum_of_alternatives(self, defs, internal):
        env = build(defs)
        gen = make_gen(env, internal)
        for name, t in env.items():
            if isinstance(t, Union):
                for n in range(1, MAX_N + 1):
                    assert gen.count(name, n) == sum(gen.count(x, n) for x in t.items)

    @given(defs=grammars(), internal=st.booleans())
    @settings(max_examples=150, suppress_health_check=[HealthCheck.too_slow])
    def test_product_is_convolution(self, defs, internal):
        env = build(defs)
        gen = make_gen(env, internal)
        offset = 1 if internal else 0
        for name, t in env.items():
            if isinstance(t, Product) and t.items:
                for n in range(1, MAX_N + 1):
                    assert gen.count(name, n) == seq_count(gen, t.items, n - offset)

    @given(defs=grammars(), internal=st.booleans())
    @settings(max_examples=150, suppress_health_check=[HealthCheck.too_slow])
    def test_two_item_product_formula(self, defs, internal):
        env = build(defs)
        gen = make_gen(env, internal)
        offset = 1 if internal else 0
        for name, t in env.items():
            if isinstance(t, Product) and len(t.items) == 2:
                a, b = t.items
                for n in range(1, MAX_N + 1):
                    expected = sum(gen.count(a, i) * gen.count(b, n - offset - i)
                                   for i in range(1, n - offset))
                    assert gen.count(name, n) == expected


class TestGenerationProperties:
    @given(defs=grammars(), internal=st.booleans(), seed=st.integers(0, 2**32 - 1))
    @settings(max_examples=150, suppress_health_check=[HealthCheck.too_slow])
    def test_absent_iff_zero_and_exact_size(self, defs, internal, seed):
        env = build(defs)
        gen = make_gen(env, internal, random.Random(seed))
        for name in env:
            for n in range(1, MAX_N + 1):
                tree = gen(name, n)
                if gen.count(name, n) == 0:
                    assert tree is None
                else:
                    assert tree is not None
                    assert tree_size(tree, internal) == n


class TestBuildProperties:
    @given(defs=grammars())
    @settings(max_examples=150, suppress_health_check=[HealthCheck.too_slow])
    def test_rebuild_is_idempotent(self, defs):
        env = build(defs)
        again = build(env.defs())
        assert again.signature() == env.signature()

    @given(defs=grammars())
    @settings(max_examples=150, suppress_health_check=[HealthCheck.too_slow])
    def test_environment_is_closed(self, defs):
        env = build(defs)
        for t in env.values():
            for item in t.items:
                assert item.startswith("v_") or item in env


# ═══════════════════════════════════════════════════════════════
# UNIFORMITY — chi-square on an enumerable grammar
# ═══════════════════════════════════════════════════════════════

class TestUniformity:
    def test_samples_are_uniform(self):
        # binary trees with bit leaves: 2 shapes × 2³ labellings at 3 leaves
        env = build([Def("t_t", Union(Value("v_0"), Value("v_1"), Product("t_t", "t_t")))])
        gen = make_gen(env, False, random.Random(2024))
        assert gen.count("t_t", 3) == 16

        draws = 3200
        seen = Counter(freeze(gen("t_t", 3)) for _ in range(draws))
        assert len(seen) == 16

        expected = draws / 16
        chi2 = sum((seen[k] - expected) ** 2 / expected for k in seen)
        # 15 degrees of freedom; p ≈ 1e-5
        assert chi2 < 50.0

    def test_internal_mode_is_uniform(self):
        env = build([Def("t_t", Union(Value("v_0"), Value("v_1"), Product("t_t", "t_t")))])
        gen = make_gen(env, True, random.Random(77))
        assert gen.count("t_t", 5) == 16

        draws = 3200
        seen = Counter(freeze(gen("t_t", 5)) for _ in range(draws))
        assert len(seen) == 16
        expected = draws / 16
        chi2 = sum((seen[k] - expected) ** 2 / expected for k in seen)
        assert chi2 < 50.0
