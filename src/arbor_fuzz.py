"""
Arbor — Fuzz Testing Engine
Copyright (c) 2026 Alex P. Slaby — MIT License

Builds random small grammars and checks the engine's invariants on them:
  - Union sum:      count(U, n) = Σ count(item, n)
  - Convolution:    count(Product(a, b), n) = Σ count(a, i)·count(b, n-off-i)
  - Absent iff 0:   generate(name, n) is None exactly when count(name, n) = 0
  - Exact size:     every generated tree occupies exactly n units
  - Rebuild:        build(env.defs()) reproduces env

Outputs JSON report. Grammars that build() rejects are counted as skipped.
"""

import json
import logging
import random
import sys
import time

from arbor import Def, Product, Union, Value, Maybe, List, ArborError
from arbor_build import build
from arbor_gen import make_gen
from arbor_tree import tree_size

log = logging.getLogger("arbor.fuzz")

VALUES = ["v_a", "v_b", "v_c"]


# ═══════════════════════════════════════════
# RANDOM GRAMMAR GENERATION
# ═══════════════════════════════════════════

def random_grammar(rng, n_defs=4):
    """Random Defs t_g0 … t_g{n-1}.

    Unions and singletons only refer to earlier definitions, so every
    alias chain bottoms out; Products of two or more items may refer to
    anything, including their own definition.
    """
    names = [f"t_g{i}" for i in range(n_defs)]

    def leaf(i):
        earlier = names[:i]
        if earlier and rng.random() < 0.5:
            return rng.choice(earlier)
        return Value(rng.choice(VALUES))

    def any_ref(i):
        return rng.choice(names) if rng.random() < 0.5 else leaf(i)

    def body(i):
        kind = rng.randint(0, 5)
        if kind == 0:
            return Product(*(any_ref(i) for _ in range(rng.randint(2, 3))))
        if kind == 1:
            return Product(leaf(i))
        if kind == 2:
            return Maybe(leaf(i))
        if kind == 3:
            return List(leaf(i))
        alts = [leaf(i)]
        for _ in range(rng.randint(0, 2)):
            alts.append(Product(any_ref(i), any_ref(i)) if rng.random() < 0.5 else leaf(i))
        return Union(*alts)

    return [Def(name, body(i)) for i, name in enumerate(names)]


# ═══════════════════════════════════════════
# PROPERTY CHECKS
# ═══════════════════════════════════════════

def check_union_sum(gen, env, max_n):
    for name, t in env.items():
        if not isinstance(t, Union):
            continue
        for n in range(1, max_n + 1):
            if gen.count(name, n) != sum(gen.count(x, n) for x in t.items):
                return False, f"{name} at n={n}"
    return True, None


def check_convolution(gen, env, max_n):
    for name, t in env.items():
        if not isinstance(t, Product) or len(t.items) != 2:
            continue
        a, b = t.items
        for n in range(1, max_n + 1):
            rest = n - gen.offset
            expected = sum(gen.count(a, i) * gen.count(b, rest - i) for i in range(1, rest))
            if gen.count(name, n) != expected:
                return False, f"{name} at n={n}"
    return True, None


def check_absent_iff_zero(gen, env, max_n):
    for name in env:
        for n in range(1, max_n + 1):
            tree = gen(name, n)
            if (tree is None) != (gen.count(name, n) == 0):
                return False, f"{name} at n={n}"
    return True, None


def check_exact_size(gen, env, max_n):
    for name in env:
        for n in range(1, max_n + 1):
            tree = gen(name, n)
            if tree is not None and tree_size(tree, gen.count_internal_nodes) != n:
                return False, f"{name} at n={n}: size {tree_size(tree, gen.count_internal_nodes)}"
    return True, None


def check_rebuild(gen, env, max_n):
    again = build(env.defs())
    return again.signature() == env.signature(), None


CHECKS = [
    ("union_sum", check_union_sum),
    ("convolution", check_convolution),
    ("absent_iff_zero", check_absent_iff_zero),
    ("exact_size", check_exact_size),
    ("rebuild", check_rebuild),
]


# ═══════════════════════════════════════════
# FUZZ RUNNER
# ═══════════════════════════════════════════

def fuzz_report(rounds=200, seed=None, max_n=8):
    """Run the checks on `rounds` random grammars and return the report dict."""
    if seed is None:
        seed = int(time.time())
    rng = random.Random(seed)

    results = {
        "seed": seed,
        "rounds": rounds,
        "started_at": time.strftime("%Y-%m-%dT%H:%M:%SZ"),
    }
    properties = {name: {"passed": 0, "failed": 0} for name, _ in CHECKS}
    counterexamples = []
    skipped = 0

    for i in range(rounds):
        defs = random_grammar(rng, n_defs=rng.randint(1, 5))
        try:
            env = build(defs)
        except ArborError as e:
            log.debug("round %d: grammar rejected: %s", i, e)
            skipped += 1
            continue

        for count_internal_nodes in (True, False):
            gen = make_gen(env, count_internal_nodes, random.Random(rng.getrandbits(32)))
            for prop_name, checker in CHECKS:
                ok, err = checker(gen, env, max_n)
                if ok:
                    properties[prop_name]["passed"] += 1
                else:
                    properties[prop_name]["failed"] += 1
                    counterexamples.append({
                        "round": i,
                        "property": prop_name,
                        "count_internal_nodes": count_internal_nodes,
                        "error": err,
                        "grammar": env.signature().split('\n'),
                    })

    total_passed = sum(p["passed"] for p in properties.values())
    total_failed = sum(p["failed"] for p in properties.values())
    results["properties"] = properties
    results["counterexamples"] = counterexamples[:50]
    results["summary"] = {
        "total_checks": total_passed + total_failed,
        "passed": total_passed,
        "failed": total_failed,
        "grammars_skipped": skipped,
    }
    results["completed_at"] = time.strftime("%Y-%m-%dT%H:%M:%SZ")
    return results


def run_fuzz(rounds=200, seed=None):
    """Run fuzz testing, print the JSON report and exit 1 on any failure."""
    results = fuzz_report(rounds, seed)
    print(json.dumps(results, indent=2, default=str))
    sys.exit(0 if results["summary"]["failed"] == 0 else 1)


if __name__ == "__main__":
    rounds = int(sys.argv[1]) if len(sys.argv) > 1 else 200
    run_fuzz(rounds)
