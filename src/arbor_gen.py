#!/usr/bin/env python3
"""
Arbor — Counting & Generation Engine
Copyright (c) 2026 Alex P. Slaby — MIT License

Counts the derivation trees of exactly n nodes for any type in a closed
Environment, and samples one of them uniformly at random by weighting
every choice with the exact counts below it.

Usage:
  python arbor_gen.py demo                   Build the demo grammar, show counts and a sample
  python arbor_gen.py count <name> <n>       Count trees of size n in the demo grammar
  python arbor_gen.py sample <name> <n> [seed]
  python arbor_gen.py help                   Show this help
"""

import json
import logging
import random
import sys

from arbor import (
    Def, Product, Union, Value, Maybe, List, signature,
    is_value, is_unit, ArborError, UndefinedNameError,
    InternalConsistencyError, enable_debug_logging,
)
from arbor_build import build
from arbor_tree import Node, render_tree, to_data, tree_size

log = logging.getLogger("arbor.gen")


# ═══════════════════════════════════════════════════════════════
# CONFIGURATION
# ═══════════════════════════════════════════════════════════════

class GenConfig:
    """Settings for a Sampler."""

    def __init__(self,
                 count_internal_nodes=True,
                 seed=None,
                 recursion_limit=50_000):
        self.count_internal_nodes = count_internal_nodes
        self.seed = seed
        self.recursion_limit = recursion_limit

    @classmethod
    def default(cls):
        """Internal nodes cost one unit, unseeded."""
        return cls()

    @classmethod
    def leaves_only(cls):
        """Only leaves cost size."""
        return cls(count_internal_nodes=False)

    @classmethod
    def seeded(cls, seed, count_internal_nodes=True):
        return cls(count_internal_nodes=count_internal_nodes, seed=seed)

    def make_rng(self):
        return random.Random(self.seed)

    def make_gen(self, env):
        if sys.getrecursionlimit() < self.recursion_limit:
            sys.setrecursionlimit(self.recursion_limit)
        return make_gen(env, self.count_internal_nodes, self.make_rng())

    def to_dict(self):
        return {
            "count_internal_nodes": self.count_internal_nodes,
            "seed": self.seed,
            "recursion_limit": self.recursion_limit,
        }


# ═══════════════════════════════════════════════════════════════
# WEIGHTED CHOICE
# ═══════════════════════════════════════════════════════════════

def choose(choices, rng):
    """Pick a value from [(value, weight), …] with probability proportional
    to its weight. Returns None when all weights are zero.

    Weights are exact integers, so the draw is an integer in
    [0, total) rather than a float fraction.
    """
    total = sum(w for _, w in choices)
    if total == 0:
        return None
    r = rng.randrange(total)
    for value, weight in choices:
        if r < weight:
            return value
        r -= weight
    raise InternalConsistencyError("weighted choice ran past its total")


# ═══════════════════════════════════════════════════════════════
# SAMPLER
# ═══════════════════════════════════════════════════════════════

_IN_PROGRESS = object()


class Sampler:
    """Counts and generates trees of exact size over one Environment.

    The count table is private to the instance: its entries are only
    meaningful under the accounting mode it was built with.
    """

    def __init__(self, env, count_internal_nodes=True, rng=None):
        self.env = env
        self.count_internal_nodes = count_internal_nodes
        self.offset = 1 if count_internal_nodes else 0
        self.rng = rng if rng is not None else random.Random()
        self.table = {}

    def __call__(self, name: str, n: int):
        return self.generate(name, n)

    def _lookup(self, name):
        try:
            return self.env[name]
        except KeyError:
            raise UndefinedNameError(name) from None

    def _memo(self, key, compute):
        cached = self.table.get(key)
        if cached is _IN_PROGRESS:
            raise InternalConsistencyError(
                f"Encountered cycle at {key[0]} for size {key[1]}; this should have been rejected by build()")
        if cached is not None:
            return cached
        self.table[key] = _IN_PROGRESS
        try:
            value = compute()
        except BaseException:
            del self.table[key]
            raise
        self.table[key] = value
        return value

    # ── Counting ──

    def count(self, ref, n: int) -> int:
        """Number of distinct trees of exactly size n for a name or value tag."""
        if n <= 0:
            return 0
        if is_value(ref):
            return 1 if n == 1 else 0
        return self.count_type(self._lookup(ref), n)

    def count_type(self, t, n: int) -> int:
        if n <= 0:
            return 0
        if isinstance(t, Value) or is_unit(t):
            return 1 if n == 1 else 0
        if isinstance(t, Product):
            return self._memo((t.signature(), n), lambda: self._count_seq(t.items, n - self.offset))
        return self._memo((t.signature(), n), lambda: sum(self.count(x, n) for x in t.items))

    def _count_seq(self, items, n: int) -> int:
        """Trees for the children of a product, sharing n between them."""
        if len(items) == 1:
            return self.count(items[0], n)
        if n < len(items):
            return 0
        key = (f"Seq({', '.join(signature(x) for x in items)})", n)
        head, tail = items[0], items[1:]
        return self._memo(key, lambda: sum(
            self.count(head, i) * self._count_seq(tail, n - i)
            for i in range(1, n - len(tail) + 1)))

    def sizes(self, name: str, max_n: int):
        """Sizes in 1..max_n for which `name` has at least one tree."""
        return [n for n in range(1, max_n + 1) if self.count(name, n)]

    # ── Generation ──

    def generate(self, name: str, n: int):
        """A uniformly random tree of exactly size n, or None if there is none."""
        before = len(self.table)
        tree = self._gen_ref(name, n)
        log.debug("generate(%s, %d): %s, table %d → %d entries",
                  name, n, "ok" if tree is not None else "no tree", before, len(self.table))
        return tree

    def _gen_ref(self, ref, n):
        if is_value(ref):
            return ref if n == 1 else None
        return self._gen_type(self._lookup(ref), n, ref)

    def _gen_type(self, t, n, name):
        if self.count_type(t, n) == 0:
            return None
        if isinstance(t, Value):
            return t.tag
        if is_unit(t):
            return Node(name, [])
        if isinstance(t, Union):
            item = choose([(x, self.count(x, n)) for x in t.items], self.rng)
            return self._gen_ref(item, n)
        return Node(name, self._gen_seq(t.items, n - self.offset))

    def _gen_seq(self, items, n):
        if len(items) == 1:
            return [self._gen_ref(items[0], n)]
        head, tail = items[0], items[1:]
        split = choose([(i, self.count(head, i) * self._count_seq(tail, n - i))
                        for i in range(1, n - len(tail) + 1)], self.rng)
        if split is None:
            raise InternalConsistencyError(f"No split of size {n} for a product counted as non-empty")
        return [self._gen_ref(head, split)] + self._gen_seq(tail, n - split)


def make_gen(env, count_internal_nodes=True, rng=None) -> Sampler:
    """Create a generator for a closed Environment.

    The result is callable as gen(name, n) → tree or None.
    """
    return Sampler(env, count_internal_nodes, rng)


# ═══════════════════════════════════════════════════════════════
# DEMO GRAMMAR
# ═══════════════════════════════════════════════════════════════

def demo_defs():
    """A small expression/statement language."""
    return [
        Def("t_Script", Product(List("t_Statement"))),
        Def("t_Statement", Union("t_ExpressionStatement", "t_ReturnStatement", "t_BlockStatement")),
        Def("t_ExpressionStatement", Product("t_Expression")),
        Def("t_ReturnStatement", Product(Maybe("t_Expression"))),
        Def("t_BlockStatement", Product(List("t_Statement"))),
        Def("t_Expression", Union("t_LiteralNumeric", "t_IdentifierExpression",
                                  "t_BinaryExpression", "t_UnaryExpression", "t_CallExpression")),
        Def("t_LiteralNumeric", Product(Value("v_number"))),
        Def("t_IdentifierExpression", Product(Value("v_identifier"))),
        Def("t_BinaryExpression", Product("t_Expression", Value("v_BinOp"), "t_Expression")),
        Def("t_UnaryExpression", Product(Value("v_UnOp"), "t_Expression")),
        Def("t_CallExpression", Product("t_Expression", List("t_Expression"))),
    ]


DEMO_FIELDS = {
    "t_Script": ["statements"],
    "t_ExpressionStatement": ["expression"],
    "t_ReturnStatement": ["expression"],
    "t_BlockStatement": ["statements"],
    "t_LiteralNumeric": ["value"],
    "t_IdentifierExpression": ["name"],
    "t_BinaryExpression": ["left", "operator", "right"],
    "t_UnaryExpression": ["operator", "operand"],
    "t_CallExpression": ["callee", "arguments"],
}


# ═══════════════════════════════════════════════════════════════
# CLI
# ═══════════════════════════════════════════════════════════════

HEADER = """\
╔═══════════════════════════════════════════════════════════╗
║  Arbor — exact-size tree generation v0.1                  ║
║  Copyright (c) 2026 Alex P. Slaby — MIT License           ║
╚═══════════════════════════════════════════════════════════╝"""


def cmd_demo(config):
    print(HEADER)
    print()

    env = build(demo_defs())
    gen = config.make_gen(env)

    print(f"  Environment: {len(env)} types")
    for line in env.signature().split('\n'):
        print(f"    {line}")
    print()

    print("  Counts for t_Script:")
    for n in range(1, 16):
        print(f"    n={n:<3} {gen.count('t_Script', n)}")
    print()

    n = 20
    tree = gen("t_Script", n)
    print(f"  Sample t_Script of size {n}:")
    if tree is None:
        print("    (no tree of this size)")
        return
    for line in render_tree(tree).split('\n'):
        print(f"    {line}")
    print()
    print(f"  Size check: {tree_size(tree, config.count_internal_nodes)}")
    print()


def cmd_count(config, name, n):
    gen = config.make_gen(build(demo_defs()))
    print(gen.count(name, n))


def cmd_sample(config, name, n):
    env = build(demo_defs())
    tree = config.make_gen(env)(name, n)
    if tree is None:
        print(f"No tree of size {n} for '{name}'")
        sys.exit(1)
    print(render_tree(tree))
    print(json.dumps(to_data(tree, env, DEMO_FIELDS), indent=2))


def cmd_help():
    print(HEADER)
    print()
    print("  Usage:")
    print("    python arbor_gen.py demo                      Show counts and a sample")
    print("    python arbor_gen.py count <name> <n>          Count trees of size n")
    print("    python arbor_gen.py sample <name> <n> [seed]  Sample a tree of size n")
    print("    python arbor_gen.py help                      Show this help")
    print()
    print("  Add --debug for verbose logging, --leaves to count only leaves.")
    print()


def main(argv=None):
    args = list(sys.argv[1:] if argv is None else argv)
    if "--debug" in args:
        args.remove("--debug")
        enable_debug_logging()
    config = GenConfig.default()
    if "--leaves" in args:
        args.remove("--leaves")
        config = GenConfig.leaves_only()

    if not args:
        cmd_help()
        return

    cmd = args[0].lower()
    try:
        if cmd == "demo":
            cmd_demo(config)
        elif cmd == "count" and len(args) >= 3:
            cmd_count(config, args[1], int(args[2]))
        elif cmd == "sample" and len(args) >= 3:
            if len(args) >= 4:
                config.seed = int(args[3])
            cmd_sample(config, args[1], int(args[2]))
        else:
            cmd_help()
    except ArborError as e:
        print(f"[error] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
