"""
Arbor — Environment Builder
Copyright (c) 2026 Alex P. Slaby — MIT License

Turns a list of Defs, possibly holding inline types and self-referential
builders, into a flat, closed, validated Environment:

  1. validate     every input is a Def, names are unique
  2. hoist        deferred builders and inline types get fresh names
  3. close        every referenced name is bound
  4. flatten      sub-unions are inlined into their parents (fixpoint)
  5. check        no union/singleton chain reaches itself

Afterwards every reference inside every type is either a value tag or a
key of the Environment.
"""

import json
import logging
from collections.abc import Mapping

from arbor import (
    Def, Type, Product, Union, Value, resolve,
    is_value, is_deferred, is_singleton,
    ConstructionError, DuplicateNameError, UnresolvedCycleError,
    EmptyExpansionError, UndefinedNameError,
)

log = logging.getLogger("arbor.build")


# ═══════════════════════════════════════════════════════════════
# ENVIRONMENT
# ═══════════════════════════════════════════════════════════════

class Environment(Mapping):
    """Immutable name → Type mapping produced by build()."""

    def __init__(self, types):
        self._types = dict(types)

    def __getitem__(self, name):
        return self._types[name]

    def __iter__(self):
        return iter(self._types)

    def __len__(self):
        return len(self._types)

    def defs(self):
        """Re-derive the Defs this environment binds."""
        return [Def(name, t) for name, t in self._types.items()]

    def signature(self) -> str:
        return '\n'.join(f"{json.dumps(name)} := {t}" for name, t in self._types.items())

    def __repr__(self):
        return f"Environment({len(self._types)} types)"


# ═══════════════════════════════════════════════════════════════
# FRESH NAMES
# ═══════════════════════════════════════════════════════════════

class NameSupply:
    """Hands out t_0, t_1, … skipping every name already in use."""

    def __init__(self, used=(), prefix="t_"):
        self.used = set(used)
        self.prefix = prefix
        self.next = 0

    def fresh(self) -> str:
        while f"{self.prefix}{self.next}" in self.used:
            self.next += 1
        name = f"{self.prefix}{self.next}"
        self.used.add(name)
        return name

    def reserve(self, name: str):
        self.used.add(name)


# ═══════════════════════════════════════════════════════════════
# BUILD
# ═══════════════════════════════════════════════════════════════

def _rebuild(t: Type, items) -> Type:
    if isinstance(t, Product):
        return Product(*items)
    return Union(*items)


def _hoist(d: Def, pending: list, supply: NameSupply) -> Type:
    """Replace every inline or deferred item of d's body with a name."""
    t = d.t
    if isinstance(t, Value):
        return t

    items = []
    for item in t.items:
        if isinstance(item, str):
            items.append(item)
            continue
        name = supply.fresh()
        if is_deferred(item):
            item = resolve(item, name)
            if not isinstance(item, Type):
                raise ConstructionError(f"Deferred builder for '{name}' did not return a Type", item)
        log.debug("hoisting %s := %s (inside '%s')", name, item, d.name)
        pending.append(Def(name, item))
        items.append(name)
    return _rebuild(t, items)


def _check_closed(types: dict):
    for name, t in types.items():
        if isinstance(t, Value):
            continue
        for item in t.items:
            if not is_value(item) and item not in types:
                raise UndefinedNameError(item, name)


def _flatten_unions(types: dict):
    """Inline sub-unions into their parents until nothing changes."""
    touched = True
    passes = 0
    while touched:
        touched = False
        passes += 1
        for name, t in list(types.items()):
            if not isinstance(t, Union):
                continue
            if name in t.items:
                raise UnresolvedCycleError(name, "union containing itself during expansion")

            itemset = {}
            for item in t.items:
                sub = types.get(item)
                if isinstance(sub, Union):
                    touched = True
                    for x in sub.items:
                        itemset[x] = None
                else:
                    itemset[item] = None

            if not itemset:
                raise EmptyExpansionError(name)
            if tuple(itemset) != t.items:
                types[name] = Union(*itemset)
    log.debug("union expansion converged after %d pass(es)", passes)


def _check_alias_cycles(types: dict):
    """Reject unions and singletons that can reach themselves without a Product."""
    for name, t in types.items():
        if not (isinstance(t, Union) or is_singleton(t)):
            continue
        stack = list(t.items)
        checked = set()
        while stack:
            ref = stack.pop()
            if ref == name:
                raise UnresolvedCycleError(name)
            if ref in checked or is_value(ref):
                continue
            checked.add(ref)
            sub = types[ref]
            if isinstance(sub, Union) or is_singleton(sub):
                stack.extend(sub.items)


def build(defs) -> Environment:
    """Normalize a list of Defs into a closed Environment.

    Raises ConstructionError, DuplicateNameError, UndefinedNameError,
    UnresolvedCycleError or EmptyExpansionError; nothing partial is
    returned on failure.
    """
    pending = list(defs)
    given = len(pending)
    for d in pending:
        if not isinstance(d, Def):
            raise ConstructionError(f"{d!r} is not a Def", d)

    supply = NameSupply()
    for d in pending:
        if d.name in supply.used:
            raise DuplicateNameError(d.name)
        supply.reserve(d.name)

    types = {}
    # pending grows while it is walked: hoisted types are appended behind
    i = 0
    while i < len(pending):
        d = pending[i]
        types[d.name] = _hoist(d, pending, supply)
        i += 1

    _check_closed(types)
    _flatten_unions(types)
    _check_alias_cycles(types)

    log.debug("built environment: %d types (%d synthesized)", len(types), len(types) - given)
    return Environment(types)
