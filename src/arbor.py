"""
Arbor — Type Algebra for exact-size tree generation
Copyright (c) 2026 Alex P. Slaby — MIT License

The vocabulary every grammar is written in:
  - Value(tag)        atomic leaf, tag carries the reserved "v_" prefix
  - Product(a, b, …)  ordered tuple; Product() is the Unit
  - Union(a, b, …)    choice among alternatives
  - Maybe(T), List(T) sugar built from the three above
  - Def(name, T)      a named binding

A type reference is one of: a Name (any other non-empty string), a value
tag, an inline Type, or a deferred builder: a callable that receives the
name its type will be bound to (the "mu" convention for self-reference).
"""

import hashlib
import json
import logging
from typing import Any, Callable, Union as TypingUnion


VALUE_PREFIX = "v_"
EMPTY_LIST = "v__empty_list"


# ═══════════════════════════════════════════════════════════════
# ERRORS
# ═══════════════════════════════════════════════════════════════

class ArborError(Exception):
    """Base class for every grammar construction or generation failure."""
    pass

class ConstructionError(ArborError):
    def __init__(self, msg, value=None):
        super().__init__(msg)
        self.value = value

class DuplicateNameError(ArborError):
    def __init__(self, name):
        super().__init__(f"Cannot redefine name '{name}'")
        self.name = name

class UnresolvedCycleError(ArborError):
    def __init__(self, name, reason="union or singleton containing itself"):
        super().__init__(f"Encountered {reason}: '{name}' has no finite base case")
        self.name = name

class EmptyExpansionError(ArborError):
    def __init__(self, name):
        super().__init__(f"After expanding unions, '{name}' is empty")
        self.name = name

class UndefinedNameError(ArborError):
    def __init__(self, name, referenced_by=None):
        where = f" (referenced by '{referenced_by}')" if referenced_by else ""
        super().__init__(f"Undefined type name '{name}'{where}")
        self.name = name
        self.referenced_by = referenced_by

class InternalConsistencyError(ArborError):
    pass


def enable_debug_logging():
    """Turn on verbose debug logging for every arbor module."""
    logger = logging.getLogger("arbor")
    logger.setLevel(logging.DEBUG)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(message)s"))
        logger.addHandler(handler)


# ═══════════════════════════════════════════════════════════════
# TYPE FORMERS
# ═══════════════════════════════════════════════════════════════

def is_value(ref) -> bool:
    return isinstance(ref, str) and ref.startswith(VALUE_PREFIX)


def is_deferred(ref) -> bool:
    return callable(ref) and not isinstance(ref, Type)


class Type:
    """Common base of Value, Product and Union.

    Types are immutable once constructed; equality and hashing follow the
    canonical signature.
    """
    __slots__ = ('items', '_sig')

    def __init__(self, items=()):
        self.items = tuple(items)
        self._sig = None

    def signature(self) -> str:
        if self._sig is None:
            self._sig = self._render()
        return self._sig

    def _render(self) -> str:
        raise NotImplementedError

    def __eq__(self, other):
        return isinstance(other, Type) and self.signature() == other.signature()

    def __hash__(self):
        return hash(self.signature())

    def __repr__(self):
        return self.signature()


def _render_ref(ref) -> str:
    if isinstance(ref, str):
        return json.dumps(ref)
    if isinstance(ref, Type):
        return ref.signature()
    return f"Mu(0x{id(ref):x})"


def _admit(ref, former):
    """Check one constructor argument and return it in stored form."""
    if isinstance(ref, Value):
        return ref.tag
    if isinstance(ref, Type):
        return ref
    if isinstance(ref, str):
        if not ref:
            raise ConstructionError(f"{former}: empty type name", ref)
        return ref
    if callable(ref):
        return ref
    raise ConstructionError(f"{former}: {ref!r} is of incorrect type", ref)


class Value(Type):
    """Opaque atomic leaf. Always size 1."""
    __slots__ = ('tag',)

    def __init__(self, tag: str):
        if not is_value(tag):
            raise ConstructionError(
                f"Value tag must be a string starting with '{VALUE_PREFIX}', got {tag!r}", tag)
        super().__init__()
        self.tag = tag

    def _render(self):
        return f"Value({json.dumps(self.tag)})"


class Product(Type):
    """Ordered tuple of type references. Product() is the Unit."""
    __slots__ = ()

    def __init__(self, *items):
        super().__init__(_admit(x, "Product") for x in items)

    def _render(self):
        return f"Product({', '.join(_render_ref(x) for x in self.items)})"


class Union(Type):
    """Choice among alternatives, deduplicated on construction.

    Names compare by value, inline types by signature, deferred builders
    by identity.
    """
    __slots__ = ()

    def __init__(self, *items):
        if not items:
            raise ConstructionError("Cannot construct empty union")
        seen = {}
        for x in items:
            x = _admit(x, "Union")
            key = x if isinstance(x, (str, Type)) else ('mu', id(x))
            seen.setdefault(key, x)
        super().__init__(seen.values())

    def _render(self):
        return f"Union({', '.join(sorted(_render_ref(x) for x in self.items))})"


UNIT = Product()


def is_unit(t) -> bool:
    return isinstance(t, Product) and not t.items


def is_singleton(t) -> bool:
    """A one-item Product or Union is a transparent alias for its item."""
    return isinstance(t, (Product, Union)) and len(t.items) == 1


def Maybe(t):
    return Union(UNIT, t)


def List(t):
    """Self-referential list: either EMPTY_LIST or a cell of (t, list)."""
    _admit(t, "List")
    return lambda mu: Union(EMPTY_LIST, Product(t, mu))


TypeRef = TypingUnion[str, Type, Callable[[str], Any]]


def signature(t) -> str:
    """Canonical string form of a type or reference."""
    return _render_ref(t)


def type_hash(t) -> str:
    """SHA-256 of the canonical form."""
    return hashlib.sha256(signature(t).encode('utf-8')).hexdigest()


# ═══════════════════════════════════════════════════════════════
# DEFINITIONS
# ═══════════════════════════════════════════════════════════════

def resolve(t, name: str):
    """Apply a (possibly nested) deferred builder to its eventual name."""
    while is_deferred(t):
        t = t(name)
    return t


class Def:
    """A named binding name := T."""
    __slots__ = ('name', 't')

    def __init__(self, name: str, t: TypeRef):
        if not isinstance(name, str) or not name:
            raise ConstructionError("The name of a definition must be a non-empty string", name)
        if is_value(name):
            raise ConstructionError(
                f"Definition name '{name}' uses the reserved value prefix '{VALUE_PREFIX}'", name)
        t = resolve(t, name)
        if not isinstance(t, Type):
            raise ConstructionError(f"The type of definition '{name}' must be a Type", t)
        self.name = name
        self.t = t

    def __iter__(self):
        return iter((self.name, self.t))

    def __repr__(self):
        return f"Def({self.name!r}, {self.t})"

    def __str__(self):
        return f"{json.dumps(self.name)} := {self.t}"
