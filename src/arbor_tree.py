"""
Arbor — Generated Trees
Copyright (c) 2026 Alex P. Slaby — MIT License

A tree is either a value tag (a "v_" string) or a Node carrying the name
of the Def it was generated from and its ordered children.

Helpers here are for consumers of generated trees: measuring them,
rendering them, and turning list cells back into Python lists.
"""

from dataclasses import dataclass, field

from arbor import EMPTY_LIST, Product, Union


@dataclass
class Node:
    """A composite node in a generated tree."""
    name: str
    children: list = field(default_factory=list)

    @property
    def arity(self) -> int:
        return len(self.children)


def tree_size(tree, count_internal_nodes: bool = True) -> int:
    """Number of size units a tree occupies under the given accounting mode.

    Leaves and childless nodes (Unit) are 1; a node with children adds 1
    on top of them only when internal nodes are counted.
    """
    if isinstance(tree, str):
        return 1
    if not tree.children:
        return 1
    own = 1 if count_internal_nodes else 0
    return own + sum(tree_size(c, count_internal_nodes) for c in tree.children)


def freeze(tree):
    """Hashable form of a tree, for counting distinct samples."""
    if isinstance(tree, str):
        return tree
    return (tree.name, tuple(freeze(c) for c in tree.children))


# ═══════════════════════════════════════════════════════════════
# LISTS
# ═══════════════════════════════════════════════════════════════

def is_list_cell(env, name: str) -> bool:
    """True if `name` is the cons cell of a List(T) in env.

    A list cell is a 2-item Product whose second item names a Union of
    exactly EMPTY_LIST and the cell itself.
    """
    t = env.get(name)
    if not isinstance(t, Product) or len(t.items) != 2:
        return False
    rest = env.get(t.items[1])
    return isinstance(rest, Union) and set(rest.items) == {EMPTY_LIST, name}


def list_cells(env) -> frozenset:
    return frozenset(name for name in env if is_list_cell(env, name))


def decode_list(tree) -> list:
    """Unroll a chain of list cells ending in EMPTY_LIST."""
    out = []
    while tree != EMPTY_LIST:
        if not isinstance(tree, Node) or tree.arity != 2:
            raise ValueError(f"Not a list cell: {tree!r}")
        out.append(tree.children[0])
        tree = tree.children[1]
    return out


def to_data(tree, env, fields=None):
    """Convert a tree to plain Python data.

    Lists become Python lists, Unit nodes become None, value tags stay
    strings, and other nodes become {"type": name, …}. `fields` maps a
    Def name to the names of its Product items; without an entry the
    children go under "children".
    """
    cells = list_cells(env)
    fields = fields or {}

    def convert(t):
        if isinstance(t, str):
            return [] if t == EMPTY_LIST else t
        if t.name in cells:
            return [convert(x) for x in decode_list(t)]
        if not t.children:
            return None
        obj = {"type": t.name}
        names = fields.get(t.name)
        if names is None:
            obj["children"] = [convert(c) for c in t.children]
        else:
            if len(names) != len(t.children):
                raise ValueError(
                    f"'{t.name}' has {len(t.children)} children but {len(names)} field names")
            for key, child in zip(names, t.children):
                obj[key] = convert(child)
        return obj

    return convert(tree)


# ═══════════════════════════════════════════════════════════════
# VISUALIZER
# ═══════════════════════════════════════════════════════════════

def node_label(t) -> str:
    if isinstance(t, str):
        return t
    if not t.children:
        return f"{t.name} ()"
    return t.name


def render_tree(t, indent: int = 0, prefix: str = "") -> str:
    """Render a generated tree as an indented tree string."""
    pad = "   " * indent
    lines = [f"{pad}{prefix}{node_label(t)}"]
    if isinstance(t, Node):
        for i, child in enumerate(t.children):
            is_last = (i == len(t.children) - 1)
            child_prefix = "└─ " if is_last else "├─ "
            lines.append(render_tree(child, indent + 1, child_prefix))
    return '\n'.join(lines)
