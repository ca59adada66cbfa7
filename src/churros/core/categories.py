"""Product category hierarchy - pure tree building."""

from dataclasses import dataclass, field


@dataclass
class Category:
    """A product category. Root categories have no parent."""

    id: str
    name: str
    parent_id: str | None = None
    sort_order: int = 0

    @classmethod
    def from_api(cls, data: dict) -> "Category":
        return cls(
            id=data["id"],
            name=data["name"],
            parent_id=data.get("parent_id"),
            sort_order=data.get("sort_order") or 0,
        )


@dataclass
class CategoryNode:
    """A category with its children resolved."""

    category: Category
    level: int
    children: list["CategoryNode"] = field(default_factory=list)


def children_of(categories: list[Category], parent_id: str | None) -> list[Category]:
    """Direct children, ordered by sort_order then name."""
    return sorted(
        (c for c in categories if c.parent_id == parent_id),
        key=lambda c: (c.sort_order, c.name.lower()),
    )


def build_tree(categories: list[Category]) -> list[CategoryNode]:
    """
    Build the nested category tree.

    Categories whose parent is missing are treated as roots. Each category is
    visited once, so a parent_id cycle cannot recurse forever.
    """
    known = {c.id for c in categories}
    seen: set[str] = set()

    def build(category: Category, level: int) -> CategoryNode:
        seen.add(category.id)
        node = CategoryNode(category, level)
        for child in children_of(categories, category.id):
            if child.id not in seen:
                node.children.append(build(child, level + 1))
        return node

    roots = [c for c in categories if c.parent_id is None or c.parent_id not in known]
    roots.sort(key=lambda c: (c.sort_order, c.name.lower()))
    return [build(c, 0) for c in roots if c.id not in seen]


def select_options(
    categories: list[Category],
    parent_id: str | None = None,
    level: int = 0,
) -> list[tuple[str, str, int]]:
    """Depth-first (id, name, level) list for pickers, siblings ordered by name."""
    options = []
    siblings = sorted(
        (c for c in categories if c.parent_id == parent_id),
        key=lambda c: c.name.lower(),
    )
    for category in siblings:
        options.append((category.id, category.name, level))
        if category.id != parent_id:
            options.extend(select_options(categories, category.id, level + 1))
    return options


def descendant_ids(categories: list[Category], category_id: str) -> set[str]:
    """All ids below `category_id` (not including itself)."""
    found: set[str] = set()
    stack = [category_id]
    while stack:
        current = stack.pop()
        for child in children_of(categories, current):
            if child.id not in found and child.id != category_id:
                found.add(child.id)
                stack.append(child.id)
    return found


def format_tree(nodes: list[CategoryNode]) -> list[str]:
    """Indented text lines for the tree."""
    lines = []
    for node in nodes:
        prefix = "  " * node.level + ("└ " if node.level else "")
        lines.append(f"{prefix}{node.category.name}")
        lines.extend(format_tree(node.children))
    return lines
