"""
Core tree builder and evaluator for pattern-transformer.

A list of rules is matched against a string. The rule whose capture group
yields the longest payload wins (earlier rules win ties), the text before it
becomes a literal, and the payload is matched again recursively unless the
rule is terminal. The resulting tree is then folded bottom-up by the
reducers attached to the rules.

Example:
    import re
    from pattern_transformer import Rule, transform, wrap

    rules = [Rule(re.compile(r"\\*\\*(.*?)\\*\\*"), group=1, reduce=wrap("<b>", "</b>"))]
    transform("**bold** text", rules)  # => "<b>bold</b> text"
"""

import logging
import re
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from .errors import (
    InvalidInputError,
    InvalidRuleError,
    MissingReducerError,
    RecursionLimitExceededError,
)

logger = logging.getLogger(__name__)

# Type aliases
ReducedType = Any
ChildType = Union[str, "Node"]
ReduceFunc = Callable[[List[ReducedType]], ReducedType]
RuleLike = Union["Rule", Tuple]

# Node kinds
ROOT = "root"
PATTERN = "pattern"
LITERAL = "literal"

DEFAULT_MAX_DEPTH = 200


# ============================================================
# Rules
# ============================================================

class Rule:
    """
    A single recognizable span type.

    Args:
        pattern: Compiled regular expression, or a string to compile.
        group: Capture group used as the payload (0 = whole match).
        reduce: Function folding the node's reduced children into a value.
        terminal: If True, the payload is never matched again.
        name: Optional name used in diagnostics and by the engine.
        description: Optional human readable description.
        tags: Group names the rule belongs to.

    Raises:
        InvalidRuleError: If the pattern does not compile or the group
            does not exist in it.
    """

    __slots__ = ('pattern', 'group', 'reduce', 'terminal',
                 'name', 'description', 'tags')

    def __init__(self, pattern: Union[str, "re.Pattern"], group: int = 0,
                 reduce: Optional[ReduceFunc] = None, terminal: bool = False,
                 name: Optional[str] = None, description: Optional[str] = None,
                 tags: Optional[List[str]] = None):
        if isinstance(pattern, str):
            try:
                pattern = re.compile(pattern)
            except re.error as e:
                raise InvalidRuleError(f"Invalid pattern {pattern!r}: {e}") from e
        if not isinstance(pattern, re.Pattern):
            raise InvalidRuleError(
                f"Rule pattern must be a regular expression, got {type(pattern).__name__}")
        if not isinstance(group, int) or isinstance(group, bool) \
                or group < 0 or group > pattern.groups:
            raise InvalidRuleError(
                f"Group {group!r} does not exist in pattern {pattern.pattern!r}")

        self.pattern = pattern
        self.group = group
        self.reduce = reduce
        self.terminal = bool(terminal)
        self.name = name
        self.description = description
        self.tags = tags or []

    def __repr__(self) -> str:
        label = f"@{self.name}" if self.name else "<anonymous>"
        parts = [label, f"/{self.pattern.pattern}/"]
        if self.group:
            parts.append(f"group={self.group}")
        if self.terminal:
            parts.append("terminal")
        return f"Rule({' '.join(parts)})"


def as_rule(obj: RuleLike) -> Rule:
    """
    Coerce a rule-like object into a Rule.

    Accepts Rule instances and (pattern, group, reduce, terminal) tuples,
    where trailing tuple items may be omitted.
    """
    if isinstance(obj, Rule):
        return obj
    if isinstance(obj, (tuple, list)) and 1 <= len(obj) <= 4:
        pattern = obj[0]
        if not isinstance(pattern, re.Pattern):
            raise InvalidRuleError(
                f"Rule pattern must be a regular expression, got {type(pattern).__name__}")
        return Rule(*obj)
    raise InvalidRuleError(f"Not a valid rule: {obj!r}")


def _check_rules(rules: Sequence[RuleLike]) -> List[Rule]:
    if not isinstance(rules, (list, tuple)):
        raise InvalidRuleError(
            f"Rules must be a list of rules, got {type(rules).__name__}")
    checked = [as_rule(rule) for rule in rules]
    for rule in checked:
        # Rule attributes are plain slots, so re-check what the caller may have replaced
        if not isinstance(rule.pattern, re.Pattern):
            raise InvalidRuleError(f"Rule {rule.name or rule!r} has no valid pattern")
    return checked


# ============================================================
# Tree
# ============================================================

class Node:
    """
    A node of the match tree.

    Attributes:
        kind: ROOT or PATTERN.
        raw: The whole input for the root, the payload for pattern nodes.
        match: The text the node consumed from its parent (the full match).
        children: Literal strings and child nodes, in input order.
        rule: The rule that produced a pattern node (None for the root).
        value: The reduced value, set by evaluate().
    """

    __slots__ = ('kind', 'raw', 'match', 'children', 'rule', 'value')

    def __init__(self, kind: str, raw: str, match: Optional[str] = None,
                 rule: Optional[Rule] = None):
        self.kind = kind
        self.raw = raw
        self.match = raw if match is None else match
        self.children: List[ChildType] = []
        self.rule = rule
        self.value: ReducedType = None

    def __repr__(self) -> str:
        if self.kind == ROOT:
            return f"Node(root, {len(self.children)} children)"
        name = self.rule.name if self.rule is not None and self.rule.name else "?"
        return f"Node(@{name}, raw={self.raw!r})"

    def __eq__(self, other) -> bool:
        """Structural equality (rules compared by identity)."""
        if not isinstance(other, Node):
            return NotImplemented
        return (self.kind == other.kind and self.raw == other.raw
                and self.match == other.match and self.rule is other.rule
                and self.children == other.children)

    __hash__ = None

    def to_dict(self) -> dict:
        """Convert the subtree to a JSON-serializable dictionary."""
        result = {"kind": self.kind, "raw": self.raw}
        if self.kind != ROOT:
            result["match"] = self.match
            result["rule"] = self.rule.name if self.rule is not None else None
        result["children"] = [
            child.to_dict() if isinstance(child, Node)
            else {"kind": LITERAL, "raw": child}
            for child in self.children
        ]
        return result


def format_tree(node: Node, indent: str = "  ") -> str:
    """
    Format a tree as an indented outline, one node or literal per line.

    Example:
        root
          @bold 'bold'
            'bold'
          ' text'
    """
    lines: List[str] = []
    stack: List[Tuple[ChildType, int]] = [(node, 0)]

    while stack:
        item, depth = stack.pop()
        prefix = indent * depth
        if isinstance(item, str):
            lines.append(f"{prefix}{item!r}")
            continue
        if item.kind == ROOT:
            lines.append(f"{prefix}root")
        else:
            name = item.rule.name if item.rule is not None and item.rule.name else "?"
            lines.append(f"{prefix}@{name} {item.raw!r}")
        for child in reversed(item.children):
            stack.append((child, depth + 1))

    return "\n".join(lines)


# ============================================================
# Tree Builder
# ============================================================

def _find_largest(text: str, rules: List[Rule]) -> Optional[Tuple[str, str, Rule]]:
    """Return (full_match, payload, rule) for the longest payload, or None."""
    best = None
    for rule in rules:
        found = rule.pattern.search(text)
        if found is None:
            continue
        payload = found.group(rule.group)
        # Groups that did not participate or matched nothing are not candidates
        if not payload:
            continue
        if best is None or len(payload) > len(best[1]):
            best = (found.group(0), payload, rule)
    return best


def _scan(text: str, root: Node, rules: List[Rule], max_depth: int) -> Node:
    # Explicit work stack: nesting is bounded by max_depth alone
    pending = [(text, root, 0)]
    while pending:
        text, parent, depth = pending.pop()
        if depth > max_depth:
            raise RecursionLimitExceededError(max_depth, text)

        while text:
            largest = _find_largest(text, rules)
            if largest is None:
                parent.children.append(text)
                break

            full_match, payload, rule = largest
            # First textual occurrence, not the position the regex matched at
            index = text.find(full_match)
            if index > 0:
                parent.children.append(text[:index])

            logger.debug("Matched %r at %d (payload %r, depth %d)",
                         rule.name or rule.pattern.pattern, index, payload, depth)

            node = Node(PATTERN, payload, match=full_match, rule=rule)
            if payload == full_match or rule.terminal:
                node.children.append(payload)
            else:
                pending.append((payload, node, depth + 1))
            parent.children.append(node)

            text = text[index + len(full_match):]

    return root


def build(text: str, rules: Sequence[RuleLike], max_depth: int = DEFAULT_MAX_DEPTH) -> Node:
    """
    Build the match tree of a string.

    Args:
        text: Input string.
        rules: Ordered rules; earlier rules win payload-length ties.
        max_depth: Maximum nesting of recursive matches.

    Returns:
        The root Node.

    Raises:
        InvalidInputError: If text is not a string.
        InvalidRuleError: If rules is not a list of valid rules.
        RecursionLimitExceededError: If matching nests deeper than max_depth.
    """
    if not isinstance(text, str):
        raise InvalidInputError(text)
    checked = _check_rules(rules)

    root = Node(ROOT, text)
    return _scan(text, root, checked, max_depth)


# ============================================================
# Tree Evaluator
# ============================================================

def join(values: List[ReducedType]) -> str:
    """Concatenate reduced values as strings. Default root reducer."""
    return "".join(value if isinstance(value, str) else str(value) for value in values)


def _reduce_node(node: Node, root_reduce: ReduceFunc) -> ReducedType:
    if node.kind != ROOT and not node.children:
        return node.raw

    values = [child if isinstance(child, str) else child.value
              for child in node.children]
    if node.kind == ROOT:
        return root_reduce(values)
    if node.rule is None or node.rule.reduce is None:
        raise MissingReducerError(node.rule)
    return node.rule.reduce(values)


def _reduce(root: Node, root_reduce: ReduceFunc) -> ReducedType:
    # Post-order, left to right, without recursion
    stack = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        if not expanded:
            stack.append((node, True))
            for child in reversed(node.children):
                if isinstance(child, Node):
                    stack.append((child, False))
            continue
        node.value = _reduce_node(node, root_reduce)
    return root.value


def evaluate(root: Node, root_reduce: Optional[ReduceFunc] = None) -> ReducedType:
    """
    Fold a match tree into a single value.

    Children are reduced first; literal strings are passed through as-is.
    Pattern nodes use their rule's reducer, the root uses root_reduce
    (join by default), including for empty input.

    Raises:
        MissingReducerError: If a pattern node's rule has no reducer.
    """
    return _reduce(root, root_reduce or join)


def transform(text: str, rules: Sequence[RuleLike], root_reduce: Optional[ReduceFunc] = None,
              max_depth: int = DEFAULT_MAX_DEPTH) -> ReducedType:
    """
    Build the tree of text and fold it in one call.

    Example:
        transform("## Title", [Rule(r"^## (.*)$", 1, wrap("<h1>", "</h1>"))])
        # => "<h1>Title</h1>"
    """
    tree = build(text, rules, max_depth=max_depth)
    return evaluate(tree, root_reduce)


def wrap(prefix: str, suffix: str) -> ReduceFunc:
    """Create a reducer that joins the children and wraps them in prefix/suffix."""
    def reducer(values: List[ReducedType]) -> str:
        return f"{prefix}{join(values)}{suffix}"
    return reducer
