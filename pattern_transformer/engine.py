"""
Rule Engine and DSL Loader for pattern-transformer

This module provides facilities for loading rules from external files,
supporting both a small line-oriented DSL and JSON, and an engine that
keeps an ordered, named rule list.

DSL Format (.rules files):
    # Comment
    [group]
    :include other.rules
    @name: /regex/flags => template
    @name "Description text": /regex/flags:group => template stop

    Examples:
    @bold: /\\*\\*(.*?)\\*\\*/:1 => <strong>{}</strong>
    @h1 "Level 1 header": /^# (.*)$/m:1 => <h1>{}</h1>
    @postal: /\\d{5}/ => s/(\\d{2})(\\d{3})/\\1-\\2/ stop

Pattern syntax:
    /regex/flags       - flags: i (ignore case), m (multiline), s (dotall),
                         x (verbose), a (ascii). Escape "/" as "\\/".
    :N                 - use capture group N as the payload (default 0)

Template syntax:
    text {} text       - {} is replaced by the joined reduced children
    s/regex/repl/flags - substitution applied to the joined children;
                         flag g replaces every occurrence
    stop               - trailing keyword, marks the rule terminal. The word
                         is reserved: a template cannot end in " stop".
                         Use a JSON rule file for such templates.

JSON Format:
    {
        "name": "markdown",
        "description": "optional ruleset description",
        "rules": [
            {"name": "bold", "pattern": "\\\\*\\\\*(.*?)\\\\*\\\\*", "group": 1,
             "template": "<strong>{}</strong>"},
            {"name": "postal", "pattern": "\\\\d{5}", "sub": ["(\\\\d{2})(\\\\d{3})", "\\\\1-\\\\2"],
             "stop": true, "tags": ["pl"]}
        ]
    }
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple, Union

from .errors import InvalidRuleError
from .transform import (
    DEFAULT_MAX_DEPTH, Node, ReduceFunc, Rule, RuleLike,
    as_rule, build, evaluate, join,
)

logger = logging.getLogger(__name__)

REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    "a": re.ASCII,
}


# ============================================================
# Reducers built from templates
# ============================================================

def template_reducer(template: str) -> ReduceFunc:
    """
    Create a reducer from a template string.

    Examples:
        template_reducer("<b>{}</b>")(["x"]) -> "<b>x</b>"
        template_reducer("[link]")(["x"]) -> "[link]"
    """
    def reducer(values: List) -> str:
        return template.replace("{}", join(values))
    reducer.template = template
    return reducer


def substitution_reducer(pattern: str, replacement: str, flags: str = "") -> ReduceFunc:
    """
    Create a reducer applying re.sub to the joined children.

    Flag g replaces every occurrence; without it only the first is replaced.

    Example:
        substitution_reducer(r"(\\d{2})(\\d{3})", r"\\1-\\2")(["12345"]) -> "12-345"
    """
    compiled = _compile(pattern, flags.replace("g", ""))
    count = 0 if "g" in flags else 1

    def reducer(values: List) -> str:
        return compiled.sub(replacement, join(values), count=count)
    reducer.template = f"s/{pattern}/{replacement}/{flags}"
    return reducer


def _compile(source: str, flags: str) -> "re.Pattern":
    value = 0
    for flag in flags:
        if flag not in REGEX_FLAGS:
            raise InvalidRuleError(f"Unknown regex flag: {flag!r}")
        value |= REGEX_FLAGS[flag]
    try:
        return re.compile(source, value)
    except re.error as e:
        raise InvalidRuleError(f"Invalid pattern /{source}/: {e}") from e


# ============================================================
# DSL Parsing
# ============================================================

def _read_delimited(text: str, start: int) -> Tuple[str, int]:
    """
    Read a /-delimited section starting just after the opening slash.

    Returns the section (with \\/ unescaped) and the index after the closing slash.
    """
    i = start
    parts = []
    while i < len(text):
        c = text[i]
        if c == '\\' and i + 1 < len(text):
            if text[i + 1] == '/':
                parts.append('/')
            else:
                parts.append(text[i:i + 2])
            i += 2
            continue
        if c == '/':
            return ''.join(parts), i + 1
        parts.append(c)
        i += 1
    raise InvalidRuleError(f"Unterminated /.../ in: {text}")


def _read_flags(text: str, start: int) -> Tuple[str, int]:
    i = start
    while i < len(text) and text[i].isalpha():
        i += 1
    return text[start:i], i


def parse_rule_line(line: str) -> Optional[Rule]:
    """
    Parse a single rule line.

    Formats:
        @name: /regex/flags:group => template
        @name "description": /regex/flags => template stop
        /regex/ => template

    A final " stop" word is always read as the terminal keyword, never as
    part of the template.

    Returns: Rule, or None if the line is not a rule

    Raises:
        InvalidRuleError: If the line looks like a rule but is malformed.
    """
    line = line.strip()

    # Skip empty lines and comments
    if not line or line.startswith('#'):
        return None

    name = None
    description = None
    if line.startswith('@'):
        match_obj = re.match(r'@([\w-]+)\s+"([^"]+)":\s*(.+)', line)
        if match_obj:
            name = match_obj.group(1)
            description = match_obj.group(2)
            line = match_obj.group(3)
        else:
            match_obj = re.match(r'@([\w-]+):\s*(.+)', line)
            if not match_obj:
                return None
            name = match_obj.group(1)
            line = match_obj.group(2)

    if not line.startswith('/') or '=>' not in line:
        return None

    source, pos = _read_delimited(line, 1)
    flags, pos = _read_flags(line, pos)
    pattern = _compile(source, flags)

    group = 0
    group_match = re.compile(r':(\d+)').match(line, pos)
    if group_match:
        group = int(group_match.group(1))
        pos = group_match.end()

    arrow = re.compile(r'\s*=>\s*').match(line, pos)
    if not arrow:
        raise InvalidRuleError(f"Expected '=>' after pattern in: {line}")
    rest = line[arrow.end():]

    terminal = False
    if rest == 'stop' or rest.endswith(' stop'):
        terminal = True
        rest = rest[:-4].rstrip()

    if rest.startswith('s/'):
        sub_pattern, sub_pos = _read_delimited(rest, 2)
        replacement, sub_pos = _read_delimited(rest, sub_pos)
        sub_flags, sub_pos = _read_flags(rest, sub_pos)
        if rest[sub_pos:].strip():
            raise InvalidRuleError(f"Unexpected text after substitution: {rest[sub_pos:]}")
        reducer = substitution_reducer(sub_pattern, replacement, sub_flags)
    else:
        reducer = template_reducer(rest)

    return Rule(pattern, group, reducer, terminal=terminal,
                name=name, description=description)


def load_rules_from_dsl(
    text: str,
    base_path: Optional[Path] = None,
    _included_files: Optional[set] = None
) -> List[Rule]:
    """
    Load rules from DSL text.

    Supports:
    - Named groups: [groupname]
    - File includes: :include path/to/file.rules

    Args:
        text: DSL text containing rules
        base_path: Base path for resolving relative :include paths
        _included_files: Internal tracking for circular include detection

    Returns:
        List of rules in file order
    """
    rules = []
    current_group = None

    if _included_files is None:
        _included_files = set()

    for line in text.split('\n'):
        line_stripped = line.strip()

        # Group declaration: [groupname]
        if line_stripped.startswith('[') and line_stripped.endswith(']'):
            current_group = line_stripped[1:-1].strip()
            continue

        # Include directive: :include path
        if line_stripped.startswith(':include '):
            include_path_str = line_stripped[9:].strip()
            if include_path_str:
                if base_path:
                    include_path = base_path / include_path_str
                else:
                    include_path = Path(include_path_str)

                abs_path = include_path.resolve()
                if abs_path in _included_files:
                    raise ValueError(f"Circular include detected: {include_path}")

                if include_path.exists():
                    _included_files.add(abs_path)
                    included_rules = load_rules_from_file(
                        include_path,
                        _included_files=_included_files
                    )
                    for rule in included_rules:
                        if current_group and not rule.tags:
                            rule.tags.append(current_group)
                    rules.extend(included_rules)
                else:
                    raise FileNotFoundError(f"Include file not found: {include_path}")
            continue

        rule = parse_rule_line(line)
        if rule:
            if current_group and current_group not in rule.tags:
                rule.tags.append(current_group)
            rules.append(rule)
    return rules


def load_rules_from_file(
    path: Union[str, Path],
    _included_files: Optional[set] = None
) -> List[Rule]:
    """
    Load rules from a .rules or .json file.

    Supports :include directives for DSL files, resolving paths
    relative to the containing file.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    logger.debug("Loading rules from %s", path)

    if path.suffix == '.json':
        return load_rules_from_json(text)
    return load_rules_from_dsl(
        text,
        base_path=path.parent,
        _included_files=_included_files
    )


def load_rules_from_json(text: str) -> List[Rule]:
    """
    Load rules from JSON text.

    Each rule needs a "pattern" and either a "template" or a "sub"
    [pattern, replacement, flags?] list. Optional keys: "name",
    "description", "flags", "group", "stop", "tags".
    """
    data = json.loads(text)
    if not isinstance(data, dict):
        raise InvalidRuleError(
            f"Rule file must be a JSON object, got {type(data).__name__}")
    rules = []

    for entry in data.get('rules', []):
        if not isinstance(entry, dict) or 'pattern' not in entry:
            raise InvalidRuleError(f"Invalid rule entry: {entry!r}")
        pattern = _compile(entry['pattern'], entry.get('flags', ''))
        if 'sub' in entry:
            reducer = substitution_reducer(*entry['sub'])
        elif 'template' in entry:
            reducer = template_reducer(entry['template'])
        else:
            raise InvalidRuleError(
                f"Rule {entry.get('name') or entry['pattern']!r} needs a template or sub")
        rules.append(Rule(
            pattern,
            entry.get('group', 0),
            reducer,
            terminal=entry.get('stop', False),
            name=entry.get('name'),
            description=entry.get('description'),
            tags=list(entry.get('tags', [])),
        ))

    return rules


def format_rule(rule: Rule) -> str:
    """
    Format a rule in DSL syntax.

    Reducers written in Python have no DSL form and are shown as <python>.
    """
    if rule.name:
        name_part = f"@{rule.name}"
        if rule.description:
            name_part += f" \"{rule.description}\""
        name_part += ": "
    else:
        name_part = ""

    flags = "".join(flag for flag, value in REGEX_FLAGS.items()
                    if rule.pattern.flags & value)
    source = rule.pattern.pattern.replace('/', '\\/')
    group_part = f":{rule.group}" if rule.group else ""
    template = getattr(rule.reduce, 'template', None) or "<python>"
    stop_part = " stop" if rule.terminal else ""
    return f"{name_part}/{source}/{flags}{group_part} => {template}{stop_part}"


# ============================================================
# Rule Engine
# ============================================================

class RuleEngine:
    """
    An ordered, named collection of rules that transforms text.

    Rule order is significant: when two rules capture payloads of the same
    length, the one loaded first wins.

    Example:
        from pattern_transformer import RuleEngine

        engine = RuleEngine.from_dsl('''
            @bold: /\\*\\*(.*?)\\*\\*/:1 => <strong>{}</strong>
            @italic: /\\*(.*?)\\*/:1 => <em>{}</em>
        ''')
        engine("**a *b* c**")  # => "<strong>a <em>b</em> c</strong>"

        tree = engine.tree("**a**")  # inspect the match tree
    """

    def __init__(self, root_reduce: Optional[ReduceFunc] = None,
                 max_depth: int = DEFAULT_MAX_DEPTH):
        """
        Initialize a RuleEngine.

        Args:
            root_reduce: Reducer for the root node. Default: join.
            max_depth: Maximum nesting of recursive matches.
        """
        self._rules: List[Rule] = []
        self._rule_names: Dict[str, int] = {}  # Maps name -> index
        self._disabled_groups: Set[str] = set()
        self.root_reduce = root_reduce or join
        self.max_depth = max_depth

    def _add(self, rule: Rule) -> None:
        self._rules.append(rule)
        if rule.name:
            self._rule_names[rule.name] = len(self._rules) - 1

    def load_dsl(self, text: str) -> 'RuleEngine':
        """Load rules from DSL text."""
        for rule in load_rules_from_dsl(text):
            self._add(rule)
        return self

    def load_file(self, path: Union[str, Path]) -> 'RuleEngine':
        """Load rules from a file (.rules or .json)."""
        loaded = load_rules_from_file(path)
        for rule in loaded:
            self._add(rule)
        logger.debug("Loaded %d rules from %s", len(loaded), path)
        return self

    def load_rules(self, rules: List[RuleLike]) -> 'RuleEngine':
        """Load Rule objects or (pattern, group, reduce, terminal) tuples."""
        for rule in rules:
            self._add(as_rule(rule))
        return self

    def add_rule(self, pattern: Union[str, "re.Pattern"], reduce: ReduceFunc,
                 group: int = 0, terminal: bool = False,
                 name: Optional[str] = None,
                 description: Optional[str] = None) -> 'RuleEngine':
        """Add a single rule with optional metadata."""
        self._add(Rule(pattern, group, reduce, terminal=terminal,
                       name=name, description=description))
        return self

    def get_rule(self, name: str) -> Optional[Rule]:
        """Get a rule by name."""
        if name in self._rule_names:
            return self._rules[self._rule_names[name]]
        return None

    def clear(self) -> 'RuleEngine':
        """Clear all rules."""
        self._rules = []
        self._rule_names = {}
        return self

    # ============================================================
    # Group Management
    # ============================================================

    def disable_group(self, group: str) -> 'RuleEngine':
        """Disable all rules in a group."""
        self._disabled_groups.add(group)
        return self

    def enable_group(self, group: str) -> 'RuleEngine':
        """Enable all rules in a group."""
        self._disabled_groups.discard(group)
        return self

    def groups(self) -> set:
        """Return all group names used by rules."""
        all_groups = set()
        for rule in self._rules:
            all_groups.update(rule.tags)
        return all_groups

    def _is_rule_active(self, rule: Rule, groups: Optional[List[str]] = None) -> bool:
        """Check if a rule should be used given current group settings.

        Args:
            rule: The rule to check
            groups: If specified, only rules in these groups are active.
                    If None, use the disabled_groups setting.
        """
        if not rule.tags:
            return True
        if groups is not None:
            return any(g in groups for g in rule.tags)
        return not any(g in self._disabled_groups for g in rule.tags)

    def active_rules(self, groups: Optional[List[str]] = None) -> List[Rule]:
        """Rules that take part in matching, in order."""
        return [rule for rule in self._rules if self._is_rule_active(rule, groups)]

    @property
    def rules(self) -> List[Rule]:
        """Get all loaded rules."""
        return self._rules.copy()

    # ============================================================
    # Transformation
    # ============================================================

    def tree(self, text: str, groups: Optional[List[str]] = None) -> Node:
        """Build the match tree of text using the active rules."""
        return build(text, self.active_rules(groups), max_depth=self.max_depth)

    def transform(self, text: str, groups: Optional[List[str]] = None) -> Any:
        """
        Transform text using all active rules.

        Args:
            text: Input string
            groups: If specified, only use rules from these groups (rules
                    without groups are always used).

        Returns:
            The root reducer's result
        """
        return evaluate(self.tree(text, groups=groups), self.root_reduce)

    def list_rules(self) -> List[str]:
        """List all rules in DSL format."""
        return [format_rule(rule) for rule in self._rules]

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"RuleEngine({len(self._rules)} rules)"

    def __call__(self, text: str, **kwargs) -> Any:
        """Make engine callable: engine(text) is shorthand for engine.transform(text)."""
        return self.transform(text, **kwargs)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __contains__(self, name: str) -> bool:
        """Check if a named rule exists: 'bold' in engine."""
        return name in self._rule_names

    def __getitem__(self, name: str) -> Rule:
        """Get rule by name: engine['bold']."""
        if name not in self._rule_names:
            raise KeyError(f"No rule named '{name}'")
        return self._rules[self._rule_names[name]]

    # Class method constructors for fluent creation
    @classmethod
    def from_dsl(cls, text: str, **kwargs) -> 'RuleEngine':
        """Create engine from DSL text."""
        return cls(**kwargs).load_dsl(text)

    @classmethod
    def from_file(cls, path: Union[str, Path], **kwargs) -> 'RuleEngine':
        """Create engine from file."""
        return cls(**kwargs).load_file(path)

    @classmethod
    def from_rules(cls, rules: List[RuleLike], **kwargs) -> 'RuleEngine':
        """Create engine from a Python rule list."""
        return cls(**kwargs).load_rules(rules)

    # Combining engines (rule set algebra)
    def copy(self) -> 'RuleEngine':
        """Create a copy of this engine."""
        new_engine = RuleEngine(root_reduce=self.root_reduce, max_depth=self.max_depth)
        new_engine._rules = self._rules.copy()
        new_engine._rule_names = self._rule_names.copy()
        new_engine._disabled_groups = self._disabled_groups.copy()
        return new_engine

    def __or__(self, other: 'RuleEngine') -> 'RuleEngine':
        """Union of two engines: engine1 | engine2 (engine1's rules first)."""
        result = self.copy()
        for rule in other:
            result._add(rule)
        return result

    def __ior__(self, other: 'RuleEngine') -> 'RuleEngine':
        """In-place union: engine1 |= engine2."""
        for rule in other:
            self._add(rule)
        return self

    def __rshift__(self, other: 'RuleEngine') -> 'SequencedEngine':
        """
        Sequence two engines: engine1 >> engine2.

        The output of engine1 is transformed again by engine2.

        Example:
            emphasis = RuleEngine.from_dsl("@bold: /\\*\\*(.*?)\\*\\*/:1 => <b>{}</b>")
            phones = RuleEngine.from_rules([PHONE_NUMBER])
            pipeline = emphasis >> phones
        """
        return SequencedEngine([self, other])


class SequencedEngine:
    """
    An engine that applies multiple engines in sequence.

    Each phase receives the previous phase's output, so every phase except
    the last must produce a string. Created via the >> operator on RuleEngine.
    """

    def __init__(self, engines: List['RuleEngine']):
        """Initialize with a list of engines to apply in sequence."""
        self._engines = engines

    def __call__(self, text: str, **kwargs) -> Any:
        """Apply all engines in sequence."""
        result = text
        for engine in self._engines:
            result = engine(result, **kwargs)
        return result

    def __rshift__(self, other: 'RuleEngine') -> 'SequencedEngine':
        """Chain another engine: (a >> b) >> c."""
        if isinstance(other, SequencedEngine):
            return SequencedEngine(self._engines + other._engines)
        return SequencedEngine(self._engines + [other])

    def __repr__(self) -> str:
        return f"SequencedEngine({len(self._engines)} phases)"

    def __len__(self) -> int:
        """Number of phases."""
        return len(self._engines)

    def __iter__(self):
        """Iterate over engines."""
        return iter(self._engines)
