"""
pattern-transformer - Transform text with recursive regular-expression rules

Builds a tree from a string by repeatedly picking the rule whose capture
group yields the longest payload, then folds the tree with the reducers
attached to the rules.

Quick Start:
    import re
    from pattern_transformer import Rule, transform, wrap

    rules = [
        Rule(re.compile(r"\\*\\*(.*?)\\*\\*"), group=1, reduce=wrap("<strong>", "</strong>")),
        Rule(re.compile(r"\\*(.*?)\\*"), group=1, reduce=wrap("<em>", "</em>")),
    ]
    transform("**a *b* c**", rules)  # => "<strong>a <em>b</em> c</strong>"

Rules can also be written in a small DSL:
    from pattern_transformer import RuleEngine

    engine = RuleEngine.from_dsl('''
        @bold: /\\*\\*(.*?)\\*\\*/:1 => <strong>{}</strong>
        @postal: /\\d{5}/ => s/(\\d{2})(\\d{3})/\\1-\\2/ stop
    ''')
    engine("**00950**")  # => "<strong>00-950</strong>"

Rule fields:
    pattern     - regular expression, searched (first match only)
    group       - capture group used as the payload (default 0)
    reduce      - function(children) -> value
    terminal    - if True the payload is not matched again
"""

__version__ = "0.1.0"

from .errors import (
    PatternTransformerError,
    InvalidInputError,
    InvalidRuleError,
    MissingReducerError,
    RecursionLimitExceededError,
)

# Core tree builder and evaluator
from .transform import (
    Rule,
    Node,
    ROOT,
    PATTERN,
    LITERAL,
    DEFAULT_MAX_DEPTH,
    as_rule,
    build,
    evaluate,
    transform,
    join,
    wrap,
    format_tree,
)

# Engine and DSL
from .engine import (
    RuleEngine,
    SequencedEngine,
    parse_rule_line,
    format_rule,
    template_reducer,
    substitution_reducer,
    load_rules_from_dsl,
    load_rules_from_file,
    load_rules_from_json,
)

# Public API
__all__ = [
    "__version__",
    # Errors
    "PatternTransformerError",
    "InvalidInputError",
    "InvalidRuleError",
    "MissingReducerError",
    "RecursionLimitExceededError",
    # Core
    "Rule",
    "Node",
    "ROOT",
    "PATTERN",
    "LITERAL",
    "DEFAULT_MAX_DEPTH",
    "as_rule",
    "build",
    "evaluate",
    "transform",
    "join",
    "wrap",
    "format_tree",
    # Engine
    "RuleEngine",
    "SequencedEngine",
    # DSL utilities
    "parse_rule_line",
    "format_rule",
    "template_reducer",
    "substitution_reducer",
    "load_rules_from_dsl",
    "load_rules_from_file",
    "load_rules_from_json",
]
