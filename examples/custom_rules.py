"""
Example custom rule set for pattern-transformer.

This file shows how to build a rule set in Python, for reducers
that the DSL templates cannot express.

Usage:
    pattern-transformer -s examples/custom_rules.py -e "Total: 3 x 14"

Or in scripts:
    :ruleset examples/custom_rules.py
    Total: 3 x 14
"""

import re
from pattern_transformer import Rule, wrap
from pattern_transformer.rules import POSTAL_CODE


def _multiply(values):
    a, b = values[0].split("x")
    return str(int(a) * int(b))


def _shout(values):
    return "".join(str(v) for v in values).upper()


RULES = [
    Rule(re.compile(r"\d+\s*x\s*\d+"), 0, _multiply, terminal=True,
         name="multiply", description="Evaluate a product like '3 x 14'"),
    Rule(re.compile(r"!(.+?)!"), 1, _shout, name="shout"),
    Rule(re.compile(r"~~(.*?)~~"), 1, wrap("<del>", "</del>"), name="strike"),
    POSTAL_CODE,
]
