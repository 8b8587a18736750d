#!/usr/bin/env python3
"""
pattern-transformer Feature Demonstration

This script walks through the major features of the library.
"""

import re
from pathlib import Path
from pattern_transformer import (
    Rule, RuleEngine, build, evaluate, transform, wrap, format_tree,
)
from pattern_transformer.rules import simple_markdown, PHONE_NUMBER, IBAN


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def demo_basic_usage():
    """Demonstrate building and evaluating a tree by hand."""
    section("Basic Usage")

    rules = [
        Rule(re.compile(r"\*\*(.*?)\*\*"), 1, wrap("<strong>", "</strong>"), name="bold"),
        Rule(re.compile(r"\*(.*?)\*"), 1, wrap("<em>", "</em>"), name="italic"),
    ]

    examples = [
        "plain text",
        "**bold**",
        "**bold with *italic* inside**",
    ]

    for text in examples:
        root = build(text, rules)
        print(f"  {text!r} => {evaluate(root)!r}")


def demo_tree():
    """Demonstrate the match tree."""
    section("Match Tree")

    text = "# Title with **bold *and italic***"
    root = build(text, simple_markdown())

    print(f"  Input: {text!r}\n")
    for line in format_tree(root).split('\n'):
        print(f"    {line}")


def demo_markdown():
    """Demonstrate the markdown rule set with formatters."""
    section("Markdown and Formatters")

    text = "## Opis: **Nr telefonu: +48999999999**\nDane: *GB29NWBK60161331926819*"
    result = transform(text, simple_markdown(PHONE_NUMBER, IBAN))

    print("  Input:")
    for line in text.split('\n'):
        print(f"    {line}")
    print("  Output:")
    for line in result.split('\n'):
        print(f"    {line}")


def demo_root_reduce():
    """Demonstrate a custom root reducer."""
    section("Root Reducer")

    rules = [Rule(re.compile(r"\d+"), 0, lambda values: int(values[0]), name="number")]
    root = build("1 apple, 22 pears and 333 plums", rules)

    numbers = evaluate(root, lambda values: [v for v in values if isinstance(v, int)])
    print(f"  Numbers found: {numbers}")


def demo_dsl():
    """Demonstrate loading rules from the DSL."""
    section("Rule DSL")

    engine = RuleEngine.from_dsl(r'''
        @bold: /\*\*(.*?)\*\*/:1 => <b>{}</b>
        @mark "Highlighted text": /==(.*?)==/:1 => <mark>{}</mark>
        @postal: /\b\d{5}\b/ => s/(\d{2})(\d{3})/\1-\2/ stop
    ''')

    print(f"  {engine}")
    for line in engine.list_rules():
        print(f"    {line}")

    text = "**Send to ==00950== Warszawa**"
    print(f"\n  {text!r} => {engine(text)!r}")


def demo_groups():
    """Demonstrate named groups of rules."""
    section("Named Groups")

    engine = RuleEngine.from_dsl(r'''
        [inline]
        @bold: /\*\*(.*?)\*\*/:1 => <b>{}</b>

        [numbers]
        @digits: /\d+/ => #{} stop
    ''')

    print(f"  Available groups: {sorted(engine.groups())}")

    text = "**item 42**"
    print(f"\n  Text: {text}")
    print(f"  All groups:       {engine(text)}")
    print(f"  Only [inline]:    {engine(text, groups=['inline'])}")
    print(f"  Only [numbers]:   {engine(text, groups=['numbers'])}")


def demo_sequencing():
    """Demonstrate combining and sequencing engines."""
    section("Combining Engines")

    markdown = RuleEngine.from_rules(simple_markdown())
    shout = RuleEngine.from_dsl(r"@loud: /<strong>(.*?)<\/strong>/:1 => <strong>{}!</strong> stop")

    pipeline = markdown >> shout
    print(f"  {pipeline}")
    print(f"  {pipeline('say **hello**')!r}")


def demo_file():
    """Demonstrate loading rules from a file."""
    section("Rules File")

    path = Path(__file__).parent / "markdown.rules"
    engine = RuleEngine.from_file(path)

    text = "# Notes on `**raw**` markup\nSee **this**"
    print(f"  Loaded {len(engine)} rules from {path.name}")
    print(f"  {engine(text)!r}")


def main():
    demo_basic_usage()
    demo_tree()
    demo_markdown()
    demo_root_reduce()
    demo_dsl()
    demo_groups()
    demo_sequencing()
    demo_file()


if __name__ == "__main__":
    main()
