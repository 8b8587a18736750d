"""Tests for the rule engine and the rule-file DSL."""

import json
import re

import pytest
from pattern_transformer import (
    RuleEngine, SequencedEngine, Node, InvalidRuleError, wrap,
    parse_rule_line, format_rule, load_rules_from_dsl, load_rules_from_file,
    load_rules_from_json, template_reducer, substitution_reducer,
)
from pattern_transformer.rules import PHONE_NUMBER, simple_markdown


class TestParseRuleLine:
    """Tests for parsing single DSL lines."""

    def test_named_rule(self):
        """Name, pattern, group and template are parsed."""
        rule = parse_rule_line(r"@bold: /\*\*(.*?)\*\*/:1 => <strong>{}</strong>")

        assert rule.name == "bold"
        assert rule.pattern.pattern == r"\*\*(.*?)\*\*"
        assert rule.group == 1
        assert rule.terminal is False
        assert rule.reduce(["x"]) == "<strong>x</strong>"

    def test_description(self):
        """Quoted descriptions are parsed."""
        rule = parse_rule_line(r'@h1 "Level 1 header": /^# (.*)$/m:1 => <h1>{}</h1>')

        assert rule.name == "h1"
        assert rule.description == "Level 1 header"
        assert rule.pattern.flags & re.MULTILINE

    def test_anonymous_rule(self):
        """Rules without a name are allowed."""
        rule = parse_rule_line(r"/x+/ => [{}]")

        assert rule.name is None
        assert rule.reduce(["xx"]) == "[xx]"

    def test_flags(self):
        """Regex flags after the closing slash are applied."""
        rule = parse_rule_line(r"@word: /abc/i => {}")

        assert rule.pattern.search("ABC")

    def test_stop(self):
        """A trailing stop marks the rule terminal."""
        rule = parse_rule_line(r"@code: /`([^`]+)`/:1 => <code>{}</code> stop")

        assert rule.terminal is True
        assert rule.reduce(["a"]) == "<code>a</code>"

    def test_stop_word_is_reserved(self):
        """A template ending in the word stop is read as the terminal keyword."""
        rule = parse_rule_line(r"@x: /a(b)/:1 => please stop")

        assert rule.terminal is True
        assert rule.reduce(["b"]) == "please"

    def test_stop_inside_word_is_template(self):
        """Only a separate final stop word is the keyword."""
        rule = parse_rule_line(r"@x: /a(b)/:1 => nonstop")

        assert rule.terminal is False
        assert rule.reduce(["b"]) == "nonstop"

    def test_substitution(self):
        """s/// templates rewrite the matched content."""
        rule = parse_rule_line(r"@postal: /\d{5}/ => s/(\d{2})(\d{3})/\1-\2/ stop")

        assert rule.terminal is True
        assert rule.reduce(["12345"]) == "12-345"

    def test_substitution_global(self):
        """The g flag replaces every occurrence."""
        rule = parse_rule_line(r"/[a-z ]+/ => s/ /_/g")

        assert rule.reduce(["a b c"]) == "a_b_c"

    def test_escaped_slash(self):
        """\\/ stands for a literal slash inside a pattern."""
        rule = parse_rule_line(r"@path: /\/usr\/(\w+)/:1 => [{}]")

        assert rule.pattern.search("/usr/bin").group(1) == "bin"

    def test_not_a_rule(self):
        """Comments, blanks and plain text are not rules."""
        assert parse_rule_line("# comment") is None
        assert parse_rule_line("   ") is None
        assert parse_rule_line("just some text") is None

    def test_invalid_regex(self):
        """Malformed patterns raise InvalidRuleError."""
        with pytest.raises(InvalidRuleError):
            parse_rule_line("@bad: /(/ => {}")

    def test_unknown_flag(self):
        """Unknown regex flags raise InvalidRuleError."""
        with pytest.raises(InvalidRuleError):
            parse_rule_line("@bad: /a/q => {}")

    def test_missing_group(self):
        """A payload group that does not exist raises InvalidRuleError."""
        with pytest.raises(InvalidRuleError):
            parse_rule_line("@bad: /(a)/:3 => {}")

    def test_unterminated_pattern(self):
        """An unclosed pattern raises InvalidRuleError."""
        with pytest.raises(InvalidRuleError):
            parse_rule_line("@bad: /abc => {}")


class TestFormatRule:
    """Tests for printing rules in DSL form."""

    def test_round_trip(self):
        """DSL rules print back in DSL syntax."""
        line = r'@code "Inline code": /`([^`]+)`/:1 => <code>{}</code> stop'

        assert format_rule(parse_rule_line(line)) == line

    def test_python_reducer(self):
        """Python reducers are shown as a placeholder."""
        assert format_rule(PHONE_NUMBER).endswith("=> <python> stop")


class TestLoadRules:
    """Tests for loading DSL and JSON rule files."""

    def test_groups_become_tags(self):
        """[group] headers tag the following rules."""
        rules = load_rules_from_dsl(r'''
            @plain: /a/ => A
            [emphasis]
            @bold: /\*\*(.*?)\*\*/:1 => <b>{}</b>
        ''')

        assert rules[0].tags == []
        assert rules[1].tags == ["emphasis"]

    def test_include(self, tmp_path):
        """:include pulls in rules relative to the including file."""
        (tmp_path / "base.rules").write_text(r"@digits: /\d+/ => #{}")
        (tmp_path / "main.rules").write_text(
            ":include base.rules\n@word: /[a-z]+/ => <{}>\n")

        rules = load_rules_from_file(tmp_path / "main.rules")

        assert [rule.name for rule in rules] == ["digits", "word"]

    def test_circular_include(self, tmp_path):
        """Circular includes are detected."""
        (tmp_path / "a.rules").write_text(":include b.rules")
        (tmp_path / "b.rules").write_text(":include a.rules")

        with pytest.raises(ValueError, match="Circular"):
            load_rules_from_file(tmp_path / "a.rules")

    def test_missing_include(self, tmp_path):
        """Missing include files raise FileNotFoundError."""
        (tmp_path / "main.rules").write_text(":include nope.rules")

        with pytest.raises(FileNotFoundError):
            load_rules_from_file(tmp_path / "main.rules")

    def test_json(self):
        """JSON rule sets support templates and substitutions."""
        rules = load_rules_from_json(json.dumps({
            "name": "demo",
            "rules": [
                {"name": "bold", "pattern": r"\*\*(.*?)\*\*", "group": 1,
                 "template": "<b>{}</b>"},
                {"name": "postal", "pattern": r"\d{5}",
                 "sub": [r"(\d{2})(\d{3})", r"\1-\2"], "stop": True, "tags": ["pl"]},
            ],
        }))

        assert rules[0].group == 1
        assert rules[1].terminal is True
        assert rules[1].tags == ["pl"]
        assert RuleEngine.from_rules(rules)("**00950**") == "<b>00-950</b>"

    def test_json_file(self, tmp_path):
        """.json files are loaded as JSON."""
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"rules": [
            {"name": "upper", "pattern": "[a-z]+", "flags": "i", "template": "<{}>"},
        ]}))

        rules = load_rules_from_file(path)

        assert rules[0].pattern.flags & re.IGNORECASE

    def test_json_needs_reducer(self):
        """JSON rules without template or sub are rejected."""
        with pytest.raises(InvalidRuleError):
            load_rules_from_json('{"rules": [{"pattern": "a"}]}')

    def test_json_must_be_object(self):
        """A top-level JSON list is rejected as an invalid rule file."""
        with pytest.raises(InvalidRuleError):
            load_rules_from_json('[{"pattern": "a", "template": "{}"}]')


class TestRuleEngine:
    """Tests for RuleEngine."""

    def setup_method(self):
        self.engine = RuleEngine.from_dsl(r'''
            @bold: /\*\*(.*?)\*\*/:1 => <strong>{}</strong>
            @italic: /\*(.*?)\*/:1 => <em>{}</em>
            [numbers]
            @postal: /\d{5}/ => s/(\d{2})(\d{3})/\1-\2/ stop
        ''')

    def test_call(self):
        """Engines are callable."""
        assert self.engine("**a *styled* 00950**") == "<strong>a <em>styled</em> 00-950</strong>"

    def test_tree(self):
        """tree() exposes the match tree."""
        tree = self.engine.tree("**a**")

        assert isinstance(tree, Node)
        assert tree.children[0].rule is self.engine["bold"]

    def test_lookup(self):
        """Rules are found by name."""
        assert "bold" in self.engine
        assert "missing" not in self.engine
        assert self.engine.get_rule("italic").name == "italic"
        assert self.engine.get_rule("missing") is None
        with pytest.raises(KeyError):
            self.engine["missing"]

    def test_len_iter_repr(self):
        """Engines behave like rule collections."""
        assert len(self.engine) == 3
        assert [rule.name for rule in self.engine] == ["bold", "italic", "postal"]
        assert repr(self.engine) == "RuleEngine(3 rules)"

    def test_disable_group(self):
        """Rules in disabled groups are skipped."""
        self.engine.disable_group("numbers")

        assert self.engine("00950") == "00950"

        self.engine.enable_group("numbers")
        assert self.engine("00950") == "00-950"

    def test_only_groups(self):
        """groups= restricts matching to the named groups plus untagged rules."""
        assert self.engine("**00950**", groups=[]) == "<strong>00950</strong>"
        assert self.engine("**00950**", groups=["numbers"]) == "<strong>00-950</strong>"

    def test_groups(self):
        """groups() lists all tags."""
        assert self.engine.groups() == {"numbers"}

    def test_add_rule(self):
        """add_rule appends a rule built from its arguments."""
        self.engine.add_rule(r"!!(.*?)!!", wrap("<mark>", "</mark>"), group=1, name="mark")

        assert self.engine("!!hi!!") == "<mark>hi</mark>"

    def test_load_python_rules(self):
        """Python rule lists and tuples can be loaded."""
        engine = RuleEngine().load_rules([
            PHONE_NUMBER,
            (re.compile(r"#(\w+)"), 1, wrap("<tag>", "</tag>"), True),
        ])

        assert engine("+48999999999 #x") == "+48 999 999 999 <tag>x</tag>"

    def test_clear(self):
        """clear() removes all rules."""
        self.engine.clear()

        assert len(self.engine) == 0
        assert self.engine("**a**") == "**a**"

    def test_root_reduce(self):
        """A custom root reducer shapes the final result."""
        engine = RuleEngine(root_reduce=list).load_dsl(r"@d: /\d+/ => #{}")

        assert engine("a1b") == ["a", "#1", "b"]

    def test_max_depth(self):
        """max_depth is passed to the tree builder."""
        engine = RuleEngine(max_depth=2).load_dsl(r"@p: /\((.*)\)/:1 => ({})")

        assert engine("((x))") == "((x))"
        with pytest.raises(RecursionError):
            engine("(((x)))")

    def test_list_rules(self):
        """list_rules prints DSL lines."""
        lines = self.engine.list_rules()

        assert lines[0] == r"@bold: /\*\*(.*?)\*\*/:1 => <strong>{}</strong>"
        assert lines[2].endswith("stop")

    def test_from_file(self, tmp_path):
        """Engines load from files."""
        path = tmp_path / "md.rules"
        path.write_text(r"@bold: /\*\*(.*?)\*\*/:1 => <b>{}</b>")

        assert RuleEngine.from_file(path)("**a**") == "<b>a</b>"


class TestEngineAlgebra:
    """Tests for combining engines."""

    def test_union_keeps_order(self):
        """engine1 | engine2 puts engine1's rules first."""
        first = RuleEngine.from_dsl("@a: /ab/ => first")
        second = RuleEngine.from_dsl("@b: /b./ => second")

        combined = first | second

        assert combined("abc") == "firstc"
        assert (second | first)("abc") == "asecond"
        assert len(first) == 1

    def test_in_place_union(self):
        """|= adds the other engine's rules."""
        engine = RuleEngine.from_dsl("@a: /a/ => A")
        engine |= RuleEngine.from_dsl("@b: /b/ => B")

        assert "b" in engine
        assert engine("ab") == "AB"

    def test_copy_is_independent(self):
        """Copies do not share rule lists."""
        engine = RuleEngine.from_dsl("@a: /a/ => A")
        copy = engine.copy()
        copy.clear()

        assert len(engine) == 1

    def test_sequence(self):
        """engine1 >> engine2 feeds the output of one phase into the next."""
        markdown = RuleEngine.from_rules(simple_markdown())
        phones = RuleEngine.from_rules([PHONE_NUMBER])

        pipeline = markdown >> phones

        assert isinstance(pipeline, SequencedEngine)
        assert len(pipeline) == 2
        assert pipeline("*+48999999999*") == "<em>+48 999 999 999</em>"

    def test_sequence_chain(self):
        """Sequences chain further."""
        a = RuleEngine.from_dsl("@a: /a/ => b")
        b = RuleEngine.from_dsl("@b: /b/ => c")
        c = RuleEngine.from_dsl("@c: /c/ => d")

        assert (a >> b >> c)("a") == "d"
        assert repr(a >> b >> c) == "SequencedEngine(3 phases)"


class TestReducerFactories:
    """Tests for template and substitution reducers."""

    def test_template_without_placeholder(self):
        """Templates without {} replace the content."""
        assert template_reducer("[removed]")(["secret"]) == "[removed]"

    def test_template_joins_values(self):
        """Children are joined before substitution."""
        assert template_reducer("<{}>")(["a", 1, "b"]) == "<a1b>"

    def test_substitution_first_only(self):
        """Without g only the first occurrence changes."""
        assert substitution_reducer("a", "b")(["aaa"]) == "baa"
