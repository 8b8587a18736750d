#!/usr/bin/env python3
"""
pattern-transformer Command-Line Interface

Provides interactive REPL, script execution, and pipe/filter modes.

Usage:
    pattern-transformer                            # Start REPL
    pattern-transformer script.ptx                 # Run script
    pattern-transformer -s markdown -e "**hi**"    # Transform text
    pattern-transformer -r my.rules                # REPL with rules preloaded
    pattern-transformer -s markdown -t -e "**hi**" # Print the match tree
    cat notes.md | pattern-transformer -s markdown # Filter mode

Script Format (.ptx files):
    #!/usr/bin/env pattern-transformer
    ; lines starting with a semicolon are comments
    :ruleset markdown
    :load extra.rules

    @shout: /!!(.*?)!!/:1 => <mark>{}</mark>

    # Notes
    Some **strong text** and !!hi!! text

REPL Commands:
    :help              Show help
    :load FILE         Load rules from file
    :rules             List loaded rules
    :clear             Clear all rules
    :ruleset NAME      Add a rule set (markdown, formatters, full, none, or path)
    :tree on|off       Toggle printing the match tree
    :groups            Show groups
    :enable GROUP      Enable group
    :disable GROUP     Disable group
    :quit              Exit
"""

import argparse
import importlib.util
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .engine import RuleEngine, load_rules_from_dsl
from .errors import PatternTransformerError
from .rules import BUILTIN_RULESETS
from .transform import DEFAULT_MAX_DEPTH, Rule, format_tree

# readline improves the REPL but is not available everywhere
try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False

logger = logging.getLogger(__name__)

# Standard rule set search paths
RULESET_SEARCH_PATHS = [
    Path("./rulesets"),
    Path.home() / ".config" / "pattern-transformer" / "rulesets",
]


def load_custom_ruleset(name_or_path: str) -> Optional[List[Rule]]:
    """
    Load a custom rule set from a Python file.

    The file should define a RULES list.

    Args:
        name_or_path: Either a path to a .py file, or a name to search for

    Returns:
        The RULES list from the file, or None if not found
    """
    path = Path(name_or_path)

    if path.suffix == ".py" or "/" in name_or_path or "\\" in name_or_path:
        if not path.exists():
            return None
        search_paths = [path]
    else:
        search_paths = []
        for search_dir in RULESET_SEARCH_PATHS:
            candidate = search_dir / f"{name_or_path}.py"
            if candidate.exists():
                search_paths.append(candidate)

    for ruleset_path in search_paths:
        spec = importlib.util.spec_from_file_location("custom_ruleset", ruleset_path)
        if spec and spec.loader:
            module = importlib.util.module_from_spec(spec)
            spec.loader.exec_module(module)
            if hasattr(module, "RULES"):
                logger.debug("Loaded rule set from %s", ruleset_path)
                return list(module.RULES)

    return None


class TransformerREPL:
    """Interactive REPL for pattern-transformer."""

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        self.engine = RuleEngine(max_depth=max_depth)
        self.show_tree = False
        self.running = True

        if HAS_READLINE:
            self.history_file = Path.home() / ".pattern_transformer_history"
            try:
                readline.read_history_file(self.history_file)
            except OSError:
                pass
            readline.set_history_length(1000)

    def save_history(self):
        """Save readline history."""
        if HAS_READLINE:
            try:
                readline.write_history_file(self.history_file)
            except OSError as e:
                logger.debug("Could not save history: %s", e)

    def add_ruleset(self, name: str) -> bool:
        """Append a built-in or custom rule set to the engine."""
        name_lower = name.lower()

        if name_lower in BUILTIN_RULESETS:
            self.engine.load_rules(BUILTIN_RULESETS[name_lower])
            return True

        custom = load_custom_ruleset(name)
        if custom is not None:
            self.engine.load_rules(custom)
            return True

        return False

    def handle_command(self, line: str) -> Optional[str]:
        """
        Handle a REPL command (starts with :).

        Returns a message to print, or None.
        """
        parts = line[1:].split(None, 1)
        if not parts:
            return "Unknown command. Type :help for help."

        cmd = parts[0].lower()
        arg = parts[1] if len(parts) > 1 else ""

        if cmd == "help":
            return self.help_text()

        elif cmd in ("quit", "exit", "q"):
            self.running = False
            return None

        elif cmd == "load":
            if not arg:
                return "Usage: :load FILENAME"
            try:
                path = Path(arg)
                before = len(self.engine)
                self.engine.load_file(path)
                return f"Loaded {len(self.engine) - before} rules from {path}"
            except (OSError, ValueError) as e:
                return f"Error loading {arg}: {e}"

        elif cmd == "rules":
            rules = self.engine.list_rules()
            if not rules:
                return "No rules loaded"
            return "\n".join(rules)

        elif cmd == "clear":
            self.engine.clear()
            return "Cleared all rules"

        elif cmd == "ruleset":
            if not arg:
                available = ", ".join(BUILTIN_RULESETS.keys())
                return f"Usage: :ruleset NAME\nAvailable: {available}\nOr provide a path to a .py file"
            try:
                if self.add_ruleset(arg):
                    return f"Added rule set: {arg}"
            except (OSError, SyntaxError, PatternTransformerError) as e:
                return f"Error loading rule set {arg}: {e}"
            return f"Unknown rule set: {arg}"

        elif cmd == "tree":
            if arg.lower() in ("on", "true", "1"):
                self.show_tree = True
            elif arg.lower() in ("off", "false", "0"):
                self.show_tree = False
            else:
                self.show_tree = not self.show_tree
            return f"Tree output {'enabled' if self.show_tree else 'disabled'}"

        elif cmd == "groups":
            groups = self.engine.groups()
            if not groups:
                return "No groups defined"
            return "Groups: " + ", ".join(sorted(groups))

        elif cmd == "enable":
            if not arg:
                return "Usage: :enable GROUP"
            self.engine.enable_group(arg)
            return f"Enabled group: {arg}"

        elif cmd == "disable":
            if not arg:
                return "Usage: :disable GROUP"
            self.engine.disable_group(arg)
            return f"Disabled group: {arg}"

        else:
            return f"Unknown command: {cmd}. Type :help for help."

    def help_text(self) -> str:
        """Return help text."""
        return """pattern-transformer REPL Commands:
  :help              Show this help
  :load FILE         Load rules from file (.rules or .json)
  :rules             List all loaded rules
  :clear             Clear all rules
  :ruleset NAME      Add a rule set (markdown, formatters, full, none, or path.py)
  :tree on|off       Toggle printing the match tree
  :groups            Show all groups
  :enable GROUP      Enable a group
  :disable GROUP     Disable a group
  :quit              Exit

Syntax:
  @name: /regex/flags => template          Define a rule ({} = matched content)
  @name: /regex/:1 => template stop        Payload from group 1, no nested matches
  @name: /regex/ => s/regex/repl/g         Rewrite the matched content
  ; comment                                Ignored
  any other line                           Transform the line
"""

    def is_rule_line(self, line: str) -> bool:
        return (line.startswith("@") or line.startswith("/")) and "=>" in line

    def process_line(self, line: str) -> Optional[str]:
        """
        Process a single line of input.

        Returns the result to print, or None.
        """
        stripped = line.strip()

        if not stripped or stripped.startswith(";"):
            return None

        if stripped.startswith(":"):
            return self.handle_command(stripped)

        if self.is_rule_line(stripped):
            try:
                parsed = load_rules_from_dsl(stripped)
            except PatternTransformerError as e:
                return f"Error: {e}"
            if not parsed:
                return "Failed to parse rule"
            self.engine.load_rules(parsed)
            return f"Added {len(parsed)} rule(s)"

        return self.transform_text(line)

    def transform_text(self, text: str) -> str:
        """Transform text, or describe its tree when tree output is on."""
        try:
            if self.show_tree:
                return format_tree(self.engine.tree(text))
            return str(self.engine(text))
        except PatternTransformerError as e:
            return f"Error: {e}"

    def run(self):
        """Run the REPL loop."""
        print("pattern-transformer - regex rule trees")
        print("Type :help for help, :quit to exit")
        print()

        while self.running:
            try:
                line = input("ptx> ")
                result = self.process_line(line)
                if result:
                    print(result)
            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                print()
                continue

        self.save_history()


class ScriptRunner:
    """Runs pattern-transformer scripts and one-shot transformations."""

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH, tree_json: bool = False):
        self.repl = TransformerREPL(max_depth=max_depth)
        self.tree_json = tree_json

    def render(self, text: str) -> str:
        """Transform text, or dump its match tree as JSON or as an outline."""
        if self.tree_json:
            return json.dumps(self.repl.engine.tree(text).to_dict(), indent=2, ensure_ascii=False)
        if self.repl.show_tree:
            return format_tree(self.repl.engine.tree(text))
        return str(self.repl.engine(text))

    def run_script(self, path: Path, quiet: bool = False) -> int:
        """
        Run a script file.

        Args:
            path: Path to the script
            quiet: If True, don't print transformed lines

        Returns:
            Exit code (0 for success)
        """
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            print(f"Error reading {path}: {e}", file=sys.stderr)
            return 1

        current_group = None

        for lineno, line in enumerate(lines, 1):
            stripped = line.strip()

            # Skip empty lines, comments, and shebang
            if not stripped or stripped.startswith(";"):
                continue
            if lineno == 1 and stripped.startswith("#!"):
                continue

            if stripped.startswith(":"):
                result = self.repl.handle_command(stripped)
                if result and ("Error" in result or "Unknown" in result):
                    print(f"{path}:{lineno}: {result}", file=sys.stderr)
                    return 1
                continue

            if stripped.startswith("[") and stripped.endswith("]"):
                current_group = stripped[1:-1].strip()
                continue

            if self.repl.is_rule_line(stripped):
                if current_group:
                    stripped = f"[{current_group}]\n{stripped}"
                try:
                    self.repl.engine.load_rules(load_rules_from_dsl(stripped))
                except PatternTransformerError as e:
                    print(f"{path}:{lineno}: Error: {e}", file=sys.stderr)
                    return 1
                continue

            try:
                result = self.render(line)
            except PatternTransformerError as e:
                print(f"{path}:{lineno}: Error: {e}", file=sys.stderr)
                return 1
            if not quiet:
                print(result)

        return 0

    def run_text(self, text: str) -> int:
        """
        Transform a single text.

        Returns:
            Exit code (0 for success)
        """
        try:
            print(self.render(text))
        except PatternTransformerError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        return 0

    def run_stdin(self) -> int:
        """
        Transform all of stdin as one text.

        Returns:
            Exit code (0 for success)
        """
        text = sys.stdin.read()
        try:
            sys.stdout.write(self.render(text))
        except PatternTransformerError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        return 0


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="pattern-transformer",
        description="pattern-transformer - transform text with recursive regex rules",
        epilog="Examples:\n"
               "  pattern-transformer                              Start REPL\n"
               "  pattern-transformer script.ptx                   Run script\n"
               "  pattern-transformer -s markdown -e '**hi**'      Transform text\n"
               "  pattern-transformer -r my.rules                  REPL with rules\n"
               "  cat notes.md | pattern-transformer -s markdown   Filter mode\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "script",
        nargs="?",
        help="Script file to run (.ptx)"
    )

    parser.add_argument(
        "-r", "--rules",
        action="append",
        default=[],
        help="Load rules from file (can be specified multiple times)"
    )

    parser.add_argument(
        "-e", "--text",
        help="Transform a single text"
    )

    parser.add_argument(
        "-s", "--ruleset",
        action="append",
        default=[],
        help="Add a rule set (markdown, formatters, full, none, or path.py); repeatable"
    )

    parser.add_argument(
        "-t", "--tree",
        action="store_true",
        help="Print the match tree as JSON instead of the result"
    )

    parser.add_argument(
        "--max-depth",
        type=int,
        default=DEFAULT_MAX_DEPTH,
        help=f"Maximum nesting of recursive matches (default: {DEFAULT_MAX_DEPTH})"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log rule matching to stderr"
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Quiet mode (suppress non-essential output)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    runner = ScriptRunner(max_depth=args.max_depth, tree_json=args.tree)

    for name in args.ruleset:
        try:
            found = runner.repl.add_ruleset(name)
        except (OSError, SyntaxError, PatternTransformerError) as e:
            print(f"Error loading rule set {name}: {e}", file=sys.stderr)
            sys.exit(1)
        if not found:
            print(f"Unknown rule set: {name}", file=sys.stderr)
            sys.exit(1)

    for rules_file in args.rules:
        try:
            runner.repl.engine.load_file(Path(rules_file))
            if not args.quiet:
                print(f"Loaded rules from {rules_file}", file=sys.stderr)
        except (OSError, ValueError) as e:
            print(f"Error loading {rules_file}: {e}", file=sys.stderr)
            sys.exit(1)

    if args.script:
        sys.exit(runner.run_script(Path(args.script), quiet=args.quiet))

    elif args.text is not None:
        sys.exit(runner.run_text(args.text))

    elif not sys.stdin.isatty():
        sys.exit(runner.run_stdin())

    else:
        runner.repl.show_tree = args.tree
        runner.repl.run()


if __name__ == "__main__":
    main()
