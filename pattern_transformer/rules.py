"""
Ready-made rule sets for pattern-transformer.

simple_markdown() turns a small markdown subset into HTML. The formatter
rules normalize numbers and addresses found in free text; they are terminal,
so nothing inside a formatted span is matched again.

Example:
    from pattern_transformer import transform
    from pattern_transformer.rules import simple_markdown, PHONE_NUMBER

    transform("**Call +48999999999**", simple_markdown(PHONE_NUMBER))
    # => "<strong>Call +48 999 999 999</strong>"
"""

import re
from typing import Dict, List

from .transform import Rule, join, wrap


# ============================================================
# Markdown
# ============================================================

def _link(values: List) -> str:
    return re.sub(r"\[(.*?)\]\((.*?)\)", r'<a href="\2">\1</a>', join(values), count=1)


def _image(values: List) -> str:
    return re.sub(r"!\[(.*?)\]\((.*?)\)", r'<img src="\2" alt="\1">', join(values), count=1)


def simple_markdown(*additional: Rule) -> List[Rule]:
    """
    Markdown subset: headers 1-4, bold, italic, links, images and code.

    Code spans and blocks are terminal. Additional rules are appended after
    the markdown rules, so markdown wins payload-length ties.
    """
    base = [
        Rule(re.compile(r"^# (.*)$", re.M), 1, wrap("<h1>", "</h1>"), name="h1"),
        Rule(re.compile(r"^## (.*)$", re.M), 1, wrap("<h2>", "</h2>"), name="h2"),
        Rule(re.compile(r"^### (.*)$", re.M), 1, wrap("<h3>", "</h3>"), name="h3"),
        Rule(re.compile(r"^#### (.*)$", re.M), 1, wrap("<h4>", "</h4>"), name="h4"),
        Rule(re.compile(r"\*\*(.*?)\*\*"), 1, wrap("<strong>", "</strong>"), name="bold"),
        Rule(re.compile(r"\*(.*?)\*"), 1, wrap("<em>", "</em>"), name="italic"),
        Rule(re.compile(r"\[(.*?)\]\((.*?)\)"), 0, _link, name="link"),
        Rule(re.compile(r"!\[(.*?)\]\((.*?)\)"), 0, _image, name="image"),
        Rule(re.compile(r"```([\s\S]*?)```"), 1, wrap("<pre><code>", "</code></pre>"),
             terminal=True, name="code-block"),
        Rule(re.compile(r"`([^`]+)`"), 1, wrap("<code>", "</code>"),
             terminal=True, name="code"),
    ]
    return base + list(additional)


# ============================================================
# Text Formatters
# ============================================================

def _phone_number(values: List) -> str:
    cleaned = re.sub(r"[-.\s]", " ", join(values))
    cleaned = re.sub(r"\((.*?)\)", r"\1", cleaned)
    # Group digits when the number had no separators
    return re.sub(r"(\+?\d{1,3})(\d{3})(\d{3})(\d{3})", r"\1 \2 \3 \4", cleaned, count=1)


def _every_four(values: List) -> str:
    return re.sub(r"(.{4})", r"\1 ", join(values)).strip()


def _gps(values: List) -> str:
    lat, lon = join(values).split(",")
    return f"{lat}° N, {lon}° E"


def _url_to_link(values: List) -> str:
    url = join(values)
    if not url.startswith("http"):
        url = f"https://{url}"
    return f'<a href="{url}">{url}</a>'


def _email_to_link(values: List) -> str:
    email = join(values).lower().strip()
    return f'<a href="mailto:{email}">{email}</a>'


def _digits(pattern: str, replacement: str):
    def reducer(values: List) -> str:
        return re.sub(pattern, replacement, join(values), count=1)
    return reducer


# "+1 (123) 456-7890" => "+1 123 456 7890", "+48999999999" => "+48 999 999 999"
PHONE_NUMBER = Rule(
    re.compile(r"\+?\d{1,3}[-.\s]?\(?\d{1,4}\)?[-.\s]?\d{1,4}[-.\s]?\d{1,4}[-.\s]?\d{1,9}"),
    0, _phone_number, terminal=True, name="phone-number")

# "GB29NWBK60161331926819" => "GB29 NWBK 6016 1331 9268 19"
IBAN = Rule(re.compile(r"[A-Z]{2}\d{2}[A-Z0-9]{1,30}"), 0, _every_four,
            terminal=True, name="iban")

# "1234567812345678" => "1234 5678 1234 5678"
CREDIT_CARD = Rule(re.compile(r"\d{16}"), 0, _every_four,
                   terminal=True, name="credit-card")

# "192168001001" => "192.168.001.001"
IP_ADDRESS = Rule(re.compile(r"\d{12}"), 0,
                  _digits(r"(\d{3})(\d{3})(\d{3})(\d{3})", r"\1.\2.\3.\4"),
                  terminal=True, name="ip-address")

# "12345678901" => "123-456-789-01"
PESEL = Rule(re.compile(r"\d{11}"), 0,
             _digits(r"(\d{3})(\d{3})(\d{3})(\d{2})", r"\1-\2-\3-\4"),
             terminal=True, name="pesel")

# "1234567890" => "123-456-78-90"
NIP = Rule(re.compile(r"\d{10}"), 0,
           _digits(r"(\d{3})(\d{3})(\d{2})(\d{2})", r"\1-\2-\3-\4"),
           terminal=True, name="nip")

# "12345" => "12-345"
POSTAL_CODE = Rule(re.compile(r"\d{5}"), 0, _digits(r"(\d{2})(\d{3})", r"\1-\2"),
                   terminal=True, name="postal-code")

# "52.2296756,21.0122287" => "52.2296756° N, 21.0122287° E"
GPS = Rule(re.compile(r"\b-?\d+\.\d+,-?\d+\.\d+\b"), 0, _gps,
           terminal=True, name="gps")

# "Example@Domain.com" => "example@domain.com"
EMAIL_TO_LOWER = Rule(
    re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), 0,
    lambda values: join(values).lower().strip(),
    terminal=True, name="email-to-lower")

# "www.example.com" => '<a href="https://www.example.com">https://www.example.com</a>'
URL_TO_LINK = Rule(
    re.compile(r"\b(?:https?://)?[A-Za-z0-9.-]+\.[A-Za-z]{2,}(/[^\s]*)?\b"), 0,
    _url_to_link, terminal=True, name="url-to-link")

# "Me@Domain.com" => '<a href="mailto:me@domain.com">me@domain.com</a>'
EMAIL_TO_LINK = Rule(
    re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), 0,
    _email_to_link, terminal=True, name="email-to-link")

FORMATTERS: List[Rule] = [
    PHONE_NUMBER, IBAN, CREDIT_CARD, IP_ADDRESS, PESEL, NIP, POSTAL_CODE,
    GPS, EMAIL_TO_LOWER, URL_TO_LINK, EMAIL_TO_LINK,
]

# Built-in rule sets, by name
BUILTIN_RULESETS: Dict[str, List[Rule]] = {
    "none": [],
    "markdown": simple_markdown(),
    "formatters": FORMATTERS,
    "full": simple_markdown(PHONE_NUMBER, IBAN),
}
