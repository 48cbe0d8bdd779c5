"""Shell configuration parser for backup2surfsara.

Reads the subset of bash used by the backup configuration file:
variable assignments, ``export`` assignments and array assignments,
with single/double quoting and ``$VAR`` expansion.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Set, Union

ShellValue = Union[str, List[str]]

# Characters that may appear in a variable name
NAME_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
ASSIGNMENT_PATTERN = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)=")

# Token kinds
WORD = "word"
OPEN = "("
CLOSE = ")"
NEWLINE = "newline"


class ConfigError(Exception):
    """Base exception for configuration errors."""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class ConfigSyntaxError(ConfigError):
    """Configuration file could not be parsed."""

    def __init__(self, reason: str, line: int):
        self.reason = reason
        self.line = line
        super().__init__(f"Line {line}: {reason}")


@dataclass
class ShellConfig:
    """Result of parsing a shell configuration file."""
    values: Dict[str, ShellValue] = field(default_factory=dict)
    exported: Set[str] = field(default_factory=set)


@dataclass
class _Segment:
    text: str
    quote: str  # "", "'" or '"'


@dataclass
class _Token:
    kind: str
    line: int
    segments: List[_Segment] = field(default_factory=list)

    @property
    def raw(self) -> str:
        return "".join(s.text for s in self.segments)


class ShellConfigParser:
    """Parser for bash-style variable assignment files."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        """
        Initialize the parser.

        Args:
            environ: Variables visible to ``$NAME`` expansion that are not
                assigned in the file itself (usually ``os.environ``)
        """
        self._environ = dict(environ or {})

    def parse(self, text: str) -> ShellConfig:
        """
        Parse configuration text.

        Args:
            text: File contents

        Returns:
            ShellConfig with assigned values and exported names

        Raises:
            ConfigSyntaxError: If the text uses unsupported or broken syntax
        """
        config = ShellConfig()
        tokens = self._tokenize(text)
        pos = 0
        while pos < len(tokens):
            token = tokens[pos]
            if token.kind == NEWLINE:
                pos += 1
                continue
            pos = self._parse_statement(tokens, pos, config)
        return config

    # Statements

    def _parse_statement(self, tokens: List[_Token], pos: int, config: ShellConfig) -> int:
        token = tokens[pos]
        if token.kind != WORD:
            raise ConfigSyntaxError(f"Unexpected '{token.kind}'", token.line)

        export = False
        if token.raw == "export" and self._is_bare(token):
            export = True
            pos += 1
            if pos >= len(tokens) or tokens[pos].kind != WORD:
                raise ConfigSyntaxError("'export' without assignment", token.line)
            token = tokens[pos]

        name, value_token = self._split_assignment(token)
        if name is None:
            if export and self._is_bare(token) and NAME_PATTERN.fullmatch(token.raw):
                # export of an already assigned variable
                config.exported.add(token.raw)
                return self._expect_end(tokens, pos + 1)
            raise ConfigSyntaxError(f"Unsupported statement '{token.raw}'", token.line)

        pos += 1
        if not value_token.segments and pos < len(tokens) and tokens[pos].kind == OPEN:
            items, pos = self._parse_array(tokens, pos + 1, config, token.line)
            config.values[name] = items
        else:
            config.values[name] = self._expand(value_token, config)

        if export:
            config.exported.add(name)
        return self._expect_end(tokens, pos)

    def _parse_array(self, tokens: List[_Token], pos: int, config: ShellConfig, line: int):
        items = []
        while pos < len(tokens):
            token = tokens[pos]
            if token.kind == CLOSE:
                return items, pos + 1
            if token.kind == WORD:
                items.append(self._expand(token, config))
            elif token.kind == OPEN:
                raise ConfigSyntaxError("Nested '(' in array", token.line)
            pos += 1
        raise ConfigSyntaxError("Unterminated array, missing ')'", line)

    def _expect_end(self, tokens: List[_Token], pos: int) -> int:
        if pos < len(tokens) and tokens[pos].kind != NEWLINE:
            token = tokens[pos]
            raise ConfigSyntaxError(f"Unexpected '{token.raw or token.kind}'", token.line)
        return pos + 1

    def _split_assignment(self, token: _Token):
        """Split ``NAME=value`` into the name and a token holding the value."""
        first = token.segments[0]
        if first.quote:
            return None, None
        match = ASSIGNMENT_PATTERN.match(first.text)
        if not match:
            return None, None
        rest = first.text[match.end():]
        segments = ([_Segment(rest, "")] if rest else []) + token.segments[1:]
        return match.group(1), _Token(WORD, token.line, segments)

    @staticmethod
    def _is_bare(token: _Token) -> bool:
        return all(not s.quote for s in token.segments)

    # Expansion

    def _lookup(self, name: str, config: ShellConfig) -> str:
        value = config.values.get(name)
        if value is None:
            return self._environ.get(name, "")
        if isinstance(value, list):
            # $ARRAY expands to the first element in bash
            return value[0] if value else ""
        return value

    def _expand(self, token: _Token, config: ShellConfig) -> str:
        parts = []
        for segment in token.segments:
            if segment.quote == "'":
                parts.append(segment.text)
            else:
                parts.append(self._expand_text(segment.text, config, token.line))
        return "".join(parts)

    def _expand_text(self, text: str, config: ShellConfig, line: int) -> str:
        result = []
        i = 0
        while i < len(text):
            char = text[i]
            if char == "\x00":
                # Escaped character marker from the tokenizer
                result.append(text[i + 1])
                i += 2
                continue
            if char != "$":
                result.append(char)
                i += 1
                continue
            if i + 1 < len(text) and text[i + 1] == "{":
                end = self._closing_brace(text, i + 2)
                if end == -1:
                    raise ConfigSyntaxError("Unterminated '${'", line)
                result.append(self._expand_braced(text[i + 2:end], config, line))
                i = end + 1
                continue
            match = NAME_PATTERN.match(text, i + 1)
            if match:
                result.append(self._lookup(match.group(0), config))
                i = match.end()
            else:
                result.append(char)
                i += 1
        return "".join(result)

    @staticmethod
    def _closing_brace(text: str, start: int) -> int:
        """Index of the '}' closing a '${', skipping nested '${...}'."""
        depth = 1
        i = start
        while i < len(text):
            char = text[i]
            if char == "\x00":
                i += 2
                continue
            if char == "$" and text.startswith("{", i + 1):
                depth += 1
                i += 2
                continue
            if char == "}":
                depth -= 1
                if depth == 0:
                    return i
            i += 1
        return -1

    def _expand_braced(self, expr: str, config: ShellConfig, line: int) -> str:
        match = NAME_PATTERN.match(expr)
        if not match:
            raise ConfigSyntaxError(f"Bad substitution '${{{expr}}}'", line)
        name = match.group(0)
        rest = expr[match.end():]
        value = self._lookup(name, config)
        if not rest:
            return value
        if rest.startswith(":-"):
            return value or self._expand_text(rest[2:], config, line)
        if rest.startswith("-"):
            if name in config.values or name in self._environ:
                return value
            return self._expand_text(rest[1:], config, line)
        raise ConfigSyntaxError(f"Unsupported substitution '${{{expr}}}'", line)

    # Tokenizer

    def _tokenize(self, text: str) -> List[_Token]:
        tokens: List[_Token] = []
        line = 1
        current: Optional[_Token] = None
        i = 0
        length = len(text)

        def flush():
            nonlocal current
            if current is not None:
                tokens.append(current)
                current = None

        def append(char: str, quote: str):
            nonlocal current
            if current is None:
                current = _Token(WORD, line)
            if current.segments and current.segments[-1].quote == quote:
                current.segments[-1].text += char
            else:
                current.segments.append(_Segment(char, quote))

        while i < length:
            char = text[i]

            if char == "\\" and i + 1 < length:
                nxt = text[i + 1]
                i += 2
                if nxt == "\n":
                    line += 1
                    continue
                # \x00 marks the next character as literal for expansion
                append("\x00" + nxt, "")
                continue

            if char == "'":
                start_line = line
                end = text.find("'", i + 1)
                if end == -1:
                    raise ConfigSyntaxError("Unterminated single quote", start_line)
                literal = text[i + 1:end]
                if current is None:
                    current = _Token(WORD, line)
                current.segments.append(_Segment(literal, "'"))
                line += literal.count("\n")
                i = end + 1
                continue

            if char == '"':
                start_line = line
                i += 1
                buf = []
                while True:
                    if i >= length:
                        raise ConfigSyntaxError("Unterminated double quote", start_line)
                    c = text[i]
                    if c == '"':
                        i += 1
                        break
                    if c == "\\" and i + 1 < length and text[i + 1] in '"\\$`\n':
                        if text[i + 1] == "\n":
                            line += 1
                        else:
                            buf.append("\x00" + text[i + 1])
                        i += 2
                        continue
                    if c == "\n":
                        line += 1
                    buf.append(c)
                    i += 1
                if current is None:
                    current = _Token(WORD, start_line)
                current.segments.append(_Segment("".join(buf), '"'))
                continue

            if char == "#" and current is None:
                end = text.find("\n", i)
                i = length if end == -1 else end
                continue

            if char in "\n;":
                flush()
                tokens.append(_Token(NEWLINE, line))
                if char == "\n":
                    line += 1
                i += 1
                continue

            if char in " \t\r":
                flush()
                i += 1
                continue

            if char in "()":
                flush()
                tokens.append(_Token(char, line))
                i += 1
                continue

            append(char, "")
            i += 1

        flush()
        return tokens


def parse_shell_config(text: str, environ: Optional[Mapping[str, str]] = None) -> ShellConfig:
    """Parse shell configuration text with the given environment."""
    return ShellConfigParser(environ).parse(text)
