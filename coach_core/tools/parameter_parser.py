import re
from typing import Dict, Tuple

_KEY_PATTERN = re.compile(r"(\w+)\s*:\s*")
_OPENERS = {"{": "}", "[": "]"}


class ToolParameterParser:
    """
    Parses the parameter string of a tool call into a flat string map.

    Grammar, applied left to right:

        params := pair ("," pair)*
        pair   := key ":" value
        key    := \\w+
        value  := quoted | bracketed | bare

    - quoted: starts with `"`. `\\"` and `\\\\` are unescaped, any other
      backslash sequence is kept verbatim. A `"` closes the value only when it
      is followed by optional whitespace and then `,` or the end of input;
      otherwise it is literal text. When the quoted text opens with `{` or `[`
      the closing quote must also balance those brackets, so unescaped JSON
      survives.
    - bracketed: starts with `{` or `[` and runs to the balanced closing
      bracket (string-aware). The raw text, brackets included, is the value.
    - bare: everything up to the next comma, whitespace-trimmed.

    Segments that do not start with a key are skipped.
    """

    def parse(self, params_str: str) -> Dict[str, str]:
        text = params_str.strip()
        parameters: Dict[str, str] = {}
        pos = 0
        while pos < len(text):
            pos = self._skip_separators(text, pos)
            if pos >= len(text):
                break
            key_match = _KEY_PATTERN.match(text, pos)
            if key_match is None:
                pos = self._skip_segment(text, pos)
                continue
            value, pos = self._read_value(text, key_match.end())
            parameters[key_match.group(1)] = value
        return parameters

    @staticmethod
    def _skip_separators(text: str, pos: int) -> int:
        while pos < len(text) and (text[pos].isspace() or text[pos] == ","):
            pos += 1
        return pos

    @staticmethod
    def _skip_segment(text: str, pos: int) -> int:
        in_quotes = False
        while pos < len(text):
            char = text[pos]
            if char == '"':
                in_quotes = not in_quotes
            elif char == "," and not in_quotes:
                return pos
            pos += 1
        return pos

    def _read_value(self, text: str, pos: int) -> Tuple[str, int]:
        if pos >= len(text):
            return "", pos
        char = text[pos]
        if char == '"':
            return self._read_quoted(text, pos)
        if char in _OPENERS:
            return self._read_bracketed(text, pos)
        return self._read_bare(text, pos)

    @staticmethod
    def _closes_value(text: str, pos: int) -> bool:
        """True if only whitespace separates `pos` from a comma or the end."""
        while pos < len(text) and text[pos].isspace():
            pos += 1
        return pos >= len(text) or text[pos] == ","

    def _read_quoted(self, text: str, pos: int) -> Tuple[str, int]:
        buffer = []
        depth = 0
        is_structured = pos + 1 < len(text) and text[pos + 1] in _OPENERS
        i = pos + 1
        while i < len(text):
            char = text[i]
            if char == "\\" and i + 1 < len(text):
                following = text[i + 1]
                buffer.append(following if following in ('"', "\\") else char + following)
                i += 2
                continue
            if char == '"' and self._closes_value(text, i + 1) and (not is_structured or depth <= 0):
                return "".join(buffer), i + 1
            if char in "{[":
                depth += 1
            elif char in "}]":
                depth -= 1
            buffer.append(char)
            i += 1
        # Unterminated quote: the rest of the input is the value.
        return "".join(buffer), len(text)

    def _read_bracketed(self, text: str, pos: int) -> Tuple[str, int]:
        depth = 0
        in_string = False
        escaped = False
        i = pos
        while i < len(text):
            char = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char in "{[":
                depth += 1
            elif char in "}]":
                depth -= 1
                if depth == 0:
                    return text[pos : i + 1], self._skip_segment(text, i + 1)
            i += 1
        return text[pos:].strip(), len(text)

    def _read_bare(self, text: str, pos: int) -> Tuple[str, int]:
        end = self._skip_segment(text, pos)
        return text[pos:end].strip(), end
