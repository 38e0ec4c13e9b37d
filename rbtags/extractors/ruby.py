"""Line-oriented Ruby definition scanner and tag visitor.

Limitations:
- No full Ruby grammar; one construct is recognized per line
- Brace blocks and multi-line string literals other than heredocs are not tracked
- Dynamically defined methods (define_method, method_missing) are not reported
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterator, Literal

from models import Tag
from rbtags.errors import ParseError

LineKind = Literal[
    "class",
    "singleton_class",
    "module",
    "def",
    "constant",
    "attr",
    "alias",
    "block_open",
    "end",
    "other",
]

CLASS_RE = re.compile(r"^class\s+(?P<name>(?:::)?[A-Z]\w*(?:::[A-Z]\w*)*)")
SINGLETON_CLASS_RE = re.compile(r"^class\s*<<\s*self\b")
MODULE_RE = re.compile(r"^module\s+(?P<name>(?:::)?[A-Z]\w*(?:::[A-Z]\w*)*)")
VISIBILITY_PREFIX_RE = re.compile(r"^(?:private|protected|public|module_function)\s+(?=def\b)")
DEF_RE = re.compile(
    r"^def\s+(?:(?P<receiver>self)\.)?"
    r"(?P<name>[A-Za-z_]\w*[?!=]?|\[\]=?|[-+*/%<>=!~^&|]+@?)"
)
ENDLESS_DEF_RE = re.compile(
    r"^def\s+(?:self\.)?[A-Za-z_]\w*[?!]?(?:\([^)]*\)\s*|\s+)=(?![=~>])"
)
CONSTANT_RE = re.compile(r"^(?P<name>[A-Z]\w*)\s*=(?![=~>])")
ATTR_RE = re.compile(r"^(?P<name>attr_reader|attr_writer|attr_accessor)\b\s*\(?(?P<args>.*)")
ATTR_SYMBOL_RE = re.compile(r""":(\w+)|['"](\w+)['"]""")
ALIAS_RE = re.compile(r"^alias\s+:?(?P<new>[^\s:]+)\s+:?(?P<old>[^\s]+)")
ALIAS_METHOD_RE = re.compile(
    r"""^alias_method\s*\(?\s*[:'"](?P<new>[^,'"\s]+)['"]?\s*,\s*[:'"](?P<old>[^'"\s)]+)"""
)
KEYWORD_OPEN_RE = re.compile(r"^(?:if|unless|while|until|case|begin|for)\b(?!:)")
ASSIGNED_OPEN_RE = re.compile(r"=\s*(?:if|unless|while|until|case|begin)\b")
DO_BLOCK_RE = re.compile(r"\bdo(?:\s*\|[^|]*\|)?$")
END_RE = re.compile(r"^end\b(?!:)")
ONE_LINE_END_RE = re.compile(r"(?:;|\s)end$")
TRAILING_COMMENT_RE = re.compile(r"\s+#(?!\{).*$")
HEREDOC_RE = re.compile(r"""<<[~-]?(['"]?)(?P<id>[A-Z_][A-Z0-9_]*)\1""")


@dataclass(frozen=True)
class LineToken:
    """One recognized source line."""

    line: int
    kind: LineKind
    text: str
    name: str | None = None
    receiver: str | None = None
    symbols: tuple[str, ...] = ()
    opens_scope: bool = False


@dataclass
class SyntaxNode:
    """Node of the definition tree built by :class:`RubyParser`."""

    kind: str
    line: int
    name: str | None = None
    receiver: str | None = None
    symbols: tuple[str, ...] = ()
    children: list[SyntaxNode] = field(default_factory=list)


def _opens_block(text: str) -> bool:
    if ONE_LINE_END_RE.search(text):
        return False
    return bool(
        KEYWORD_OPEN_RE.search(text) or ASSIGNED_OPEN_RE.search(text) or DO_BLOCK_RE.search(text)
    )


def _classify(line_no: int, text: str) -> LineToken:
    """Classify one comment-free, stripped line."""
    one_liner = ONE_LINE_END_RE.search(text) is not None

    if SINGLETON_CLASS_RE.search(text):
        return LineToken(line_no, "singleton_class", text, opens_scope=not one_liner)

    class_match = CLASS_RE.search(text)
    if class_match:
        name = class_match.group("name").lstrip(":")
        return LineToken(line_no, "class", text, name=name, opens_scope=not one_liner)

    module_match = MODULE_RE.search(text)
    if module_match:
        name = module_match.group("name").lstrip(":")
        return LineToken(line_no, "module", text, name=name, opens_scope=not one_liner)

    definition = VISIBILITY_PREFIX_RE.sub("", text)
    def_match = DEF_RE.search(definition)
    if def_match:
        opens_scope = not one_liner and not ENDLESS_DEF_RE.search(definition)
        return LineToken(
            line_no,
            "def",
            text,
            name=def_match.group("name"),
            receiver=def_match.group("receiver"),
            opens_scope=opens_scope,
        )

    if END_RE.search(text):
        return LineToken(line_no, "end", text)

    constant_match = CONSTANT_RE.search(text)
    if constant_match:
        return LineToken(
            line_no,
            "constant",
            text,
            name=constant_match.group("name"),
            opens_scope=_opens_block(text),
        )

    attr_match = ATTR_RE.search(text)
    if attr_match:
        symbols = tuple(
            symbol or quoted for symbol, quoted in ATTR_SYMBOL_RE.findall(attr_match.group("args"))
        )
        return LineToken(line_no, "attr", text, name=attr_match.group("name"), symbols=symbols)

    alias_match = ALIAS_METHOD_RE.search(text) or ALIAS_RE.search(text)
    if alias_match:
        return LineToken(
            line_no,
            "alias",
            text,
            name=alias_match.group("new"),
            symbols=(alias_match.group("old"),),
        )

    if _opens_block(text):
        return LineToken(line_no, "block_open", text, opens_scope=True)

    return LineToken(line_no, "other", text)


def scan_lines(contents: str) -> list[LineToken]:
    """Classify every significant line of a Ruby source file.

    Blank lines, comments, ``=begin``/``=end`` documentation, heredoc bodies
    and anything after ``__END__`` are skipped.
    """
    tokens: list[LineToken] = []
    in_doc_block = False
    heredoc_terminators: list[str] = []

    for line_no, raw_line in enumerate(contents.splitlines(), start=1):
        if in_doc_block:
            if raw_line.startswith("=end"):
                in_doc_block = False
            continue
        if heredoc_terminators:
            if raw_line.strip() == heredoc_terminators[0]:
                heredoc_terminators.pop(0)
            continue
        if raw_line.startswith("=begin"):
            in_doc_block = True
            continue
        if raw_line.rstrip() == "__END__":
            break

        text = TRAILING_COMMENT_RE.sub("", raw_line.strip())
        if not text or text.startswith("#"):
            continue

        heredoc_terminators.extend(match.group("id") for match in HEREDOC_RE.finditer(text))
        tokens.append(_classify(line_no, text))

    return tokens


class RubyParser:
    """Builds a definition tree from Ruby source."""

    def parse(self, contents: str, filename: str) -> SyntaxNode:
        root = SyntaxNode(kind="program", line=0, name=filename)
        stack: list[SyntaxNode] = [root]

        for token in scan_lines(contents):
            if token.kind == "other":
                continue
            if token.kind == "end":
                if len(stack) == 1:
                    raise ParseError(f"unexpected 'end' on line {token.line}", line=token.line)
                stack.pop()
                continue

            node = SyntaxNode(
                kind="block" if token.kind == "block_open" else token.kind,
                line=token.line,
                name=token.name,
                receiver=token.receiver,
                symbols=token.symbols,
            )
            stack[-1].children.append(node)
            if token.opens_scope:
                stack.append(node)

        if len(stack) > 1:
            unclosed = stack[-1]
            raise ParseError(
                f"missing 'end' for {unclosed.kind} opened on line {unclosed.line}",
                line=unclosed.line,
            )
        return root


class TagVisitor:
    """Turns a definition tree into tags for one file."""

    def __init__(self, tree: SyntaxNode, filename: str, contents: str) -> None:
        self.tree = tree
        self.filename = filename
        self._lines = contents.splitlines()
        self._tags: list[Tag] | None = None

    def tags(self) -> list[Tag]:
        if self._tags is None:
            self._tags = list(self._visit(self.tree.children, (), singleton=False))
        return self._tags

    def _source_line(self, line_no: int) -> str:
        if 0 < line_no <= len(self._lines):
            return self._lines[line_no - 1].rstrip()
        return ""

    def _make_tag(
        self,
        node: SyntaxNode,
        name: str,
        kind: str,
        full_name: str,
        owner: tuple[str, ...],
    ) -> Tag:
        return Tag(
            name=name,
            kind=kind,  # type: ignore[arg-type]
            path=self.filename,
            line=node.line,
            pattern=self._source_line(node.line),
            full_name=full_name,
            class_name="::".join(owner) or None,
        )

    def _visit(
        self,
        nodes: list[SyntaxNode],
        namespace: tuple[str, ...],
        singleton: bool,
    ) -> Iterator[Tag]:
        owner_name = "::".join(namespace)

        for node in nodes:
            if node.kind in {"class", "module"} and node.name:
                parts = tuple(node.name.split("::"))
                scope = namespace + parts
                yield self._make_tag(node, parts[-1], node.kind, "::".join(scope), scope[:-1])
                yield from self._visit(node.children, scope, singleton=False)

            elif node.kind == "singleton_class":
                yield from self._visit(node.children, namespace, singleton=True)

            elif node.kind == "def" and node.name:
                is_singleton = singleton or node.receiver == "self"
                separator = "." if is_singleton else "#"
                full_name = f"{owner_name}{separator}{node.name}" if owner_name else node.name
                kind = "singleton method" if is_singleton else "method"
                yield self._make_tag(node, node.name, kind, full_name, namespace)

            elif node.kind == "constant" and node.name:
                scope = namespace + (node.name,)
                yield self._make_tag(node, node.name, "constant", "::".join(scope), namespace)
                yield from self._visit(node.children, scope, singleton=False)

            elif node.kind == "attr" and node.name:
                for symbol in node.symbols:
                    full_name = f"{owner_name}#{symbol}" if owner_name else symbol
                    yield self._make_tag(node, symbol, node.name, full_name, namespace)

            elif node.kind == "alias" and node.name:
                full_name = f"{owner_name}#{node.name}" if owner_name else node.name
                yield self._make_tag(node, node.name, "alias", full_name, namespace)

            elif node.kind == "block":
                yield from self._visit(node.children, namespace, singleton)
