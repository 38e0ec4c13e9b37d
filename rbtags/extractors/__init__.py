"""Parser and visitor collaborators that turn source text into tags."""

from rbtags.extractors.ruby import RubyParser, SyntaxNode, TagVisitor, scan_lines

__all__ = ["RubyParser", "SyntaxNode", "TagVisitor", "scan_lines"]
