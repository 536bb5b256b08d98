"""AST node contract for parsed templates.

The parser lives outside this package; it produces these immutable nodes
and hands them over wrapped in Tree objects. The interpreter only reads
them.

Node Categories:
    Statements: NodeList, Text, Action, If, With, Range, TemplateCall,
        Wrap, Arg, Callback
    Arguments: Pipeline, Command, VarDecl, Field, Chain, Variable,
        Identifier, Dot, Const, Factory, BinOp

"""

from weft.nodes.arguments import (
    BinOp,
    Chain,
    Command,
    Const,
    Dot,
    Expr,
    Factory,
    Field,
    Identifier,
    Pipeline,
    VarDecl,
    Variable,
)
from weft.nodes.base import Node
from weft.nodes.statements import (
    Action,
    Arg,
    Callback,
    If,
    NodeList,
    Range,
    TemplateCall,
    Text,
    With,
    Wrap,
)
from weft.nodes.tree import Tree, is_empty_tree

__all__ = [
    "Action",
    "Arg",
    "BinOp",
    "Callback",
    "Chain",
    "Command",
    "Const",
    "Dot",
    "Expr",
    "Factory",
    "Field",
    "Identifier",
    "If",
    "Node",
    "NodeList",
    "Pipeline",
    "Range",
    "TemplateCall",
    "Text",
    "Tree",
    "VarDecl",
    "Variable",
    "With",
    "Wrap",
    "is_empty_tree",
]
