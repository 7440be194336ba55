import re
from html import escape
from typing import Any, List, Mapping

from .exceptions import TemplateCompileError

# {{{ name }}} inserts raw markup, {{ name }} inserts escaped text
TOKEN_PATTERN = re.compile(r"{{{\s*([A-Za-z0-9_]+)\s*}}}|{{\s*([A-Za-z0-9_]+)\s*}}")
BLOCK_PATTERN = re.compile(
    r"{{\s*(?:#\s*(if|unless)(?:\s+([A-Za-z0-9_]+))?|(else)|/\s*(if|unless))\s*}}"
)
# context values are flat scalars, so there is nothing to iterate or scope into
UNSUPPORTED_BLOCK_PATTERN = re.compile(r"{{\s*[#/]\s*(each|with)\b")


class _Block:
    def __init__(self, helper: str, name: str):
        self.helper = helper
        self.name = name
        self.body: List[Any] = []
        self.inverse: List[Any] = []
        self.branch = self.body


def parse_blocks(html_content: str) -> List[Any]:
    """
    Split ``html_content`` into text and ``{{#if}}``/``{{#unless}}`` blocks.

    Raises TemplateCompileError for unbalanced tags, a block without a field,
    or the ``each``/``with`` helpers.
    """
    unsupported = UNSUPPORTED_BLOCK_PATTERN.search(html_content)
    if unsupported:
        raise TemplateCompileError(f'The "{unsupported.group(1)}" block helper is not supported')

    root = _Block("", "")
    stack = [root]
    pos = 0
    for match in BLOCK_PATTERN.finditer(html_content):
        stack[-1].branch.append(html_content[pos:match.start()])
        pos = match.end()
        opening, name, is_else, closing = match.groups()
        if opening:
            if not name:
                raise TemplateCompileError(f'The "{opening}" block needs a field name')
            block = _Block(opening, name)
            stack[-1].branch.append(block)
            stack.append(block)
        elif is_else:
            if len(stack) == 1 or stack[-1].branch is stack[-1].inverse:
                raise TemplateCompileError('Unexpected "else" outside an if/unless block')
            stack[-1].branch = stack[-1].inverse
        else:
            if len(stack) == 1 or stack[-1].helper != closing:
                raise TemplateCompileError(f'Unexpected closing "{closing}" tag')
            stack.pop()
    if len(stack) > 1:
        raise TemplateCompileError(f'Unclosed "{stack[-1].helper}" block for {stack[-1].name}')
    root.body.append(html_content[pos:])
    return root.body


def block_fields(html_content: str) -> List[str]:
    """Fields that if/unless blocks branch on, in order of first appearance."""
    fields: List[str] = []

    def walk(nodes):
        for node in nodes:
            if isinstance(node, _Block):
                if node.name not in fields:
                    fields.append(node.name)
                walk(node.body)
                walk(node.inverse)

    walk(parse_blocks(html_content))
    return fields


def _evaluate(nodes: List[Any], context: Mapping[str, Any]) -> str:
    out = []
    for node in nodes:
        if isinstance(node, str):
            out.append(node)
            continue
        truthy = bool(context.get(node.name))
        if node.helper == "unless":
            truthy = not truthy
        out.append(_evaluate(node.body if truthy else node.inverse, context))
    return "".join(out)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def compile_template(html_content: str, context: Mapping[str, Any]) -> str:
    """
    Evaluate if/unless blocks, then substitute context values into the result.

    A block field missing from ``context`` counts as false. Placeholders with
    no entry in ``context`` are left exactly as written so an unmapped field
    stays visible in previews.
    """
    if not isinstance(html_content, str):
        raise TemplateCompileError()
    if not isinstance(context, Mapping):
        raise TemplateCompileError()

    def substitute(match):
        raw_name, name = match.group(1), match.group(2)
        key = raw_name or name
        if key not in context:
            return match.group(0)
        text = _as_text(context[key])
        return text if raw_name else escape(text)

    return TOKEN_PATTERN.sub(substitute, _evaluate(parse_blocks(html_content), context))
