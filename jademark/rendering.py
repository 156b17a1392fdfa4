"""Markdown to render-tree conversion with annotation overlays."""

from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from markdown_it import MarkdownIt
from markdown_it.token import Token

from .annotations import compute_highlights, highlight_children, highlight_node
from .hashing import content_hash
from .structures import Annotation, RenderNode

CONTEXT_HASH_ATTR = "data-context-hash"
ANCHOR_TAGS = frozenset({"h1", "h2", "h3", "h4", "p", "li"})
CODE_TAG = "code"
VOID_TAGS = frozenset({"br", "hr", "img"})

DEFAULT_STYLES: Mapping[str, str] = {
    "h1": "text-3xl font-bold mb-6 pb-2 border-b border-gray-200 text-gray-900",
    "h2": "text-2xl font-bold mb-4 mt-8 pb-1 border-b border-gray-100 text-gray-800",
    "h3": "text-xl font-bold mb-3 mt-6 text-gray-800",
    "h4": "text-lg font-bold mb-2 mt-4 text-gray-800",
    "p": "mb-4 leading-7 text-gray-700",
    "blockquote": "border-l-4 border-gray-300 pl-4 py-1 my-4 bg-gray-50 text-gray-600 italic",
    "list": "list-disc list-inside mb-4 space-y-1 text-gray-700",
    "li": "mb-1",
    "link": "text-blue-600 hover:underline",
    "code": "bg-gray-100 text-pink-600 px-1.5 rounded text-sm font-mono break-words",
    "img": "rounded-lg shadow-md my-6 max-w-full mx-auto",
    "hr": "my-8 border-gray-200",
    "strong": "font-bold text-gray-900",
}

TAG_STYLE_KEYS: Mapping[str, str] = {
    "h1": "h1",
    "h2": "h2",
    "h3": "h3",
    "h4": "h4",
    "p": "p",
    "blockquote": "blockquote",
    "ul": "list",
    "ol": "list",
    "li": "li",
    "code": "code",
    "a": "link",
    "img": "img",
    "hr": "hr",
    "strong": "strong",
}

_parser = MarkdownIt("commonmark").enable(["table", "strikethrough"])

RenderChild = Union[RenderNode, str]


@dataclass(frozen=True)
class Selection:
    """A selection resolved to its anchor: hash plus intra-block offsets."""

    text: str
    context_hash: str
    start_offset: int
    end_offset: int


def _element(tag: str, styles: Mapping[str, str], attrs: Optional[Mapping] = None) -> RenderNode:
    node_attrs = {str(key): str(value) for key, value in (attrs or {}).items()}
    style_key = TAG_STYLE_KEYS.get(tag)
    if style_key and style_key in styles:
        existing = node_attrs.get("class")
        node_attrs["class"] = f"{existing} {styles[style_key]}" if existing else styles[style_key]
    return RenderNode(tag=tag, attrs=node_attrs)


def _inline_children(tokens: Sequence[Token], styles: Mapping[str, str]) -> List[RenderChild]:
    holder = RenderNode(tag="span")
    stack = [holder]
    for token in tokens:
        if token.nesting == 1:
            node = _element(token.tag, styles, token.attrs)
            stack[-1].children.append(node)
            stack.append(node)
        elif token.nesting == -1:
            if len(stack) > 1:
                stack.pop()
        elif token.type == "text":
            stack[-1].children.append(token.content)
        elif token.type == "code_inline":
            code = _element(CODE_TAG, styles)
            code.children.append(token.content)
            stack[-1].children.append(code)
        elif token.type == "softbreak":
            stack[-1].children.append("\n")
        elif token.type == "hardbreak":
            stack[-1].children.append(RenderNode(tag="br"))
        elif token.type == "image":
            attrs = dict(token.attrs)
            attrs["alt"] = token.content
            stack[-1].children.append(_element("img", styles, attrs))
        elif token.content:
            stack[-1].children.append(token.content)
    return holder.children


def build_tree(text: str, styles: Mapping[str, str] = DEFAULT_STYLES) -> RenderNode:
    """Parse Markdown into a plain render tree without anchors."""

    root = RenderNode(tag="article")
    stack = [root]
    for token in _parser.parse(text):
        if token.nesting == 1:
            if token.hidden:
                continue
            node = _element(token.tag, styles, token.attrs)
            stack[-1].children.append(node)
            stack.append(node)
        elif token.nesting == -1:
            if token.hidden:
                continue
            stack.pop()
        elif token.type == "inline":
            stack[-1].children.extend(_inline_children(token.children or [], styles))
        elif token.type in ("fence", "code_block"):
            info = token.info.strip().split()
            attrs = {"class": f"language-{info[0]}"} if info else {}
            code = _element(CODE_TAG, styles, attrs)
            code.children.append(token.content[:-1] if token.content.endswith("\n") else token.content)
            pre = RenderNode(tag="pre", children=[code])
            stack[-1].children.append(pre)
        elif token.type == "hr":
            stack[-1].children.append(_element("hr", styles))
        elif token.content:
            stack[-1].children.append(token.content)
    return root


def _anchor_code(node: RenderNode, annotations: Sequence[Annotation]) -> RenderNode:
    text = node.text_content()
    digest = content_hash(text)
    highlights = compute_highlights(text, digest, annotations)
    children, _ = highlight_children(node.children, highlights)
    anchored = node.with_children(children)
    anchored.attrs[CONTEXT_HASH_ATTR] = digest
    return anchored


def _anchor_nested_code(node: RenderNode, annotations: Sequence[Annotation]) -> RenderNode:
    children: List[RenderChild] = []
    for child in node.children:
        if isinstance(child, str):
            children.append(child)
        elif child.tag == CODE_TAG:
            children.append(_anchor_code(child, annotations))
        else:
            children.append(_anchor_nested_code(child, annotations))
    return node.with_children(children)


def _anchor_block(node: RenderNode, annotations: Sequence[Annotation]) -> RenderNode:
    text = node.text_content()
    digest = content_hash(text)
    highlights = compute_highlights(text, digest, annotations)
    highlighted, _ = highlight_node(node, highlights)
    anchored = _anchor_nested_code(highlighted, annotations)
    anchored.attrs[CONTEXT_HASH_ATTR] = digest
    return anchored


def anchor_tree(node: RenderNode, annotations: Iterable[Annotation] = ()) -> RenderNode:
    """Attach content hashes and highlight overlays to every anchorable element.

    When anchorable elements nest, the outermost one is the anchor. Code
    elements are anchored on their own text, independently of their parent.
    """

    annotations = list(annotations)
    if node.tag in ANCHOR_TAGS:
        return _anchor_block(node, annotations)
    if node.tag == CODE_TAG:
        return _anchor_code(node, annotations)
    children: List[RenderChild] = [
        child if isinstance(child, str) else anchor_tree(child, annotations)
        for child in node.children
    ]
    return node.with_children(children)


def render_markdown(
    text: str,
    annotations: Iterable[Annotation] = (),
    styles: Mapping[str, str] = DEFAULT_STYLES,
) -> RenderNode:
    """Render Markdown into an anchored, highlighted tree."""

    return anchor_tree(build_tree(text, styles), annotations)


def plain_text(node: Union[RenderNode, str]) -> str:
    """Concatenated text of a node, the string offsets are measured against."""

    if isinstance(node, str):
        return node
    return node.text_content()


def iter_anchors(node: RenderNode) -> List[RenderNode]:
    """Every element carrying a context hash, in document order."""

    anchors: List[RenderNode] = []
    for child in node.children:
        if isinstance(child, str):
            continue
        if CONTEXT_HASH_ATTR in child.attrs:
            anchors.append(child)
        anchors.extend(iter_anchors(child))
    return anchors


def locate_selection(root: RenderNode, phrase: str, occurrence: int = 0) -> Optional[Selection]:
    """Resolve the n-th occurrence of ``phrase`` to the innermost anchor holding it."""

    if not phrase:
        return None
    candidates: List[Selection] = []
    for anchor in iter_anchors(root):
        text = anchor.text_content()
        if phrase not in text:
            continue
        # Code anchors nest inside block anchors; the innermost one owns the match.
        if any(phrase in inner.text_content() for inner in iter_anchors(anchor)):
            continue
        start = text.find(phrase)
        while start != -1:
            candidates.append(
                Selection(
                    text=phrase,
                    context_hash=anchor.attrs[CONTEXT_HASH_ATTR],
                    start_offset=start,
                    end_offset=start + len(phrase),
                )
            )
            start = text.find(phrase, start + 1)
    if occurrence >= len(candidates):
        return None
    return candidates[occurrence]


def to_html(node: Union[RenderNode, str]) -> str:
    """Serialise a render tree to HTML, escaping all text."""

    if isinstance(node, str):
        return html.escape(node, quote=False)
    attrs = "".join(
        f' {key}="{html.escape(value, quote=True)}"' for key, value in node.attrs.items()
    )
    if node.tag in VOID_TAGS:
        return f"<{node.tag}{attrs}>"
    inner = "".join(to_html(child) for child in node.children)
    return f"<{node.tag}{attrs}>{inner}</{node.tag}>"
