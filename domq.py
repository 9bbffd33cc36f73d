"""
:mod:`domq` is a small DOM query engine: it parses HTML into a node
tree and locates elements in it with CSS-like selectors, for scraping
and content extraction.

:mod:`domq`

- is a single module;
- has no dependency outside `PSL <https://docs.python.org/3/library/>`_;
- never chokes on malformed markup;
- never recurses over the tree, so arbitrarily deep documents are fine.

Supported selectors:

- tag based: ``span``, ``a``;
- class based: ``.button``;
- id based: ``#mainbutton``;
- direct child: ``>``;
- attribute based: ``[href]``, ``[href="exact"]``, ``[href*="contains"]``,
  ``[href^="begins-with"]``, ``[href$="ends-with"]``;
- any combination of the above, e.g.
  ``div.container > form#feedback input.button``.

Simple example:

.. doctest::

   >>> import domq
   >>> doc = domq.parse_html('''
   ... <div class="c">
   ...   <a id="m" class="l b" href="/one">hi</a>
   ...   <span><a href="/two">there</a></span>
   ... </div>''')
   >>> [a.attr("href") for a in doc.select("div.c a")]
   ['/one', '/two']
   >>> [a.text for a in doc.select("div.c > a.b.l")]
   ['hi']
   >>> doc.select_one("span").parent.tag
   'div'
"""

import argparse
import logging
import re
import sys
from collections import Counter, OrderedDict
from enum import Enum
from html.parser import HTMLParser
from importlib.metadata import PackageNotFoundError, version
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

logger = logging.getLogger(__name__)

SelectorLike = Union[str, "Selector"]


# Enum: basis for poor man's algebraic data type.
class NodeKind(Enum):
    """
    Node kinds.

    - :attr:`ELEMENT`: an element, with a tag, attributes and children;
    - :attr:`TEXT`: character data;
    - :attr:`OTHER`: comments, processing instructions and the like,
      never matched by any selector. The root container of a
      :class:`Tree` is of this kind too.
    """

    ELEMENT = 1
    TEXT = 2
    OTHER = 3


class Node(object):
    """
    A node record in a :class:`Tree`.

    Nodes refer to each other by index into the tree, never by
    reference.

    Attributes:
        kind     (:class:`NodeKind`)
        tag      (:class:`Optional`\\[:class:`str`]):
            Local tag name, elements only.
        attrs    (:class:`Dict`\\[:class:`str`, :class:`str`]):
            Local attribute names to values, in source order.
        data     (:class:`str`):
            Character data of text and other nodes.
        parent   (:class:`Optional`\\[:class:`int`])
        children (:class:`List`\\[:class:`int`])
    """

    def __init__(
        self,
        kind: NodeKind,
        *,
        tag: Optional[str] = None,
        attrs: Optional[Dict[str, str]] = None,
        data: str = ""
    ) -> None:
        self.kind = kind
        self.tag = tag
        self.attrs = attrs if attrs is not None else OrderedDict()  # type: Dict[str, str]
        self.data = data
        self.parent = None  # type: Optional[int]
        self.children = []  # type: List[int]

    def __repr__(self) -> str:
        if self.kind is NodeKind.ELEMENT:
            s = "<" + str(self.tag)
            if self.attrs:
                s += " attrs=%s" % repr(list(self.attrs.items()))
            return s + ">"
        return "<%s %s>" % (self.kind.name.lower(), repr(self.data))


class Tree:
    """
    Arena of :class:`Node` records.

    Index :attr:`ROOT` holds a container node whose children are the
    top-level nodes of the document. A tree is only ever appended to
    while it is being built and is read-only afterwards.
    """

    ROOT = 0

    def __init__(self) -> None:
        self.nodes = [Node(NodeKind.OTHER)]  # type: List[Node]

    def __len__(self) -> int:
        return len(self.nodes)

    def __getitem__(self, index: int) -> Node:
        return self.nodes[index]

    def append(self, node: Node, parent: int) -> int:
        """Adds `node` as the last child of `parent` and returns its index."""
        index = len(self.nodes)
        node.parent = parent
        self.nodes.append(node)
        self.nodes[parent].children.append(index)
        return index

    def element_children(self, index: int) -> List[int]:
        return [
            child
            for child in self.nodes[index].children
            if self.nodes[child].kind is NodeKind.ELEMENT
        ]

    def walk(self, index: int) -> Iterator[int]:
        """
        Generates the elements of the subtree rooted at `index`, `index`
        itself included, in depth-first pre-order.
        """
        stack = [index]
        while stack:
            current = stack.pop()
            if self.nodes[current].kind is NodeKind.ELEMENT:
                yield current
            stack.extend(reversed(self.element_children(current)))


# Element sets of HTML5 tree construction, restricted to what the builder
# needs. Names are local names.
_SPECIAL = frozenset(
    """
    address applet area article aside base basefont bgsound blockquote body
    br button caption center col colgroup dd details dir div dl dt embed
    fieldset figcaption figure footer form frame frameset h1 h2 h3 h4 h5 h6
    head header hgroup hr html iframe img input keygen li link listing main
    marquee menu meta nav noembed noframes noscript object ol p param
    plaintext pre script search section select source style summary table
    tbody td template textarea tfoot th thead title tr track ul wbr xmp
    """.split()
)
_HEAD_CONTENT = frozenset(
    "base basefont bgsound link meta noframes noscript script style template title".split()
)
_HEADINGS = frozenset(("h1", "h2", "h3", "h4", "h5", "h6"))
_CLOSES_P = _HEADINGS | frozenset(
    """
    address article aside blockquote center details dialog dir div dl
    fieldset figcaption figure footer form header hgroup hr listing main menu
    nav ol p plaintext pre search section summary table ul xmp li dd dt
    """.split()
)
_TABLE_SECTIONS = frozenset(("tbody", "thead", "tfoot"))
_TABLE_PARTS = _TABLE_SECTIONS | frozenset(("table", "caption", "tr", "td", "th"))

# Scope terminators: an element is "in scope" if it is found on the stack
# of open elements before any of these.
_DEFAULT_SCOPE = frozenset(
    ("applet", "caption", "html", "table", "td", "th", "marquee", "object", "template")
)
_BUTTON_SCOPE = _DEFAULT_SCOPE | {"button"}
_LIST_ITEM_SCOPE = _DEFAULT_SCOPE | {"ol", "ul"}
_TABLE_SCOPE = frozenset(("html", "table", "template"))
_FORMATTING_MARKERS = frozenset(
    ("applet", "caption", "html", "marquee", "object", "td", "th", "template")
)


def _end_tag_scope(tag: str) -> frozenset:
    if tag in _TABLE_PARTS:
        return _TABLE_SCOPE
    if tag == "li":
        return _LIST_ITEM_SCOPE
    if tag == "p":
        return _BUTTON_SCOPE
    return _DEFAULT_SCOPE


class TreeBuilder(HTMLParser):
    """
    HTML parser / tree builder.

    Subclasses :class:`html.parser.HTMLParser`.

    Consumes HTML and fills a :class:`Tree`. Once finished (after
    :meth:`close`), use :attr:`tree` to access the result.

    The builder never raises on bad markup. It recovers the way HTML5
    tree construction does, closely enough for scraping:

    - The tree always has ``html``, ``head`` and ``body`` elements.
      Metadata elements seen before the body go into ``head``, anything
      else opens the body. A late ``<html>`` or ``<body>`` start tag only
      contributes the attributes the element lacks.
    - Start tags imply the end tags HTML lets authors omit: block
      elements close an open ``p``, ``li`` closes the previous ``li``
      (``dd``/``dt`` and ``option`` likewise), a heading closes an open
      heading and an ``a`` closes an open ``a``. Table cells and rows
      close their predecessors, and rows or cells placed directly in a
      table get the missing ``tbody``/``tr``.
    - An end tag closes the matching element along with everything
      opened after it, provided the element is in scope. Otherwise the
      end tag is dropped, except ``</p>`` which yields an empty ``p``.
      ``</body>`` and ``</html>`` are ignored.
    - Elements still open at the end are closed implicitly.

    Tables are not rearranged: misplaced content stays where it appears.
    Doctypes are dropped; tag and attribute names lose any namespace
    prefix.
    """

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.tree = Tree()
        self._stack = [Tree.ROOT]  # type: List[int]
        # Tag counts over the stack, to skip scope lookups bound to fail.
        self._open = Counter()  # type: Dict[str, int]
        self._html = None  # type: Optional[int]
        self._head = None  # type: Optional[int]
        self._body = None  # type: Optional[int]

    def handle_starttag(
        self, tag: str, attrs: List[Tuple[str, Optional[str]]]
    ) -> None:
        self._start(_local_name(tag), _unique_attrs(attrs), self_closing=False)

    # <tag/> is closed on the spot, whether or not the element is void.
    def handle_startendtag(
        self, tag: str, attrs: List[Tuple[str, Optional[str]]]
    ) -> None:
        self._start(_local_name(tag), _unique_attrs(attrs), self_closing=True)

    def handle_endtag(self, tag: str) -> None:
        tag = _local_name(tag)
        if tag in ("html", "body"):
            return
        if tag in _SPECIAL:
            depth = self._find_in_scope((tag,), _end_tag_scope(tag))
        else:
            depth = self._find_open(tag)
        if depth is not None:
            if depth < len(self._stack) - 1:
                logger.debug(
                    "end tag %s at %d:%d implicitly closes %s",
                    repr(tag),
                    *self.getpos(),
                    [self.tree[index].tag for index in self._stack[depth + 1 :]]
                )
            self._truncate(depth)
        elif tag == "p":
            logger.debug("stray end tag 'p' at %d:%d, inserting empty p", *self.getpos())
            self._start("p", OrderedDict(), self_closing=True)
        else:
            logger.debug("ignoring stray end tag %s at %d:%d", repr(tag), *self.getpos())

    def handle_data(self, text: str) -> None:
        if self._body is None and self._current_tag() in (None, "html", "head"):
            if not text.strip():
                # Whitespace before <html> is dropped.
                if self._html is not None:
                    self._append_text(text)
                return
            self._ensure_body()
        self._append_text(text)

    def handle_comment(self, data: str) -> None:
        self.tree.append(Node(NodeKind.OTHER, data=data), self._stack[-1])

    def handle_pi(self, data: str) -> None:
        self.tree.append(Node(NodeKind.OTHER, data=data), self._stack[-1])

    def unknown_decl(self, data: str) -> None:
        self.tree.append(Node(NodeKind.OTHER, data=data), self._stack[-1])

    # Doctypes are dropped.
    def handle_decl(self, decl: str) -> None:
        pass

    def close(self) -> None:
        super().close()
        if self._body is None:
            self._ensure_body()
        # The stack is now root, html, body, then whatever is left open.
        if len(self._stack) > 3:
            logger.debug(
                "closing unterminated elements %s",
                [self.tree[index].tag for index in self._stack[3:]],
            )
        self._truncate(1)

    def _start(self, tag: str, attrs: Dict[str, str], self_closing: bool) -> None:
        if tag == "html":
            if self._html is None:
                self._html = self._insert(tag, attrs, self_closing=False)
            else:
                _add_missing_attrs(self.tree[self._html], attrs)
            return
        self._ensure_html()
        if self._body is None:
            if tag == "head":
                if self._head is None:
                    self._head = self._insert(tag, attrs, self_closing=False)
                return
            if tag in _HEAD_CONTENT:
                self._enter_head()
                self._insert(tag, attrs, self_closing)
                return
            self._ensure_body(attrs if tag == "body" else None)
            if tag == "body":
                return
        if tag == "body":
            _add_missing_attrs(self.tree[self._body], attrs)
            return
        if tag == "head":
            logger.debug("ignoring misplaced head at %d:%d", *self.getpos())
            return
        self._close_implied(tag)
        self._insert(tag, attrs, self_closing)

    def _close_implied(self, tag: str) -> None:
        """Closes whatever an opening `tag` ends implicitly."""
        if tag == "li":
            self._close_list_item(("li",))
        elif tag in ("dd", "dt"):
            self._close_list_item(("dd", "dt"))
        if tag in _CLOSES_P:
            self._close_in_scope(("p",), _BUTTON_SCOPE)

        if tag in _HEADINGS:
            if self._current_tag() in _HEADINGS:
                self._truncate(len(self._stack) - 1)
        elif tag == "a":
            self._close_formatting("a")
        elif tag in ("option", "optgroup"):
            if self._current_tag() == "option":
                self._truncate(len(self._stack) - 1)
            if tag == "optgroup" and self._current_tag() == "optgroup":
                self._truncate(len(self._stack) - 1)
        elif tag in ("td", "th"):
            self._close_in_scope(("td", "th"), _TABLE_SCOPE)
            if self._current_tag() == "table":
                self._insert_implied("tbody")
            if self._current_tag() in _TABLE_SECTIONS:
                self._insert_implied("tr")
        elif tag == "tr":
            self._close_in_scope(("tr",), _TABLE_SCOPE)
            if self._current_tag() == "table":
                self._insert_implied("tbody")
        elif tag in _TABLE_SECTIONS:
            self._close_in_scope(_TABLE_SECTIONS, _TABLE_SCOPE)

    def _close_list_item(self, names: Tuple[str, ...]) -> None:
        for depth in range(len(self._stack) - 1, 0, -1):
            tag = self.tree[self._stack[depth]].tag
            if tag in names:
                self._truncate(depth)
                return
            if tag in _SPECIAL and tag not in ("address", "div", "p"):
                return

    def _close_formatting(self, name: str) -> None:
        if not self._open[name]:
            return
        for depth in range(len(self._stack) - 1, 0, -1):
            tag = self.tree[self._stack[depth]].tag
            if tag == name:
                self._truncate(depth)
                return
            if tag in _FORMATTING_MARKERS:
                return

    def _close_in_scope(self, names: Iterable[str], terminators: frozenset) -> None:
        depth = self._find_in_scope(names, terminators)
        if depth is not None:
            self._truncate(depth)

    def _find_in_scope(
        self, names: Iterable[str], terminators: frozenset
    ) -> Optional[int]:
        """
        Returns the stack depth of the innermost open element named in
        `names`, or ``None`` if one of `terminators` comes first.
        """
        if not any(self._open[name] for name in names):
            return None
        for depth in range(len(self._stack) - 1, 0, -1):
            tag = self.tree[self._stack[depth]].tag
            if tag in names:
                return depth
            if tag in terminators:
                return None
        return None

    # Non-special end tags never reach past a special element.
    def _find_open(self, name: str) -> Optional[int]:
        if not self._open[name]:
            return None
        for depth in range(len(self._stack) - 1, 0, -1):
            tag = self.tree[self._stack[depth]].tag
            if tag == name:
                return depth
            if tag in _SPECIAL:
                return None
        return None

    def _ensure_html(self) -> None:
        if self._html is None:
            self._html = self._insert("html", OrderedDict(), self_closing=False)

    def _enter_head(self) -> None:
        if self._head is None:
            self._head = self._insert("head", OrderedDict(), self_closing=False)
        elif self._head not in self._stack:
            # Metadata after </head> still belongs in the head.
            self._push(self._head)

    def _ensure_body(self, attrs: Optional[Dict[str, str]] = None) -> None:
        self._ensure_html()
        self._truncate(self._stack.index(self._html) + 1)
        if self._head is None:
            self._head = self._insert("head", OrderedDict(), self_closing=True)
        self._body = self._insert(
            "body", attrs if attrs is not None else OrderedDict(), self_closing=False
        )

    def _insert_implied(self, tag: str) -> None:
        logger.debug("inserting implied %s at %d:%d", repr(tag), *self.getpos())
        self._insert(tag, OrderedDict(), self_closing=False)

    def _insert(self, tag: str, attrs: Dict[str, str], self_closing: bool) -> int:
        index = self.tree.append(
            Node(NodeKind.ELEMENT, tag=tag, attrs=attrs), self._stack[-1]
        )
        if not (self_closing or _tag_is_void(tag)):
            self._push(index)
        return index

    def _append_text(self, text: str) -> None:
        parent = self.tree[self._stack[-1]]
        if parent.children:
            last = self.tree[parent.children[-1]]
            if last.kind is NodeKind.TEXT:
                last.data += text
                return
        self.tree.append(Node(NodeKind.TEXT, data=text), self._stack[-1])

    def _current_tag(self) -> Optional[str]:
        return self.tree[self._stack[-1]].tag

    def _push(self, index: int) -> None:
        self._stack.append(index)
        self._open[self.tree[index].tag] += 1

    def _truncate(self, depth: int) -> None:
        for index in self._stack[depth:]:
            self._open[self.tree[index].tag] -= 1
        del self._stack[depth:]


def parse_html(
    html: Union[str, bytes],
    *,
    BuilderClass: type = TreeBuilder,
    strict_attributes: bool = False,
    unique: bool = False
) -> "Document":
    """
    Parses HTML, builds the tree, and returns the document.

    Args:
        html: input HTML; ``bytes`` are decoded as UTF-8
        BuilderClass: :class:`TreeBuilder` or a subclass
        strict_attributes: see :class:`Document`
        unique: see :class:`Document`

    Raises:
        UnicodeDecodeError: if `html` is ``bytes`` and not valid UTF-8.
    """
    if isinstance(html, bytes):
        return Document.from_bytes(
            html,
            BuilderClass=BuilderClass,
            strict_attributes=strict_attributes,
            unique=unique,
        )
    return Document.from_str(
        html,
        BuilderClass=BuilderClass,
        strict_attributes=strict_attributes,
        unique=unique,
    )


class Document(object):
    """
    A parsed document, the entry point for queries.

    Typically constructed with :meth:`from_str`, :meth:`from_bytes` or
    :func:`parse_html`.

    Two options tune selector evaluation for every query made through
    the document and its elements:

    - `strict_attributes`: by default an attribute selector naming an
      attribute the element does not carry is considered satisfied, so
      ``a[target="_self"]`` also matches links without any ``target``.
      Pass ``True`` to require the attribute to be present.
    - `unique`: by default a descendant step may yield the same element
      several times when it is reachable from several elements of the
      previous step (``div div`` on nested divs). Pass ``True`` to keep
      only the first occurrence of each element.

    Attributes:
        tree              (:class:`Tree`)
        strict_attributes (:class:`bool`)
        unique            (:class:`bool`)
    """

    def __init__(
        self, tree: Tree, *, strict_attributes: bool = False, unique: bool = False
    ) -> None:
        self.tree = tree
        self.strict_attributes = strict_attributes
        self.unique = unique

    def __repr__(self) -> str:
        return "<Document children=%s>" % repr(self.children)

    @classmethod
    def from_str(
        cls,
        html: str,
        *,
        BuilderClass: type = TreeBuilder,
        strict_attributes: bool = False,
        unique: bool = False
    ) -> "Document":
        """Builds a document from decoded HTML. Bad markup never raises."""
        builder = BuilderClass()  # type: TreeBuilder
        builder.feed(html)
        builder.close()
        return cls(builder.tree, strict_attributes=strict_attributes, unique=unique)

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        encoding: str = "utf-8",
        *,
        BuilderClass: type = TreeBuilder,
        strict_attributes: bool = False,
        unique: bool = False
    ) -> "Document":
        """
        Builds a document from encoded HTML.

        Decoding is strict: :class:`UnicodeDecodeError` is raised on
        input that is not valid in `encoding`.
        """
        return cls.from_str(
            data.decode(encoding),
            BuilderClass=BuilderClass,
            strict_attributes=strict_attributes,
            unique=unique,
        )

    @property
    def children(self) -> List["Element"]:
        """Top-level elements."""
        return [Element(self, index) for index in self.tree.element_children(Tree.ROOT)]

    def select(self, selector: SelectorLike) -> List["Element"]:
        """Returns all elements matched by `selector`, in document order."""
        return self._select(Tree.ROOT, selector)

    def select_one(self, selector: SelectorLike) -> Optional["Element"]:
        """Returns the first element matched by `selector` (if any)."""
        for element in self._select(Tree.ROOT, selector):
            return element
        return None

    def _select(self, scope: int, selector: SelectorLike) -> List["Element"]:
        selector = _normalize_selector(selector)
        matches = query(
            self.tree,
            scope,
            selector,
            strict_attributes=self.strict_attributes,
            unique=self.unique,
        )
        logger.debug(
            "selector '%s' matched %d element(s) under node %d",
            selector,
            len(matches),
            scope,
        )
        return [Element(self, index) for index in matches]


class Element(object):
    """
    Read-only view of one node of a :class:`Document`.

    Elements are cheap to create and compare equal when they refer to
    the same node of the same document. They must not outlive the
    document.
    """

    def __init__(self, document: Document, index: int) -> None:
        self.document = document
        self.index = index

    def __repr__(self) -> str:
        return "<Element %s>" % repr(self.node)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Element):
            return NotImplemented
        return self.document is other.document and self.index == other.index

    def __hash__(self) -> int:
        return hash((id(self.document), self.index))

    @property
    def node(self) -> Node:
        return self.document.tree[self.index]

    @property
    def tag(self) -> Optional[str]:
        """Local tag name, or ``None`` if the node is not an element."""
        node = self.node
        return node.tag if node.kind is NodeKind.ELEMENT else None

    def attr(self, name: str) -> Optional[str]:
        """Returns the attribute if it exists on the node, otherwise ``None``."""
        return self.node.attrs.get(name)

    @property
    def attrs(self) -> Dict[str, str]:
        return OrderedDict(self.node.attrs)

    @property
    def classes(self) -> List[str]:
        return self.node.attrs.get("class", "").split()

    @property
    def ids(self) -> List[str]:
        return self.node.attrs.get("id", "").split()

    @property
    def text(self) -> str:
        """
        The concatenation of the immediate text children. Text nested in
        child elements is not included.
        """
        tree = self.document.tree
        return "".join(
            tree[child].data
            for child in self.node.children
            if tree[child].kind is NodeKind.TEXT
        )

    @property
    def children(self) -> List["Element"]:
        """Element children, in source order. Text and other nodes are skipped."""
        return [
            Element(self.document, index)
            for index in self.document.tree.element_children(self.index)
        ]

    @property
    def parent(self) -> Optional["Element"]:
        """The parent element, or ``None`` for a top-level element."""
        parent = self.node.parent
        if parent is None or self.document.tree[parent].kind is not NodeKind.ELEMENT:
            return None
        return Element(self.document, parent)

    def select(self, selector: SelectorLike) -> List["Element"]:
        """
        Returns all elements matched by `selector` among the descendants
        of this element (the element itself excluded).
        """
        return self.document._select(self.index, selector)

    def select_one(self, selector: SelectorLike) -> Optional["Element"]:
        for element in self.select(selector):
            return element
        return None


def query(
    tree: Tree,
    scope: int,
    selector: "Selector",
    *,
    strict_attributes: bool = False,
    unique: bool = False
) -> List[int]:
    """
    Evaluates `selector` against the element children of `scope` and
    returns the indices of the matched elements.

    The matchers of the selector are folded over a working set of
    candidates, starting with the element children of `scope`:

    - a regular matcher collects every matching element of every subtree
      rooted in the working set, in depth-first pre-order, the subtree
      roots included, and the collected elements become the new working
      set;
    - a child combinator replaces the working set with the element
      children of its members, and makes the next matcher filter the
      working set in place instead of searching subtrees.

    Unless `unique` is set, an element reachable from several members of
    the working set is collected once per member.
    """
    working = tree.element_children(scope)
    direct = False
    for matcher in selector:
        if matcher.direct:
            working = [child for index in working for child in tree.element_children(index)]
            direct = True
        elif direct:
            working = [
                index
                for index in working
                if matcher.matches(tree, index, strict_attributes=strict_attributes)
            ]
            direct = False
        else:
            working = _collect(tree, working, matcher, strict_attributes, unique)
    return working


def _collect(
    tree: Tree,
    roots: Iterable[int],
    matcher: "Matcher",
    strict_attributes: bool,
    unique: bool,
) -> List[int]:
    matched = []  # type: List[int]
    visited = set()  # type: Set[int]
    for root in roots:
        # A visited node had all of its subtree queued with it.
        if unique and root in visited:
            continue
        for index in tree.walk(root):
            if unique:
                if index in visited:
                    continue
                visited.add(index)
            if matcher.matches(tree, index, strict_attributes=strict_attributes):
                matched.append(index)
    return matched


def _normalize_selector(selector: SelectorLike) -> "Selector":
    if isinstance(selector, str):
        return Selector.from_str(selector)
    if isinstance(selector, Selector):
        return selector
    raise ValueError("not a selector: %s" % repr(selector))


class SelectorParserException(Exception):
    """
    Exception raised when the selector parser fails to parse an input.

    Attributes:
        s (:class:`str`):
            The input string to be parsed.
        cursor (:class:`int`):
            Cursor position where the failure occurred.
        why (:class:`str`):
            Reason of the failure.
    """

    def __init__(self, s: str, cursor: int, why: str) -> None:
        super().__init__(s, cursor, why)
        self.s = s
        self.cursor = cursor
        self.why = why

    def __str__(self) -> str:
        return "selector parser aborted at character %d of %s: %s" % (
            self.cursor,
            repr(self.s),
            self.why,
        )


class Selector:
    """
    Represents a selector: a list of :class:`Matcher`, one per
    whitespace-separated token.

    A ``>`` token is kept in the list as a *direct* matcher with no
    constraints of its own; it makes the following matcher apply to
    children only. Any two consecutive regular matchers are joined by
    the descendant combinator.

    For instance, ``div.container > form#feedback input.button`` is
    parsed into (schematically)::

        tag='div' classes=('container')
        >
        tag='form' ids=('feedback')
        tag='input' classes=('button')

    Unlike CSS, the ``id`` attribute is treated as a whitespace
    separated list, like ``class``: ``#a#b`` matches ``id="a b"``.

    Supported grammar::

        selector := token (whitespace token)*
        token    := '>' | compound
        compound := [tagName] (idPart | classPart | attrPart)*
        idPart   := '#' name
        classPart:= '.' name
        attrPart := '[' name ( ('=' | '^=' | '$=' | '*=') value )? ']'

    where `value` may be double-quoted, single-quoted or bare. Values
    cannot contain whitespace, since tokens are split on whitespace
    before anything else.
    """

    def __init__(self, matchers: Iterable["Matcher"]) -> None:
        self._matchers = list(matchers)

    def __repr__(self) -> str:
        return "<Selector %s>" % repr(str(self))

    def __str__(self) -> str:
        return " ".join(str(matcher) for matcher in self._matchers)

    def __len__(self) -> int:
        return len(self._matchers)

    def __getitem__(self, index: int) -> "Matcher":
        return self._matchers[index]

    def __iter__(self) -> Iterator["Matcher"]:
        return iter(self._matchers)

    @classmethod
    def from_str(cls, s: str) -> "Selector":
        """
        Parses input string into selector.

        :class:`SelectorParserException` is raised on invalid input.
        """
        matchers = []  # type: List[Matcher]
        for m in re.finditer(r"\S+", s):
            if m.group() == ">":
                if not matchers:
                    raise SelectorParserException(s, m.start(), "unexpected leading combinator")
                if matchers[-1].direct:
                    raise SelectorParserException(s, m.start(), "repeated combinator")
                matchers.append(Matcher(direct=True))
            else:
                matchers.append(_parse_compound(s, m.start(), m.end()))
        if not matchers:
            raise SelectorParserException(s, len(s), "selector is empty")
        if matchers[-1].direct:
            raise SelectorParserException(s, len(s), "unexpected end at combinator")
        return cls(matchers)


class Matcher:
    """
    Represents one compound selector, or a child combinator.

    Attributes:
        tags    (:class:`List`\\[:class:`str`]):
            Acceptable tag names; empty for any tag.
        classes (:class:`List`\\[:class:`str`]):
            Required classes.
        ids     (:class:`List`\\[:class:`str`]):
            Required id tokens.
        attrs   (:class:`Dict`\\[:class:`str`, :class:`AttributeSelector`]):
            Attribute selectors by attribute name.
        direct  (:class:`bool`):
            Whether this is a ``>`` marker rather than a real matcher.
    """

    def __init__(
        self,
        *,
        tags: Optional[List[str]] = None,
        classes: Optional[List[str]] = None,
        ids: Optional[List[str]] = None,
        attrs: Optional[Dict[str, "AttributeSelector"]] = None,
        direct: bool = False
    ) -> None:
        self.tags = tags or []
        self.classes = classes or []
        self.ids = ids or []
        self.attrs = attrs or OrderedDict()  # type: Dict[str, AttributeSelector]
        self.direct = direct

    def __repr__(self) -> str:
        return "<Matcher %s>" % repr(str(self))

    def __str__(self) -> str:
        if self.direct:
            return ">"
        s = "".join(self.tags[:1])
        s += "".join("#%s" % id_ for id_ in self.ids)
        s += "".join(".%s" % class_ for class_ in self.classes)
        s += "".join(str(attr) for attr in self.attrs.values())
        return s if s else "*"

    def matches(
        self, tree: Tree, index: int, *, strict_attributes: bool = False
    ) -> bool:
        """
        Decides whether the node at `index` satisfies every constraint.

        Non-element nodes never match. An attribute selector naming an
        attribute the element lacks is satisfied unless
        `strict_attributes` is set.
        """
        node = tree[index]
        if node.kind is not NodeKind.ELEMENT:
            return False
        if self.tags and node.tag not in self.tags:
            return False
        if self.ids:
            ids = node.attrs.get("id", "").split()
            for id_ in self.ids:
                if id_ not in ids:
                    return False
        if self.classes:
            classes = node.attrs.get("class", "").split()
            for class_ in self.classes:
                if class_ not in classes:
                    return False
        for name, attr_selector in self.attrs.items():
            val = node.attrs.get(name)
            if val is None:
                if strict_attributes:
                    return False
                continue
            if not attr_selector.matches(val):
                return False
        return True


class AttributeSelector:
    """
    Represents an attribute selector.

    Attributes:
        attr (:class:`str`)
        val  (:class:`Optional`\\[:class:`str`])
        type (:class:`AttributeSelectorType`)
    """

    def __init__(
        self, attr: str, val: Optional[str], type: "AttributeSelectorType"
    ) -> None:
        self.attr = _local_name(attr)
        self.val = val
        self.type = type

    def __repr__(self) -> str:
        return "<AttributeSelector %s>" % repr(str(self))

    def __str__(self) -> str:
        if self.type == AttributeSelectorType.PRESENT:
            return "[%s]" % self.attr
        quote = "'" if '"' in str(self.val) else '"'
        return "[%s%s=%s%s%s]" % (
            self.attr,
            _OPERATOR_CHARS[self.type],
            quote,
            self.val,
            quote,
        )

    def matches(self, val: str) -> bool:
        """Decides whether an attribute value satisfies the selector."""
        if self.type == AttributeSelectorType.PRESENT:
            return True
        expected = str(self.val)
        if self.type == AttributeSelectorType.EXACT:
            return val == expected
        elif self.type == AttributeSelectorType.STARTS:
            return val.startswith(expected)
        elif self.type == AttributeSelectorType.ENDS:
            return val.endswith(expected)
        elif self.type == AttributeSelectorType.CONTAINS:
            return expected in val
        else:  # pragma: no cover
            raise RuntimeError("unimplemented attribute selector: %s" % repr(self.type))


class AttributeSelectorType(Enum):
    """
    Attribute selector types.

    Members correspond to the following forms of attribute selector:

    - :attr:`PRESENT`: ``[attr]``;
    - :attr:`EXACT`: ``[attr="val"]``;
    - :attr:`STARTS`: ``[attr^="val"]``;
    - :attr:`ENDS`: ``[attr$="val"]``;
    - :attr:`CONTAINS`: ``[attr*="val"]``.
    """

    PRESENT = 1
    EXACT = 2
    STARTS = 3
    ENDS = 4
    CONTAINS = 5


_OPERATORS = {
    "^": AttributeSelectorType.STARTS,
    "$": AttributeSelectorType.ENDS,
    "*": AttributeSelectorType.CONTAINS,
}

_OPERATOR_CHARS = {
    AttributeSelectorType.EXACT: "",
    AttributeSelectorType.STARTS: "^",
    AttributeSelectorType.ENDS: "$",
    AttributeSelectorType.CONTAINS: "*",
}

_ATTR_NAME = re.compile(r"[\w:-]+")
_TAG_NAME = re.compile(r"[\w-]+")

_SEGMENT_STARTS = "#.["


# Parses the compound token s[start:end].
def _parse_compound(s: str, start: int, end: int) -> "Matcher":
    matcher = Matcher()

    i = start
    while i < end and s[i] not in _SEGMENT_STARTS:
        i += 1
    tag = s[start:i]
    if tag and tag != "*":
        if not _TAG_NAME.fullmatch(tag):
            raise SelectorParserException(
                s, start, "expecting tag name, got %s" % repr(tag)
            )
        matcher.tags.append(tag.lower())

    while i < end:
        c = s[i]
        if c == "[":
            close = _find_attr_end(s, i + 1, end)
            if close < 0:
                raise SelectorParserException(s, i, "unterminated attribute selector")
            attr_selector = _parse_attribute(s, i + 1, close)
            matcher.attrs[attr_selector.attr] = attr_selector
            i = close + 1
        elif c in "#.":
            j = i + 1
            while j < end and s[j] not in _SEGMENT_STARTS:
                j += 1
            name = s[i + 1 : j]
            if not name:
                raise SelectorParserException(
                    s, i, "expecting %s name" % ("id" if c == "#" else "class")
                )
            if c == "#":
                matcher.ids.append(name)
            else:
                matcher.classes.append(name)
            i = j
        else:
            raise SelectorParserException(
                s, i, "unexpected %s after attribute selector" % repr(c)
            )
    return matcher


# Index of the "]" closing an attribute clause, skipping quoted text, or
# -1.
def _find_attr_end(s: str, start: int, end: int) -> int:
    quote = None
    for i in range(start, end):
        c = s[i]
        if quote:
            if c == quote:
                quote = None
        elif c in "\"'":
            quote = c
        elif c == "]":
            return i
    return -1


def _parse_attribute(s: str, start: int, end: int) -> AttributeSelector:
    key, eq, val = s[start:end].partition("=")
    if not eq:
        if not _ATTR_NAME.fullmatch(key):
            raise SelectorParserException(s, start, "expecting attribute name")
        return AttributeSelector(key, None, AttributeSelectorType.PRESENT)

    type = _OPERATORS.get(key[-1:], AttributeSelectorType.EXACT)
    if type != AttributeSelectorType.EXACT:
        key = key[:-1]
    if not _ATTR_NAME.fullmatch(key):
        raise SelectorParserException(
            s, start, "expecting attribute name before operator, got %s" % repr(key)
        )
    if len(val) >= 2 and val[0] == val[-1] and val[0] in "\"'":
        val = val[1:-1]
    return AttributeSelector(key, val, type)


def _local_name(name: str) -> str:
    return name.rpartition(":")[2].lower()


# The first occurrence of a repeated attribute wins; valueless
# attributes get the empty string.
def _unique_attrs(attrs: Iterable[Tuple[str, Optional[str]]]) -> Dict[str, str]:
    result = OrderedDict()  # type: Dict[str, str]
    for attr, val in attrs:
        attr = _local_name(attr)
        if attr not in result:
            result[attr] = val if val is not None else ""
    return result


def _add_missing_attrs(node: Node, attrs: Dict[str, str]) -> None:
    for attr, val in attrs.items():
        if attr not in node.attrs:
            node.attrs[attr] = val


def _tag_is_void(tag: str) -> bool:
    """
    Checks whether the tag corresponds to a void element.

    https://html.spec.whatwg.org/multipage/syntax.html#void-elements
    """
    return tag.lower() in (
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    )


def _get_version() -> str:
    try:
        return version("domq")
    except PackageNotFoundError:  # pragma: no cover
        return "dev"


def _parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="domq",
        description="Print the elements of an HTML document matched by a selector.",
        epilog=(
            "Examples:\n"
            "  domq 'div.content > p' page.html\n"
            "  curl -s https://example.com | domq --attr href 'a[href]'\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("selector", help="selector for choosing elements")
    parser.add_argument(
        "path",
        nargs="?",
        default="-",
        help="HTML file to parse, or '-' to read from stdin (default)",
    )
    parser.add_argument(
        "--attr",
        metavar="NAME",
        help="print this attribute instead of the text, skipping elements without it",
    )
    parser.add_argument(
        "--first", action="store_true", help="only print the first match"
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="attribute selectors require the attribute to be present",
    )
    parser.add_argument(
        "--unique", action="store_true", help="never print an element twice"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="log debug messages to stderr"
    )
    parser.add_argument(
        "--version", action="version", version="domq %s" % _get_version()
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Command-line entry point.

    Returns 0 when something matched, 1 when nothing did, and 2 when the
    selector could not be parsed.
    """
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(name)s: %(levelname)s: %(message)s"
        )

    if args.path == "-":
        html = sys.stdin.read()  # type: Union[str, bytes]
    else:
        with open(args.path, "rb") as fp:
            html = fp.read()
    document = parse_html(html, strict_attributes=args.strict, unique=args.unique)

    try:
        elements = document.select(args.selector)
    except SelectorParserException as e:
        print(str(e), file=sys.stderr)
        return 2

    if not elements:
        return 1
    if args.first:
        elements = elements[:1]
    for element in elements:
        if args.attr:
            val = element.attr(args.attr)
            if val is not None:
                print(val)
        else:
            print(element.text.strip())
    return 0


if __name__ == "__main__":
    sys.exit(main())
