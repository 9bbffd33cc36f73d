import logging

import pytest

from domq import *


SAMPLE_HTML = """\
<!DOCTYPE html>
<html>
<head><!-- 1 -->
  <meta name="generator" content="domq"><!-- 1.1 -->
  <meta charset="utf-8"><!-- 1.2 -->
</head>
<body><!-- 2 -->
  <div id="body" class="container"><!-- 2.1 -->
    <main id="article main"><!-- 2.1.1 -->
      <p id="p1" class="lead"><!-- 2.1.1.1 -->
        Paragraph 1.
        <a href="/link1" title="internal link1" class="link"><!-- 2.1.1.1.1 -->Link 1.</a>
        <a href="/link2" title="internal" class="link button"><!-- 2.1.1.1.2 -->Link 2.</a>
        <img src="/image.png"><!-- 2.1.1.1.3 -->
      </p>
      <blockquote><!-- 2.1.1.2 -->
        <a href="https://example.com/" class="button link external" target="_blank"><!-- 2.1.1.2.1 -->Example.</a>
      </blockquote>
      <div class="container"><!-- 2.1.1.3 -->
        <div class="container inner"><!-- 2.1.1.3.1 --></div>
      </div>
    </main>
    <aside id="ads"><!-- 2.1.2 -->
      <div class="ad first-party"><!-- 2.1.2.1 --></div>
      <div class="ad"><!-- 2.1.2.2 --></div>
    </aside>
  </div>
  <footer><!-- 2.2 -->
    <svg:svg><svg:rect xlink:href="#r"/><!-- 2.2.1 --></svg:svg>
  </footer>
</body>
</html>
"""


# Stripped HTML comments are attached to the latest started element as
# annotation.
class AnnotatingTreeBuilder(TreeBuilder):
    def __init__(self):
        super().__init__()
        self._last = None

    def handle_starttag(self, tag, attrs):
        super().handle_starttag(tag, attrs)
        self._last = len(self.tree) - 1

    def handle_startendtag(self, tag, attrs):
        super().handle_startendtag(tag, attrs)
        self._last = len(self.tree) - 1

    def handle_comment(self, data):
        super().handle_comment(data)
        if self._last is not None:
            self.tree[self._last].annotation = data.strip()


# Get annotations of a list of elements.
def annotations(elements):
    return [getattr(element.node, "annotation", None) for element in elements]


@pytest.fixture(scope="module")
def doc():
    document = parse_html(SAMPLE_HTML, BuilderClass=AnnotatingTreeBuilder)
    repr(document)
    return document


@pytest.fixture(scope="module")
def strict_doc():
    return parse_html(
        SAMPLE_HTML, BuilderClass=AnnotatingTreeBuilder, strict_attributes=True
    )


@pytest.mark.parametrize(
    "selector,matches",
    [
        ("html", [None]),
        ("head", ["1"]),
        ("#body", ["2.1"]),
        ("main#article", ["2.1.1"]),
        ("#main#article", ["2.1.1"]),
        ("#article#p1", []),
        ("MAIN", ["2.1.1"]),
        ("body > main", []),
        ("body > div > main", ["2.1.1"]),
        ("html > * > div", ["2.1"]),
        ("a", ["2.1.1.1.1", "2.1.1.1.2", "2.1.1.2.1"]),
        ("a.link.button", ["2.1.1.1.2", "2.1.1.2.1"]),
        ("a.button.link", ["2.1.1.1.2", "2.1.1.2.1"]),
        ("p a.link", ["2.1.1.1.1", "2.1.1.1.2"]),
        ("p > a", ["2.1.1.1.1", "2.1.1.1.2"]),
        ("main > a", []),
        ("main a", ["2.1.1.1.1", "2.1.1.1.2", "2.1.1.2.1"]),
        ("body > div > main > p > a.link", ["2.1.1.1.1", "2.1.1.1.2"]),
        ('a[href^="/link"]', ["2.1.1.1.1", "2.1.1.1.2"]),
        ('a[href$=".com/"]', ["2.1.1.2.1"]),
        ('a[href*="link2"]', ["2.1.1.1.2"]),
        ("a[href*=link2]", ["2.1.1.1.2"]),
        ("img[src='/image.png']", ["2.1.1.1.3"]),
        # Attribute selectors are satisfied by elements lacking the
        # attribute.
        ("a[target]", ["2.1.1.1.1", "2.1.1.1.2", "2.1.1.2.1"]),
        ('a[title="internal"]', ["2.1.1.1.2", "2.1.1.2.1"]),
        ('meta[name="generator"]', ["1.1", "1.2"]),
        ("div.container", ["2.1", "2.1.1.3", "2.1.1.3.1"]),
        ("aside div.ad", ["2.1.2.1", "2.1.2.2"]),
        (".ad.first-party", ["2.1.2.1"]),
        (".first-party.ad", ["2.1.2.1"]),
        ("span", []),
        ("span.ad", []),
        ("rect", ["2.2.1"]),
        ('rect[href="#r"]', ["2.2.1"]),
        ("svg > rect", ["2.2.1"]),
        ("footer > rect", []),
        ("footer rect", ["2.2.1"]),
    ],
)
def test_selector(doc, selector, matches):
    repr(Selector.from_str(selector))
    assert annotations(doc.select(selector)) == matches
    if matches:
        assert annotations([doc.select_one(selector)]) == matches[:1]
    else:
        assert doc.select_one(selector) is None


@pytest.mark.parametrize(
    "selector,matches",
    [
        ("a[target]", ["2.1.1.2.1"]),
        ('a[target="_blank"]', ["2.1.1.2.1"]),
        ('a[title="internal"]', ["2.1.1.1.2"]),
        ('meta[name="generator"]', ["1.1"]),
        ("[title^=internal]", ["2.1.1.1.1", "2.1.1.1.2"]),
        ("[charset]", ["1.2"]),
        ('rect[xlink:href="#r"]', ["2.2.1"]),
        ('[xlink:href="#x"]', []),
    ],
)
def test_strict_attributes(strict_doc, selector, matches):
    assert annotations(strict_doc.select(selector)) == matches


def test_descendant_matches_are_not_deduplicated(doc):
    assert annotations(doc.select("div.container div.container")) == [
        "2.1",
        "2.1.1.3",
        "2.1.1.3.1",
        "2.1.1.3",
        "2.1.1.3.1",
        "2.1.1.3.1",
    ]


def test_unique():
    doc = parse_html(SAMPLE_HTML, BuilderClass=AnnotatingTreeBuilder, unique=True)
    assert annotations(doc.select("div.container div.container")) == [
        "2.1",
        "2.1.1.3",
        "2.1.1.3.1",
    ]
    assert annotations(doc.select("div div")) == annotations(
        doc.select("body div")
    )


def test_determinism(doc):
    for selector in ["a", "div.container div", "main > p > a[href]"]:
        assert doc.select(selector) == doc.select(selector)


def test_non_root_selection(doc):
    p = doc.select_one("#p1")
    assert annotations(p.select("a")) == ["2.1.1.1.1", "2.1.1.1.2"]
    assert annotations(p.select("p")) == []
    assert annotations(p.select(".ad")) == []
    main = doc.select_one("main")
    assert annotations(main.select("p > a")) == ["2.1.1.1.1", "2.1.1.1.2"]
    assert annotations(main.select("div div")) == ["2.1.1.3", "2.1.1.3.1", "2.1.1.3.1"]


def test_tree_walking(doc):
    assert [element.tag for element in doc.children] == ["html"]

    body = doc.select_one("body")
    assert body.tag == "body"
    assert [child.tag for child in body.children] == ["div", "footer"]

    div_body = body.children[0]
    assert div_body.attr("id") == "body"
    assert div_body.attr("title") is None
    assert [child.tag for child in div_body.children] == ["main", "aside"]
    assert div_body.parent == body
    assert body.parent.tag == "html"
    assert body.parent.parent is None

    img = doc.select_one("img")
    assert img.children == []
    assert img.parent == doc.select_one("#p1")


def test_text(doc):
    assert doc.select_one("a").text == "Link 1."
    assert doc.select_one("#p1").text.split() == ["Paragraph", "1."]
    assert doc.select_one("img").text == ""
    assert doc.select_one(".inner").text == ""


def test_element_accessors(doc):
    a = doc.select_one("blockquote a")
    assert a.classes == ["button", "link", "external"]
    assert a.ids == []
    assert list(a.attrs.items()) == [
        ("href", "https://example.com/"),
        ("class", "button link external"),
        ("target", "_blank"),
    ]
    assert doc.select_one("main").ids == ["article", "main"]
    assert doc.select_one("rect").attr("href") == "#r"
    assert doc.select_one("rect").attr("xlink:href") is None
    assert repr(a).startswith("<Element <a attrs=")


def test_element_identity(doc):
    first = doc.select("a")
    second = doc.select("a")
    assert first == second
    assert first[0] is not second[0]
    assert len(set(first + second)) == 3
    assert first[0] != first[1]
    other = parse_html(SAMPLE_HTML)
    assert other.select("a") != first


def test_end_to_end():
    doc = parse_html("<div><span><a id=\"x\">t</a></span></div>")
    assert doc.select("div > a") == []
    assert [a.attr("id") for a in doc.select("div a")] == ["x"]

    doc = parse_html("<div>one<span>two</span></div>")
    div = doc.select_one("div")
    assert [child.tag for child in div.children] == ["span"]
    assert div.text == "one"

    doc = parse_html("<div class='c'><a id='m' class='l b'>hi</a></div>")
    matches = doc.select("div.c > a.b.l")
    assert len(matches) == 1
    assert matches[0].attr("id") == "m"

    doc = parse_html("<a target='_blank'>x</a>")
    assert len(doc.select("a[target]")) == 1
    assert len(doc.select('a[target="_blank"]')) == 1
    assert doc.select('a[target="_self"]') == []


def test_tag_selector_order():
    doc = parse_html("<x id=1><y><x id=2></x></y><x id=3><x id='4'/></x></x><x id=5>")
    assert [x.attr("id") for x in doc.select("x")] == ["1", "2", "3", "4", "5"]


@pytest.mark.parametrize(
    "selector,matched",
    [
        ('[k^="blob"]', True),
        ('[k$="ovo"]', True),
        ('[k*="obo"]', True),
        ('[k="blobovo"]', True),
        ("[k]", True),
        ('[k="blob"]', False),
        ('[k^="ovo"]', False),
        ('[k$="blob"]', False),
        ('[k*="xyz"]', False),
    ],
)
def test_attribute_operators(selector, matched):
    doc = parse_html('<p k="blobovo"></p>')
    assert bool(doc.select("p" + selector)) is matched


@pytest.mark.parametrize(
    "html",
    [
        "",
        "<body><p>hello, world",
        "<p>hello, world</p></p>",
        "<p>hello, world</div>",
        '<img src="/image.png"></img>',
        "<div><span>text</div>after",
        "<<<>>> </ > <a <b>",
        "<![CDATA[x]]><?php echo 1; ?><!-- c -->",
    ],
)
def test_malformed_html(html):
    parse_html(html).select("p")


def test_recovery():
    doc = parse_html("<div><span>text</div>after")
    assert doc.select_one("span").text == "text"
    assert [a.tag for a in doc.select("div span")] == ["span"]
    assert doc.select_one("div").children[0].tag == "span"

    doc = parse_html("<p>hello, world</div>")
    assert doc.select_one("p").text == "hello, world"

    doc = parse_html("<ul><li>one<li>two</ul>")
    assert [li.text for li in doc.select("ul > li")] == ["one", "two"]
    assert [li.parent.tag for li in doc.select("li")] == ["ul", "ul"]

    doc = parse_html("<div></p></div>")
    assert len(doc.select("div > p")) == 1

    doc = parse_html("<p>x</p></body></html><p>y</p>")
    assert [p.text for p in doc.select("body > p")] == ["x", "y"]

    assert parse_html("").select("a") == []
    assert [child.tag for child in parse_html("").children] == ["html"]
    assert [child.tag for child in parse_html("").select("html > *")] == [
        "head",
        "body",
    ]


@pytest.mark.parametrize(
    "html,selector,texts",
    [
        ("<ul><li>one<li>two</ul>", "ul > li", ["one", "two"]),
        ("<div><p>a<p>b</div>", "div > p", ["a", "b"]),
        ("<p>a<div>b</div>", "body > *", ["a", "b"]),
        ("<p>a<ul><li>b</ul>", "body > *", ["a", ""]),
        ("<dl><dt>a<dd>b<dt>c</dl>", "dl > *", ["a", "b", "c"]),
        ("<select><option>a<option>b</select>", "select > option", ["a", "b"]),
        ("<h1>a<h2>b", "body > *", ["a", "b"]),
        ("<a>1<a>2</a>", "body > a", ["1", "2"]),
        ("<a href='x'>y</a>", "body a", ["y"]),
        ("<table><tr><td>1<td>2</table>", "tr > td", ["1", "2"]),
        ("<table><tr><td>1</table>", "table > tbody > tr > td", ["1"]),
        ("<table><td>1<tr><th>2</table>", "tbody > tr > *", ["1", "2"]),
        (
            "<table><thead><tr><th>h<tbody><tr><td>d</table>",
            "table > * > tr > *",
            ["h", "d"],
        ),
        (
            "<table><tr><td><table><tr><td>in</table>out<td>2</table>",
            "table > tbody > tr > td",
            ["out", "2", "in"],
        ),
        (
            "<ul><li>a<ul><li>b</ul><li>c</ul>",
            "body > ul > li",
            ["a", "c"],
        ),
        ("<li><div>a<li>b", "body > li", ["", "b"]),
        ("<b><p>x</b>y</p>", "b > p", ["xy"]),
    ],
)
def test_implied_end_tags(html, selector, texts):
    doc = parse_html(html)
    assert [element.text for element in doc.select(selector)] == texts


def test_document_wrappers():
    doc = parse_html("<title>t</title><meta charset=utf-8><p>x")
    assert [child.tag for child in doc.select("head > *")] == ["title", "meta"]
    assert doc.select_one("head > title").text == "t"
    assert [child.tag for child in doc.select("body > *")] == ["p"]

    doc = parse_html("text<p>x")
    assert doc.select_one("body").text == "text"
    assert doc.select("head > *") == []

    doc = parse_html("<html lang=en><p>x</p><body class='late'><html lang=fr dir=ltr>")
    assert doc.select_one("body").attr("class") == "late"
    html = doc.select_one("html")
    assert html.attrs == {"lang": "en", "dir": "ltr"}
    assert len(doc.select("body")) == 1

    doc = parse_html("<!-- c --><p>x</p>")
    assert doc.tree[1].kind is NodeKind.OTHER
    assert doc.tree[1].parent == Tree.ROOT
    assert [element.tag for element in doc.children] == ["html"]


def test_doctype_dropped():
    doc = parse_html("<!DOCTYPE html><p>x</p>")
    assert [node.tag for node in doc.tree.nodes[1:]] == [
        "html",
        "head",
        "body",
        "p",
        None,
    ]
    assert NodeKind.OTHER not in [node.kind for node in doc.tree.nodes[1:]]


def test_attribute_parsing():
    doc = parse_html('<a href="1" href="2" HREF="3" disabled>x</a>')
    a = doc.select_one("a")
    assert a.attr("href") == "1"
    assert a.attr("disabled") == ""
    assert list(a.attrs) == ["href", "disabled"]

    doc = parse_html('<p title="a &amp; b">x &lt; y</p>')
    p = doc.select_one("p")
    assert p.attr("title") == "a & b"
    assert p.text == "x < y"


def test_recovery_logging(caplog):
    with caplog.at_level(logging.DEBUG, logger="domq"):
        parse_html("<p>x</div>")
    assert "stray end tag 'div'" in caplog.text


def test_select_logging(doc, caplog):
    with caplog.at_level(logging.DEBUG, logger="domq"):
        doc.select("p  >  a")
    assert "selector 'p > a' matched 2 element(s)" in caplog.text


def test_deep_tree():
    depth = 5000
    html = "<div>" * depth + "<span>deep</span>" + "</div>" * depth
    doc = parse_html(html, unique=True)
    span = doc.select_one("span")
    assert span.text == "deep"
    assert len(doc.select("div")) == depth
    assert doc.select("div span") == [span]
    assert doc.select("div > span") == [span]

    element, ancestors = span, 0
    while element.parent is not None:
        element = element.parent
        ancestors += 1
    # html and body come on top of the divs.
    assert ancestors == depth + 2


def test_from_bytes():
    doc = Document.from_bytes("<p>café</p>".encode("utf-8"))
    assert doc.select_one("p").text == "café"
    assert parse_html(b"<p>x</p>").select_one("p").text == "x"
    doc = Document.from_bytes("<p>café</p>".encode("latin-1"), "latin-1")
    assert doc.select_one("p").text == "café"
    with pytest.raises(UnicodeDecodeError):
        parse_html(b"<p>\xff</p>")


def test_selector_structure():
    selector = Selector.from_str("DIV.c  >  a#m.b.l[href^=\"/x\"][rel]")
    assert len(selector) == 3
    div, child, a = selector
    assert div.tags == ["div"] and div.classes == ["c"] and not div.direct
    assert child.direct
    assert child.tags == child.classes == child.ids == [] and not child.attrs
    assert a.tags == ["a"]
    assert a.ids == ["m"]
    assert a.classes == ["b", "l"]
    assert list(a.attrs) == ["href", "rel"]
    assert a.attrs["href"].type == AttributeSelectorType.STARTS
    assert a.attrs["href"].val == "/x"
    assert a.attrs["rel"].type == AttributeSelectorType.PRESENT
    assert a.attrs["rel"].val is None


@pytest.mark.parametrize(
    "selector,attr,val,type",
    [
        ("[k]", "k", None, AttributeSelectorType.PRESENT),
        ('[k="v"]', "k", "v", AttributeSelectorType.EXACT),
        ("[k='v']", "k", "v", AttributeSelectorType.EXACT),
        ("[k=v]", "k", "v", AttributeSelectorType.EXACT),
        ("[k=]", "k", "", AttributeSelectorType.EXACT),
        ('[k^="v"]', "k", "v", AttributeSelectorType.STARTS),
        ('[k$=".png"]', "k", ".png", AttributeSelectorType.ENDS),
        ('[k*="#a.b"]', "k", "#a.b", AttributeSelectorType.CONTAINS),
        ('[data-K="a=b"]', "data-k", "a=b", AttributeSelectorType.EXACT),
        ('[k="a]b"]', "k", "a]b", AttributeSelectorType.EXACT),
        # Namespace prefixes are dropped, as they are from markup.
        ('[xlink:href="#r"]', "href", "#r", AttributeSelectorType.EXACT),
        ("[XLINK:HREF]", "href", None, AttributeSelectorType.PRESENT),
    ],
)
def test_attribute_selector_parsing(selector, attr, val, type):
    matcher = Selector.from_str(selector)[0]
    assert matcher.tags == matcher.classes == matcher.ids == []
    attr_selector = matcher.attrs[attr]
    assert attr_selector.val == val
    assert attr_selector.type == type


def test_repeated_attribute_clause():
    matcher = Selector.from_str('[k="a"][k^="b"]')[0]
    assert len(matcher.attrs) == 1
    assert matcher.attrs["k"].type == AttributeSelectorType.STARTS


@pytest.mark.parametrize(
    "selector",
    [
        "a",
        "*",
        "div.c > a#m.b.l[href^=\"/x\"][rel]",
        "[k=\"v\"] [k$='a\"b'] [k*=\"c\"]",
        "#a#b.c.d",
    ],
)
def test_selector_str(selector):
    assert str(Selector.from_str(selector)) == selector


@pytest.mark.parametrize(
    "selector",
    [
        "",
        " ",
        ">",
        "> a",
        "a >",
        "a > > b",
        "a > >",
        '[="x"]',
        'a[^="x"]',
        "a[~=x]",
        'a[title~="x"]',
        'a[title|="x"]',
        "a[]",
        "a[title",
        'a[title="x]',
        "a[title]x",
        "a.",
        "a#",
        "a..b",
        "a.b#",
        "p]",
        "p)",
        "a:hover",
        "svg:rect",
        "svg|rect",
        "a+b",
    ],
)
def test_bad_selector(selector):
    with pytest.raises(SelectorParserException):
        Selector.from_str(selector)


def test_parser_exception_message():
    with pytest.raises(SelectorParserException) as excinfo:
        Selector.from_str("a b[=x]")
    e = excinfo.value
    assert e.s == "a b[=x]"
    assert e.cursor == 4
    assert str(e).startswith("selector parser aborted at character 4 of 'a b[=x]': ")

    with pytest.raises(SelectorParserException) as excinfo:
        Selector.from_str("div a:hover")
    assert excinfo.value.cursor == 4
    assert "expecting tag name" in str(excinfo.value)


def test_bad_selector_type(doc):
    with pytest.raises(ValueError):
        doc.select(42)


def test_select_with_selector_object(doc):
    selector = Selector.from_str("p > a")
    assert doc.select(selector) == doc.select("p > a")


def test_query(doc):
    selector = Selector.from_str("aside > div")
    indices = query(doc.tree, Tree.ROOT, selector)
    assert [doc.tree[index].annotation for index in indices] == ["2.1.2.1", "2.1.2.2"]
    assert query(doc.tree, indices[0], selector) == []


@pytest.fixture
def html_file(tmp_path):
    path = tmp_path / "page.html"
    path.write_text(SAMPLE_HTML, encoding="utf-8")
    return str(path)


def test_cli_text(html_file, capsys):
    assert main(["p > a", html_file]) == 0
    assert capsys.readouterr().out == "Link 1.\nLink 2.\n"


def test_cli_attr(html_file, capsys):
    assert main(["--attr", "href", "a", html_file]) == 0
    assert capsys.readouterr().out == "/link1\n/link2\nhttps://example.com/\n"
    assert main(["--attr", "target", "--strict", "a[target]", html_file]) == 0
    assert capsys.readouterr().out == "_blank\n"


def test_cli_first_and_unique(html_file, capsys):
    assert main(["--first", "a", html_file]) == 0
    assert capsys.readouterr().out == "Link 1.\n"
    assert main(["--unique", "div.container div.container", html_file]) == 0
    assert capsys.readouterr().out.count("\n") == 3


def test_cli_no_match(html_file, capsys):
    assert main(["span", html_file]) == 1
    assert capsys.readouterr().out == ""


def test_cli_bad_selector(html_file, capsys):
    assert main(["a[=x]", html_file]) == 2
    assert "selector parser aborted" in capsys.readouterr().err
