"""
Tests for link extraction, text normalization and URL normalization.
"""

import pytest

from search_crawler.crawler.parser import (
    ContentParser,
    TextNormalizer,
    extract_links,
    normalize,
    normalize_url,
    resolve_link,
)
from search_crawler.exceptions import ParseError


BASE = 'http://example.com/dir/page.html'


class TestNormalizeUrl:

    def test_lowercases_scheme_and_host_and_drops_fragment(self):
        assert normalize_url('HTTP://Example.COM/Path?q=1#frag') == 'http://example.com/Path?q=1'

    def test_empty_path_becomes_slash(self):
        assert normalize_url('https://example.com') == 'https://example.com/'

    def test_default_port_dropped_other_port_kept(self):
        assert normalize_url('http://example.com:80/a') == 'http://example.com/a'
        assert normalize_url('https://example.com:443/a') == 'https://example.com/a'
        assert normalize_url('http://example.com:8080/a') == 'http://example.com:8080/a'

    @pytest.mark.parametrize('url', [
        '',
        'not a url',
        '/relative/path',
        'ftp://example.com/file',
        'mailto:someone@example.com',
        'http://',
        'http://[::1',
    ])
    def test_rejects_non_http_urls(self, url):
        assert normalize_url(url) is None

    def test_identical_after_normalization(self):
        assert normalize_url('http://EXAMPLE.com:80') == normalize_url('http://example.com/#top')


class TestExtractLinks:

    def test_resolves_relative_links(self):
        markup = '<a href="other.html">x</a><a href="/root.html">y</a><a href="../up.html">z</a>'
        assert extract_links(BASE, markup) == [
            'http://example.com/dir/other.html',
            'http://example.com/root.html',
            'http://example.com/up.html',
        ]

    def test_strips_fragments_and_removes_duplicates(self):
        markup = '<a href="a.html#one">1</a><a href="a.html#two">2</a><a href="a.html">3</a>'
        assert extract_links(BASE, markup) == ['http://example.com/dir/a.html']

    def test_tag_and_attribute_matching_is_case_insensitive(self):
        markup = "<A HREF='b.html'>b</A><a Href=\"c.html\">c</a>"
        assert extract_links(BASE, markup) == [
            'http://example.com/dir/b.html',
            'http://example.com/dir/c.html',
        ]

    def test_skips_non_navigable_and_malformed_hrefs(self):
        markup = (
            '<a href="#top">top</a>'
            '<a href="mailto:a@b.c">mail</a>'
            '<a href="javascript:void(0)">js</a>'
            '<a href="ftp://example.com/f">ftp</a>'
            '<a href="http://[::1">bad</a>'
            '<a href="">empty</a>'
            '<a>no href</a>'
            '<a href="https://other.org/x">ok</a>'
        )
        assert extract_links(BASE, markup) == ['https://other.org/x']

    def test_keeps_query_strings_and_decodes_entities_in_href(self):
        markup = '<a href="search?a=1&amp;b=2">s</a>'
        assert extract_links(BASE, markup) == ['http://example.com/dir/search?a=1&b=2']

    def test_malformed_markup_is_tolerated(self):
        markup = '<html><body><a href="x.html">unclosed <div><a href="y.html">'
        assert extract_links(BASE, markup) == [
            'http://example.com/dir/x.html',
            'http://example.com/dir/y.html',
        ]

    def test_resolve_link_rejects_none(self):
        assert resolve_link(BASE, None) is None


class TestNormalize:

    def test_strips_tags_scripts_comments_and_entities(self):
        markup = (
            '<html><head><style>p { color: red; }</style></head>'
            '<body><p>Hello, World!</p><script>var hidden = 1;</script>'
            '<!-- secret comment --> caf&eacute; 2nd&nbsp;place</body></html>'
        )
        assert normalize(markup) == ['hello', 'world', 'caf', '2nd', 'place']

    def test_punctuation_only_tokens_do_not_take_a_position(self):
        assert normalize('<p>alpha -- ... beta</p>') == ['alpha', 'beta']

    def test_adjacent_elements_do_not_merge_words(self):
        assert normalize('<p>one</p><p>two</p>') == ['one', 'two']

    def test_stemming_is_optional(self):
        assert normalize('<p>Running runs</p>') == ['running', 'runs']
        assert normalize('<p>Running runs</p>', stemming=True) == ['run', 'run']

    def test_empty_document(self):
        assert normalize('') == []

    def test_clean_single_token(self):
        normalizer = TextNormalizer()
        assert normalizer.clean("Don't!") == 'dont'
        assert normalizer.clean('___') == ''


class TestContentParser:

    def test_parse_extracts_words_and_links(self):
        parser = ContentParser()
        parsed = parser.parse(BASE, '<p>Cats &amp; dogs</p><a href="next.html">Next</a>')

        assert parsed.url == BASE
        assert parsed.words == ['cats', 'dogs', 'next']
        assert parsed.word_count == 3
        assert parsed.links == ['http://example.com/dir/next.html']

    def test_missing_content_raises_parse_error(self):
        with pytest.raises(ParseError):
            ContentParser().parse(BASE, None)

    def test_normalizer_failure_is_wrapped(self):
        class BrokenNormalizer(TextNormalizer):
            def words(self, text):
                raise RuntimeError("boom")

        with pytest.raises(ParseError) as excinfo:
            ContentParser(BrokenNormalizer()).parse(BASE, '<p>text</p>')
        assert excinfo.value.url == BASE
