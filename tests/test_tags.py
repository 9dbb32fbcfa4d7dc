from annodoc.docparse.tags import has_tag, parse_tags


def test_parse_tags_splits_prose_and_tags():
    clean, tags = parse_tags("Size of page {default: 10, required}.")
    assert clean == "Size of page."
    assert tags == ["default: 10", "required"]


def test_parse_tags_keeps_source_order_across_spans():
    clean, tags = parse_tags("a {x} b {y, z}")
    assert clean == "a b"
    assert tags == ["x", "y", "z"]


def test_parse_tags_param_line():
    clean, tags = parse_tags("hello: a desc {string, required}")
    assert clean == "hello: a desc"
    assert tags == ["string", "required"]


def test_parse_tags_unterminated_brace_is_text():
    assert parse_tags("foo {bar") == ("foo {bar", [])


def test_parse_tags_does_not_dedupe():
    _, tags = parse_tags("x {default: 1} {default: 2}")
    assert tags == ["default: 1", "default: 2"]


def test_parse_tags_empty_and_blank_pieces():
    assert parse_tags("") == ("", [])
    assert parse_tags("x {, ,}") == ("x", [])


def test_has_tag():
    assert has_tag("Hello there {omitdoc}", "omitdoc")
    assert not has_tag("Hello there", "omitdoc")
