import textwrap

from annodoc.extractors.comments import extract_comment_blocks, line_comments

SRC = textwrap.dedent(
    '''\
    import x

    # GET /a
    # Tagline
    #
    #   indented
    y = 1  # trailing

    def f():
        """
        POST /b

        Response: $empty
        """
    '''
)


def test_line_comments_standalone_and_trailing():
    comments = line_comments(SRC)
    assert comments[3].text == "GET /a"
    assert comments[3].standalone
    assert comments[5].text == ""
    assert comments[6].text == "  indented"
    assert comments[7].text == "trailing"
    assert not comments[7].standalone


def test_extract_comment_blocks_groups_and_docstrings():
    blocks = extract_comment_blocks(SRC)
    assert [(b.source, b.line) for b in blocks] == [("comment", 3), ("docstring", 11)]

    assert blocks[0].text == "GET /a\nTagline\n\n  indented"
    assert blocks[0].end_line == 6
    assert blocks[1].text == "POST /b\n\nResponse: $empty"


def test_separate_groups_are_separate_blocks():
    src = "# one\n# two\n\n# three\n"
    blocks = extract_comment_blocks(src)
    assert [b.text for b in blocks] == ["one\ntwo", "three"]
    assert [b.line for b in blocks] == [1, 4]


def test_leading_empty_comment_lines_are_dropped():
    src = "#\n#\n# GET /x\n"
    blocks = extract_comment_blocks(src)
    assert blocks[0].text == "GET /x"
    assert blocks[0].line == 3


def test_module_and_class_docstrings():
    src = '"""Module doc."""\n\nclass A:\n    """Class doc."""\n'
    blocks = extract_comment_blocks(src)
    assert [b.text for b in blocks] == ["Module doc.", "Class doc."]
