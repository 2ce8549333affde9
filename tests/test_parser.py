import pytest

from minishell.parser import SPLITTER, Command, build_command, find_redirects, parse


def test_single_command():
    assert parse("echo hi") == [Command(["echo", "hi"], False, [])]


def test_pipe_sets_flag_on_writer():
    commands = parse("ls | wc")
    assert [c.argv for c in commands] == [["ls"], ["wc"]]
    assert [c.pipe for c in commands] == [True, False]


def test_semicolon_separates_commands():
    commands = parse("echo a ; ls")
    assert [c.argv for c in commands] == [["echo", "a"], ["ls"]]
    assert [c.pipe for c in commands] == [False, False]


def test_find_redirects_masks_and_collects():
    text = "cat <in >>out"
    masked, redirects = find_redirects(text)
    assert redirects == ["<in", ">>out"]
    assert len(masked) == len(text)
    assert masked.startswith("cat ")
    assert SPLITTER * 5 in masked


def test_redirect_with_space_before_file():
    command = build_command("cat > out file", False)
    assert command.argv == ["cat", "file"]
    assert command.redirects == ["> out"]


def test_redirect_glued_to_word():
    (command,) = parse("echo hi>f")
    assert command.argv == ["echo", "hi"]
    assert command.redirects == [">f"]


def test_quotes_keep_spaces():
    command = build_command("echo 'a b' \"c d\"", False)
    assert command.argv == ["echo", "'a b'", '"c d"']


def test_escaped_space_keeps_word():
    assert build_command(r"echo a\ b", False).argv == ["echo", r"a\ b"]


def test_redirect_inside_quotes_is_a_word():
    command = build_command("echo '>x'", False)
    assert command.redirects == []
    assert command.argv == ["echo", "'>x'"]


def test_pipe_flag_passed_through():
    assert build_command("ls", True).pipe is True


def test_blank_line_gives_empty_command():
    assert parse("   ") == [Command([], False, [])]


def test_empty_line_gives_nothing():
    assert parse("") == []


@pytest.mark.parametrize("line", ["echo hi", "ls | wc", "echo a ; ls", "cat <in >>out"])
def test_words_never_contain_splitter(line):
    for command in parse(line):
        assert all(SPLITTER not in word for word in command.argv)
        assert all(word for word in command.argv)