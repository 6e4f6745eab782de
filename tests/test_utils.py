import pytest

from agent.errors import TransientDriverError
from browser.driver import parse_instruction, substitute_variables
from browser.utils import find_filename, resolve_action_target, scrape_code_blocks, unique_filename


@pytest.mark.parametrize(
    "label, expected",
    [
        ("login.tsx", "login.tsx"),
        ("login-form.tsx tab", "login-form.tsx"),
        ("app/page.tsx", "app/page.tsx"),
        ("Preview v0.dev", None),
        ("Version 1.5", None),
        ("Copy code", None),
        (None, None),
    ],
)
def test_find_filename(label, expected):
    assert find_filename(label) == expected


def test_resolve_prefers_exact_phrase_and_shorter_label():
    labels = ["Sign in with GitHub", "Sign in", "Sign up"]
    assert resolve_action_target("sign in button", labels) == 1
    assert resolve_action_target("sign in with github", labels) == 0


def test_resolve_partial_overlap():
    labels = ["Copy code", "Code", "Preview"]
    assert resolve_action_target("Code tab", labels) == 1
    assert resolve_action_target("copy button", labels) == 0


def test_resolve_no_match():
    assert resolve_action_target("download button", ["Copy code", "Preview"]) is None
    assert resolve_action_target("the button", ["Copy code"]) is None


def test_scrape_names_unlabeled_blocks():
    html = "<pre>const a = 1;</pre><pre>const b = 2;</pre><pre> </pre>"
    assert scrape_code_blocks(html) == {"code.tsx": "const a = 1;", "code-2.tsx": "const b = 2;"}


def test_scrape_falls_back_to_code_elements():
    html = '<div><code title="utils.ts">export const x = 1</code></div>'
    assert scrape_code_blocks(html) == {"utils.ts": "export const x = 1"}


def test_parse_instruction():
    assert parse_instruction("click the Code tab") == {"type": "click", "target": "Code tab"}
    assert parse_instruction("enter %prompt% into the prompt textarea") == {
        "type": "fill", "target": "prompt textarea", "value": "%prompt%",
    }
    with pytest.raises(TransientDriverError):
        parse_instruction("scroll down")


def test_substitute_variables():
    assert substitute_variables("%email%", {"email": "dev@example.com"}) == "dev@example.com"
    assert substitute_variables("%missing%", {"email": "x"}) == "%missing%"
    assert substitute_variables("plain", None) == "plain"


def test_scrape_never_overwrites_taken_names():
    html = '<pre data-filename="code-2.tsx">A</pre><pre>B</pre><pre>C</pre>'
    assert scrape_code_blocks(html) == {"code-2.tsx": "A", "code.tsx": "B", "code-3.tsx": "C"}


def test_scrape_suffixes_duplicate_real_names():
    html = '<pre title="page.tsx">one</pre><pre title="page.tsx">two</pre>'
    files = scrape_code_blocks(html)
    assert list(files) == ["page.tsx", "page-2.tsx"]
    assert files["page-2.tsx"] == "two"


def test_unique_filename():
    assert unique_filename("app.tsx", {}) == "app.tsx"
    assert unique_filename("app.tsx", {"app.tsx", "app-2.tsx"}) == "app-3.tsx"
    assert unique_filename("Dockerfile", {"Dockerfile"}) == "Dockerfile-2"
