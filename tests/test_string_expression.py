import socket

import pytest

from procvisor.string_expression import StringExpression, StringExpressionError


def test_eval_string_and_padded_int():
    se = StringExpression()
    se.add("var1", "ok").add("var2", "2")
    assert se.eval("%(var1)s_test_%(var2)02d") == "ok_test_02"


def test_environment_variable_with_equals(monkeypatch):
    monkeypatch.setenv("FOO", "BAR=BAZ")
    se = StringExpression()
    assert se.eval("%(ENV_FOO)s") == "BAR=BAZ"


def test_constructor_pairs():
    se = StringExpression("program_name", "web", "process_num", "3")
    assert se.eval("%(program_name)s-%(process_num)d") == "web-3"


def test_add_returns_same_object():
    se = StringExpression()
    assert se.add("a", "b") is se


def test_no_expression_unchanged():
    se = StringExpression()
    assert se.eval("/bin/ls -l") == "/bin/ls -l"


def test_host_node_name():
    se = StringExpression()
    assert se.eval("%(host_node_name)s") == socket.gethostname()


def test_missing_variable_raises():
    se = StringExpression()
    with pytest.raises(StringExpressionError):
        se.eval("%(definitely_not_defined_var)s")


def test_non_integer_for_d_raises():
    se = StringExpression("x", "abc")
    with pytest.raises(StringExpressionError):
        se.eval("%(x)d")


def test_unsupported_type_raises():
    se = StringExpression("x", "1")
    with pytest.raises(StringExpressionError):
        se.eval("%(x)x")


def test_unterminated_expression_raises():
    se = StringExpression("abc", "1")
    with pytest.raises(StringExpressionError):
        se.eval("%(abc")