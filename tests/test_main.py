"""Tests for the interactive front end."""

import pytest

import main
from errors import TransportError
from prepl import Prepl
from repl import Response, ResponseType
from ui import ui


def feed(monkeypatch, *lines):
    """Replace the prompt with canned input, ending with Ctrl-D."""
    pending = list(lines)
    prompts = []

    def prompt(namespace, continuation=False):
        prompts.append((namespace, continuation))
        if not pending:
            raise EOFError
        return pending.pop(0)

    monkeypatch.setattr(ui, "prompt", prompt)
    return prompts


class TestIsBalanced:
    """Test multi-line input detection."""

    @pytest.mark.parametrize("text", [
        "(+ 1 1)",
        "x",
        "[1 {2 3}]",
        '(str ")")',
        "(list \\()",
        "(+ 1 ; ignore (\n 2)",
        "(+ 1 1))",
    ])
    def test_balanced(self, text):
        assert main.is_balanced(text)

    @pytest.mark.parametrize("text", [
        "(defn f [x]",
        '(str "abc',
        "{:a [1 2}",
        '(println "\\")',
    ])
    def test_unbalanced(self, text):
        assert not main.is_balanced(text)


class TestReadForm:
    """Test reading input from the prompt."""

    def test_single_line(self, fake_socket, monkeypatch):
        prompts = feed(monkeypatch, "(+ 1 1)")
        assert main.read_form(Prepl(fake_socket())) == "(+ 1 1)"
        assert prompts == [("user", False)]

    def test_continuation_lines(self, fake_socket, monkeypatch):
        prompts = feed(monkeypatch, "(defn f [x]", "  (* x x))")
        assert main.read_form(Prepl(fake_socket())) == "(defn f [x]\n  (* x x))"
        assert prompts == [("user", False), ("user", True)]


class TestDrain:
    """Test draining response events."""

    def test_stops_at_terminal_event(self, fake_socket, monkeypatch):
        shown = []
        monkeypatch.setattr(ui, "print_response", shown.append)
        repl = Prepl(fake_socket(
            b'{:tag :out :val "hi"}\n'
            b'{:tag :ret :val "3"}\n'
            b'{:tag :out :val "next"}\n'
        ))

        last = main.drain(repl)

        assert last == Response(ResponseType.DONE, "3")
        assert [r.type for r in shown] == [ResponseType.STDOUT, ResponseType.DONE]

    def test_exception_ends_drain(self, fake_socket, monkeypatch):
        monkeypatch.setattr(ui, "print_response", lambda response: None)
        repl = Prepl(fake_socket(b'{:tag :ret :val "{:cause \\"bad\\"}" :exception true}\n'))
        assert main.drain(repl) == Response(ResponseType.EXCEPTION, "bad")


class TestMainLoop:
    """Test the read/send/drain loop."""

    def test_sends_forms_and_skips_blank_lines(self, fake_socket, monkeypatch):
        monkeypatch.setattr(ui, "print_response", lambda response: None)
        feed(monkeypatch, "   ", "(+ 1 1)")
        sock = fake_socket(b'{:tag :ret :val "2" :ns "user"}\n')

        main.main_loop(Prepl(sock))

        assert sock.sent == b"(+ 1 1)\n"

    def test_transport_error_propagates(self, fake_socket, monkeypatch):
        feed(monkeypatch, "(+ 1 1)")
        with pytest.raises(TransportError):
            main.main_loop(Prepl(fake_socket(b"")))

    def test_ctrl_c_while_waiting_ends_session(self, fake_socket, monkeypatch):
        def interrupted(repl):
            raise KeyboardInterrupt

        monkeypatch.setattr(main, "drain", interrupted)
        prompts = feed(monkeypatch, "(Thread/sleep 10000)", "(+ 1 1)")
        sock = fake_socket()

        main.main_loop(Prepl(sock))

        assert sock.sent == b"(Thread/sleep 10000)\n"
        assert len(prompts) == 1


class TestMain:
    """Test the entry point."""

    def test_session_quits_and_closes(self, fake_socket, monkeypatch):
        sock = fake_socket()
        monkeypatch.setattr(main, "get_repl", lambda host, port: Prepl(sock))
        feed(monkeypatch)

        assert main.main(["-p", "5555", "--no-history"]) == 0
        assert sock.sent == b":repl/quit\n"
        assert sock.closed

    def test_connection_failure_exits_with_error(self, monkeypatch):
        def fail(host, port):
            raise TransportError("Unable to connect")

        monkeypatch.setattr(main, "get_repl", fail)
        assert main.main(["-p", "5555", "--no-history"]) == 1

    def test_port_from_port_file(self, fake_socket, monkeypatch, tmp_path):
        (tmp_path / ".nrepl-port").write_text("4242")
        monkeypatch.chdir(tmp_path)
        seen = []

        def connect(host, port):
            seen.append((host, port))
            return Prepl(fake_socket())

        monkeypatch.setattr(main, "get_repl", connect)
        feed(monkeypatch)

        assert main.main(["--no-history"]) == 0
        assert seen == [("127.0.0.1", 4242)]

    def test_missing_port_is_a_usage_error(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(SystemExit) as excinfo:
            main.main(["--no-history"])
        assert excinfo.value.code == 2


class TestPrintResponse:
    """Test what reaches the terminal."""

    def test_output_and_terminal_payload(self, capsys):
        ui.print_response(Response(ResponseType.STDOUT, "hi "))
        ui.print_response(Response(ResponseType.IGNORABLE))
        ui.print_response(Response(ResponseType.DONE, "[1 2]"))
        assert capsys.readouterr().out == "hi [1 2]\n"

    def test_done_without_payload_prints_nothing(self, capsys):
        ui.print_response(Response(ResponseType.DONE))
        assert capsys.readouterr().out == ""
