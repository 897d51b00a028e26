import os
import sys
import argparse

from errors import ReplError
from repl import get_repl
from ui import ui
from utils import logger, read_port_file, set_verbose, PORT_FILE

DEFAULT_HOST = "127.0.0.1"
HISTORY_FILE = os.path.join(os.path.expanduser("~"), ".ruply_history")

OPENERS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = set(OPENERS.values())


def is_balanced(text):
    """
    Checks whether every bracket opened in text has been closed.
    Brackets inside strings, comments and character literals don't count.
    Surplus closers count as balanced, the server will report them.
    """
    depth = 0
    i = 0
    n = len(text)
    in_string = False

    while i < n:
        c = text[i]
        if in_string:
            if c == "\\":
                i += 1
            elif c == '"':
                in_string = False
        elif c == '"':
            in_string = True
        elif c == ";":
            while i < n and text[i] != "\n":
                i += 1
        elif c == "\\":
            # Character literal such as \( or \]
            i += 1
        elif c in OPENERS:
            depth += 1
        elif c in CLOSERS:
            depth = max(depth - 1, 0)
        i += 1

    return depth == 0 and not in_string


def read_form(repl):
    """Reads lines until the brackets balance and returns the whole form."""
    lines = [ui.prompt(repl.namespace)]
    while not is_balanced("\n".join(lines)):
        lines.append(ui.prompt(repl.namespace, continuation=True))
    return "\n".join(lines)


def drain(repl):
    """Prints response events until the one that ends the evaluation."""
    while True:
        response = repl.receive()
        ui.print_response(response)
        if response.is_terminal():
            return response


def setup_history(path):
    """Loads readline history and arranges for it to be saved at exit."""
    try:
        import readline
    except ImportError:
        logger.debug("readline not available, history disabled")
        return None

    try:
        readline.read_history_file(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not read history from {path}: {e}")

    import atexit

    atexit.register(_save_history, readline, path)
    return readline


def _save_history(readline, path):
    try:
        readline.write_history_file(path)
    except OSError as e:
        logger.warning(f"Could not write history to {path}: {e}")


def main_loop(repl):
    """Read, send, drain, repeat. Returns when the user ends the session."""
    while True:
        try:
            code = read_form(repl)
        except KeyboardInterrupt:
            ui.console.print("CTRL-C")
            break
        except EOFError:
            ui.console.print("CTRL-D")
            break

        if not code.strip():
            continue

        # Line oriented servers need the newline to start evaluating
        repl.send(code + "\n")
        try:
            drain(repl)
        except KeyboardInterrupt:
            # The evaluation may still be running, its replies can't be matched up
            ui.console.print("CTRL-C")
            break


def create_parser():
    parser = argparse.ArgumentParser(
        prog="ruply",
        description="Terminal client for nREPL and pREPL servers.",
    )
    parser.add_argument(
        "-H", "--host", default=DEFAULT_HOST, help=f"REPL host (default: {DEFAULT_HOST})"
    )
    parser.add_argument(
        "-p", "--port", type=int,
        help=f"REPL port (default: read from {PORT_FILE})",
    )
    parser.add_argument(
        "--history", default=HISTORY_FILE, help="History file"
    )
    parser.add_argument(
        "--no-history", action="store_true", help="Don't load or save history"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log protocol traffic"
    )
    return parser


def main(argv=None):
    parser = create_parser()
    args = parser.parse_args(argv)
    set_verbose(args.verbose)

    port = args.port if args.port is not None else read_port_file()
    if port is None:
        parser.error(f"no --port given and no {PORT_FILE} file found")

    if not args.no_history:
        setup_history(args.history)

    try:
        repl = get_repl(args.host, port)
    except ReplError as e:
        logger.debug("Connection failed", exc_info=True)
        ui.print_log(str(e), "ERROR")
        return 1

    with repl:
        ui.banner(repl.name, args.host, port)
        try:
            main_loop(repl)
        except ReplError as e:
            logger.debug("Session aborted", exc_info=True)
            ui.print_log(str(e), "ERROR")
            return 1

        try:
            repl.quit()
        except ReplError as e:
            logger.warning(f"Quit failed: {e}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
