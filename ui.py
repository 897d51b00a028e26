from rich.console import Console
from rich.text import Text
from datetime import datetime
from repl import ResponseType

console = Console()

PROMPT_STYLE = "bold green"

STYLES = {
    ResponseType.STDERR: "yellow",
    ResponseType.EXCEPTION: "bold red",
}


class RuplyUI:
    def __init__(self):
        self.console = console

    def banner(self, name, host, port):
        """Prints the one-time connection banner."""
        self.console.print()
        self.console.print(
            Text.assemble("Connected to ", (name, "bold cyan"), f" at {host}:{port}")
        )
        self.console.print("Exit: CTRL+D", style="dim")
        self.console.print()

    def prompt(self, namespace, continuation=False):
        """Reads one line of input behind a namespace prompt."""
        text = f"{namespace}=> "
        if continuation:
            text = " " * (len(text) - 3) + ".. "
        return self.console.input(Text(text, style=PROMPT_STYLE))

    def print_response(self, response):
        """Prints whatever part of a response event is meant for the user."""
        text = response.render()
        if text is None:
            return
        if response.is_terminal():
            # Terminal payloads come without a trailing newline
            text += "\n"
        self.console.print(
            text, style=STYLES.get(response.type), end="",
            markup=False, highlight=False, soft_wrap=True
        )

    def print_log(self, message, level="INFO"):
        """Prints a styled log message."""
        color = "green" if level == "INFO" else "red"
        if level == "WARNING": color = "yellow"

        time_str = f"[{datetime.now().strftime('%H:%M:%S')}]"
        self.console.print(f"{time_str} [bold {color}]{level}[/]: ", end="")
        self.console.print(message, markup=False, highlight=False)


ui = RuplyUI()
