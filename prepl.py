import edn
from errors import ProtocolViolation, TransportError
from repl import Repl, Response, ResponseType
from utils import logger

QUIT_COMMAND = ":repl/quit\n"


def get_value(key, record):
    """
    Reads a field of a pREPL record as text.
    Strings are taken as-is, keywords and symbols by name, booleans as
    true/false. Anything else counts as missing.
    """
    value = record.get(edn.Keyword(key))
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (edn.Keyword, edn.Symbol)):
        return value.name
    return None


def parse_record(text):
    """Parses one EDN map, raising ProtocolViolation for anything else."""
    try:
        record = edn.loads(text)
    except edn.EdnError as e:
        raise ProtocolViolation(f"Parse error: {e} in {text!r}") from e
    if not isinstance(record, dict):
        raise ProtocolViolation(f"Unexpected pREPL-response {text!r}")
    return record


class Prepl(Repl):
    """
    Client for pREPL (socket REPL with io-prepl) servers.
    Code goes out as plain text, every answer is one EDN map per line
    tagged :out, :err or :ret.
    """
    name = "pREPL"

    def quit(self):
        self._write(QUIT_COMMAND)

    def send(self, code):
        self._write(code)

    def receive(self):
        try:
            line = self.reader.readline()
        except OSError as e:
            raise TransportError(f"Read from pREPL failed: {e}") from e
        if not line:
            raise TransportError("pREPL closed the connection")

        text = line.decode('utf-8', errors='replace')
        logger.debug(f"Received {text.rstrip()}")
        record = parse_record(text)

        val = get_value("val", record)
        if val is None:
            raise ProtocolViolation(f"'val' not found in response {text!r}")
        tag = get_value("tag", record)
        if tag is None:
            raise ProtocolViolation(f"'tag' not found in response {text!r}")

        ns = get_value("ns", record)
        if ns is not None:
            self.namespace = ns

        if tag == "err":
            return Response(ResponseType.STDERR, val)
        if tag == "out":
            return Response(ResponseType.STDOUT, val)
        if tag == "ret":
            exception = record.get(edn.Keyword("exception"))
            if exception is not None and exception is not False:
                return Response(ResponseType.EXCEPTION, self._exception_cause(val))
            return Response(ResponseType.DONE, val)

        raise ProtocolViolation(f"Unknown tag in response '{tag}'")

    @staticmethod
    def _exception_cause(val):
        try:
            error = edn.loads(val)
        except edn.EdnError as e:
            raise ProtocolViolation(f"Unable to parse exception '{val}'") from e
        if not isinstance(error, dict):
            raise ProtocolViolation(f"Unable to parse exception '{val}'")

        cause = get_value("cause", error)
        if cause is None:
            raise ProtocolViolation(f"Unable to parse error '{val}'")
        return cause
