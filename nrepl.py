from bencoding import BencodeError, Decoder, Encoder
from errors import ProtocolViolation, TransportError
from repl import Repl, Response, ResponseType
from utils import logger


class Nrepl(Repl):
    """
    Client for nREPL servers.
    Requests and responses are bencoded dictionaries; one eval request
    yields a stream of out/err/value messages closed by status "done".
    """
    name = "nREPL"

    def quit(self):
        # nREPL has no quit message, closing the socket ends the session
        pass

    def send(self, code):
        self._write(Encoder.encode({"op": "eval", "code": code}))

    def receive(self):
        try:
            message = Decoder(self.reader, encoding='utf-8').decode()
        except BencodeError as e:
            raise ProtocolViolation(f"Malformed nREPL message: {e}") from e
        except OSError as e:
            raise TransportError(f"Read from nREPL failed: {e}") from e

        if message is None:
            raise TransportError("nREPL closed the connection")
        if not isinstance(message, dict):
            raise ProtocolViolation(f"Unexpected response from nREPL: {message!r}")

        logger.debug(f"Received {message}")
        return self._classify(message)

    def _classify(self, message):
        ns = message.get("ns")
        if isinstance(ns, str):
            self.namespace = ns

        # First matching field wins
        for key, response_type in (
            ("err", ResponseType.STDERR),
            ("out", ResponseType.STDOUT),
            ("value", ResponseType.RESULT),
        ):
            if isinstance(message.get(key), str):
                return Response(response_type, message[key])

        status = message.get("status")
        if isinstance(status, list):
            if "done" in status:
                return Response(ResponseType.DONE)
            return Response(ResponseType.IGNORABLE)

        raise ProtocolViolation(f"Unexpected response message from nREPL: {message!r}")
