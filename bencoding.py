import io


class BencodeError(ValueError):
    """Raised for malformed or truncated bencode data."""


class Decoder:
    """
    Decodes Bencoded data (d, l, i, s) as sent by nREPL servers.
    Uses a recursive descent parser over a binary stream, reading one byte
    ahead at most so the stream stays positioned right after the value.
    """
    def __init__(self, source, encoding=None):
        if isinstance(source, (bytes, bytearray)):
            source = io.BytesIO(source)
        self._stream = source
        self._encoding = encoding

    def decode(self):
        """Main entry point. Returns None if the stream ends before a value."""
        char = self._stream.read(1)
        if not char:
            return None
        return self._decode_value(char)

    def _decode_value(self, char):
        if char == b'i':
            return self._decode_int()
        elif char == b'l':
            return self._decode_list()
        elif char == b'd':
            return self._decode_dict()
        elif char.isdigit():
            return self._decode_string(char)
        else:
            raise BencodeError(f"Invalid bencoding: unexpected byte {char!r}")

    def _next(self):
        char = self._stream.read(1)
        if not char:
            raise BencodeError("Truncated bencode data")
        return char

    def _read_until(self, terminator, first=b''):
        buf = first
        char = self._next()
        while char != terminator:
            buf += char
            char = self._next()
        return buf

    def _decode_int(self):
        digits = self._read_until(b'e')
        try:
            return int(digits)
        except ValueError:
            raise BencodeError(f"Invalid integer format: {digits!r}") from None

    def _read_string(self, first):
        digits = self._read_until(b':', first)
        if not digits.isdigit():
            raise BencodeError(f"Invalid string length: {digits!r}")

        length = int(digits)
        s = self._stream.read(length)
        if len(s) != length:
            raise BencodeError("Truncated bencode data")
        return s

    def _decode_string(self, first):
        s = self._read_string(first)
        if self._encoding:
            return s.decode(self._encoding, errors='replace')
        return s

    def _decode_list(self):
        lst = []
        char = self._next()
        while char != b'e':
            lst.append(self._decode_value(char))
            char = self._next()
        return lst

    def _decode_dict(self):
        d = {}
        char = self._next()
        while char != b'e':
            if not char.isdigit():
                # Keys in bencoded dicts must be strings
                raise BencodeError("Dict keys must be strings")
            key = self._read_string(char).decode('utf-8', errors='replace')
            d[key] = self._decode_value(self._next())
            char = self._next()
        return d


class Encoder:
    """
    Encodes nREPL requests into Bencoded bytes.
    Requests are dicts with text keys; values may be text, bytes, integers
    or lists of those (e.g. the "status" list in a reply).
    """
    @staticmethod
    def encode(data):
        if isinstance(data, str):
            return Encoder.encode(data.encode('utf-8'))
        elif isinstance(data, bytes):
            return f"{len(data)}:".encode() + data
        elif isinstance(data, bool):
            raise TypeError("Cannot encode type: bool")
        elif isinstance(data, int):
            return f"i{data}e".encode()
        elif isinstance(data, list):
            return b"l" + b"".join(Encoder.encode(item) for item in data) + b"e"
        elif isinstance(data, dict):
            return Encoder._encode_dict(data)
        else:
            raise TypeError(f"Cannot encode type: {type(data)}")

    @staticmethod
    def _encode_dict(data):
        entries = []
        for key, value in data.items():
            if not isinstance(key, str):
                raise TypeError(f"Dict keys must be strings, got {type(key)}")
            entries.append((key.encode('utf-8'), value))

        # Keys are sorted by their raw bytes
        encoded = b"d"
        for key, value in sorted(entries, key=lambda entry: entry[0]):
            encoded += Encoder.encode(key) + Encoder.encode(value)
        return encoded + b"e"
