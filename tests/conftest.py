"""Shared fixtures: in-memory stand-ins for TCP sockets."""

import io

import pytest


class _Capture(io.BytesIO):
    """Write side of a fake socket that survives close() so tests can inspect it."""

    def close(self):
        pass


class FakeSocket:
    """Socket double serving canned bytes and recording what was written."""

    def __init__(self, incoming=b"", shutdown_error=None):
        self.incoming = io.BytesIO(incoming)
        self.outgoing = _Capture()
        self.shutdown_error = shutdown_error
        self.shut_down = False
        self.closed = False

    @property
    def sent(self):
        return self.outgoing.getvalue()

    def makefile(self, mode):
        return self.incoming if "r" in mode else self.outgoing

    def sendall(self, data):
        self.outgoing.write(data)

    def recv(self, size):
        return self.incoming.read(size)

    def shutdown(self, how):
        if self.shutdown_error:
            raise self.shutdown_error
        self.shut_down = True

    def close(self):
        self.closed = True


class Connector:
    """Replacement for socket.create_connection handing out prepared sockets."""

    def __init__(self, *sockets, error=None):
        self.sockets = list(sockets)
        self.error = error
        self.addresses = []

    def __call__(self, address):
        self.addresses.append(address)
        if self.error:
            raise self.error
        return self.sockets.pop(0)


@pytest.fixture
def fake_socket():
    return FakeSocket


@pytest.fixture
def connector():
    return Connector
