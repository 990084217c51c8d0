import socket
import socketserver
import threading

import pytest


class _BannerHandler(socketserver.BaseRequestHandler):
    banner = b"hello\n"

    def handle(self):
        self.request.sendall(self.banner)
        try:
            self.request.recv(1)
        except OSError:
            pass


class _SilentHandler(socketserver.BaseRequestHandler):
    def handle(self):
        try:
            self.request.recv(1)
        except OSError:
            pass


class _Server(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True


def _serve(handler):
    server = _Server(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server, thread


@pytest.fixture
def banner_server():
    server, thread = _serve(_BannerHandler)
    try:
        yield server.server_address[1]
    finally:
        server.shutdown()
        server.server_close()
        thread.join()


@pytest.fixture
def silent_server():
    server, thread = _serve(_SilentHandler)
    try:
        yield server.server_address[1]
    finally:
        server.shutdown()
        server.server_close()
        thread.join()


@pytest.fixture
def closed_port():
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


@pytest.fixture
def no_sleep():
    calls = []
    return calls.append, calls
