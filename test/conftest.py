from http.server import ThreadingHTTPServer, SimpleHTTPRequestHandler
from functools import partial
from threading import Thread
import pytest


def pytest_addoption(parser):
    parser.addoption("--runslow", action="store_true", default=False, help="run slow tests")

def pytest_configure(config):
    config.addinivalue_line("markers", "slow: mark test as slow to run")

def pytest_collection_modifyitems(config, items):

    if config.getoption("--runslow"):
        return

    skip_slow = pytest.mark.skip(reason="need --runslow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)

@pytest.fixture(scope = "session")
def tmp_context(tmp_path_factory):
    """This fixture is used to create a game's install context global to test session.
    """

    from gigalaunch.standard import Context
    return Context(tmp_path_factory.mktemp("context"))

@pytest.fixture
def linux():
    from gigalaunch.rules import Platform
    return Platform("linux", "x86_64")

@pytest.fixture
def windows():
    from gigalaunch.rules import Platform
    return Platform("windows", "x86_64")

@pytest.fixture
def http_root(tmp_path):
    """A local HTTP server serving the files of a temporary directory, yields the
    directory and the base URL (with trailing slash) of the server.
    """

    class QuietHandler(SimpleHTTPRequestHandler):
        def log_message(self, format, *args):
            pass

    root = tmp_path / "www"
    root.mkdir()

    server = ThreadingHTTPServer(("127.0.0.1", 0), partial(QuietHandler, directory=str(root)))
    thread = Thread(target=server.serve_forever, daemon=True)
    thread.start()

    try:
        yield root, f"http://127.0.0.1:{server.server_address[1]}/"
    finally:
        server.shutdown()
        server.server_close()
