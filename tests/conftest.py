from pytest_socket import disable_socket


def pytest_runtest_setup():
    """
    Runs before every test.
    Network access is disabled; the Luxpower API is served by
    httpx.MockTransport handlers instead.
    """
    disable_socket(allow_unix_socket=True)
