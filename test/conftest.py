def pytest_configure(config):
    config.addinivalue_line("markers", "commit: fast tests run on every commit")
