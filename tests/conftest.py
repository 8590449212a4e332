import os
import logging

from hypothesis import settings


settings.register_profile("dev", deadline=None)

if "CI" in os.environ:
    # CI can be slow, so be patient
    # Also we can run more tests there
    settings.register_profile(
        "ci",
        deadline=None,
        max_examples=settings.default.max_examples * 5)
    settings.load_profile("ci")
else:
    settings.load_profile("dev")


def pytest_configure(config):
    # make the debug records of the library visible in failure reports
    logging.getLogger("metatag").setLevel(logging.DEBUG)
