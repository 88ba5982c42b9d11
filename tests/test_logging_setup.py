import logging

import pytest
import structlog

from sniper.logging_config import drop_secrets, setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield root
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)
    structlog.reset_defaults()


def test_setup_logging_levels(restore_logging):
    root = restore_logging

    setup_logging("debug")
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)

    setup_logging(None)
    assert root.level == logging.INFO
    assert logging.getLogger("httpx").level == logging.WARNING


def test_drop_secrets():
    event = {
        "event": "wallet_loaded",
        "wallet": "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin",
        "wallet_secret": "[1, 2, 3]",
        "WALLET_SECRET": "abc",
        "private_key": "def",
    }

    assert drop_secrets(None, "info", event) == {
        "event": "wallet_loaded",
        "wallet": "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin",
    }


def test_secret_never_rendered(restore_logging, capsys):
    setup_logging("INFO")

    structlog.stdlib.get_logger("sniper.test").info(
        "wallet_loaded",
        wallet="PublicKey111",
        wallet_secret="s3cr3t-bytes",
    )

    out = capsys.readouterr().out
    assert "wallet_loaded" in out
    assert "PublicKey111" in out
    assert "s3cr3t-bytes" not in out
