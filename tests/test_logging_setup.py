import logging
import uuid

import pytest

from movement_import.logging_setup import LEVEL_ENV, import_logger, resolve_level


@pytest.mark.parametrize(
    ("level", "env", "expected"),
    [
        ("debug", None, logging.DEBUG),
        (" 30 ", None, logging.WARNING),
        (logging.ERROR, "DEBUG", logging.ERROR),
        (None, "warning", logging.WARNING),
        ("loud", "ERROR", logging.ERROR),
        (None, "nope", logging.INFO),
        (None, None, logging.INFO),
    ],
)
def test_resolve_level(monkeypatch, level, env, expected):
    monkeypatch.delenv(LEVEL_ENV, raising=False)
    if env is not None:
        monkeypatch.setenv(LEVEL_ENV, env)
    assert resolve_level(level) == expected


def test_import_logger_prefixes_org_and_file():
    org = uuid.uuid4()
    adapter = import_logger("movement_import.test", organization_id=org, file_name="movs.csv")
    msg, kwargs = adapter.process("submit inserted=%d", {})
    assert msg == f"[org={org} file=movs.csv] submit inserted=%d"
    assert kwargs == {}
    assert adapter.logger.name == "movement_import.test"
