import logging

from addonlink import config
from addonlink import logging as addonlink_logging


def _use_logging_config(monkeypatch, **section):
    merged = config._deep_merge(config.DEFAULTS, {"logging": section})
    monkeypatch.setattr(config, "_CONFIG", config.Config(merged=config._normalize_and_coerce(merged)))


def test_file_handler_and_module_levels(tmp_path, monkeypatch):
    log_file = tmp_path / "logs" / "addonlink.log"
    _use_logging_config(monkeypatch, file=str(log_file), color=False, module_levels={"noisy": "ERROR"})
    addonlink_logging.configure()

    addonlink_logging.get_logger("planner").info("planned %d bundles", 3)
    addonlink_logging.get_logger("noisy").warning("hidden")
    logging.getLogger("addonlink.config").warning("from a child logger")
    for handler in logging.getLogger("addonlink").handlers:
        handler.flush()

    text = log_file.read_text()
    assert "[planner] planned 3 bundles" in text
    assert "hidden" not in text
    assert "[addonlink.config] from a child logger" in text


def test_set_level(monkeypatch):
    _use_logging_config(monkeypatch, level="WARNING")
    addonlink_logging.configure()
    addonlink_logging.set_level(logging.DEBUG)
    root = logging.getLogger("addonlink")
    assert root.level == logging.DEBUG
    assert all(h.level == logging.DEBUG for h in root.handlers)


def test_color_formatter():
    record = logging.LogRecord("addonlink", logging.ERROR, __file__, 1, "boom", None, None)
    assert addonlink_logging.ColorFormatter("%(message)s", color=True).format(record) == "\033[31mboom\033[0m"
    assert addonlink_logging.ColorFormatter("%(message)s", color=False).format(record) == "boom"
