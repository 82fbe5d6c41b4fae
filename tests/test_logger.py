import logging
import re

from frdocker.logger import TRACE, LogFormatter, new_logger

LINE = re.compile(r"^\[\d{4}-\d\d-\d\d \d\d:\d\d:\d\d\.\d{3}\]\[([A-Z]{4})\] (.*)$")


def _record(level, msg, *args):
    return logging.LogRecord("t", level, __file__, 1, msg, args, None)


def test_plain_format():
    out = LogFormatter().format(_record(logging.INFO, "hello %s", "world"))
    match = LINE.match(out)
    assert match is not None
    assert match.group(1) == "INFO"
    assert match.group(2) == "hello world"


def test_level_abbreviations():
    fmt = LogFormatter()
    levels = {
        logging.WARNING: "WARN",
        logging.ERROR: "ERRO",
        logging.DEBUG: "DEBU",
        TRACE: "TRAC",
        logging.CRITICAL: "FATA",
    }
    for level, abbrev in levels.items():
        assert LINE.match(fmt.format(_record(level, "x"))).group(1) == abbrev


def test_colored_format():
    out = LogFormatter(colored=True).format(_record(logging.INFO, "msg"))
    assert out.startswith("\x1b[36m")
    assert out.endswith("\x1b[0m")
    assert "[INFO] msg" in out


def test_caller_reported():
    out = LogFormatter(report_caller=True).format(_record(logging.INFO, "msg"))
    assert f"[{__file__}:1] msg" in out


def test_new_logger_writes_file_and_stdout(tmp_path, capsys):
    logger = new_logger("app.log", False, str(tmp_path / "logs"))
    try:
        assert logger.level == TRACE
        logger.info("started")
        logger.log(TRACE, "detail")
        for handler in logger.handlers:
            handler.flush()
        text = (tmp_path / "logs" / "app.log").read_text()
        assert "[INFO] started" in text
        assert "[TRAC] detail" in text
        assert "[INFO] started" in capsys.readouterr().out
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()


def test_new_logger_replaces_handlers(tmp_path):
    new_logger("a.log", False, str(tmp_path))
    logger = new_logger("a.log", False, str(tmp_path))
    try:
        assert len(logger.handlers) == 2
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()