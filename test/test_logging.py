import logging
import os
import tempfile
import unittest
from unittest.mock import patch

from nrivalidator import validator_logging
from nrivalidator.validator_logging import (
    RequestIDFilter,
    _safe_logging_configuration,
    annotate_logger,
    init_logging,
    load_logging_config,
    request_id_var,
    set_log_func,
    set_verbose,
)


class TestValidatorLogging(unittest.TestCase):
    def setUp(self):
        root = logging.getLogger()
        self.root_handlers = list(root.handlers)
        self.root_level = root.level
        self.package_level = logging.getLogger("nrivalidator").level

    def tearDown(self):
        """
        Restore the logging configuration changed by the test.
        """
        root = logging.getLogger()
        root.handlers = self.root_handlers
        root.setLevel(self.root_level)
        logging.getLogger("nrivalidator").setLevel(self.package_level)

    def write_config(self, directory, content):
        path = os.path.join(directory, "logging.yaml")
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        return path

    def test_set_log_func(self):
        """
        Test that set_log_func returns the correct logging function based on log level.
        """
        logger = logging.getLogger("test")
        self.assertEqual(set_log_func(logging.INFO, logger), logger.info)
        self.assertEqual(set_log_func(logging.DEBUG, logger), logger.debug)
        self.assertEqual(set_log_func(logging.WARNING, logger), logger.warning)
        self.assertEqual(set_log_func(logging.ERROR, logger), logger.error)
        self.assertEqual(set_log_func(logging.CRITICAL, logger), logger.critical)

    def test_annotate_logger(self):
        """
        Test that annotate_logger adds a single RequestIDFilter to all handlers.
        """
        logger = logging.getLogger("test.annotate")
        handler = logging.StreamHandler()
        logger.addHandler(handler)
        try:
            annotate_logger(logger)
            annotate_logger(logger)
            self.assertEqual(len([f for f in handler.filters if isinstance(f, RequestIDFilter)]), 1)
        finally:
            logger.removeHandler(handler)

    def test_request_id_filter(self):
        record = logging.LogRecord("test", logging.INFO, __file__, 1, "message", None, None)

        token = request_id_var.set("ctr-1")
        try:
            self.assertTrue(RequestIDFilter().filter(record))
        finally:
            request_id_var.reset(token)
        self.assertEqual(record.reqid, "ctr-1")
        self.assertEqual(record.reqidf, "(reqid=ctr-1)")

        RequestIDFilter().filter(record)
        self.assertEqual(record.reqidf, "")

    def test_safe_logging_configuration(self):
        """
        Test that _safe_logging_configuration restores logging state after an error.
        """
        root_logger = logging.getLogger()
        original_level = root_logger.level

        with self.assertRaises(RuntimeError):
            with _safe_logging_configuration():
                root_logger.setLevel(logging.CRITICAL)
                self.assertEqual(root_logger.level, logging.CRITICAL)
                raise RuntimeError("Simulated error")

        self.assertEqual(root_logger.level, original_level)

    def test_load_logging_config(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self.write_config(
                tmpdir,
                "version: 1\n"
                "disable_existing_loggers: false\n"
                "loggers:\n"
                "  nrivalidator.testcfg:\n"
                "    level: WARNING\n",
            )
            load_logging_config(path)

        self.assertEqual(logging.getLogger("nrivalidator.testcfg").level, logging.WARNING)

    def test_load_invalid_logging_config(self):
        """
        Test that a configuration that cannot be applied leaves the root logger alone.
        """
        root_handlers = list(logging.getLogger().handlers)

        with tempfile.TemporaryDirectory() as tmpdir:
            path = self.write_config(
                tmpdir,
                "version: 1\n"
                "disable_existing_loggers: false\n"
                "handlers:\n"
                "  broken:\n"
                "    class: nonexistent.Handler\n"
                "root:\n"
                "  handlers: [broken]\n",
            )
            self.assertRaises(ValueError, load_logging_config, path)

            path = self.write_config(tmpdir, "- not\n- a mapping\n")
            self.assertRaises(ValueError, load_logging_config, path)

        self.assertEqual(logging.getLogger().handlers, root_handlers)

    def test_set_verbose(self):
        set_verbose(True)
        self.assertEqual(logging.getLogger("nrivalidator").level, logging.DEBUG)
        set_verbose(False)
        self.assertEqual(logging.getLogger("nrivalidator").level, logging.INFO)

    def test_init_logging(self):
        """
        Test that init_logging returns a package logger and applies the configuration file only once.
        """
        with patch.dict(os.environ, {validator_logging.LOGGING_CONFIG_ENV: "/etc/nri/logging.yaml"}), patch.object(
            validator_logging, "_file_config_applied", False
        ), patch.object(validator_logging, "load_logging_config") as mock_load:
            logger = init_logging("custom")
            init_logging("other")

        self.assertEqual(logger.name, "nrivalidator.custom")
        mock_load.assert_called_once_with("/etc/nri/logging.yaml")

    def test_init_logging_bad_config(self):
        with patch.dict(os.environ, {validator_logging.LOGGING_CONFIG_ENV: "/nonexistent/logging.yaml"}), patch.object(
            validator_logging, "_file_config_applied", False
        ):
            with self.assertLogs("nrivalidator.custom", level="ERROR") as cm:
                init_logging("custom")

        self.assertIn("Logging configuration error in /nonexistent/logging.yaml", cm.output[0])


if __name__ == "__main__":
    unittest.main()
