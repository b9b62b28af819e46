import logging
import tempfile
import unittest
from pathlib import Path
from logging_config import SERVICE_LOGGER, setup_logging

class TestSetupLogging(unittest.TestCase):
    def setUp(self):
        self.root = logging.getLogger()
        self.saved_handlers = list(self.root.handlers)
        self.saved_level = self.root.level
        self.root.handlers = []

    def tearDown(self):
        for handler in self.root.handlers:
            handler.close()
        self.root.handlers = self.saved_handlers
        self.root.setLevel(self.saved_level)

    def test_configures_root_once(self):
        logger = setup_logging("debug")
        self.assertEqual(logger.name, SERVICE_LOGGER)
        self.assertEqual(self.root.level, logging.DEBUG)
        self.assertEqual(len(self.root.handlers), 1)

        setup_logging("warning")
        self.assertEqual(len(self.root.handlers), 1)
        self.assertEqual(self.root.level, logging.WARNING)

    def test_unknown_level_falls_back_to_info(self):
        setup_logging("chatty")
        self.assertEqual(self.root.level, logging.INFO)

    def test_logfile_gets_service_name(self):
        with tempfile.TemporaryDirectory() as tmp:
            logfile = Path(tmp) / "petstore.log"
            setup_logging("INFO", str(logfile), service="pets-api")
            logging.getLogger("document_store").info("Inserted pets:1")
            for handler in self.root.handlers:
                handler.flush()
            line = logfile.read_text(encoding="utf-8")
            for handler in self.root.handlers:
                handler.close()
            self.root.handlers = []
        self.assertIn("pets-api INFO    document_store | Inserted pets:1", line)

if __name__ == "__main__":
    unittest.main()
