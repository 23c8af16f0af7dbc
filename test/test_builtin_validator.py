import unittest

from nrivalidator.common.exception import DefaultValidationDenied
from nrivalidator.validation.providers.builtin import BuiltinValidator


def make_request(adjust=None, plugins=("test-plugin",), annotations=None):
    return {
        "pod": {"name": "pod", "namespace": "default", "annotations": annotations or {}},
        "container": {"id": "ctr-1", "name": "ctr"},
        "adjust": adjust or {},
        "plugins": [{"name": p, "index": str(i)} for i, p in enumerate(plugins)],
    }


class TestBuiltinValidator(unittest.TestCase):
    """Tests for the built-in default validator."""

    def test_defaults_allow_everything(self):
        validator = BuiltinValidator({})
        validator.validate_container_adjustment(
            make_request(
                {
                    "hooks": {"prestart": [{"path": "/bin/true"}]},
                    "linux": {
                        "namespaces": [{"type": "pid", "path": "/proc/1/ns/pid"}],
                        "seccomp_policy": {"default_action": "SCMP_ACT_ALLOW"},
                    },
                }
            )
        )
        self.assertEqual(validator.get_name(), "builtin")
        self.assertTrue(validator.health_check())

    def test_reject_hooks(self):
        validator = BuiltinValidator({"rejectOCIHookAdjustment": True})
        validator.validate_container_adjustment(make_request({"env": [{"key": "A", "value": "1"}]}))

        with self.assertRaises(DefaultValidationDenied) as cm:
            validator.validate_container_adjustment(make_request({"hooks": {"poststop": [{"path": "/bin/true"}]}}))
        self.assertEqual(str(cm.exception), "OCI hook injection is not allowed")

    def test_reject_namespaces(self):
        validator = BuiltinValidator({"rejectNamespaceAdjustment": True})

        with self.assertRaises(DefaultValidationDenied) as cm:
            validator.validate_container_adjustment(
                make_request({"linux": {"namespaces": [{"type": "network", "path": "/proc/1/ns/net"}]}})
            )
        self.assertEqual(str(cm.exception), "Linux namespace adjustment is not allowed")

    def test_reject_seccomp(self):
        validator = BuiltinValidator({"rejectSeccompAdjustment": True})

        with self.assertRaises(DefaultValidationDenied) as cm:
            validator.validate_container_adjustment(make_request({"linux": {"seccomp_policy": {}}}))
        self.assertEqual(str(cm.exception), "seccomp policy adjustment is not allowed")

    def test_required_plugins(self):
        validator = BuiltinValidator({"requiredPlugins": ["annotator", "tuner", "labeler"]})

        validator.validate_container_adjustment(make_request(plugins=("labeler", "tuner", "annotator", "extra")))

        with self.assertRaises(DefaultValidationDenied) as cm:
            validator.validate_container_adjustment(make_request(plugins=("tuner",)))
        self.assertEqual(str(cm.exception), "required plugins annotator, labeler not present")

    def test_tolerate_missing_plugins(self):
        validator = BuiltinValidator(
            {"requiredPlugins": ["annotator"], "tolerateMissingAnnotation": "nri.io/tolerate-missing-plugins"}
        )

        validator.validate_container_adjustment(
            make_request(plugins=(), annotations={"nri.io/tolerate-missing-plugins": "true"})
        )
        with self.assertRaises(DefaultValidationDenied):
            validator.validate_container_adjustment(
                make_request(plugins=(), annotations={"nri.io/tolerate-missing-plugins": "false"})
            )

    def test_invalid_options(self):
        self.assertRaises(ValueError, BuiltinValidator, {"rejectOCIHookAdjustment": "yes"})
        self.assertRaises(ValueError, BuiltinValidator, {"requiredPlugins": "annotator"})
        self.assertRaises(ValueError, BuiltinValidator, {"requiredPlugins": [1]})
        self.assertRaises(ValueError, BuiltinValidator, {"tolerateMissingAnnotation": True})

    def test_check_options(self):
        BuiltinValidator.check_options({})
        BuiltinValidator.check_options(
            {"rejectSeccompAdjustment": False, "requiredPlugins": ["a"], "tolerateMissingAnnotation": "x"}
        )
        with self.assertRaises(ValueError) as cm:
            BuiltinValidator.check_options({"rejectNamespaceAdjustment": 1})
        self.assertEqual(str(cm.exception), "rejectNamespaceAdjustment must be a boolean")

    def test_unknown_option(self):
        with self.assertLogs("nrivalidator.builtin", level="WARNING") as cm:
            BuiltinValidator({"rejectEverything": True})
        self.assertIn("Ignoring unknown default validator option rejectEverything", cm.output[0])


if __name__ == "__main__":
    unittest.main()
