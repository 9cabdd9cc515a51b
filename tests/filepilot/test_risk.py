import unittest

from filepilot.core.chain import new_operation, operation_kind_name, risk_level_name, status_message, OperationStatus
from filepilot.core.risk import OperationKind, RiskLevel, default_requires_confirmation, kind_of, risk_of


class TestRiskTable(unittest.TestCase):
    def test_kind_to_risk(self) -> None:
        self.assertEqual(risk_of(OperationKind.LIST), RiskLevel.NONE)
        self.assertEqual(risk_of(OperationKind.SEARCH), RiskLevel.NONE)
        self.assertEqual(risk_of(OperationKind.COPY), RiskLevel.LOW)
        self.assertEqual(risk_of(OperationKind.CREATE), RiskLevel.LOW)
        self.assertEqual(risk_of(OperationKind.MOVE), RiskLevel.MEDIUM)
        self.assertEqual(risk_of(OperationKind.RENAME), RiskLevel.MEDIUM)
        self.assertEqual(risk_of(OperationKind.BATCH_MOVE), RiskLevel.MEDIUM)
        self.assertEqual(risk_of(OperationKind.DELETE), RiskLevel.HIGH)
        self.assertEqual(risk_of(OperationKind.UNKNOWN), RiskLevel.MEDIUM)

    def test_tool_to_kind(self) -> None:
        self.assertEqual(kind_of("file_delete"), OperationKind.DELETE)
        self.assertEqual(kind_of("semantic_search"), OperationKind.SEARCH)
        self.assertEqual(kind_of("image_generate"), OperationKind.CREATE)
        self.assertEqual(kind_of("launch_rockets"), OperationKind.UNKNOWN)

    def test_confirmation_from_risk(self) -> None:
        self.assertFalse(default_requires_confirmation(RiskLevel.LOW))
        self.assertTrue(default_requires_confirmation(RiskLevel.MEDIUM))
        self.assertTrue(new_operation("launch_rockets", "{}").requires_confirmation)
        self.assertFalse(new_operation("file_copy", "{}").requires_confirmation)

    def test_parse(self) -> None:
        self.assertEqual(RiskLevel.parse("medium"), RiskLevel.MEDIUM)
        self.assertEqual(RiskLevel.parse(3), RiskLevel.HIGH)
        with self.assertRaises(KeyError):
            RiskLevel.parse("extreme")

    def test_names(self) -> None:
        self.assertEqual(risk_level_name(RiskLevel.NONE), "Safe")
        self.assertEqual(risk_level_name(RiskLevel.HIGH), "High Risk")
        self.assertEqual(operation_kind_name(OperationKind.BATCH_RENAME), "Batch Rename")
        self.assertEqual(status_message(OperationStatus.NO_OPERATIONS), "No operations to execute")


if __name__ == "__main__":
    unittest.main()
