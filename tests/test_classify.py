from __future__ import annotations

import unittest

from lube_doctor.merge import merge_matrices
from lube_doctor.merge_modules.classify import (
    apply_manual_edit,
    classify_record,
    criticality_label,
    normalize_status,
    parse_decimal,
    parse_int,
)
from lube_doctor.merge_modules.reconcile import reconcile_matrices
from lube_doctor.merge_modules.shared import (
    STATUS_NO_LUBE_POINT,
    STATUS_NOT_ACCESSIBLE,
    STATUS_NOT_FOUND,
    STATUS_OUT_OF_SCOPE,
    STATUS_QUESTION,
    MergeSettings,
)


def classify_one(header, row, settings=None):
    result = reconcile_matrices([[list(header), list(row)]])
    return classify_record(result.records[0], result.schema, settings or MergeSettings()), result.schema


class StatusNormalizationTests(unittest.TestCase):
    def test_rules_in_order(self):
        cases = {
            "Not accessible": STATUS_NOT_ACCESSIBLE,
            "non accessible (hauteur)": STATUS_NOT_ACCESSIBLE,
            "NOT FOUND": STATUS_NOT_FOUND,
            "Pas trouvé": STATUS_NOT_FOUND,
            "nlp": STATUS_NO_LUBE_POINT,
            " Nlp ": STATUS_NO_LUBE_POINT,
            "Question client": STATUS_QUESTION,
            "internal question": STATUS_QUESTION,
            "Hors scope": STATUS_OUT_OF_SCOPE,
            "Out of scope": STATUS_OUT_OF_SCOPE,
            "obsolete": STATUS_OUT_OF_SCOPE,
        }
        for raw, expected in cases.items():
            with self.subTest(raw=raw):
                self.assertEqual(normalize_status(raw), expected)

    def test_first_match_wins(self):
        self.assertEqual(normalize_status("Question: not accessible?"), STATUS_NOT_ACCESSIBLE)

    def test_nlp_requires_exact_value(self):
        self.assertEqual(normalize_status("nlp maybe"), "nlp maybe")

    def test_unmatched_value_is_returned_trimmed(self):
        self.assertEqual(normalize_status("  Sampled "), "Sampled")
        self.assertEqual(normalize_status(""), "")

    def test_hors_scope_is_not_done(self):
        item, _ = classify_one(["Asset number", "Done?"], ["A1", "Hors scope"])
        self.assertEqual(item.status, STATUS_OUT_OF_SCOPE)
        self.assertFalse(item.is_done)

    def test_is_done_ignores_case(self):
        item, _ = classify_one(["Asset number", "Done?"], ["A1", " YES "])
        self.assertTrue(item.is_done)
        self.assertEqual(item.raw_status, "YES")


class CriticalityTests(unittest.TestCase):
    def test_critical_and_complicated(self):
        item, _ = classify_one(["CRITICAL", "Complicated"], ["C", "Complicated"])
        self.assertTrue(item.is_critical)
        self.assertTrue(item.is_complicated)
        self.assertEqual(item.criticality, "Critical & Complicated")

    def test_crit_number_column_also_marks_critical(self):
        item, _ = classify_one(["CRIT #", "Complicated"], ["C", ""])
        self.assertEqual(item.criticality, "Critical")

    def test_critical_sentinel_is_case_sensitive(self):
        item, _ = classify_one(["CRITICAL", "Complicated"], ["c", "COMPLICATED"])
        self.assertFalse(item.is_critical)
        self.assertEqual(item.criticality, "Complicated")

    def test_label_table(self):
        self.assertEqual(criticality_label(False, False), "")
        self.assertEqual(criticality_label(True, False), "Critical")
        self.assertEqual(criticality_label(False, True), "Complicated")


class ConditionAndFeatureTests(unittest.TestCase):
    def test_conditions_are_found_in_any_column(self):
        item, _ = classify_one(
            ["Asset number", "Notes", "Env 1", "Env 2", "Env 3"],
            ["A1", "Particle Mild", "MHVY", "Horizontal", "nothing"],
        )
        self.assertEqual(
            item.conditions,
            {"particle": "Particle Mild", "moisture": "Moisture Heavy", "orientation": "Horizontal"},
        )

    def test_last_match_wins_per_category(self):
        item, _ = classify_one(["Env 1", "Env 2"], ["Horizontal", "VERT"])
        self.assertEqual(item.conditions, {"orientation": "Vertical"})

    def test_feature_flags_require_exact_one(self):
        item, _ = classify_one(["Motor", "Cooler", "Heater"], ["1", "yes", " 1 "])
        self.assertTrue(item.features["motor"])
        self.assertFalse(item.features["cooler"])
        self.assertTrue(item.features["heater"])
        self.assertFalse(item.features["frl"])
        self.assertEqual(len(item.features), 14)


class DetailTests(unittest.TestCase):
    def test_leading_number_parsing(self):
        self.assertEqual(parse_int("12 points"), 12)
        self.assertEqual(parse_int("0"), 0)
        self.assertIsNone(parse_int("about 3"))
        self.assertIsNone(parse_int(""))
        self.assertEqual(parse_decimal("12,5"), 12.5)
        self.assertEqual(parse_decimal("3.25 g"), 3.25)
        self.assertIsNone(parse_decimal("n/a"))

    def test_details_and_components(self):
        item, _ = classify_one(
            ["Asset number", "Area", "Component", "Component", "Component", "# of Points", "Recommended Quantity"],
            ["A1", " Hall ", "Roulement", "", "Moteur", "2", "x"],
        )
        self.assertEqual(item.detail("area"), "Hall")
        self.assertEqual(item.details["number_of_points"], 2)
        self.assertIsNone(item.details["recommended_quantity"])
        self.assertEqual(item.detail("recommended_quantity"), "")
        self.assertEqual(item.components, ["Roulement", "Moteur"])

    def test_oversized_integer_resolves_to_none_without_aborting_merge(self):
        self.assertIsNone(parse_int("9" * 5000))
        result = merge_matrices(
            [[["Asset number", "Done?", "# of Points"], ["A1", "Yes", "9" * 5000], ["A2", "Yes", "2"]]]
        )
        first, second = result["classified"]
        self.assertEqual(first.identifier, "A1")
        self.assertTrue(first.is_done)
        self.assertIsNone(first.details["number_of_points"])
        self.assertEqual(second.details["number_of_points"], 2)

    def test_component_limit_is_configurable(self):
        item, _ = classify_one(
            ["Component", "Component", "Component"],
            ["a", "b", "c"],
            MergeSettings(max_column_occurrences=2),
        )
        self.assertEqual(item.components, ["a", "b"])


class ManualEditTests(unittest.TestCase):
    def test_edit_rederives_fields_without_touching_original(self):
        item, schema = classify_one(["Asset number", "Done?", "Area"], ["A1", "No", "Hall"])
        item.page_number = 4
        edited = apply_manual_edit(item, schema, {"Done?": "Yes", "Unknown column": "x"}, MergeSettings())
        self.assertTrue(edited.is_done)
        self.assertEqual(edited.page_number, 4)
        self.assertEqual(item.record["Done?__occ1"], "No")
        self.assertFalse(item.is_done)
        self.assertNotIn("Unknown column__occ1", edited.record)
        self.assertEqual(len(schema), 3)


if __name__ == "__main__":
    unittest.main()
