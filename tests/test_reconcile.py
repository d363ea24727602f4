from __future__ import annotations

import unittest

from lube_doctor.merge_modules.reconcile import (
    get_column,
    get_column_occurrences,
    is_blank_row,
    reconcile_matrices,
)


FILE_A = [
    ["Asset number", "Done?", "Moteur", "Moteur"],
    ["A1", "No", "111", "AAA"],
]
FILE_B = [
    ["Asset number", "Done?", "Moteur", "Area"],
    ["B1", "Yes", "222", "Hall"],
]


class ReconcileTests(unittest.TestCase):
    def test_every_record_has_every_canonical_key(self):
        result = reconcile_matrices([FILE_A, FILE_B])
        keys = set(result.schema.keys())
        self.assertEqual(len(result.records), 2)
        for record in result.records:
            self.assertEqual(set(record), keys)

    def test_rows_are_aligned_by_internal_key(self):
        result = reconcile_matrices([FILE_A, FILE_B])
        first, second = result.records
        self.assertEqual(first["Moteur__occ2"], "AAA")
        self.assertEqual(first["Area__occ1"], "")
        self.assertEqual(second["Moteur__occ1"], "222")
        self.assertEqual(second["Moteur__occ2"], "")
        self.assertEqual(second["Area__occ1"], "Hall")

    def test_short_rows_are_padded_and_long_rows_truncated(self):
        result = reconcile_matrices([[["Asset number", "Done?"], ["A1"], ["A2", "No", "extra"]]])
        self.assertEqual(result.records[0], {"Asset number__occ1": "A1", "Done?__occ1": ""})
        self.assertEqual(result.records[1], {"Asset number__occ1": "A2", "Done?__occ1": "No"})

    def test_blank_rows_are_skipped_and_counted(self):
        result = reconcile_matrices([[["Asset number", "Done?"], ["", "  "], [], ["A1", "Yes"]]])
        self.assertEqual(result.accepted_rows, 1)
        self.assertEqual(result.blank_rows_skipped, 2)

    def test_header_only_and_empty_files_are_skipped(self):
        result = reconcile_matrices([[], [["Ignored header"]], FILE_A])
        self.assertEqual(result.files_skipped, [0, 1])
        self.assertEqual(result.files_used, [2])
        self.assertNotIn("Ignored header__occ1", result.schema.keys())
        self.assertEqual(result.schema.keys()[0], "Asset number__occ1")

    def test_no_files_gives_empty_result(self):
        result = reconcile_matrices([])
        self.assertEqual(len(result.schema), 0)
        self.assertEqual(result.records, [])
        self.assertEqual(result.accepted_rows, 0)

    def test_inputs_are_not_mutated(self):
        matrix = [["Asset number", "Done?"], ["A1"]]
        reconcile_matrices([matrix])
        self.assertEqual(matrix, [["Asset number", "Done?"], ["A1"]])


class ColumnLookupTests(unittest.TestCase):
    def setUp(self):
        result = reconcile_matrices(
            [[["Asset number", " Done? ", "Component", "Component"], ["A1", " Yes ", "Roulement", ""]]]
        )
        self.schema = result.schema
        self.record = result.records[0]

    def test_lookup_trims_name_and_value(self):
        self.assertEqual(get_column(self.record, self.schema, "Done?"), "Yes")

    def test_missing_column_resolves_to_empty(self):
        self.assertEqual(get_column(self.record, self.schema, "Area"), "")
        self.assertEqual(get_column(self.record, self.schema, "Component", 5), "")

    def test_occurrences_include_blanks_up_to_limit(self):
        self.assertEqual(
            get_column_occurrences(self.record, self.schema, "Component", 3),
            ["Roulement", "", ""],
        )

    def test_is_blank_row(self):
        self.assertTrue(is_blank_row([]))
        self.assertTrue(is_blank_row(["", " ", None]))
        self.assertFalse(is_blank_row(["", "x"]))


if __name__ == "__main__":
    unittest.main()
