from __future__ import annotations

import csv
import io
import json
import tempfile
import unittest
from pathlib import Path

from openpyxl import load_workbook

from lube_doctor.merge import (
    execute_merge,
    execute_merge_uploads,
    load_settings,
    merge_matrices,
    output_paths,
    rerun_with,
    schedule_filename,
    write_outputs,
)
from lube_doctor.merge_modules.categorize import (
    BUCKET_NO_LUBE_POINT,
    BUCKET_NOT_COLLECTED,
    BUCKET_PROCEDURES,
    BUCKET_QUESTIONS,
    BUCKET_SAMPLED,
)
from lube_doctor.merge_modules.shared import MergeSettings

ROOT = Path(__file__).resolve().parents[1]
SAMPLE_A = ROOT / "sample-data" / "field_export_a.csv"
SAMPLE_B = ROOT / "sample-data" / "field_export_b.csv"
HEADER_ONLY = ROOT / "sample-data" / "header_only.csv"

MOTEUR_A = [["Asset number", "Done?", "Moteur", "Moteur"], ["A1", "No", "111", "AAA"]]
MOTEUR_B = [["Asset number", "Done?", "Moteur"], ["A1", "Yes", "222"]]


def identifiers(items):
    return [item.identifier for item in items]


class WorkedExampleTests(unittest.TestCase):
    def test_schema_from_two_moteur_files(self):
        result = merge_matrices([MOTEUR_A, MOTEUR_B])
        self.assertEqual(
            result["schema"].keys(),
            ["Asset number__occ1", "Done?__occ1", "Moteur__occ1", "Moteur__occ2"],
        )

    def test_default_merge_keeps_first_seen_row(self):
        result = merge_matrices([MOTEUR_A, MOTEUR_B])
        self.assertEqual(result["total_rows"], 2)
        combined = result["combine"]
        self.assertEqual(len(combined.combined), 1)
        self.assertEqual(combined.combined[0]["Done?__occ1"], "No")
        self.assertEqual(combined.combined[0]["Moteur__occ2"], "AAA")

    def test_sorted_merge_lets_done_row_win(self):
        result = merge_matrices([MOTEUR_A, MOTEUR_B], MergeSettings(preserve_order=False))
        combined = result["combine"]
        self.assertEqual(len(combined.combined), 1)
        winner = combined.combined[0]
        self.assertEqual(winner["Done?__occ1"], "Yes")
        self.assertEqual(winner["Moteur__occ1"], "222")
        self.assertEqual(winner["Moteur__occ2"], "")
        self.assertEqual(combined.done, [winner])
        self.assertEqual(combined.todo, [])

    def test_no_files_runs_cleanly(self):
        result = merge_matrices([])
        self.assertEqual(result["total_rows"], 0)
        self.assertEqual(result["classified"], [])
        self.assertEqual(
            result["diagnostics"],
            ["Missing column: Done?", "Missing column: Asset number (dedupe skipped)"],
        )


class SampleMergeTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.result = execute_merge([SAMPLE_A, SAMPLE_B, HEADER_ONLY])

    def test_rows_and_files(self):
        self.assertEqual(self.result["total_rows"], 9)
        self.assertEqual(self.result["blank_rows_skipped"], 0)
        self.assertEqual(self.result["files_used"], [0, 1])
        self.assertEqual(self.result["files_skipped"], [2])
        self.assertEqual(self.result["diagnostics"], [])

    def test_schema_unions_both_headers(self):
        schema = self.result["schema"]
        self.assertEqual(len(schema), 22)
        self.assertEqual(schema.keys()[:2], ["Asset number__occ1", "Asset description__occ1"])
        self.assertEqual(schema.keys()[-3:], ["CRIT #__occ1", "Current Lubricant__occ1", "Status note__occ1"])
        self.assertIsNotNone(schema.find("Component", 2))

    def test_dedupe_and_split(self):
        combined = self.result["combine"]
        self.assertEqual(len(combined.combined), 8)
        self.assertEqual(combined.duplicates_removed, 1)
        self.assertEqual(len(combined.todo), 2)
        self.assertEqual(len(combined.done), 6)

    def test_buckets(self):
        buckets = self.result["buckets"]
        self.assertEqual(identifiers(buckets[BUCKET_PROCEDURES]), ["P-101"])
        self.assertEqual(identifiers(buckets[BUCKET_NOT_COLLECTED]), ["", "R-404"])
        self.assertEqual(identifiers(buckets[BUCKET_NO_LUBE_POINT]), ["V-210"])
        self.assertEqual(identifiers(buckets[BUCKET_SAMPLED]), ["S-610"])
        self.assertEqual(identifiers(buckets[BUCKET_QUESTIONS]), ["", "K-500"])
        self.assertEqual([item.page_number for item in buckets[BUCKET_NOT_COLLECTED]], [1, 2])

    def test_classification_of_first_asset(self):
        first = self.result["classified"][0]
        self.assertEqual(first.identifier, "P-101")
        self.assertEqual(first.criticality, "Critical & Complicated")
        self.assertEqual(
            first.conditions,
            {"particle": "Particle Mild", "moisture": "Moisture Heavy", "orientation": "Horizontal"},
        )
        self.assertTrue(first.features["motor"])
        self.assertEqual(first.components, ["Roulement", "Moteur"])
        self.assertEqual(first.details["recommended_quantity"], 12.5)
        self.assertEqual(first.details["number_of_points"], 2)

    def test_stats(self):
        self.assertEqual(
            self.result["stats"],
            {"total": 8, "critical": 1, "complicated": 2, "done": 1, "todo": 7, "not_accessible": 0},
        )

    def test_rerun_with_sort_does_not_touch_previous_result(self):
        before = [dict(record) for record in self.result["combine"].combined]
        rerun = rerun_with(self.result, preserve_order=False)
        self.assertEqual(len(rerun["combine"].combined), 8)
        p102 = [item for item in rerun["classified"] if item.identifier == "P-102"][0]
        self.assertTrue(p102.is_done)
        self.assertEqual(len(rerun["combine"].todo), 1)
        self.assertEqual([dict(record) for record in self.result["combine"].combined], before)
        self.assertFalse(self.result["settings"] is rerun["settings"])
        self.assertEqual(rerun["input_paths"], self.result["input_paths"])


class UploadAndOutputTests(unittest.TestCase):
    def test_uploads_match_file_merge(self):
        uploads = [(SAMPLE_A.name, SAMPLE_A.read_bytes()), (SAMPLE_B.name, SAMPLE_B.read_bytes())]
        result = execute_merge_uploads(uploads)
        self.assertEqual(len(result["combine"].combined), 8)
        self.assertEqual([str(path) for path in result["input_paths"]], [SAMPLE_A.name, SAMPLE_B.name])

    def test_write_outputs(self):
        result = execute_merge([SAMPLE_A, SAMPLE_B], MergeSettings(client_name="Acme"))
        with tempfile.TemporaryDirectory() as tmpdir:
            outputs = write_outputs(result, Path(tmpdir))
            self.assertEqual(outputs, {name: str(path) for name, path in output_paths(result, Path(tmpdir)).items()})
            self.assertEqual(Path(outputs["schedule"]).name, "Acme_Lubrication_Schedule.xlsx")

            rows = list(csv.reader(io.StringIO(Path(outputs["combined"]).read_text(encoding="utf-8"))))
            self.assertEqual(len(rows), 9)
            self.assertEqual(rows[0].count("Component"), 2)
            todo_rows = list(csv.reader(io.StringIO(Path(outputs["todo"]).read_text(encoding="utf-8"))))
            self.assertEqual(len(todo_rows), 3)

            workbook = load_workbook(outputs["schedule"])
            self.assertEqual(
                workbook.sheetnames,
                ["Acme", "Pas collécté", "Pas lubrifié", "Echantillion", "Questions"],
            )
            self.assertEqual(workbook["Acme"].max_row, 2)


class SettingsTests(unittest.TestCase):
    def test_defaults_and_overrides(self):
        settings = load_settings(case_insensitive=True, client_name=None)
        self.assertTrue(settings.case_insensitive)
        self.assertEqual(settings.client_name, "Lubrication-Schedule")
        self.assertEqual(schedule_filename(settings), "Lubrication-Schedule_Lubrication_Schedule.xlsx")

    def test_json_file_is_read(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "settings.json"
            path.write_text(json.dumps({"identifier_column": "Tag", "preserve_order": False}), encoding="utf-8")
            settings = load_settings(path, preserve_order=True)
        self.assertEqual(settings.identifier_column, "Tag")
        self.assertTrue(settings.preserve_order)

    def test_invalid_settings_are_rejected(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            unknown = Path(tmpdir) / "settings.json"
            unknown.write_text(json.dumps({"colour": "red"}), encoding="utf-8")
            with self.assertRaisesRegex(ValueError, "Unknown settings: colour"):
                load_settings(unknown)

            yaml_path = Path(tmpdir) / "settings.yaml"
            yaml_path.write_text("case_insensitive: true\n", encoding="utf-8")
            with self.assertRaisesRegex(ValueError, "YAML"):
                load_settings(yaml_path)

        with self.assertRaisesRegex(ValueError, "max_column_occurrences"):
            load_settings(max_column_occurrences=0)


if __name__ == "__main__":
    unittest.main()
