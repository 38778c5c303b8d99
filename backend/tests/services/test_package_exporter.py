"""
Tests for package export formats
"""

import copy
import json
import os
import pytest

from exam_sync.services.sync import (
    PackageExporter,
    SyncValidationError,
    UnknownExportFormatError,
    InvalidPackageDataError
)


@pytest.fixture
def exporter():
    return PackageExporter(db_name="offline_exam")


@pytest.fixture
def package():
    return {
        "packageId": "C1_7_1724576400000",
        "testCenterId": "C1",
        "testId": 7,
        "testTitle": "Sync Test - Mathematics",
        "generatedAt": "2025-08-25T09:00:00",
        "enrollments": [
            {"enrollmentId": 1, "studentId": 11, "testId": 7, "accessCode": "ACCESS000", "scheduledTime": "09:00"},
            {"enrollmentId": 2, "studentId": 12, "testId": 7, "accessCode": "ACCESS001", "scheduledTime": "10:00"},
        ],
        "users": [
            {"id": 11, "firstName": "Ana", "lastName": "Sousa", "email": "ana@example.com",
             "studentRegNumber": "REG011", "profilePicture": None},
            {"id": 12, "firstName": "Kwame", "lastName": "Mensah", "email": "kwame@example.com",
             "studentRegNumber": "REG012", "profilePicture": None},
        ],
        "test": {
            "id": 7,
            "title": "Sync Test - Mathematics",
            "duration": 30,
            "subject": {"id": 1, "name": "Mathematics", "description": None},
            "questions": [
                {"id": 101, "position": 1, "question": "2 + 2?", "options": ["3", "4"], "correctAnswer": "B"},
                {"id": 102, "position": 2, "question": "3 x 3?", "options": ["9", "6"], "correctAnswer": "A"},
            ],
        },
        "metadata": {"totalEnrollments": 2, "totalUsers": 2, "totalQuestions": 2, "skippedEnrollments": 0},
    }


class TestJsonExport:
    """Test the single-file json format"""

    def test_json_export_is_whole_package(self, exporter, package):
        result = exporter.export(package, "json")

        assert result.format == "json"
        assert list(result.files) == ["package.json"]
        assert json.loads(result.files["package.json"]) == package
        assert len(result.instructions) == 4

    def test_json_export_is_pretty_printed(self, exporter, package):
        result = exporter.export(package, "json")

        assert result.files["package.json"].startswith('{\n  "packageId"')

    def test_json_export_keeps_non_ascii(self, exporter, package):
        package["users"][0]["lastName"] = "Gonçalves"

        result = exporter.export(package, "json")

        assert "Gonçalves" in result.files["package.json"]

    def test_default_format_is_json(self, exporter, package):
        assert exporter.export(package).format == "json"


class TestMongoExport:
    """Test the per-collection mongoexport format"""

    def test_mongoexport_file_set(self, exporter, package):
        result = exporter.export(package, "mongoexport")

        assert set(result.files) == {
            "users.json",
            "test.json",
            "questions.json",
            "testenrollments.json",
            "import-script.sh",
        }

    def test_collections_are_json_arrays(self, exporter, package):
        result = exporter.export(package, "mongoexport")

        users = json.loads(result.files["users.json"])
        tests = json.loads(result.files["test.json"])
        questions = json.loads(result.files["questions.json"])
        enrollments = json.loads(result.files["testenrollments.json"])

        assert [u["id"] for u in users] == [11, 12]
        assert len(tests) == 1
        assert "questions" not in tests[0]
        assert tests[0]["title"] == "Sync Test - Mathematics"
        assert [q["id"] for q in questions] == [101, 102]
        assert all(q["testId"] == 7 for q in questions)
        assert all(e["packageId"] == "C1_7_1724576400000" for e in enrollments)
        assert all(e["syncStatus"] == "downloaded" for e in enrollments)

    def test_import_script_imports_every_collection(self, exporter, package):
        script = exporter.export(package, "mongoexport").files["import-script.sh"]

        assert script.startswith("#!/bin/sh")
        assert "DEFAULT_DB_NAME=offline_exam\n" in script
        assert 'DB_NAME="${DB_NAME:-$DEFAULT_DB_NAME}"' in script
        for collection in ("users", "test", "questions", "testenrollments"):
            assert f"--collection {collection} --file {collection}.json --jsonArray --drop" in script
        assert "C1_7_1724576400000" in script

    def test_db_name_is_configurable(self, package):
        script = PackageExporter(db_name="center_db").export(package, "mongoexport").files["import-script.sh"]

        assert "DEFAULT_DB_NAME=center_db\n" in script


class TestMongoImport:
    """Test the single-script mongoimport format"""

    def test_mongoimport_file_set(self, exporter, package):
        result = exporter.export(package, "mongoimport")

        assert set(result.files) == {"import-data.js", "package-info.json"}

    def test_import_script_inserts_collections(self, exporter, package):
        script = exporter.export(package, "mongoimport").files["import-data.js"]

        assert 'const packageId = "C1_7_1724576400000";' in script
        for collection in ("users", "test", "questions", "testenrollments"):
            assert f"db.{collection}.deleteMany({{}});" in script
            assert f"db.{collection}.insertMany(" in script
        assert "db.sync_packages.replaceOne" in script

    def test_manifest_describes_package(self, exporter, package):
        manifest = json.loads(exporter.export(package, "mongoimport").files["package-info.json"])

        assert manifest["packageId"] == "C1_7_1724576400000"
        assert manifest["testCenterId"] == "C1"
        assert manifest["testTitle"] == "Sync Test - Mathematics"
        assert manifest["metadata"]["totalEnrollments"] == 2
        assert manifest["files"] == ["import-data.js", "package-info.json"]

    def test_instructions_name_database(self, exporter, package):
        instructions = exporter.export(package, "mongoimport").instructions

        assert len(instructions) == 4
        assert any("mongodb://localhost:27017/offline_exam" in step for step in instructions)


class TestScriptEscaping:
    """Test that package values cannot escape into generated script code"""

    def test_shell_script_quotes_title_with_newline(self, exporter, package):
        package["testTitle"] = "Algebra\ntouch /tmp/injected"

        script = exporter.export(package, "mongoexport").files["import-script.sh"]

        assert "TEST_TITLE='Algebra\ntouch /tmp/injected'\n" in script
        assert "touch /tmp/injected" not in [line.strip() for line in script.splitlines()]

    def test_shell_script_quotes_command_substitution(self, exporter, package):
        package["testCenterId"] = "$(rm -rf ~)"
        package["packageId"] = "C1_7_1`id`"

        script = exporter.export(package, "mongoexport").files["import-script.sh"]

        assert "TEST_CENTER_ID='$(rm -rf ~)'\n" in script
        assert "PACKAGE_ID='C1_7_1`id`'\n" in script
        assert "$(rm -rf ~)" not in script.replace("TEST_CENTER_ID='$(rm -rf ~)'", "")

    def test_shell_script_quotes_embedded_single_quote(self, exporter, package):
        package["testTitle"] = "O'Brien's test"

        script = exporter.export(package, "mongoexport").files["import-script.sh"]

        assert "TEST_TITLE='O'\"'\"'Brien'\"'\"'s test'\n" in script

    def test_missing_title_renders_empty_word(self, exporter, package):
        package["testTitle"] = None

        script = exporter.export(package, "mongoexport").files["import-script.sh"]

        assert "TEST_TITLE=''\n" in script

    def test_js_script_keeps_package_id_inside_string(self, exporter, package):
        package["packageId"] = "C1_1_1\ndb.dropDatabase()//"

        script = exporter.export(package, "mongoimport").files["import-data.js"]

        assert 'const packageId = "C1_1_1\\ndb.dropDatabase()//";' in script
        assert not any(line.startswith("db.dropDatabase()") for line in script.splitlines())
        assert script.splitlines()[0] == '// Offline import for package "C1_1_1\\ndb.dropDatabase()//"'


class TestExportPurity:
    """Test that exporting is deterministic and side-effect free"""

    @pytest.mark.parametrize("format_name", ["json", "mongoexport", "mongoimport"])
    def test_same_package_gives_identical_files(self, exporter, package, format_name):
        first = exporter.export(package, format_name)
        second = exporter.export(copy.deepcopy(package), format_name)

        assert first.files == second.files

    @pytest.mark.parametrize("format_name", ["json", "mongoexport", "mongoimport"])
    def test_package_is_not_mutated(self, exporter, package, format_name):
        original = copy.deepcopy(package)

        exporter.export(package, format_name)

        assert package == original


class TestExportValidation:
    """Test rejection of unusable export requests"""

    def test_unknown_format(self, exporter, package):
        with pytest.raises(UnknownExportFormatError) as exc_info:
            exporter.export(package, "xml")

        assert str(exc_info.value) == (
            "Unsupported export format 'xml'. Must be one of: json, mongoexport, mongoimport"
        )
        assert exc_info.value.format_name == "xml"

    def test_format_errors_are_validation_errors(self, exporter, package):
        with pytest.raises(SyncValidationError):
            exporter.export(package, "csv")

    def test_package_must_be_object(self, exporter):
        with pytest.raises(InvalidPackageDataError):
            exporter.export(["not", "a", "package"], "json")

    def test_missing_sections(self, exporter, package):
        del package["users"]
        del package["test"]

        with pytest.raises(InvalidPackageDataError) as exc_info:
            exporter.export(package, "mongoexport")

        assert "users, test" in str(exc_info.value)

    def test_sections_must_have_expected_shape(self, exporter, package):
        package["enrollments"] = "C1"

        with pytest.raises(InvalidPackageDataError) as exc_info:
            exporter.export(package, "json")

        assert "enrollments" in str(exc_info.value)

    def test_format_is_checked_before_package(self, exporter):
        with pytest.raises(UnknownExportFormatError):
            exporter.export({}, "yaml")


class TestWriteExport:
    """Test materializing exported files on disk"""

    def test_write_export_creates_files(self, exporter, package, tmp_path):
        result = exporter.export(package, "mongoexport")

        written = exporter.write_export(result, tmp_path / "usb")

        assert sorted(p.name for p in written) == sorted(result.files)
        for path in written:
            assert path.read_text(encoding="utf-8") == result.files[path.name]

    def test_shell_script_is_executable(self, exporter, package, tmp_path):
        result = exporter.export(package, "mongoexport")

        exporter.write_export(result, tmp_path)

        assert os.access(tmp_path / "import-script.sh", os.X_OK)
