"""
Package Exporter

Renders an in-memory download package into transportable files:
- ``json``: the whole package in one pretty-printed file
- ``mongoexport``: one JSON array per collection plus a mongoimport shell script
- ``mongoimport``: a single mongosh import script plus a manifest

Exporting is pure; it never touches enrollment state.
"""

import json
import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

from jinja2 import Environment, PackageLoader, StrictUndefined

from exam_sync.core.metrics import SYNC_EXPORTS
from .exceptions import InvalidPackageDataError, UnknownExportFormatError

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("json", "mongoexport", "mongoimport")

REQUIRED_SECTIONS = ("packageId", "enrollments", "users", "test")


@dataclass
class ExportResult:
    format: str
    files: Dict[str, str] = field(default_factory=dict)
    instructions: List[str] = field(default_factory=list)


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def shell_quote(value: Any) -> str:
    """Single shell word for an untrusted value; None renders as an empty string."""
    return shlex.quote("" if value is None else str(value))


class PackageExporter:
    """Turns a package dict into named file contents."""

    def __init__(self, db_name: str = "offline_exam"):
        self.db_name = db_name
        self.templates = Environment(
            loader=PackageLoader("exam_sync.services.sync", "templates"),
            autoescape=False,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True
        )
        self.templates.filters["shell_quote"] = shell_quote
        self._renderers = {
            "json": self._export_json,
            "mongoexport": self._export_mongoexport,
            "mongoimport": self._export_mongoimport,
        }

    def export(self, package: Dict[str, Any], format: str = "json") -> ExportResult:
        renderer = self._renderers.get(format)
        if renderer is None:
            raise UnknownExportFormatError(format, SUPPORTED_FORMATS)

        if not isinstance(package, dict):
            raise InvalidPackageDataError("Package data must be an object")
        missing = [section for section in REQUIRED_SECTIONS if section not in package]
        if missing:
            raise InvalidPackageDataError(
                f"Package data is missing required sections: {', '.join(missing)}"
            )
        if not isinstance(package["test"], dict):
            raise InvalidPackageDataError("Package section 'test' must be an object")
        for section in ("enrollments", "users"):
            if not isinstance(package[section], list):
                raise InvalidPackageDataError(f"Package section '{section}' must be a list")

        result = renderer(package)
        SYNC_EXPORTS.labels(format=format).inc()
        logger.info(
            f"Exported package {package['packageId']} in {format} format "
            f"({len(result.files)} files)"
        )
        return result

    def write_export(self, result: ExportResult, directory: Union[str, Path]) -> List[Path]:
        """Materialize exported files into ``directory`` (e.g. removable media)."""
        target = Path(directory)
        target.mkdir(parents=True, exist_ok=True)

        written = []
        for filename, content in sorted(result.files.items()):
            path = target / filename
            path.write_text(content, encoding="utf-8")
            if filename.endswith(".sh"):
                path.chmod(0o755)
            written.append(path)

        logger.info(f"Wrote {len(written)} {result.format} export files to {target}")
        return written

    def _export_json(self, package: Dict[str, Any]) -> ExportResult:
        return ExportResult(
            format="json",
            files={"package.json": _dump(package)},
            instructions=[
                "Copy package.json to the offline test center machine",
                "Load the package into the offline application's local database",
                "Students sign in with their access codes and take the test offline",
                "Upload results back using the upload-results endpoint with the same packageId",
            ]
        )

    def _collections(self, package: Dict[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
        """Split a package into the documents of each offline collection."""
        test = dict(package["test"])
        questions = [
            dict(question, testId=test.get("id"))
            for question in test.pop("questions", [])
        ]
        enrollments = [
            dict(enrollment, packageId=package["packageId"], syncStatus="downloaded")
            for enrollment in package["enrollments"]
        ]
        return {
            "users": list(package["users"]),
            "test": [test],
            "questions": questions,
            "testenrollments": enrollments,
        }

    def _manifest(self, package: Dict[str, Any], files: List[str]) -> Dict[str, Any]:
        return {
            "packageId": package["packageId"],
            "testCenterId": package.get("testCenterId"),
            "testId": package.get("testId"),
            "testTitle": package.get("testTitle"),
            "generatedAt": package.get("generatedAt"),
            "metadata": package.get("metadata", {}),
            "files": files,
        }

    def _export_mongoexport(self, package: Dict[str, Any]) -> ExportResult:
        collections = self._collections(package)

        files = {f"{name}.json": _dump(documents) for name, documents in collections.items()}
        files["import-script.sh"] = self.templates.get_template("import-script.sh.j2").render(
            package_id=package["packageId"],
            test_title=package.get("testTitle", ""),
            test_center_id=package.get("testCenterId", ""),
            db_name=self.db_name,
            collections=[(name, f"{name}.json") for name in collections]
        )

        return ExportResult(
            format="mongoexport",
            files=files,
            instructions=[
                "Copy all exported files into one directory on the offline server",
                "Run: sh import-script.sh (set DB_NAME or MONGO_URI to override defaults)",
                "Students sign in with their access codes and take the test offline",
                "Upload results back using the upload-results endpoint with the same packageId",
            ]
        )

    def _export_mongoimport(self, package: Dict[str, Any]) -> ExportResult:
        collections = self._collections(package)
        manifest = self._manifest(package, ["import-data.js", "package-info.json"])

        script = self.templates.get_template("import-data.js.j2").render(
            package_id_json=json.dumps(package["packageId"]),
            db_name=self.db_name,
            collections=[(name, _dump(documents)) for name, documents in collections.items()],
            manifest_json=_dump(manifest)
        )

        return ExportResult(
            format="mongoimport",
            files={
                "import-data.js": script,
                "package-info.json": _dump(manifest),
            },
            instructions=[
                "Copy import-data.js and package-info.json to the offline server",
                f"Run: mongosh \"mongodb://localhost:27017/{self.db_name}\" import-data.js",
                "Students sign in with their access codes and take the test offline",
                "Upload results back using the upload-results endpoint with the same packageId",
            ]
        )
