"""
Validation Engine: ordered rule registry over (metadata document, folder plan).

Rules:
- Each rule is a pure function (document, plan) → findings
- No I/O, no mutation of inputs
- is_valid ⇔ no error findings; warnings never block
- Same package twice → identical report (except validated_at)
"""

import json
import re
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from src.core.categories import ClassificationCodes, default_classification_codes
from src.core.naming import is_valid_drawing_file_name, is_valid_photo_file_name
from src.core.photo_xml import is_valid_photo_xml
from src.domain.constants import DEFAULT_MAX_FILE_SIZE_MB, SHOOTING_DATE_FORMAT
from src.domain.errors import ValidationCodes
from src.domain.schemas import (
    FolderPlan,
    PackageMetadataDocument,
    Severity,
    ValidationFinding,
    ValidationReport,
)

RuleCheck = Callable[[PackageMetadataDocument, FolderPlan], list[ValidationFinding]]

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# (record attribute, code set attribute, XML field name)
CLASSIFICATION_FIELDS = (
    ("major_category", "major_categories", "photoMajorCategory"),
    ("category", "categories", "photoCategory"),
    ("construction_type", "construction_types", "constructionType"),
    ("work_type", "work_types", "workType"),
    ("detail_type", "detail_types", "detailType"),
)


@dataclass(frozen=True)
class ValidationRule:
    """Registry entry. rule_id is the stable identifier used in findings."""
    rule_id: str
    name: str
    check: RuleCheck


def _error(rule_id: str, code: str, message: str, **kwargs) -> ValidationFinding:
    return ValidationFinding(
        severity=Severity.ERROR, code=code, message=message, rule_id=rule_id, **kwargs
    )


def _warning(rule_id: str, code: str, message: str, **kwargs) -> ValidationFinding:
    return ValidationFinding(
        severity=Severity.WARNING, code=code, message=message, rule_id=rule_id, **kwargs
    )


# =============================================================================
# Blocking Rules
# =============================================================================

def check_photo_list(document: PackageMetadataDocument, plan: FolderPlan) -> list[ValidationFinding]:
    if document.records:
        return []
    return [_error(
        "structure",
        ValidationCodes.EMPTY_PHOTO_LIST,
        "Package contains no photo files",
        target_file=plan.metadata_path or None,
    )]


def check_file_names(document: PackageMetadataDocument, plan: FolderPlan) -> list[ValidationFinding]:
    """Name grammar per category plus duplicate detection across the package."""
    findings: list[ValidationFinding] = []

    for record in document.records:
        if not is_valid_photo_file_name(record.photo_file_name):
            findings.append(_error(
                "file-naming",
                ValidationCodes.INVALID_FILE_NAME,
                "Photo file name does not follow the delivery grammar",
                target_file=record.photo_file_name,
                target_field="photoFileName",
                details="Expected P + 7-digit sequence + .JPG/.TIF",
            ))

    for entry in plan.drawing_entries:
        if not is_valid_drawing_file_name(entry.delivery_name):
            findings.append(_error(
                "file-naming",
                ValidationCodes.INVALID_FILE_NAME,
                "Drawing file name does not follow the delivery grammar",
                target_file=entry.delivery_name,
                details="Expected D + 7-digit sequence + .JPG/.TIF/.PDF",
            ))

    names = [r.photo_file_name for r in document.records]
    names += [e.delivery_name for e in plan.drawing_entries]
    for name, count in sorted(Counter(names).items()):
        if count > 1:
            findings.append(_error(
                "file-naming",
                ValidationCodes.DUPLICATE_FILE_NAME,
                "Delivery file name is used more than once",
                target_file=name,
                details=f"{count} occurrences",
            ))

    return findings


def _sequence_finding(kind: str, numbers: Iterable[int]) -> ValidationFinding | None:
    ordered = sorted(numbers)
    for expected, actual in enumerate(ordered, start=1):
        if actual != expected:
            return _error(
                "sequence",
                ValidationCodes.SEQUENCE_GAP,
                f"{kind.capitalize()} sequence numbers are not contiguous",
                details=f"number {actual} (expected {expected})",
            )
    return None


def check_sequence(document: PackageMetadataDocument, plan: FolderPlan) -> list[ValidationFinding]:
    """Per category the sequence numbers must be exactly 1..N."""
    findings = [
        _sequence_finding("photo", (r.photo_number for r in document.records)),
        _sequence_finding("drawing", (e.sequence for e in plan.drawing_entries)),
    ]
    return [f for f in findings if f is not None]


def check_drawing_links(document: PackageMetadataDocument, plan: FolderPlan) -> list[ValidationFinding]:
    drawing_names = {e.delivery_name for e in plan.drawing_entries}
    findings: list[ValidationFinding] = []

    for record in document.records:
        if not record.has_drawing:
            continue
        if record.drawing_file_name not in drawing_names:
            findings.append(_error(
                "drawing-link",
                ValidationCodes.MISSING_DRAWING_FILE,
                "Linked drawing is not part of the package",
                target_file=record.photo_file_name,
                target_field="drawingFileName",
                details=f"referenced: {record.drawing_file_name}",
            ))

    return findings


def _is_valid_date(value: str) -> bool:
    if not DATE_PATTERN.match(value):
        return False
    try:
        datetime.strptime(value, SHOOTING_DATE_FORMAT)
    except ValueError:
        return False
    return True


def check_required_fields(document: PackageMetadataDocument, plan: FolderPlan) -> list[ValidationFinding]:
    findings: list[ValidationFinding] = []

    for record in document.records:
        if not record.title or not record.title.strip():
            findings.append(_error(
                "metadata",
                ValidationCodes.MISSING_REQUIRED_FIELD,
                "Photo title is not set",
                target_file=record.photo_file_name,
                target_field="photoTitle",
            ))

        if not record.shooting_date:
            findings.append(_error(
                "metadata",
                ValidationCodes.MISSING_REQUIRED_FIELD,
                "Shooting date is not set",
                target_file=record.photo_file_name,
                target_field="shootingDate",
            ))
        elif not _is_valid_date(record.shooting_date):
            findings.append(_error(
                "metadata",
                ValidationCodes.INVALID_DATE_FORMAT,
                "Shooting date has an invalid format",
                target_file=record.photo_file_name,
                target_field="shootingDate",
                details="Use YYYY-MM-DD",
            ))

        if not record.category:
            findings.append(_error(
                "metadata",
                ValidationCodes.MISSING_REQUIRED_FIELD,
                "Photo category is not set",
                target_file=record.photo_file_name,
                target_field="photoCategory",
            ))

    return findings


# =============================================================================
# Non-blocking Rules
# =============================================================================

def classification_rule(codes: ClassificationCodes) -> ValidationRule:
    """Codes outside the recognized set are warnings; the set may grow."""

    def check(document: PackageMetadataDocument, plan: FolderPlan) -> list[ValidationFinding]:
        findings: list[ValidationFinding] = []
        for record in document.records:
            for attr, code_set, field_name in CLASSIFICATION_FIELDS:
                value = getattr(record, attr)
                if not codes.is_known(code_set, value):
                    findings.append(_warning(
                        "classification",
                        ValidationCodes.UNRECOGNIZED_CLASSIFICATION,
                        "Classification code is not in the recognized code set",
                        target_file=record.photo_file_name,
                        target_field=field_name,
                        details=f"value: {value}",
                    ))
        return findings

    return ValidationRule("classification", "Classification validity", check)


def check_representative_photo(document: PackageMetadataDocument, plan: FolderPlan) -> list[ValidationFinding]:
    if not document.records or any(r.is_representative for r in document.records):
        return []
    return [_warning(
        "recommended",
        ValidationCodes.NO_REPRESENTATIVE_PHOTO,
        "No representative photo is set",
        details="At least one representative photo is recommended",
    )]


def check_recommended_fields(document: PackageMetadataDocument, plan: FolderPlan) -> list[ValidationFinding]:
    findings: list[ValidationFinding] = []
    for record in document.records:
        if not record.shooting_location:
            findings.append(_warning(
                "recommended",
                ValidationCodes.MISSING_SHOOTING_LOCATION,
                "Shooting location is not set",
                target_file=record.photo_file_name,
                target_field="shootingLocation",
            ))
        if record.location is None:
            findings.append(_warning(
                "recommended",
                ValidationCodes.MISSING_LOCATION_INFO,
                "Geodetic location is not set",
                target_file=record.photo_file_name,
                target_field="location",
            ))
    return findings


def file_size_rule(max_file_size_mb: float) -> ValidationRule:
    def check(document: PackageMetadataDocument, plan: FolderPlan) -> list[ValidationFinding]:
        findings: list[ValidationFinding] = []
        for record in document.records:
            size_mb = record.file_size / (1024 * 1024)
            if size_mb > max_file_size_mb:
                findings.append(_warning(
                    "file-size",
                    ValidationCodes.LARGE_FILE_SIZE,
                    f"File is large ({size_mb:.2f}MB)",
                    target_file=record.photo_file_name,
                    details=f"Recommended: {max_file_size_mb}MB or less",
                ))
        return findings

    return ValidationRule("file-size", "File size", check)


# =============================================================================
# Registry
# =============================================================================

def default_rules(
    codes: ClassificationCodes | None = None,
    max_file_size_mb: float = DEFAULT_MAX_FILE_SIZE_MB,
) -> list[ValidationRule]:
    """Full ordered rule set."""
    return [
        ValidationRule("structure", "Package structure", check_photo_list),
        ValidationRule("file-naming", "File name grammar", check_file_names),
        ValidationRule("sequence", "Sequence contiguity", check_sequence),
        ValidationRule("drawing-link", "Drawing linkage", check_drawing_links),
        ValidationRule("metadata", "Required fields", check_required_fields),
        classification_rule(codes or default_classification_codes()),
        ValidationRule("representative", "Representative photo", check_representative_photo),
        ValidationRule("recommended", "Recommended fields", check_recommended_fields),
        file_size_rule(max_file_size_mb),
    ]


class DeliveryValidator:
    """
    Runs an ordered list of rules against one assembled package.

    Usage:
        validator = DeliveryValidator(recognized_codes=codes)
        report = validator.validate(document, plan)

    Tests can pass an explicit rule subset:
        DeliveryValidator(rules=[ValidationRule("sequence", "...", check_sequence)])
    """

    def __init__(
        self,
        rules: list[ValidationRule] | None = None,
        recognized_codes: ClassificationCodes | None = None,
        max_file_size_mb: float = DEFAULT_MAX_FILE_SIZE_MB,
    ) -> None:
        if rules is None:
            rules = default_rules(recognized_codes, max_file_size_mb)
        self._rules: list[ValidationRule] = list(rules)

    @property
    def rules(self) -> tuple[ValidationRule, ...]:
        return tuple(self._rules)

    def register(self, rule: ValidationRule) -> None:
        """Append a rule; duplicate rule ids are rejected."""
        if any(r.rule_id == rule.rule_id for r in self._rules):
            raise ValueError(f"Rule already registered: {rule.rule_id}")
        self._rules.append(rule)

    def validate(
        self,
        document: PackageMetadataDocument,
        plan: FolderPlan,
        xml_text: str | None = None,
    ) -> ValidationReport:
        """
        Run every registered rule.

        Args:
            document: metadata document
            plan: folder plan the document was built from
            xml_text: serialised PHOTO.XML, structurally checked when given

        Returns:
            ValidationReport
        """
        findings: list[ValidationFinding] = []
        for rule in self._rules:
            findings.extend(rule.check(document, plan))

        if xml_text is not None and not is_valid_photo_xml(xml_text):
            findings.append(_error(
                "xml-structure",
                ValidationCodes.INVALID_XML_STRUCTURE,
                "Metadata document XML structure is invalid",
                target_file=plan.metadata_path or None,
            ))

        return ValidationReport(
            errors=tuple(f for f in findings if f.severity == Severity.ERROR),
            warnings=tuple(f for f in findings if f.severity == Severity.WARNING),
            validated_at=datetime.now(UTC).isoformat(),
            target_folder=plan.root_folder_name,
        )


# =============================================================================
# Formatting
# =============================================================================

def _finding_lines(finding: ValidationFinding) -> list[str]:
    lines = [f"  [{finding.code}] {finding.message}"]
    if finding.target_file:
        lines.append(f"    File: {finding.target_file}")
    if finding.target_field:
        lines.append(f"    Field: {finding.target_field}")
    if finding.details:
        lines.append(f"    Details: {finding.details}")
    return lines


def format_validation_report(report: ValidationReport) -> str:
    """Plain-text rendering of a report."""
    lines = [
        "=" * 60,
        "Electronic delivery validation result",
        "=" * 60,
        f"Validated at: {report.validated_at}",
        f"Target folder: {report.target_folder}",
        f"Result: {'PASS' if report.is_valid else 'FAIL'}",
        "",
    ]

    if report.errors:
        lines.append(f"Errors ({len(report.errors)}):")
        lines.append("-" * 40)
        for finding in report.errors:
            lines.extend(_finding_lines(finding))
        lines.append("")

    if report.warnings:
        lines.append(f"Warnings ({len(report.warnings)}):")
        lines.append("-" * 40)
        for finding in report.warnings:
            lines.extend(_finding_lines(finding))

    lines.append("=" * 60)
    return "\n".join(lines)


def format_validation_report_json(report: ValidationReport) -> str:
    return json.dumps(report.to_dict(), ensure_ascii=False, indent=2)
