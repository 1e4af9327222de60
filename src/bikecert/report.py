import enum
from typing import Literal

from pydantic import BaseModel, Field


class Level(enum.StrEnum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"


class Section(enum.IntEnum):
    """Report sections, in the order they are rendered."""

    STRUCTURE = 0
    FIELDS = 1
    INVENTORY = 2
    TARGET = 3
    PUBLIC_KEY = 4
    OWNER = 5


SECTION_TITLES: dict[Section, str] = {
    Section.STRUCTURE: "Certificate Validation",
    Section.FIELDS: "Certificate Fields",
    Section.INVENTORY: "Inventory Cross-Reference",
    Section.TARGET: "Device ID Verification",
    Section.PUBLIC_KEY: "Public Key Verification",
    Section.OWNER: "Owner ID Verification",
}

MARKERS: dict[Level, str] = {
    Level.ERROR: "✗",
    Level.WARNING: "⚠",
    Level.INFO: "ℹ",
    Level.SUCCESS: "✓",
}


class Verdict(enum.StrEnum):
    VALID = "valid"
    VALID_WITH_WARNINGS = "valid-with-warnings"
    INVALID = "invalid"


Halt = Literal["malformed_input", "too_short", "decode_error"]


class Finding(BaseModel):
    level: Level
    section: Section
    message: str
    # continuation lines rendered indented below the message
    details: list[str] = Field(default_factory=list)


class FieldRow(BaseModel):
    label: str
    value: str
    note: str = ""


class ValidationReport(BaseModel):
    findings: list[Finding] = Field(default_factory=list)
    fields: list[FieldRow] = Field(default_factory=list)
    halt: Halt | None = None

    def add(
        self, level: Level, section: Section, message: str, *details: str
    ) -> Finding:
        finding = Finding(level=level, section=section, message=message, details=list(details))
        self.findings.append(finding)
        return finding

    def extend(self, findings: list[Finding]) -> None:
        self.findings.extend(findings)

    def show(self, label: str, value: str, note: str = "") -> None:
        self.fields.append(FieldRow(label=label, value=value, note=note))

    def at(self, level: Level) -> list[Finding]:
        return [f for f in self.findings if f.level == level]

    @property
    def error_count(self) -> int:
        return len(self.at(Level.ERROR))

    @property
    def warning_count(self) -> int:
        return len(self.at(Level.WARNING))

    @property
    def verdict(self) -> Verdict:
        if self.halt is not None or self.error_count:
            return Verdict.INVALID
        if self.warning_count:
            return Verdict.VALID_WITH_WARNINGS
        return Verdict.VALID

    @property
    def usable(self) -> bool:
        return self.verdict != Verdict.INVALID

    def summary(self) -> Finding:
        errors, warnings = self.error_count, self.warning_count
        if self.halt is None and not errors and not warnings:
            return Finding(
                level=Level.SUCCESS,
                section=Section.STRUCTURE,
                message="Certificate structure is valid",
            )
        return Finding(
            level=Level.ERROR if errors else Level.WARNING,
            section=Section.STRUCTURE,
            message=f"Certificate has {errors} error(s) and {warnings} warning(s)",
        )

    def render(self) -> list[str]:
        lines: list[str] = []
        for section in Section:
            findings = [f for f in self.findings if f.section == section]
            rows = self.fields if section == Section.FIELDS else []
            if not findings and not rows:
                continue
            if lines:
                lines.append("")
            lines.append(f"--- {SECTION_TITLES[section]} ---")
            for row in rows:
                note = f" {row.note}" if row.note else ""
                lines.append(f"{row.label}: {row.value}{note}")
            for finding in findings:
                lines.append(f"{MARKERS[finding.level]} {finding.message}")
                lines.extend(f"  {d}" for d in finding.details)

        summary = self.summary()
        if lines:
            lines.append("")
        lines.append(f"{MARKERS[summary.level]} {summary.message}")
        lines.append(f"Verdict: {self.verdict.value}")
        return lines
