from __future__ import annotations

from dataclasses import dataclass, field

from ..app import CatalogMetaApp
from ..errors import CatalogMetaError
from ..providers.validation import provider_problems
from .output import ERROR, OK, WARNING, check_line


@dataclass(slots=True)
class DoctorReport:
    checks: list[str] = field(default_factory=list)
    failed: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed

    def add(self, label: str, status: str, detail: str | None = None) -> None:
        if status == ERROR:
            self.failed = True
        self.checks.append(check_line(label, status, detail))


def run(app: CatalogMetaApp) -> DoctorReport:
    report = DoctorReport()
    settings = app.settings

    report.add("Database", OK, str(settings.storage.database_path))
    try:
        items = app.list_items()
    except CatalogMetaError as exc:
        report.add("Catalog", ERROR, str(exc))
    else:
        linked = sum(1 for item in items if item.linked)
        report.add("Catalog", OK, f"{len(items)} item(s), {linked} linked")

    if not settings.providers.fixtures:
        report.add("Providers", WARNING, "none configured; link/search unavailable")
        return report
    problems = provider_problems(settings.providers)
    for problem in problems:
        report.add("Providers", ERROR, problem)
    if not problems:
        report.add("Providers", OK, ", ".join(sorted(settings.providers.fixtures)))
    return report
